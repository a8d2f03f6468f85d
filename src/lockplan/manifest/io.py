"""Manifest parsers and serializer."""

from __future__ import annotations

import json
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from lockplan.errors import MalformedManifestError
from lockplan.manifest.model import Manifest, PackageNode, SourceLocator, build_manifest

MANIFEST_VERSION = 1


def serialize_manifest(manifest: Manifest) -> str:
    payload = {
        "version": MANIFEST_VERSION,
        "root": manifest.root,
        "packages": [
            {
                "name": pkg.name,
                "version": pkg.version,
                "source": str(pkg.source),
                "dependencies": list(pkg.dependencies),
                "license": pkg.license,
                "checksum": pkg.checksum,
            }
            for pkg in manifest.packages
        ],
    }
    return json.dumps(payload, indent=2, sort_keys=True) + "\n"


def parse_manifest(
    raw: str,
    *,
    base_dir: str | Path | None = None,
    root: str | None = None,
) -> Manifest:
    """Parse the JSON manifest format into a validated package graph.

    An explicit *root* takes precedence over the manifest's own `root`.
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MalformedManifestError("Invalid manifest JSON.", hint=str(exc)) from exc

    if not isinstance(payload, dict):
        raise MalformedManifestError("Invalid manifest payload type.")

    version = payload.get("version", MANIFEST_VERSION)
    if version != MANIFEST_VERSION:
        raise MalformedManifestError(
            "Unsupported manifest version.",
            context={"version": str(version), "supported": str(MANIFEST_VERSION)},
        )
    declared_root = payload.get("root")
    if declared_root is not None and not isinstance(declared_root, str):
        raise MalformedManifestError("Invalid manifest `root` value.")
    root = root or declared_root
    packages_raw = payload.get("packages")
    if not isinstance(packages_raw, list):
        raise MalformedManifestError("Invalid manifest `packages` value.")

    nodes = [_parse_package(item, base_dir=base_dir) for item in packages_raw]
    return build_manifest(nodes, root=root)


def parse_cargo_lock(
    raw: str,
    *,
    licenses: Mapping[str, str] | None = None,
    base_dir: str | Path | None = None,
    root: str | None = None,
) -> Manifest:
    """Parse a Cargo-style TOML lock file.

    Lock files carry no license metadata; *licenses* maps package names to
    license tags. Packages without a ``source`` are workspace members and
    are located at *base_dir*.
    """
    try:
        payload = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise MalformedManifestError("Invalid lock file TOML.", hint=str(exc)) from exc

    packages_raw = payload.get("package", [])
    if not isinstance(packages_raw, list):
        raise MalformedManifestError("Invalid lock file `package` value.")

    license_map = dict(licenses or {})
    workspace = str(Path(base_dir)) if base_dir is not None else "."
    nodes: list[PackageNode] = []
    for item in packages_raw:
        if not isinstance(item, dict):
            raise MalformedManifestError("Invalid package entry in lock file.")
        name = _required_str(item, "name")
        source_raw = item.get("source")
        if source_raw is None:
            source = SourceLocator(kind="path", location=workspace)
        elif isinstance(source_raw, str) and source_raw:
            source = SourceLocator.parse(source_raw)
        else:
            raise MalformedManifestError(
                "Invalid lock file `source` value.",
                context={"package": name},
            )
        nodes.append(
            PackageNode(
                name=name,
                version=_required_str(item, "version"),
                source=source,
                dependencies=_string_list(item, "dependencies", package=name),
                license=license_map.get(name),
                checksum=_optional_str(item, "checksum", package=name),
            )
        )
    return build_manifest(nodes, root=root)


def read_manifest(
    path: str | Path,
    *,
    licenses: Mapping[str, str] | None = None,
    root: str | None = None,
) -> Manifest:
    """Read a manifest from disk, picking the parser from the file suffix."""
    manifest_path = Path(path)
    try:
        raw = manifest_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise MalformedManifestError(
            "Manifest does not exist.",
            context={"path": str(manifest_path)},
        ) from exc
    base_dir = manifest_path.parent
    if manifest_path.suffix in {".lock", ".toml"}:
        return parse_cargo_lock(raw, licenses=licenses, base_dir=base_dir, root=root)
    return parse_manifest(raw, base_dir=base_dir, root=root)


def write_manifest(manifest: Manifest, path: str | Path) -> Path:
    manifest_path = Path(path)
    manifest_path.parent.mkdir(parents=True, exist_ok=True)
    manifest_path.write_text(serialize_manifest(manifest), encoding="utf-8")
    return manifest_path


def _parse_package(item: Any, *, base_dir: str | Path | None) -> PackageNode:
    if not isinstance(item, dict):
        raise MalformedManifestError("Invalid package entry in manifest.")
    name = _required_str(item, "name")
    source = SourceLocator.parse(_required_str(item, "source", package=name))
    if source.kind == "path" and base_dir is not None:
        location = Path(source.location)
        if not location.is_absolute():
            source = SourceLocator(kind="path", location=str(Path(base_dir) / location))
    return PackageNode(
        name=name,
        version=_required_str(item, "version", package=name),
        source=source,
        dependencies=_string_list(item, "dependencies", package=name),
        license=_optional_str(item, "license", package=name),
        checksum=_optional_str(item, "checksum", package=name),
    )


def _required_str(payload: dict[str, Any], key: str, *, package: str = "") -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedManifestError(
            f"Invalid manifest `{key}` value.",
            context={"package": package},
        )
    return value


def _optional_str(payload: dict[str, Any], key: str, *, package: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedManifestError(
            f"Invalid manifest `{key}` value.",
            context={"package": package},
        )
    return value


def _string_list(payload: dict[str, Any], key: str, *, package: str) -> tuple[str, ...]:
    value = payload.get(key, [])
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise MalformedManifestError(
            f"Invalid manifest `{key}` list.",
            context={"package": package},
        )
    return tuple(value)
