"""Locked manifest typed model and structural validation."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Literal

from lockplan.errors import MalformedManifestError

SourceKind = Literal["path", "remote"]
PackageKey = tuple[str, str]

PATH_PREFIX = "path+"


@dataclass(frozen=True, slots=True)
class SourceLocator:
    kind: SourceKind
    location: str

    @classmethod
    def parse(cls, raw: str) -> SourceLocator:
        if raw.startswith(PATH_PREFIX):
            return cls(kind="path", location=raw[len(PATH_PREFIX) :])
        return cls(kind="remote", location=raw)

    def __str__(self) -> str:
        if self.kind == "path":
            return f"{PATH_PREFIX}{self.location}"
        return self.location


@dataclass(frozen=True, slots=True)
class PackageNode:
    name: str
    version: str
    source: SourceLocator
    dependencies: tuple[str, ...] = ()
    license: str | None = None
    checksum: str | None = None

    @property
    def key(self) -> PackageKey:
        return (self.name, self.version)

    @property
    def unit_id(self) -> str:
        return f"{self.name}-{self.version}"


@dataclass(frozen=True, slots=True)
class DependencyRef:
    """A dependency entry as written in the manifest: ``name [version]``."""

    name: str
    version: str | None = None

    @classmethod
    def parse(cls, raw: str) -> DependencyRef:
        parts = raw.split()
        # Cargo appends "(source)" when a name+version is still ambiguous.
        if len(parts) == 3 and parts[2].startswith("(") and parts[2].endswith(")"):
            parts = parts[:2]
        if len(parts) == 1:
            return cls(name=parts[0])
        if len(parts) == 2:
            return cls(name=parts[0], version=parts[1])
        raise MalformedManifestError(
            "Invalid dependency entry.",
            hint="Use `name` or `name version`.",
            context={"dependency": raw},
        )


@dataclass(frozen=True, slots=True)
class Manifest:
    """Validated package graph; construct with :func:`build_manifest`."""

    packages: tuple[PackageNode, ...]
    edges: Mapping[PackageKey, tuple[PackageKey, ...]] = field(
        default_factory=lambda: MappingProxyType({}),
    )
    root: str | None = None

    def node(self, name: str, version: str | None = None) -> PackageNode:
        matches = [
            pkg
            for pkg in self.packages
            if pkg.name == name and (version is None or pkg.version == version)
        ]
        if len(matches) != 1:
            raise KeyError(name if version is None else f"{name} {version}")
        return matches[0]

    def get(self, key: PackageKey) -> PackageNode:
        for pkg in self.packages:
            if pkg.key == key:
                return pkg
        raise KeyError(key)

    def dependencies_of(self, node: PackageNode) -> tuple[PackageNode, ...]:
        return tuple(self.get(key) for key in self.edges.get(node.key, ()))

    def __len__(self) -> int:
        return len(self.packages)


def build_manifest(nodes: Iterable[PackageNode], *, root: str | None = None) -> Manifest:
    """Validate nodes and resolve dependency names into package keys."""
    by_key: dict[PackageKey, PackageNode] = {}
    for node in nodes:
        existing = by_key.get(node.key)
        if existing is None:
            by_key[node.key] = node
            continue
        if existing.source != node.source:
            raise MalformedManifestError(
                "Conflicting source locators for the same package version.",
                hint="A locked (name, version) must resolve to exactly one source.",
                context={
                    "package": node.name,
                    "version": node.version,
                    "source": str(existing.source),
                    "conflicting_source": str(node.source),
                },
            )
        if existing != node:
            raise MalformedManifestError(
                "Duplicate package entry with different attributes.",
                context={"package": node.name, "version": node.version},
            )

    versions: dict[str, list[str]] = {}
    for name, version in by_key:
        versions.setdefault(name, []).append(version)

    edges: dict[PackageKey, tuple[PackageKey, ...]] = {}
    for key in sorted(by_key):
        node = by_key[key]
        resolved: list[PackageKey] = []
        for raw in node.dependencies:
            dep_key = _resolve_dependency(node, DependencyRef.parse(raw), versions)
            if dep_key not in resolved:
                resolved.append(dep_key)
        edges[key] = tuple(resolved)

    if root is not None and len(versions.get(root, [])) != 1:
        raise MalformedManifestError(
            "Manifest root must name exactly one locked package.",
            context={"root": root},
        )

    _assert_acyclic(edges)
    packages = tuple(by_key[key] for key in sorted(by_key))
    return Manifest(packages=packages, edges=MappingProxyType(edges), root=root)


def _resolve_dependency(
    node: PackageNode,
    ref: DependencyRef,
    versions: Mapping[str, list[str]],
) -> PackageKey:
    candidates = versions.get(ref.name, [])
    if ref.version is not None:
        if ref.version in candidates:
            return (ref.name, ref.version)
        candidates = []
    if not candidates:
        raise MalformedManifestError(
            "Dependency edge references an unknown package.",
            hint="Regenerate the lock file; every dependency must be locked.",
            context={
                "package": node.name,
                "version": node.version,
                "dependency": ref.name if ref.version is None else f"{ref.name} {ref.version}",
            },
        )
    if len(candidates) > 1:
        raise MalformedManifestError(
            "Dependency edge is ambiguous between several locked versions.",
            hint="Write the dependency as `name version`.",
            context={
                "package": node.name,
                "dependency": ref.name,
                "versions": ", ".join(sorted(candidates)),
            },
        )
    return (ref.name, candidates[0])


def _assert_acyclic(edges: Mapping[PackageKey, tuple[PackageKey, ...]]) -> None:
    done: set[PackageKey] = set()
    for start in sorted(edges):
        if start in done:
            continue
        path: list[PackageKey] = [start]
        on_path = {start}
        stack = [iter(edges[start])]
        while stack:
            child = next(stack[-1], None)
            if child is None:
                stack.pop()
                finished = path.pop()
                on_path.discard(finished)
                done.add(finished)
                continue
            if child in on_path:
                cycle = [*path[path.index(child) :], child]
                raise MalformedManifestError(
                    "Dependency graph contains a cycle.",
                    context={"cycle": " -> ".join(f"{n}-{v}" for n, v in cycle)},
                )
            if child in done:
                continue
            path.append(child)
            on_path.add(child)
            stack.append(iter(edges[child]))
