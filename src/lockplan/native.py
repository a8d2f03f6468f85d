"""Native dependency handles and joined directory views.

Native libraries often ship headers and runtime files as separate
outputs (``hdf5.dev`` and ``hdf5.out``) while a build script expects one
root in a single environment variable. ``JoinedPath`` describes that
union without touching the filesystem; ``materialize`` realizes it as a
symlink tree once the outputs exist.
"""

from __future__ import annotations

import os
import shutil
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from lockplan.errors import ValidationError

DEFAULT_OUTPUT = "out"


@dataclass(frozen=True, slots=True, order=True)
class OutputRef:
    package: str
    output: str = DEFAULT_OUTPUT

    @classmethod
    def parse(cls, raw: str) -> OutputRef:
        if not raw or raw.startswith(".") or raw.endswith("."):
            raise ValidationError(
                "Invalid native output identifier.",
                hint="Use `package` or `package.output`.",
                context={"identifier": raw},
            )
        package, sep, output = raw.rpartition(".")
        if not sep:
            return cls(package=raw)
        return cls(package=package, output=output)

    def __str__(self) -> str:
        return f"{self.package}.{self.output}"


Resolver = Callable[[OutputRef], Path]
JoinInput = OutputRef | str


@dataclass(frozen=True, slots=True)
class JoinedPath:
    name: str
    paths: tuple[JoinInput, ...]

    def contents(self, resolver: Resolver) -> dict[str, Path]:
        """Union of all input trees; later inputs win on name collisions.

        A later input shadows an earlier entry at the same path, including
        a file standing where the other input has a directory.
        """
        merged: dict[str, Path] = {}
        for root in self._roots(resolver):
            incoming = dict(_walk_files(root))
            incoming_dirs = {parent for rel in incoming for parent in _parents(rel)}
            merged = {
                rel: source
                for rel, source in merged.items()
                if rel not in incoming_dirs
                and not any(parent in incoming for parent in _parents(rel))
            }
            merged.update(incoming)
        return dict(sorted(merged.items()))

    def materialize(self, dest: str | Path, resolver: Resolver) -> Path:
        """Create a symlink tree at *dest* mirroring :meth:`contents`."""
        destination = Path(dest)
        if destination.exists() and any(destination.iterdir()):
            raise ValidationError(
                "Joined path destination is not empty.",
                context={"join": self.name, "path": str(destination)},
            )
        contents = self.contents(resolver)
        created = not destination.exists()
        destination.mkdir(parents=True, exist_ok=True)
        try:
            for rel, source in contents.items():
                link = destination / rel
                link.parent.mkdir(parents=True, exist_ok=True)
                os.symlink(source, link)
        except OSError as exc:
            _clear(destination, remove_root=created)
            raise ValidationError(
                "Could not materialize joined path.",
                hint=str(exc),
                context={"join": self.name, "path": str(destination)},
            ) from exc
        return destination

    def to_payload(self) -> dict[str, object]:
        return {"join": self.name, "paths": [str(item) for item in self.paths]}

    def __str__(self) -> str:
        return f"join:{self.name}"

    def _roots(self, resolver: Resolver) -> list[Path]:
        roots: list[Path] = []
        for item in self.paths:
            root = resolver(item) if isinstance(item, OutputRef) else Path(item)
            if not root.is_dir():
                raise ValidationError(
                    "Joined path input is not a directory.",
                    context={"join": self.name, "input": str(item), "path": str(root)},
                )
            roots.append(root)
        return roots


EnvValue = str | JoinedPath


def symlink_join(name: str, *paths: JoinInput) -> JoinedPath:
    """Build a ``JoinedPath``; strings containing a path separator stay literal."""
    return JoinedPath(name=name, paths=tuple(_coerce_input(item) for item in paths))


@dataclass(frozen=True, slots=True)
class NativeCatalog:
    """Maps native output handles to concrete directories."""

    outputs: Mapping[str, Path] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_config(cls, config: Mapping[str, str | Mapping[str, str]]) -> NativeCatalog:
        outputs: dict[str, Path] = {}
        for package, value in config.items():
            if isinstance(value, str):
                outputs[str(OutputRef(package))] = Path(value)
                continue
            if not isinstance(value, Mapping):
                raise ValidationError(
                    "Invalid native catalog entry.",
                    context={"package": package},
                )
            for output, path in value.items():
                outputs[str(OutputRef(package, output))] = Path(path)
        return cls(outputs=MappingProxyType(outputs))

    def __call__(self, ref: OutputRef) -> Path:
        return self.resolve(ref)

    def resolve(self, ref: OutputRef) -> Path:
        try:
            return self.outputs[str(ref)]
        except KeyError:
            raise ValidationError(
                "Native output is not present in the catalog.",
                hint="Add the output directory to the native catalog.",
                context={"output": str(ref)},
            ) from None

    def resolve_all(self, refs: Iterable[str]) -> tuple[Path, ...]:
        return tuple(self.resolve(OutputRef.parse(ref)) for ref in refs)


def _coerce_input(item: JoinInput) -> JoinInput:
    if isinstance(item, OutputRef):
        return item
    if "/" in item or os.sep in item:
        return item
    return OutputRef.parse(item)


def _walk_files(root: Path) -> list[tuple[str, Path]]:
    found: list[tuple[str, Path]] = []
    _collect_files(root, root, found, ancestors=frozenset())
    return found


def _collect_files(
    root: Path,
    directory: Path,
    found: list[tuple[str, Path]],
    *,
    ancestors: frozenset[str],
) -> None:
    # Symlinked directories are followed; a link back to an ancestor is skipped.
    real = os.path.realpath(directory)
    if real in ancestors:
        return
    ancestors = ancestors | {real}
    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda entry: entry.name)
    for entry in entries:
        path = Path(entry.path)
        if entry.is_dir():
            _collect_files(root, path, found, ancestors=ancestors)
        else:
            found.append((path.relative_to(root).as_posix(), path))


def _parents(rel: str) -> list[str]:
    parts = rel.split("/")
    return ["/".join(parts[:index]) for index in range(1, len(parts))]


def _clear(destination: Path, *, remove_root: bool) -> None:
    if remove_root:
        shutil.rmtree(destination, ignore_errors=True)
        return
    for child in destination.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child, ignore_errors=True)
        else:
            child.unlink()
