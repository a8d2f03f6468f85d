"""Regex source filtering anchored to the original source root.

A ``FilteredSource`` is a plain value: the identifier of the *original*
root plus the pattern list. It never holds an intermediate filtered view,
so filtering an already filtered source re-anchors every pattern to the
original root::

    src = source_by_regex("crates/foo", [r"^Cargo\\.toml$"])
    src = source_by_regex(src, [r".*/[a-z_]+\\.rs"])
    # identical to source_by_regex("crates/foo", [r"^Cargo\\.toml$", r".*/[a-z_]+\\.rs"])
"""

from __future__ import annotations

import hashlib
import os
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from lockplan.errors import FilterCompositionError, ValidationError


@dataclass(frozen=True, slots=True)
class SourceEntry:
    path: str
    is_dir: bool


@dataclass(frozen=True, slots=True)
class FilteredSource:
    origin: str
    patterns: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        for pattern in self.patterns:
            compile_pattern(pattern)

    def matches(self, rel_path: str, *, is_dir: bool = False) -> bool:
        """Return whether *rel_path* (relative to the original root) is kept."""
        if is_dir:
            return True
        return any(compile_pattern(p).fullmatch(rel_path) for p in self.patterns)

    def with_patterns(self, patterns: Iterable[str]) -> FilteredSource:
        """Replace the pattern list wholesale, keeping the original root."""
        return FilteredSource(origin=self.origin, patterns=_dedupe(patterns))

    def entries(self) -> Iterator[SourceEntry]:
        """Walk the original root and yield retained entries in sorted order."""
        root = self._local_root()
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            base = Path(dirpath)
            for dirname in dirnames:
                yield SourceEntry(path=_relative(base / dirname, root), is_dir=True)
            for filename in sorted(filenames):
                rel = _relative(base / filename, root)
                if self.matches(rel):
                    yield SourceEntry(path=rel, is_dir=False)

    def files(self) -> list[str]:
        return sorted(entry.path for entry in self.entries() if not entry.is_dir)

    def directories(self) -> list[str]:
        return sorted(entry.path for entry in self.entries() if entry.is_dir)

    def digest(self) -> str:
        """Content digest over retained file paths and bytes."""
        root = self._local_root()
        hasher = hashlib.sha256()
        for rel in self.files():
            hasher.update(rel.encode("utf-8"))
            hasher.update(b"\0")
            hasher.update(hashlib.sha256((root / rel).read_bytes()).digest())
        return hasher.hexdigest()

    def to_payload(self) -> dict[str, object]:
        return {"origin": self.origin, "patterns": list(self.patterns)}

    def _local_root(self) -> Path:
        root = Path(self.origin)
        if not root.is_dir():
            raise ValidationError(
                "Filtered source origin is not a local directory.",
                hint="Only path sources can be walked; remote sources are fetched by the executor.",
                context={"origin": self.origin, "operation": "walk_source"},
            )
        return root


def source_by_regex(
    src: str | os.PathLike[str] | FilteredSource,
    patterns: Iterable[str],
) -> FilteredSource:
    """Filter *src* so only paths fully matching one of *patterns* remain.

    Directories are always retained. When *src* is already filtered, the
    result keeps its original root and the union of both pattern lists.
    """
    new_patterns = tuple(patterns)
    if isinstance(src, FilteredSource):
        return FilteredSource(origin=src.origin, patterns=_dedupe((*src.patterns, *new_patterns)))
    return FilteredSource(origin=os.fspath(src), patterns=_dedupe(new_patterns))


def compile_pattern(pattern: str) -> re.Pattern[str]:
    if not isinstance(pattern, str):
        raise FilterCompositionError(
            "Source filter patterns must be strings.",
            pattern=repr(pattern),
        )
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise FilterCompositionError(
            "Invalid source filter pattern.",
            pattern=pattern,
            hint=str(exc),
        ) from exc


def _dedupe(patterns: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(patterns))


def _relative(path: Path, root: Path) -> str:
    return path.relative_to(root).as_posix()
