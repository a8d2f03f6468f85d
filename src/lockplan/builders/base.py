"""Typed interfaces for language toolchains used by the unit generator."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Toolchain:
    """Describes how one language ecosystem slices and builds a package.

    ``source_patterns`` are matched against paths relative to the package
    source root; ``command`` may reference ``{name}`` and ``{version}``.
    """

    name: str
    source_patterns: tuple[str, ...]
    command: tuple[str, ...]

    def render_command(self, *, name: str, version: str) -> tuple[str, ...]:
        return tuple(part.format(name=name, version=version) for part in self.command)
