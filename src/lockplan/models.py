"""Core typed dataclasses for planned build units."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from lockplan.native import EnvValue, JoinedPath
from lockplan.sources.filter import FilteredSource


@dataclass(frozen=True, slots=True)
class BuildUnit:
    """Fully specified instructions to build one locked package.

    Units are immutable; overrides produce modified copies via
    :meth:`replace`. ``env`` is exposed as a read-only mapping.
    """

    name: str
    version: str
    source: FilteredSource
    command: tuple[str, ...]
    env: Mapping[str, EnvValue] = field(default_factory=dict)
    native_inputs: tuple[str, ...] = ()
    build_tools: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()
    license: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "command", tuple(self.command))
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))
        object.__setattr__(self, "native_inputs", tuple(self.native_inputs))
        object.__setattr__(self, "build_tools", tuple(self.build_tools))
        object.__setattr__(self, "dependencies", tuple(self.dependencies))

    def __hash__(self) -> int:
        return hash(
            (
                self.name,
                self.version,
                self.source,
                self.command,
                tuple(sorted(self.env.items())),
                self.native_inputs,
                self.build_tools,
                self.dependencies,
                self.license,
            )
        )

    @property
    def unit_id(self) -> str:
        return f"{self.name}-{self.version}"

    def replace(self, **changes: Any) -> BuildUnit:
        return dataclasses.replace(self, **changes)

    def joined_paths(self) -> tuple[JoinedPath, ...]:
        values = (value for _, value in sorted(self.env.items()))
        return tuple(value for value in values if isinstance(value, JoinedPath))

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "source": self.source.to_payload(),
            "command": list(self.command),
            "env": {
                key: value.to_payload() if isinstance(value, JoinedPath) else value
                for key, value in sorted(self.env.items())
            },
            "native_inputs": list(self.native_inputs),
            "build_tools": list(self.build_tools),
            "dependencies": list(self.dependencies),
            "license": self.license,
        }
