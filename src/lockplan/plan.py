"""Assembled, read-only build plan handed to an external executor."""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

import cbor2

from lockplan.cache.keys import cache_input_for, cache_key
from lockplan.errors import ValidationError
from lockplan.models import BuildUnit

PLAN_SCHEMA_VERSION = 1


@dataclass(frozen=True, slots=True)
class BuildPlan:
    """DAG of build units keyed by unit id (``name-version``).

    Edges point from a unit to the units listed in its ``dependencies``.
    A unit may run once every one of its dependencies has completed.
    """

    units: Mapping[str, BuildUnit] = field(default_factory=lambda: MappingProxyType({}))
    root: str | None = None

    def __post_init__(self) -> None:
        ordered = {unit_id: self.units[unit_id] for unit_id in sorted(self.units)}
        for unit_id, unit in ordered.items():
            missing = sorted(dep for dep in unit.dependencies if dep not in ordered)
            if missing:
                raise ValidationError(
                    "Build plan unit depends on units that are not in the plan.",
                    context={"unit": unit_id, "missing": ", ".join(missing)},
                )
        object.__setattr__(self, "units", MappingProxyType(ordered))

    def __hash__(self) -> int:
        return hash((tuple(self.units.items()), self.root))

    def __len__(self) -> int:
        return len(self.units)

    def __iter__(self) -> Iterator[BuildUnit]:
        return iter(self.units.values())

    def __getitem__(self, unit_id: str) -> BuildUnit:
        return self.units[unit_id]

    def __contains__(self, unit_id: object) -> bool:
        return unit_id in self.units

    def unit(self, name: str, version: str | None = None) -> BuildUnit:
        matches = [
            unit
            for unit in self.units.values()
            if unit.name == name and (version is None or unit.version == version)
        ]
        if len(matches) != 1:
            raise ValidationError(
                "Unit lookup did not match exactly one unit.",
                hint="Pass a version when several versions of a package are planned.",
                context={"name": name, "version": version or "", "matches": str(len(matches))},
            )
        return matches[0]

    def edges(self) -> tuple[tuple[str, str], ...]:
        return tuple(
            (unit_id, dep)
            for unit_id, unit in self.units.items()
            for dep in sorted(unit.dependencies)
        )

    def dependents(self, unit_id: str) -> tuple[str, ...]:
        return tuple(
            other_id for other_id, unit in self.units.items() if unit_id in unit.dependencies
        )

    def topological_order(self) -> tuple[str, ...]:
        """Dependencies first; ties broken by unit id."""
        remaining = {unit_id: set(unit.dependencies) for unit_id, unit in self.units.items()}
        order: list[str] = []
        while remaining:
            ready = sorted(unit_id for unit_id, deps in remaining.items() if not deps)
            if not ready:
                raise ValidationError(
                    "Build plan contains a dependency cycle.",
                    context={"units": ", ".join(sorted(remaining))},
                )
            for unit_id in ready:
                del remaining[unit_id]
            for deps in remaining.values():
                deps.difference_update(ready)
            order.extend(ready)
        return tuple(order)

    def ready(self, completed: Iterable[str] = ()) -> tuple[str, ...]:
        """Units not yet completed whose dependencies have all completed."""
        done = set(completed)
        unknown = sorted(done - set(self.units))
        if unknown:
            raise ValidationError(
                "Completed set names units that are not in the plan.",
                context={"units": ", ".join(unknown)},
            )
        return tuple(
            unit_id
            for unit_id, unit in self.units.items()
            if unit_id not in done and all(dep in done for dep in unit.dependencies)
        )

    def cache_keys(self, *, source_digests: Mapping[str, str] | None = None) -> dict[str, str]:
        """Content-addressed key per unit, chaining the keys of its dependencies."""
        digests = source_digests or {}
        keys: dict[str, str] = {}
        for unit_id in self.topological_order():
            inputs = cache_input_for(
                self.units[unit_id],
                dependency_keys=keys,
                source_digest=digests.get(unit_id, ""),
            )
            keys[unit_id] = cache_key(inputs)
        return keys

    def to_json(self, path: str | Path | None = None) -> str:
        encoded = json.dumps(self._payload(), indent=2, sort_keys=True) + "\n"
        if path is not None:
            Path(path).write_text(encoded, encoding="utf-8")
        return encoded

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self._payload(), canonical=True)
        if path is not None:
            Path(path).write_bytes(encoded)
        return encoded

    def _payload(self) -> dict[str, Any]:
        return {
            "schema_version": PLAN_SCHEMA_VERSION,
            "root": self.root,
            "order": list(self.topological_order()),
            "units": {unit_id: unit.to_payload() for unit_id, unit in self.units.items()},
        }
