"""Cache key derivation for planned build units."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from lockplan.models import BuildUnit
from lockplan.native import JoinedPath


@dataclass(frozen=True, slots=True)
class UnitCacheInput:
    unit_id: str
    source_origin: str
    source_patterns: tuple[str, ...]
    command: tuple[str, ...]
    source_digest: str = ""
    env: dict[str, str] = field(default_factory=dict)
    native_inputs: tuple[str, ...] = ()
    build_tools: tuple[str, ...] = ()
    dependency_keys: tuple[str, ...] = ()


def cache_input_for(
    unit: BuildUnit,
    *,
    dependency_keys: Mapping[str, str],
    source_digest: str = "",
) -> UnitCacheInput:
    """Collect the canonical key inputs of *unit*; dependency keys must be known."""
    return UnitCacheInput(
        unit_id=unit.unit_id,
        source_origin=unit.source.origin,
        source_patterns=unit.source.patterns,
        command=unit.command,
        source_digest=source_digest,
        env={key: _env_text(value) for key, value in unit.env.items()},
        native_inputs=unit.native_inputs,
        build_tools=unit.build_tools,
        dependency_keys=tuple(dependency_keys[dep] for dep in sorted(unit.dependencies)),
    )


def cache_key(inputs: UnitCacheInput) -> str:
    canonical = json.dumps(_to_payload(inputs), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _to_payload(inputs: UnitCacheInput) -> dict[str, Any]:
    return {
        "unit_id": inputs.unit_id,
        "source_origin": inputs.source_origin,
        "source_patterns": list(inputs.source_patterns),
        "source_digest": inputs.source_digest,
        "command": list(inputs.command),
        "env": dict(sorted(inputs.env.items())),
        "native_inputs": list(inputs.native_inputs),
        "build_tools": list(inputs.build_tools),
        "dependency_keys": list(inputs.dependency_keys),
    }


def _env_text(value: str | JoinedPath) -> str:
    if isinstance(value, JoinedPath):
        return json.dumps(value.to_payload(), sort_keys=True)
    return value
