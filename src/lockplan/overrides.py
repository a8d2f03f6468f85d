"""Per-package override patches applied to generated build units.

The registry is an explicit lookup table from package name to patch. A
package without an entry keeps the generator's default unit untouched.
Declarative overrides (``OverrideSpec``) follow fixed merge rules:

- ``native_inputs`` and ``build_tools`` are appended, keeping first occurrence.
- ``env`` entries are merged over the default env, last write wins.
- ``source_patterns`` replaces the default filter patterns wholesale.

Patches may never change a unit's name, version, or dependency edges.
"""

from __future__ import annotations

import json
import warnings
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from lockplan.errors import InvalidOverrideError, ValidationError
from lockplan.manifest.model import PackageNode
from lockplan.models import BuildUnit
from lockplan.native import EnvValue, OutputRef, symlink_join
from lockplan.sources.filter import compile_pattern

PatchFn = Callable[[BuildUnit], BuildUnit]

CONFIG_KEYS = frozenset({"nativeInputs", "buildTools", "env", "sourcePatterns"})


class UnusedOverrideWarning(UserWarning):
    """Warning raised when an override names a package absent from the manifest."""


@dataclass(frozen=True, slots=True)
class OverridePatch:
    name: str
    apply: PatchFn

    def __call__(self, unit: BuildUnit) -> BuildUnit:
        return self.apply(unit)


@dataclass(frozen=True, slots=True)
class OverrideSpec:
    native_inputs: tuple[str, ...] = ()
    build_tools: tuple[str, ...] = ()
    env: tuple[tuple[str, EnvValue], ...] = ()
    source_patterns: tuple[str, ...] | None = None

    def apply(self, unit: BuildUnit) -> BuildUnit:
        env = dict(unit.env)
        for key, value in self.env:
            env[key] = value
        source = unit.source
        if self.source_patterns is not None:
            source = source.with_patterns(self.source_patterns)
        return unit.replace(
            source=source,
            env=env,
            native_inputs=_append_unique(unit.native_inputs, self.native_inputs),
            build_tools=_append_unique(unit.build_tools, self.build_tools),
        )

    def to_patch(self, name: str) -> OverridePatch:
        return OverridePatch(name=name, apply=self.apply)


def override(
    *,
    native_inputs: Iterable[str] = (),
    build_tools: Iterable[str] = (),
    env: Mapping[str, EnvValue] | Iterable[tuple[str, EnvValue]] = (),
    source_patterns: Iterable[str] | None = None,
) -> OverrideSpec:
    """Convenience constructor for :class:`OverrideSpec`."""
    pairs = tuple(env.items()) if isinstance(env, Mapping) else tuple(env)
    return OverrideSpec(
        native_inputs=tuple(native_inputs),
        build_tools=tuple(build_tools),
        env=pairs,
        source_patterns=tuple(source_patterns) if source_patterns is not None else None,
    )


class OverrideRegistry:
    """Lookup table from package name to :class:`OverridePatch`."""

    def __init__(
        self,
        patches: Mapping[str, OverrideSpec | OverridePatch | PatchFn] | None = None,
    ) -> None:
        self._patches: dict[str, OverridePatch] = {}
        for name, patch in (patches or {}).items():
            self.register(name, patch)

    def register(
        self,
        name: str,
        patch: OverrideSpec | OverridePatch | PatchFn,
    ) -> OverrideRegistry:
        if not name:
            raise InvalidOverrideError(
                "Override package name must be non-empty.",
                package=name,
                field="name",
            )
        if name in self._patches:
            raise InvalidOverrideError(
                "An override is already registered for this package.",
                package=name,
                field="name",
                hint="Declare one override per package name; it applies to every locked version.",
            )
        if isinstance(patch, OverrideSpec):
            self._patches[name] = patch.to_patch(name)
        elif isinstance(patch, OverridePatch):
            self._patches[name] = OverridePatch(name=name, apply=patch.apply)
        elif callable(patch):
            self._patches[name] = OverridePatch(name=name, apply=patch)
        else:
            raise InvalidOverrideError(
                "Override must be an OverrideSpec or a callable patch.",
                package=name,
                field="patch",
            )
        return self

    def patch_for(self, name: str) -> OverridePatch | None:
        return self._patches.get(name)

    def names(self) -> tuple[str, ...]:
        return tuple(sorted(self._patches))

    def __contains__(self, name: object) -> bool:
        return name in self._patches

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._patches)

    def resolve(self, node: PackageNode, default_unit: BuildUnit) -> BuildUnit:
        """Return the final unit for *node*; identity when no override exists."""
        patch = self._patches.get(node.name)
        if patch is None:
            return default_unit
        result = patch(default_unit)
        _check_patched_unit(node=node, default_unit=default_unit, result=result)
        return result

    def warn_unused(self, package_names: Iterable[str]) -> tuple[str, ...]:
        known = set(package_names)
        unused = tuple(name for name in self.names() if name not in known)
        for name in unused:
            warnings.warn(
                f"Override for `{name}` does not match any package in the manifest.",
                UnusedOverrideWarning,
                stacklevel=2,
            )
        return unused

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> OverrideRegistry:
        """Build a registry from ``{package: {nativeInputs, buildTools, env, sourcePatterns}}``."""
        if not isinstance(config, Mapping):
            raise InvalidOverrideError(
                "Override configuration must be a mapping.",
                package="",
                field="",
            )
        registry = cls()
        for name, entry in config.items():
            registry.register(name, _spec_from_entry(name, entry))
        return registry


def read_overrides(path: str | Path) -> OverrideRegistry:
    override_path = Path(path)
    try:
        payload = json.loads(override_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise InvalidOverrideError(
            "Invalid override configuration JSON.",
            package="",
            field="",
            hint=str(exc),
            context={"path": str(override_path)},
        ) from exc
    return OverrideRegistry.from_config(payload)


def _check_patched_unit(*, node: PackageNode, default_unit: BuildUnit, result: object) -> None:
    if not isinstance(result, BuildUnit):
        raise InvalidOverrideError(
            "Override patch must return a BuildUnit.",
            package=node.name,
            field="unit",
            context={"returned": type(result).__name__},
        )
    if result.name != default_unit.name:
        raise InvalidOverrideError(
            "Override patch may not rename a package.",
            package=node.name,
            field="name",
            context={"returned": result.name},
        )
    if result.version != default_unit.version:
        raise InvalidOverrideError(
            "Override patch may not change a package version.",
            package=node.name,
            field="version",
            context={"returned": result.version},
        )
    if set(result.dependencies) != set(default_unit.dependencies):
        added = sorted(set(result.dependencies) - set(default_unit.dependencies))
        removed = sorted(set(default_unit.dependencies) - set(result.dependencies))
        raise InvalidOverrideError(
            "Override patch may not change dependency edges from the manifest.",
            package=node.name,
            field="dependencies",
            hint="Use build_tools or native_inputs for extra build-time inputs.",
            context={"added": ", ".join(added), "removed": ", ".join(removed)},
        )


def _spec_from_entry(name: str, entry: Any) -> OverrideSpec:
    if not isinstance(entry, Mapping):
        raise InvalidOverrideError("Override entry must be a mapping.", package=name, field="")
    unknown = sorted(set(entry) - CONFIG_KEYS)
    if unknown:
        raise InvalidOverrideError(
            "Unknown override field.",
            package=name,
            field=unknown[0],
            hint=f"Supported fields: {', '.join(sorted(CONFIG_KEYS))}.",
        )

    native_inputs = _identifier_list(name, entry, "nativeInputs")
    build_tools = _identifier_list(name, entry, "buildTools")

    source_patterns: tuple[str, ...] | None = None
    if "sourcePatterns" in entry:
        source_patterns = _string_list(name, entry["sourcePatterns"], field="sourcePatterns")
        for pattern in source_patterns:
            compile_pattern(pattern)

    env_raw = entry.get("env", {})
    if not isinstance(env_raw, Mapping):
        raise InvalidOverrideError("Override `env` must be a mapping.", package=name, field="env")
    env: list[tuple[str, EnvValue]] = []
    for key, value in env_raw.items():
        env.append((key, _env_value(name, key, value)))

    return OverrideSpec(
        native_inputs=native_inputs,
        build_tools=build_tools,
        env=tuple(env),
        source_patterns=source_patterns,
    )


def _identifier_list(name: str, entry: Mapping[str, Any], key: str) -> tuple[str, ...]:
    values = _string_list(name, entry.get(key, []), field=key)
    for value in values:
        try:
            OutputRef.parse(value)
        except ValidationError as exc:
            raise InvalidOverrideError(
                "Invalid native identifier in override.",
                package=name,
                field=key,
                context={"identifier": value},
            ) from exc
    return values


def _env_value(name: str, key: str, value: Any) -> EnvValue:
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping) and "join" in value:
        field = f"env.{key}"
        paths = _string_list(name, value["join"], field=field)
        join_name = value.get("name", f"{name}-{key.lower()}-join")
        if not isinstance(join_name, str) or not join_name:
            raise InvalidOverrideError("Invalid joined path name.", package=name, field=field)
        try:
            return symlink_join(join_name, *paths)
        except ValidationError as exc:
            raise InvalidOverrideError(
                "Invalid joined path input in override.",
                package=name,
                field=field,
            ) from exc
    raise InvalidOverrideError(
        'Override env values must be strings or {"join": [...]} mappings.',
        package=name,
        field=f"env.{key}",
    )


def _string_list(name: str, value: Any, *, field: str) -> tuple[str, ...]:
    if (
        isinstance(value, str)
        or not isinstance(value, Sequence)
        or not all(isinstance(item, str) and item for item in value)
    ):
        raise InvalidOverrideError(
            f"Override `{field}` must be a list of strings.",
            package=name,
            field=field,
        )
    return tuple(value)


def _append_unique(existing: tuple[str, ...], extra: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(dict.fromkeys((*existing, *extra)))


__all__ = [
    "OverridePatch",
    "OverrideRegistry",
    "OverrideSpec",
    "UnusedOverrideWarning",
    "override",
    "read_overrides",
]
