"""Build plan compilation entry point.

Planning is a pure function of the manifest and an explicit ``PlanConfig``:
every restricted package is rejected before any unit is generated, then
each node is turned into its default unit and passed through the override
registry. Per-node work shares no state, so it may run on a thread pool;
the assembled plan is identical either way.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from lockplan.builders.base import Toolchain
from lockplan.builders.generate import generate_unit
from lockplan.builders.toolchains import RUST
from lockplan.errors import RestrictedPackageError
from lockplan.manifest.model import Manifest, PackageNode
from lockplan.models import BuildUnit
from lockplan.observability import StructuredLogger
from lockplan.overrides import OverrideRegistry
from lockplan.plan import BuildPlan
from lockplan.policy import GatePolicy


@dataclass(frozen=True, slots=True)
class PlanConfig:
    toolchain: Toolchain = RUST
    gate: GatePolicy = field(default_factory=GatePolicy)
    overrides: OverrideRegistry = field(default_factory=OverrideRegistry)


@dataclass(frozen=True, slots=True)
class _PlannedNode:
    node: PackageNode
    default: BuildUnit
    unit: BuildUnit


def plan(
    manifest: Manifest,
    config: PlanConfig | None = None,
    *,
    max_workers: int | None = None,
    logger: StructuredLogger | None = None,
) -> BuildPlan:
    """Compile *manifest* into a read-only :class:`BuildPlan`."""
    config = config or PlanConfig()
    log = logger if logger is not None else StructuredLogger()
    log.log(
        operation="plan_start",
        phase="plan",
        message="Starting build plan compilation.",
        extra={"packages": len(manifest), "toolchain": config.toolchain.name},
    )

    ensure_gate(manifest, config.gate, logger=log)
    config.overrides.warn_unused(pkg.name for pkg in manifest.packages)

    def plan_node(node: PackageNode) -> _PlannedNode:
        dependency_ids = [dep.unit_id for dep in manifest.dependencies_of(node)]
        default = generate_unit(node, toolchain=config.toolchain, dependency_ids=dependency_ids)
        unit = config.overrides.resolve(node, default)
        return _PlannedNode(node=node, default=default, unit=unit)

    if max_workers is not None and max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            planned = list(pool.map(plan_node, manifest.packages))
    else:
        planned = [plan_node(node) for node in manifest.packages]

    units: dict[str, BuildUnit] = {}
    for item in planned:
        units[item.unit.unit_id] = item.unit
        log.log(
            operation="unit_generated",
            package=item.node.name,
            phase="generate",
            message="Generated default build unit.",
            unit=item.default.unit_id,
            extra={"dependencies": list(item.default.dependencies)},
        )
        if item.node.name in config.overrides:
            log.log(
                operation="override_applied",
                package=item.node.name,
                phase="override",
                message="Applied package override.",
                unit=item.unit.unit_id,
            )

    root = manifest.node(manifest.root).unit_id if manifest.root is not None else None
    result = BuildPlan(units=units, root=root)
    log.log(
        operation="plan_complete",
        phase="plan",
        message="Completed build plan compilation.",
        extra={"units": len(result), "root": root},
    )
    return result


def ensure_gate(
    manifest: Manifest,
    gate: GatePolicy,
    *,
    logger: StructuredLogger | None = None,
) -> None:
    """Reject the manifest if any package is not explicitly permitted."""
    denied = [node for node in manifest.packages if not gate.permits(node)]
    if not denied:
        return
    if logger is not None:
        for node in denied:
            logger.log(
                operation="gate_denied",
                package=node.name,
                unit=node.unit_id,
                phase="gate",
                message="Package denied by gate policy.",
                level="error",
                extra={"license": node.license},
            )
    first = denied[0]
    raise RestrictedPackageError(
        f"Package `{first.name}` is restricted by the gate policy.",
        package=first.name,
        license=first.license,
        hint="Add the license tag to allowed_licenses or the package to allowed_packages.",
        context={
            "version": first.version,
            "restricted": ", ".join(node.unit_id for node in denied),
        },
    )
