"""Default build unit generation."""

from __future__ import annotations

from collections.abc import Iterable

from lockplan.builders.base import Toolchain
from lockplan.manifest.model import PackageNode
from lockplan.models import BuildUnit
from lockplan.sources.filter import source_by_regex


def generate_unit(
    node: PackageNode,
    *,
    toolchain: Toolchain,
    dependency_ids: Iterable[str] = (),
) -> BuildUnit:
    """Return the default unit for *node*.

    The source is the node's locator filtered to the toolchain patterns;
    dependencies are the unit ids of the node's manifest edges. No env,
    build tools, or native inputs are added here.
    """
    return BuildUnit(
        name=node.name,
        version=node.version,
        source=source_by_regex(node.source.location, toolchain.source_patterns),
        command=toolchain.render_command(name=node.name, version=node.version),
        dependencies=tuple(dependency_ids),
        license=node.license,
    )
