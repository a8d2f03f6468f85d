"""Public package entrypoint for the lock file build planner."""

from .builders import C, GO, RUST, Toolchain, generate_unit
from .errors import (
    ErrorCode,
    FilterCompositionError,
    InvalidOverrideError,
    LockplanError,
    MalformedManifestError,
    RestrictedPackageError,
    ValidationError,
)
from .manifest import (
    Manifest,
    PackageNode,
    SourceLocator,
    build_manifest,
    parse_cargo_lock,
    parse_manifest,
    read_manifest,
)
from .models import BuildUnit
from .native import JoinedPath, NativeCatalog, OutputRef, symlink_join
from .observability import StructuredLogger
from .overrides import OverridePatch, OverrideRegistry, OverrideSpec, override, read_overrides
from .plan import BuildPlan
from .planner import PlanConfig, plan
from .policy import DEFAULT_ALLOWED_LICENSES, GatePolicy
from .sources import FilteredSource, source_by_regex

__all__ = [
    "C",
    "DEFAULT_ALLOWED_LICENSES",
    "GO",
    "RUST",
    "BuildPlan",
    "BuildUnit",
    "ErrorCode",
    "FilterCompositionError",
    "FilteredSource",
    "GatePolicy",
    "InvalidOverrideError",
    "JoinedPath",
    "LockplanError",
    "MalformedManifestError",
    "Manifest",
    "NativeCatalog",
    "OutputRef",
    "OverridePatch",
    "OverrideRegistry",
    "OverrideSpec",
    "PackageNode",
    "PlanConfig",
    "RestrictedPackageError",
    "SourceLocator",
    "StructuredLogger",
    "Toolchain",
    "ValidationError",
    "build_manifest",
    "generate_unit",
    "override",
    "parse_cargo_lock",
    "parse_manifest",
    "plan",
    "read_manifest",
    "read_overrides",
    "source_by_regex",
    "symlink_join",
]
