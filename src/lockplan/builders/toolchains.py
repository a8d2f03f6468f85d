"""Toolchain presets."""

from __future__ import annotations

from lockplan.builders.base import Toolchain
from lockplan.errors import ValidationError

RUST = Toolchain(
    name="rust",
    source_patterns=(
        r"^Cargo\.toml$",
        r"^Cargo\.lock$",
        r".*/[a-z_]+\.rs",
    ),
    command=(
        "cargo",
        "build",
        "--release",
        "--locked",
        "--offline",
        "--package",
        "{name}@{version}",
    ),
)

GO = Toolchain(
    name="go",
    source_patterns=(
        r"^go\.mod$",
        r"^go\.sum$",
        r".*\.go",
    ),
    command=("go", "build", "-trimpath", "-mod=readonly", "./..."),
)

C = Toolchain(
    name="c",
    source_patterns=(
        r"^Makefile$",
        r".*\.[ch]",
    ),
    command=("make",),
)

TOOLCHAINS: dict[str, Toolchain] = {toolchain.name: toolchain for toolchain in (RUST, GO, C)}


def toolchain_named(name: str) -> Toolchain:
    try:
        return TOOLCHAINS[name]
    except KeyError:
        raise ValidationError(
            f"Unknown toolchain: {name}",
            hint=f"Choose one of: {', '.join(sorted(TOOLCHAINS))}.",
        ) from None
