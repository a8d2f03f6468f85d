"""Build unit generation APIs."""

from .base import Toolchain
from .generate import generate_unit
from .toolchains import C, GO, RUST, TOOLCHAINS, toolchain_named

__all__ = ["C", "GO", "RUST", "TOOLCHAINS", "Toolchain", "generate_unit", "toolchain_named"]
