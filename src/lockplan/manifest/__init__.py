"""Locked manifest reading APIs."""

from .io import parse_cargo_lock, parse_manifest, read_manifest, serialize_manifest, write_manifest
from .model import (
    DependencyRef,
    Manifest,
    PackageKey,
    PackageNode,
    SourceLocator,
    build_manifest,
)

__all__ = [
    "DependencyRef",
    "Manifest",
    "PackageKey",
    "PackageNode",
    "SourceLocator",
    "build_manifest",
    "parse_cargo_lock",
    "parse_manifest",
    "read_manifest",
    "serialize_manifest",
    "write_manifest",
]
