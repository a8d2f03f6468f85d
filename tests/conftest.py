"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from lockplan.manifest import Manifest, PackageNode, SourceLocator, build_manifest


def write_crate(root: Path, name: str) -> Path:
    """Create a small crate tree with sources, docs, and build leftovers."""
    crate = root / name
    (crate / "src" / "bin").mkdir(parents=True, exist_ok=True)
    (crate / "docs").mkdir(exist_ok=True)
    (crate / "target" / "debug").mkdir(parents=True, exist_ok=True)
    (crate / "Cargo.toml").write_text(f'[package]\nname = "{name}"\n', encoding="utf-8")
    (crate / "Cargo.lock").write_text("version = 3\n", encoding="utf-8")
    (crate / "src" / "lib.rs").write_text("pub fn f() {}\n", encoding="utf-8")
    (crate / "src" / "bin" / "main.rs").write_text("fn main() {}\n", encoding="utf-8")
    (crate / "docs" / "README.md").write_text("docs\n", encoding="utf-8")
    (crate / "target" / "debug" / "out.bin").write_bytes(b"\x00\x01")
    return crate


def node(
    name: str,
    *deps: str,
    version: str = "1.0.0",
    license: str | None = "MIT",
    location: str | None = None,
) -> PackageNode:
    source = (
        SourceLocator(kind="path", location=location)
        if location is not None
        else SourceLocator(kind="remote", location="registry+https://example.invalid/index")
    )
    return PackageNode(
        name=name,
        version=version,
        source=source,
        dependencies=deps,
        license=license,
    )


@pytest.fixture
def crate_root(tmp_path: Path) -> Path:
    return write_crate(tmp_path, "crate")


@pytest.fixture
def chain_manifest(tmp_path: Path) -> Manifest:
    """A depends on B, B depends on C; C is Apache licensed."""
    return build_manifest(
        [
            node("a", "b", location=str(write_crate(tmp_path, "a"))),
            node("b", "c", location=str(write_crate(tmp_path, "b"))),
            node("c", license="Apache-2.0", location=str(write_crate(tmp_path, "c"))),
        ],
        root="a",
    )
