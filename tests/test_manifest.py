import json
from pathlib import Path

import pytest
from conftest import node

from lockplan.errors import MalformedManifestError
from lockplan.manifest import (
    DependencyRef,
    SourceLocator,
    build_manifest,
    parse_cargo_lock,
    parse_manifest,
    read_manifest,
    serialize_manifest,
    write_manifest,
)

CARGO_LOCK = """\
version = 3

[[package]]
name = "syntaxdot-rest"
version = "0.1.0"
dependencies = [
 "hdf5-sys",
 "serde 1.0.130",
]

[[package]]
name = "hdf5-sys"
version = "0.8.1"
source = "registry+https://github.com/rust-lang/crates.io-index"
checksum = "abc123"

[[package]]
name = "serde"
version = "1.0.130"
source = "registry+https://github.com/rust-lang/crates.io-index"

[[package]]
name = "serde"
version = "0.9.15"
source = "registry+https://github.com/rust-lang/crates.io-index"
"""


def test_manifest_roundtrip_parser_serializer(chain_manifest_json: str) -> None:
    manifest = parse_manifest(chain_manifest_json)
    decoded = parse_manifest(serialize_manifest(manifest))

    assert decoded == manifest


def test_parse_manifest_builds_graph(chain_manifest_json: str) -> None:
    manifest = parse_manifest(chain_manifest_json)

    assert len(manifest) == 3
    assert manifest.root == "a"
    a = manifest.node("a")
    assert [dep.name for dep in manifest.dependencies_of(a)] == ["b"]
    assert manifest.node("c").license == "Apache-2.0"


def test_path_sources_resolve_against_manifest_directory(tmp_path: Path) -> None:
    payload = {
        "version": 1,
        "packages": [{"name": "a", "version": "1", "source": "path+crates/a"}],
    }
    path = tmp_path / "lock.json"
    path.write_text(json.dumps(payload), encoding="utf-8")

    manifest = read_manifest(path)

    expected = SourceLocator(kind="path", location=str(tmp_path / "crates/a"))
    assert manifest.node("a").source == expected


def test_dangling_edge_fails() -> None:
    with pytest.raises(MalformedManifestError) as excinfo:
        build_manifest([node("a", "missing")])

    assert excinfo.value.context["dependency"] == "missing"
    assert excinfo.value.code == "E_MALFORMED_MANIFEST"


def test_conflicting_source_for_same_version_fails() -> None:
    first = node("a", location="/src/a")
    second = node("a", location="/elsewhere/a")

    with pytest.raises(MalformedManifestError) as excinfo:
        build_manifest([first, second])

    assert "Conflicting source" in str(excinfo.value)


def test_identical_duplicates_collapse() -> None:
    manifest = build_manifest([node("a"), node("a")])

    assert len(manifest) == 1


def test_cycle_fails_with_cycle_path() -> None:
    with pytest.raises(MalformedManifestError) as excinfo:
        build_manifest([node("a", "b"), node("b", "c"), node("c", "a")])

    assert excinfo.value.context["cycle"] == "a-1.0.0 -> b-1.0.0 -> c-1.0.0 -> a-1.0.0"


def test_bare_dependency_name_is_ambiguous_between_versions() -> None:
    nodes = [node("app", "serde"), node("serde", version="1.0.0"), node("serde", version="0.9.0")]

    with pytest.raises(MalformedManifestError) as excinfo:
        build_manifest(nodes)

    assert excinfo.value.context["versions"] == "0.9.0, 1.0.0"


def test_versioned_dependency_selects_exact_package() -> None:
    manifest = build_manifest(
        [node("app", "serde 1.0.0"), node("serde", version="1.0.0"), node("serde", version="0.9.0")]
    )

    deps = manifest.dependencies_of(manifest.node("app"))
    assert [(dep.name, dep.version) for dep in deps] == [("serde", "1.0.0")]


def test_dependency_ref_ignores_cargo_source_suffix() -> None:
    ref = DependencyRef.parse("serde 1.0.0 (registry+https://example.invalid/index)")

    assert ref == DependencyRef(name="serde", version="1.0.0")


def test_unknown_root_fails() -> None:
    with pytest.raises(MalformedManifestError):
        build_manifest([node("a")], root="b")


@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        "[]",
        json.dumps({"version": 2, "packages": []}),
        json.dumps({"version": 1, "packages": {}}),
        json.dumps({"version": 1, "packages": [{"name": "a", "version": "1"}]}),
        json.dumps(
            {
                "version": 1,
                "packages": [{"name": "a", "version": "1", "source": "x", "dependencies": "b"}],
            }
        ),
    ],
)
def test_invalid_manifest_payloads_fail(payload: str) -> None:
    with pytest.raises(MalformedManifestError):
        parse_manifest(payload)


def test_parse_cargo_lock_reads_packages_and_licenses(tmp_path: Path) -> None:
    manifest = parse_cargo_lock(
        CARGO_LOCK,
        licenses={"syntaxdot-rest": "BlueOak-1.0.0", "serde": "MIT OR Apache-2.0"},
        base_dir=tmp_path,
        root="syntaxdot-rest",
    )

    assert len(manifest) == 4
    root = manifest.node("syntaxdot-rest")
    assert root.source == SourceLocator(kind="path", location=str(tmp_path))
    assert root.license == "BlueOak-1.0.0"
    assert manifest.node("hdf5-sys").checksum == "abc123"
    assert manifest.node("hdf5-sys").license is None
    deps = manifest.dependencies_of(root)
    assert [(dep.name, dep.version) for dep in deps] == [
        ("hdf5-sys", "0.8.1"),
        ("serde", "1.0.130"),
    ]


def test_read_manifest_dispatches_on_lock_suffix(tmp_path: Path) -> None:
    path = tmp_path / "Cargo.lock"
    path.write_text(CARGO_LOCK, encoding="utf-8")

    manifest = read_manifest(path)

    assert manifest.node("serde", "0.9.15").source.kind == "remote"


def test_read_missing_manifest_fails(tmp_path: Path) -> None:
    with pytest.raises(MalformedManifestError):
        read_manifest(tmp_path / "missing.json")


def test_write_manifest_creates_parent_directories(
    tmp_path: Path,
    chain_manifest_json: str,
) -> None:
    manifest = parse_manifest(chain_manifest_json)

    path = write_manifest(manifest, tmp_path / "out" / "lock.json")

    assert read_manifest(path) == manifest


@pytest.fixture
def chain_manifest_json() -> str:
    return json.dumps(
        {
            "version": 1,
            "root": "a",
            "packages": [
                {
                    "name": "a",
                    "version": "1.0.0",
                    "source": "path+/src/a",
                    "dependencies": ["b"],
                    "license": "MIT",
                },
                {
                    "name": "b",
                    "version": "1.0.0",
                    "source": "registry+https://example.invalid/index",
                    "dependencies": ["c"],
                    "license": "MIT",
                    "checksum": "deadbeef",
                },
                {
                    "name": "c",
                    "version": "1.0.0",
                    "source": "registry+https://example.invalid/index",
                    "license": "Apache-2.0",
                },
            ],
        }
    )
