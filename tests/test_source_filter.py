from pathlib import Path

import pytest

from lockplan.builders import RUST
from lockplan.errors import FilterCompositionError, ValidationError
from lockplan.sources import FilteredSource, source_by_regex


def test_rust_patterns_keep_only_manifest_lock_and_sources(crate_root: Path) -> None:
    src = source_by_regex(crate_root, RUST.source_patterns)

    assert src.files() == ["Cargo.lock", "Cargo.toml", "src/bin/main.rs", "src/lib.rs"]


def test_directories_are_always_retained(crate_root: Path) -> None:
    src = source_by_regex(crate_root, [r"^Cargo\.toml$"])

    assert src.directories() == ["docs", "src", "src/bin", "target", "target/debug"]
    assert src.matches("target/debug", is_dir=True)
    assert not src.matches("target/debug/out.bin")


def test_empty_pattern_list_keeps_only_directories(crate_root: Path) -> None:
    src = source_by_regex(crate_root, [])

    assert src.files() == []
    assert "src" in src.directories()


def test_patterns_must_match_the_whole_relative_path(crate_root: Path) -> None:
    src = source_by_regex(crate_root, [r"lib\.rs"])

    assert src.files() == []
    assert source_by_regex(crate_root, [r"src/lib\.rs"]).files() == ["src/lib.rs"]


def test_refiltering_keeps_the_original_root(crate_root: Path) -> None:
    first = source_by_regex(crate_root, [r"^Cargo\.toml$"])
    second = source_by_regex(first, [r".*/[a-z_]+\.rs"])

    assert second.origin == str(crate_root)
    assert second.patterns == (r"^Cargo\.toml$", r".*/[a-z_]+\.rs")


@pytest.mark.parametrize(
    ("first", "second"),
    [
        ([r"^Cargo\.toml$"], [r".*/[a-z_]+\.rs"]),
        ([r"docs/.*"], [r"docs/.*"]),
        ([], [r"^Cargo\.lock$"]),
        ([r"src/.*"], []),
    ],
)
def test_filter_composition_equals_single_filter_with_union(
    crate_root: Path,
    first: list[str],
    second: list[str],
) -> None:
    chained = source_by_regex(source_by_regex(crate_root, first), second)
    once = source_by_regex(crate_root, [*first, *second])

    assert chained.files() == once.files()
    assert list(chained.entries()) == list(once.entries())


def test_filter_composition_is_idempotent(crate_root: Path) -> None:
    src = source_by_regex(crate_root, RUST.source_patterns)

    assert source_by_regex(src, RUST.source_patterns) == src


def test_with_patterns_replaces_wholesale(crate_root: Path) -> None:
    src = source_by_regex(crate_root, RUST.source_patterns).with_patterns([r"docs/.*"])

    assert src.origin == str(crate_root)
    assert src.files() == ["docs/README.md"]


def test_invalid_pattern_reports_offending_pattern(crate_root: Path) -> None:
    with pytest.raises(FilterCompositionError) as excinfo:
        source_by_regex(crate_root, [r"^Cargo\.toml$", r"src/(unclosed"])

    assert excinfo.value.pattern == r"src/(unclosed"
    assert excinfo.value.code == "E_FILTER_COMPOSITION"


def test_digest_tracks_only_retained_files(crate_root: Path) -> None:
    src = source_by_regex(crate_root, RUST.source_patterns)
    before = src.digest()

    (crate_root / "docs" / "README.md").write_text("changed\n", encoding="utf-8")
    assert src.digest() == before

    (crate_root / "src" / "lib.rs").write_text("pub fn g() {}\n", encoding="utf-8")
    assert src.digest() != before


def test_remote_origin_cannot_be_walked() -> None:
    src = FilteredSource(origin="registry+https://example.invalid/index", patterns=(r".*",))

    with pytest.raises(ValidationError):
        src.files()
