"""Source filtering APIs."""

from .filter import FilteredSource, SourceEntry, compile_pattern, source_by_regex

__all__ = ["FilteredSource", "SourceEntry", "compile_pattern", "source_by_regex"]
