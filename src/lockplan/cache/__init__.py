"""Content-addressed unit keys."""

from .keys import UnitCacheInput, cache_input_for, cache_key

__all__ = ["UnitCacheInput", "cache_input_for", "cache_key"]
