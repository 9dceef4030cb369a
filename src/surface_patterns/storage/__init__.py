"""Per-token pattern index backends."""

from typing import Optional

from ..config import SurfacePatternConfig
from .base import PatternsForEachToken, SentencePatterns, StoreWay, TokenPatterns
from .memory import InMemoryPatternStore, PatternsForEachTokenInMemory
from .search_index import IndexWriterPool, PatternsForEachTokenSearchIndex
from .sqlite import PatternsForEachTokenDB


def get_patterns_instance(
    store_way: StoreWay,
    config: SurfacePatternConfig,
    store: Optional[InMemoryPatternStore] = None,
    patterns: Optional[SentencePatterns] = None,
    writers: Optional[IndexWriterPool] = None,
) -> PatternsForEachToken:
    """Build the index backend for ``store_way``.

    ``store`` is shared by in-memory backends and ``writers`` by search index
    backends; other backends ignore them.
    """
    if store_way is StoreWay.MEMORY:
        return PatternsForEachTokenInMemory(store=store, patterns=patterns)
    if store_way is StoreWay.DB:
        return PatternsForEachTokenDB(config, patterns=patterns)
    if store_way is StoreWay.SEARCH_INDEX:
        return PatternsForEachTokenSearchIndex(config, patterns=patterns, writers=writers)
    raise ValueError(f"store_way must be one of {[w.value for w in StoreWay]}")


__all__ = [
    "StoreWay",
    "PatternsForEachToken",
    "SentencePatterns",
    "TokenPatterns",
    "InMemoryPatternStore",
    "PatternsForEachTokenInMemory",
    "PatternsForEachTokenDB",
    "IndexWriterPool",
    "PatternsForEachTokenSearchIndex",
    "get_patterns_instance",
]
