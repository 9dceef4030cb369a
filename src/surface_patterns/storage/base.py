"""Abstract per-token pattern index."""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Iterable, Set, Union
from pathlib import Path

logger = logging.getLogger(__name__)

# sentence id -> token index -> patterns
TokenPatterns = Dict[int, Set]
SentencePatterns = Dict[str, TokenPatterns]


class StoreWay(Enum):
    """Storage medium of a pattern index."""

    MEMORY = "MEMORY"
    DB = "DB"
    SEARCH_INDEX = "SEARCH_INDEX"


class PatternsForEachToken(ABC):
    """Keyed store mapping sentence ids to per-token pattern sets.

    ``add_patterns`` replaces the whole record of a sentence. ``update_patterns``
    reads the stored record first and overlays the new token entries on it.
    Unknown sentence ids read back as empty maps.
    """

    store_way: StoreWay

    @abstractmethod
    def add_patterns(self, sent_id: str, token_patterns: TokenPatterns) -> None:
        """Store the patterns of one sentence."""

    @abstractmethod
    def add_patterns_batch(self, sent_patterns: SentencePatterns) -> None:
        """Store the patterns of many sentences."""

    @abstractmethod
    def get_patterns_for_all_tokens(self, sent_id: str) -> TokenPatterns:
        """Return token index to pattern set for ``sent_id``."""

    def get_patterns_for_sentences(self, sent_ids: Iterable[str]) -> SentencePatterns:
        """Bulk read; sentences without patterns map to an empty dict."""
        return {sent_id: self.get_patterns_for_all_tokens(sent_id) for sent_id in sent_ids}

    def update_patterns(self, sent_patterns: SentencePatterns) -> None:
        """Merge ``sent_patterns`` into what is stored; new token entries win."""
        self.setup_search()
        merged: SentencePatterns = {}
        for sent_id, token_patterns in sent_patterns.items():
            record = dict(self.get_patterns_for_all_tokens(sent_id))
            record.update(token_patterns)
            merged[sent_id] = record
        self.add_patterns_batch(merged)
        self.close()

    def save(self, dir: Union[str, Path]) -> bool:
        """Snapshot the index into ``dir``; durable backends have nothing to do."""
        return False

    def load(self, dir: Union[str, Path]) -> None:
        """Read back what ``save`` wrote."""

    def setup_search(self) -> None:
        """Make committed writes visible to reads."""

    def create_index_if_using_db_and_not_exists(self) -> None:
        """Create the secondary index of relational backends."""

    def close(self) -> None:
        """Release backend resources; safe to call repeatedly."""

    @abstractmethod
    def size(self) -> int:
        """Number of stored sentences."""
