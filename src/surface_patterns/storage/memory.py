"""In-memory pattern index backed by an injected shared store."""

import logging
import pickle
import threading
from pathlib import Path
from typing import Dict, Optional, Union

from ..config import PATTERNS_FILE_NAME
from .base import PatternsForEachToken, SentencePatterns, StoreWay, TokenPatterns

logger = logging.getLogger(__name__)


class InMemoryPatternStore:
    """Thread-safe map shared by every in-memory index built on it."""

    def __init__(self):
        self._patterns: SentencePatterns = {}
        self._lock = threading.Lock()

    def put(self, sent_id: str, token_patterns: TokenPatterns) -> None:
        """Store the patterns of one sentence, replacing any earlier entry."""
        with self._lock:
            self._patterns[sent_id] = token_patterns

    def put_all(self, sent_patterns: SentencePatterns) -> None:
        """Store several sentences under one lock acquisition."""
        with self._lock:
            self._patterns.update(sent_patterns)

    def get(self, sent_id: str) -> Optional[TokenPatterns]:
        """Patterns of ``sent_id``, or ``None`` when absent."""
        with self._lock:
            return self._patterns.get(sent_id)

    def snapshot(self) -> SentencePatterns:
        """Shallow copy of the whole map."""
        with self._lock:
            return dict(self._patterns)

    def clear(self) -> None:
        """Drop every sentence."""
        with self._lock:
            self._patterns.clear()

    def __contains__(self, sent_id: str) -> bool:
        return sent_id in self._patterns

    def __len__(self) -> int:
        return len(self._patterns)


class PatternsForEachTokenInMemory(PatternsForEachToken):
    """Pattern index living in an ``InMemoryPatternStore``.

    Parameters
    ----------
    store : Optional[InMemoryPatternStore]
        Shared store; a private one is created when omitted
    patterns : Optional[SentencePatterns]
        Initial content
    """

    store_way = StoreWay.MEMORY

    def __init__(self, store: Optional[InMemoryPatternStore] = None,
                 patterns: Optional[SentencePatterns] = None):
        self.store = store if store is not None else InMemoryPatternStore()
        if patterns:
            self.add_patterns_batch(patterns)

    def add_patterns(self, sent_id: str, token_patterns: TokenPatterns) -> None:
        self.store.put(sent_id, token_patterns)

    def add_patterns_batch(self, sent_patterns: SentencePatterns) -> None:
        self.store.put_all(sent_patterns)

    def get_patterns_for_all_tokens(self, sent_id: str) -> TokenPatterns:
        patterns = self.store.get(sent_id)
        return patterns if patterns is not None else {}

    def contains_sent_id(self, sent_id: str) -> bool:
        """Whether ``sent_id`` has an entry, even an empty one."""
        return sent_id in self.store

    def save(self, dir: Union[str, Path]) -> bool:
        """Pickle the store to ``<dir>/allpatterns.ser``; always succeeds with ``True``."""
        path = Path(dir) / PATTERNS_FILE_NAME
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            pickle.dump(self.store.snapshot(), f, protocol=pickle.HIGHEST_PROTOCOL)
        logger.info("Saved patterns of %d sentences to %s", self.size(), path)
        return True

    def load(self, dir: Union[str, Path]) -> None:
        """Merge a map written by ``save`` into the store."""
        path = Path(dir) / PATTERNS_FILE_NAME
        with open(path, "rb") as f:
            patterns: Dict = pickle.load(f)
        self.add_patterns_batch(patterns)
        logger.info("Loaded patterns of %d sentences from %s", len(patterns), path)

    def size(self) -> int:
        return len(self.store)
