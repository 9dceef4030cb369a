"""Build the per-token pattern index for a corpus with a thread pool."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional, Sequence, Set

from tqdm.auto import tqdm

from .config import SurfacePatternConfig
from .corpus import DataInstance
from .pattern_factory import SurfacePatternFactory
from .storage import (
    InMemoryPatternStore,
    PatternsForEachToken,
    SentencePatterns,
    StoreWay,
    get_patterns_instance,
)

logger = logging.getLogger(__name__)


def split_into_shards(ids: Sequence[str], num_shards: int) -> List[List[str]]:
    """Contiguous shards of ``len(ids) // num_shards``; the last takes the remainder."""
    ids = list(ids)
    if num_shards <= 1 or len(ids) < num_shards:
        return [ids] if ids else []
    size = len(ids) // num_shards
    shards = [ids[k * size:(k + 1) * size] for k in range(num_shards - 1)]
    shards.append(ids[(num_shards - 1) * size:])
    return shards


class CreatePatterns:
    """Run the pattern factory over every token of a corpus.

    Parameters
    ----------
    config : SurfacePatternConfig
        Thread count, batching and storage options
    factory : SurfacePatternFactory
        Pattern generator
    stop_words : Set[str]
        Lowercased stop words
    """

    def __init__(self, config: SurfacePatternConfig, factory: SurfacePatternFactory,
                 stop_words: Set[str]):
        self.config = config
        self.factory = factory
        self.stop_words = {w.lower() for w in stop_words}

    def _process_shard(self, sents: Dict[str, DataInstance], sent_ids: List[str],
                       index: PatternsForEachToken) -> int:
        write_through = index.store_way is StoreWay.MEMORY
        buffer: SentencePatterns = {}
        for n, sent_id in enumerate(sent_ids, start=1):
            patterns = self.factory.get_patterns_around_tokens(sents[sent_id], self.stop_words)
            if write_through:
                index.add_patterns(sent_id, patterns)
                continue
            buffer[sent_id] = patterns
            if n % self.config.commit_every_n_sentences == 0:
                index.add_patterns_batch(buffer)
                buffer = {}
        if buffer:
            index.add_patterns_batch(buffer)
        return len(sent_ids)

    def get_all_patterns(
        self,
        sents: Dict[str, DataInstance],
        store_way: StoreWay = StoreWay.MEMORY,
        store: Optional[InMemoryPatternStore] = None,
        index: Optional[PatternsForEachToken] = None,
    ) -> PatternsForEachToken:
        """Populate and return a pattern index for ``sents``.

        The first failing shard cancels the pending ones and its exception is
        re-raised; shards that already finished keep their writes.
        """
        if index is None:
            index = get_patterns_instance(store_way, self.config, store=store)
        start = time.time()
        num_threads = self.config.num_threads
        shards = split_into_shards(list(sents), num_threads)
        logger.info("Creating patterns for %d sentences in %d shards", len(sents), len(shards))

        executor = ThreadPoolExecutor(max_workers=num_threads)
        futures = [executor.submit(self._process_shard, sents, shard, index) for shard in shards]
        try:
            for future in tqdm(as_completed(futures), total=len(futures), desc="Creating patterns",
                               disable=not self.config.show_progress):
                future.result()
        except Exception:
            for future in futures:
                future.cancel()
            executor.shutdown(wait=True)
            raise
        executor.shutdown(wait=True)

        index.close()
        logger.info("Done creating patterns in %.2f seconds", time.time() - start)
        return index
