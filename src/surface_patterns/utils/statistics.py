"""Pattern statistics read straight from the per-token pattern index."""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Set

from ..config import SurfacePatternConfig
from ..create_patterns import split_into_shards
from ..corpus import CorpusToken, DataInstance, PhraseTable, TwoDimensionalCounter
from ..errors import DataIntegrityError
from ..scoring import enforce_min_support
from ..storage import PatternsForEachToken
from ..surface_pattern import SurfacePattern

logger = logging.getLogger(__name__)


@dataclass
class SufficientStats:
    """``(pattern, phrase)`` counts split by how the phrase relates to a label."""

    pos: TwoDimensionalCounter = field(default_factory=TwoDimensionalCounter)
    neg: TwoDimensionalCounter = field(default_factory=TwoDimensionalCounter)
    unlab: TwoDimensionalCounter = field(default_factory=TwoDimensionalCounter)

    def add_all(self, other: "SufficientStats") -> None:
        self.pos.add_all(other.pos)
        self.neg.add_all(other.neg)
        self.unlab.add_all(other.unlab)

    def remove_patterns(self, patterns: Iterable[SurfacePattern]) -> None:
        for pattern in patterns:
            self.pos.remove_first_key(pattern)
            self.neg.remove_first_key(pattern)
            self.unlab.remove_first_key(pattern)

    def enforce_min_support(self, config: SurfacePatternConfig) -> Set[SurfacePattern]:
        """Remove patterns below the configured phrase support and return them."""
        removed = enforce_min_support(
            self.pos, self.unlab,
            config.min_pos_phrase_support_for_pat, config.min_unlab_phrase_support_for_pat,
        )
        self.remove_patterns(removed)
        return removed


class SufficientStatsCalculator:
    """Bucket every stored ``(pattern, token)`` pair as positive, negative or unlabeled.

    A token is positive when it carries ``label``. Otherwise it is negative when
    it has an ignored attribute value, is an other-semantic-class word, or is a
    seed or learned word of another label; the rest are unlabeled.
    """

    def __init__(
        self,
        config: SurfacePatternConfig,
        label: str,
        phrase_table: PhraseTable,
        seed_words: Optional[Dict[str, Set[str]]] = None,
        learned_words: Optional[Dict[str, Set[str]]] = None,
        other_semantic_class_words: Optional[Set[str]] = None,
        ignore_words_with_classes_during_selection: Optional[Dict[str, Dict[str, str]]] = None,
        allowed_tags_initials: Optional[Dict[str, Set[str]]] = None,
        allowed_ners: Optional[Dict[str, Set[str]]] = None,
    ):
        self.config = config
        self.label = label
        self.phrase_table = phrase_table
        self.seed_words = seed_words or {}
        self.learned_words = learned_words or {}
        self.other_semantic_class_words = other_semantic_class_words or set()
        self.ignore_classes = (ignore_words_with_classes_during_selection or {}).get(label, {})
        self.allowed_tags_initials = (allowed_tags_initials or {}).get(label)
        self.allowed_ners = (allowed_ners or {}).get(label)
        self._ignore_word_re = re.compile(config.ignore_word_regex)

    def _skip(self, token: CorpusToken) -> bool:
        if self._ignore_word_re.fullmatch(token.word):
            return True
        if self.allowed_tags_initials and not any(
                token.tag.startswith(initial) for initial in self.allowed_tags_initials):
            return True
        if self.allowed_ners and token.ner not in self.allowed_ners:
            return True
        return False

    def is_negative(self, token: CorpusToken) -> bool:
        for attribute, value in self.ignore_classes.items():
            if token.attribute(attribute) == value:
                return True
        if token.word in self.other_semantic_class_words or token.lemma in self.other_semantic_class_words:
            return True
        for other, words in list(self.seed_words.items()) + list(self.learned_words.items()):
            if other != self.label and token.word in words:
                return True
        return False

    def process_sentences(self, sents: Dict[str, DataInstance], sent_ids: Iterable[str],
                          index: PatternsForEachToken) -> SufficientStats:
        stats = SufficientStats()
        for sent_id in sent_ids:
            tokens = sents[sent_id].tokens
            pat4sent = index.get_patterns_for_all_tokens(sent_id)
            if tokens and not pat4sent:
                raise DataIntegrityError(f"No patterns stored for sentence {sent_id}")
            for i, token in enumerate(tokens):
                patterns = pat4sent.get(i)
                if not patterns or self._skip(token):
                    continue
                phrase = self.phrase_table.create_or_get(token.word, token.lemma)
                if token.has_label(self.label):
                    target = stats.pos
                elif self.is_negative(token):
                    target = stats.neg
                else:
                    target = stats.unlab
                for pattern in patterns:
                    target.increment(pattern, phrase)
        return stats

    def calculate(self, sents: Dict[str, DataInstance], index: PatternsForEachToken) -> SufficientStats:
        """Statistics over all of ``sents``, sharded over ``config.num_threads`` workers."""
        index.setup_search()
        shards = split_into_shards(list(sents), self.config.num_threads)
        stats = SufficientStats()
        with ThreadPoolExecutor(max_workers=self.config.num_threads) as executor:
            for shard_stats in executor.map(lambda ids: self.process_sentences(sents, ids, index), shards):
                stats.add_all(shard_stats)
        logger.info(
            "Sufficient stats for %s: %d positive, %d negative, %d unlabeled patterns",
            self.label, len(stats.pos), len(stats.neg), len(stats.unlab),
        )
        return stats


def stats_without_applying_patterns(
    sents: Dict[str, DataInstance],
    index: PatternsForEachToken,
    patterns: Iterable[SurfacePattern],
    phrase_table: PhraseTable,
    sent_ids: Optional[Iterable[str]] = None,
) -> TwoDimensionalCounter:
    """Count ``(phrase, pattern)`` for tokens whose stored patterns include a selected one."""
    selected = set(patterns)
    counts = TwoDimensionalCounter()
    for sent_id in sent_ids if sent_ids is not None else sents:
        pat4sent = index.get_patterns_for_all_tokens(sent_id)
        for i, token in enumerate(sents[sent_id].tokens):
            for pattern in pat4sent.get(i, set()) & selected:
                counts.increment(phrase_table.create_or_get(token.word, token.lemma), pattern)
    return counts
