"""Apply learned surface patterns to a corpus and collect candidate phrases."""

import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from tqdm.auto import tqdm

from .config import SurfacePatternConfig
from .corpus import CandidatePhrase, CorpusToken, DataInstance, PhraseTable, TwoDimensionalCounter
from .matcher import MatcherEnv, TokenSequenceMatcher
from .restrictions import AttributeKeyRegistry
from .surface_pattern import SurfacePattern

logger = logging.getLogger(__name__)

Span = Tuple[str, int, int]


def has_isolated_gap(added: Sequence[bool]) -> bool:
    """True when an interior token was omitted between two kept tokens."""
    for i in range(1, len(added) - 1):
        if added[i - 1] and not added[i] and added[i + 1]:
            return True
    return False


@dataclass
class ApplyPatternsResult:
    """Output of one application run.

    Attributes
    ----------
    all_freq : TwoDimensionalCounter
        Counts of ``(CandidatePhrase, SurfacePattern)``
    matched_tokens_by_pat : Dict[SurfacePattern, List[Span]]
        ``(sent_id, start, end_inclusive)`` of every accepted match
    already_labeled_phrases : Set[CandidatePhrase]
        Phrases whose kept tokens all carried the label already
    new_phrases : Set[CandidatePhrase]
        Phrases whose span had no token carrying the label
    token_annotations : Dict[Tuple[str, int], Set[SurfacePattern]]
        Patterns that matched each ``(sent_id, token index)``
    """

    all_freq: TwoDimensionalCounter = field(default_factory=TwoDimensionalCounter)
    matched_tokens_by_pat: Dict[SurfacePattern, List[Span]] = field(
        default_factory=lambda: defaultdict(list))
    already_labeled_phrases: Set[CandidatePhrase] = field(default_factory=set)
    new_phrases: Set[CandidatePhrase] = field(default_factory=set)
    token_annotations: Dict[Tuple[str, int], Set[SurfacePattern]] = field(
        default_factory=lambda: defaultdict(set))

    def merge_annotations(self, sents: Dict[str, DataInstance]) -> None:
        """Mark matched tokens in ``sents`` with the patterns that matched them."""
        for (sent_id, index), patterns in self.token_annotations.items():
            token = sents[sent_id].tokens[index]
            token.matched_pattern = True
            token.matched_patterns.update(patterns)

    def update(self, other: "ApplyPatternsResult") -> None:
        self.all_freq.add_all(other.all_freq)
        for pattern, spans in other.matched_tokens_by_pat.items():
            self.matched_tokens_by_pat[pattern].extend(spans)
        self.already_labeled_phrases |= other.already_labeled_phrases
        self.new_phrases |= other.new_phrases
        for key, patterns in other.token_annotations.items():
            self.token_annotations[key] |= patterns


class ApplyPatterns:
    """Match patterns of one label over sentences and extract phrases.

    Each pattern reports its leftmost-longest non-overlapping matches. A phrase
    is counted whenever it survives the stop-word and ignore-class policy.

    Parameters
    ----------
    sents : Dict[str, DataInstance]
        Corpus by sentence id
    sent_ids : Iterable[str]
        Sentences to process
    patterns : Iterable[SurfacePattern]
        Patterns learned for ``label``
    label : str
        Label being extracted
    config : SurfacePatternConfig
        Policy flags and matcher options
    phrase_table : PhraseTable
        Shared intern table for candidate phrases
    stop_words : Set[str]
        Common words, also bound to ``$STOPWORD``
    registry : AttributeKeyRegistry
        Registry the patterns were built with
    ignore_words_with_classes_during_selection : Optional[Dict[str, Dict[str, str]]]
        Per label, attribute values that void a phrase
    not_allowed_classes : Optional[Dict[str, str]]
        Label to value the target tokens must not carry
    """

    across_patterns = False

    def __init__(
        self,
        sents: Dict[str, DataInstance],
        sent_ids: Iterable[str],
        patterns: Iterable[SurfacePattern],
        label: str,
        config: SurfacePatternConfig,
        phrase_table: PhraseTable,
        stop_words: Set[str],
        registry: AttributeKeyRegistry,
        ignore_words_with_classes_during_selection: Optional[Dict[str, Dict[str, str]]] = None,
        not_allowed_classes: Optional[Dict[str, str]] = None,
        env: Optional[MatcherEnv] = None,
    ):
        self.sents = sents
        self.sent_ids = list(sent_ids)
        self.patterns = list(dict.fromkeys(patterns))
        self.label = label
        self.config = config
        self.phrase_table = phrase_table
        self.stop_words = set(stop_words)
        self.ignore_classes = (ignore_words_with_classes_during_selection or {}).get(label, {})
        self._ignore_word_re = re.compile(config.ignore_word_regex)
        if env is None:
            env = MatcherEnv.from_config(config, registry, stop_words=self.stop_words)
        self.matcher = TokenSequenceMatcher(env, config.max_matches_per_sentence)
        for pattern in self.patterns:
            self.matcher.add(pattern, pattern, not_allowed_classes)

    def contains_stop_word(self, token: CorpusToken) -> bool:
        return (
            self._ignore_word_re.fullmatch(token.lemma) is not None
            or token.lemma in self.stop_words
            or token.word in self.stop_words
        )

    def _extend_span(self, tokens: Sequence[CorpusToken], s: int, e: int) -> Tuple[int, int]:
        while s > 0 and tokens[s - 1].has_label(self.label):
            s -= 1
        while e < len(tokens) and tokens[e].has_label(self.label):
            e += 1
        return s, e

    def _accept(self, do_not_use: bool, use_word_not_labeled: bool) -> bool:
        return not do_not_use

    def _process_match(self, sent_id: str, tokens: Sequence[CorpusToken], pattern: SurfacePattern,
                       s: int, e: int, result: ApplyPatternsResult) -> None:
        config = self.config
        if config.club_neighboring_labeled_words:
            s, e = self._extend_span(tokens, s, e)

        words: List[str] = []
        lemmas: List[str] = []
        added: List[bool] = []
        do_not_use = False
        use_word_not_labeled = False
        any_labeled = False

        for i in range(s, e):
            token = tokens[i]
            result.token_annotations[(sent_id, i)].add(pattern)
            labeled = token.has_label(self.label)
            any_labeled = any_labeled or labeled
            for attribute, value in self.ignore_classes.items():
                if token.attribute(attribute) == value:
                    do_not_use = True
            contains_stop = self.contains_stop_word(token)
            if config.remove_phrases_with_stop_words and contains_stop:
                do_not_use = True
                added.append(False)
            elif not contains_stop or not config.remove_stop_words_from_selected_phrases:
                if not labeled:
                    use_word_not_labeled = True
                words.append(token.word)
                lemmas.append(token.lemma)
                added.append(True)
            else:
                added.append(False)

        if has_isolated_gap(added):
            do_not_use = True
        self._record(sent_id, pattern, s, e, words, lemmas, do_not_use,
                     use_word_not_labeled, any_labeled, result)

    def _record(self, sent_id, pattern, s, e, words, lemmas, do_not_use,
                use_word_not_labeled, any_labeled, result: ApplyPatternsResult) -> None:
        phrase = " ".join(words).strip()
        if not self._accept(do_not_use, use_word_not_labeled) or not phrase:
            return
        candidate = self.phrase_table.create_or_get(phrase, " ".join(lemmas).strip())
        result.all_freq.increment(candidate, pattern, 1.0)
        result.matched_tokens_by_pat[pattern].append((sent_id, s, e - 1))
        if not use_word_not_labeled:
            result.already_labeled_phrases.add(candidate)
        if not any_labeled:
            result.new_phrases.add(candidate)

    def call(self) -> ApplyPatternsResult:
        result = ApplyPatternsResult()
        for sent_id in tqdm(self.sent_ids, desc=f"Applying patterns for {self.label}",
                            disable=not self.config.show_progress):
            tokens = self.sents[sent_id].tokens
            for match in self.matcher.find(tokens, across_patterns=self.across_patterns):
                self._process_match(sent_id, tokens, match.key, match.term_start, match.term_end, result)
        logger.info(
            "Applied %d patterns for %s on %d sentences: %d phrases",
            len(self.patterns), self.label, len(self.sent_ids), len(result.all_freq),
        )
        return result


class ApplyPatternsMulti(ApplyPatterns):
    """All patterns in one combined matcher.

    Matches are leftmost-longest and non-overlapping across all patterns
    together. The span of every kept candidate is recorded; phrases are only
    counted when at least one kept token is not already labeled.
    """

    across_patterns = True

    def _accept(self, do_not_use: bool, use_word_not_labeled: bool) -> bool:
        return not do_not_use and use_word_not_labeled

    def _record(self, sent_id, pattern, s, e, words, lemmas, do_not_use,
                use_word_not_labeled, any_labeled, result: ApplyPatternsResult) -> None:
        phrase = " ".join(words).strip()
        if do_not_use or not phrase:
            return
        result.matched_tokens_by_pat[pattern].append((sent_id, s, e - 1))
        if not self._accept(do_not_use, use_word_not_labeled):
            return
        candidate = self.phrase_table.create_or_get(phrase, " ".join(lemmas).strip())
        result.all_freq.increment(candidate, pattern, 1.0)
        if not any_labeled:
            result.new_phrases.add(candidate)
