"""Compile surface patterns to spaCy ``Matcher`` rules and run them over tokens.

Corpus tokens are converted into a spaCy ``Doc`` whose tokens carry a list of
``key=value`` features (processed text, NER, parse parent and label values)
in a custom extension. Context restrictions become ``INTERSECTS`` tests on that
list, the target becomes a POS regex plus ``IS_SUPERSET``, and wildcard glue
becomes ``LOWER IN`` with a ``{min,max}`` operator. The ``$term`` span of a
match is recovered from the matcher alignments.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Iterable, Iterator, List, Optional, Sequence, Set

import spacy
from spacy.matcher import Matcher
from spacy.tokens import Doc, Token

from .corpus import CorpusToken
from .restrictions import (
    FILLER_WILDCARD,
    NER_ATTRIBUTE,
    PARENT_ATTRIBUTE,
    STOPWORD_WILDCARD,
    TEXT_ATTRIBUTE,
    AttributeKeyRegistry,
)
from .surface_pattern import SurfacePattern

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SequenceMatch:
    """A match of one pattern: whole span ``[start, end)`` and target span."""

    key: Hashable
    start: int
    end: int
    term_start: int
    term_end: int


class MatcherEnv:
    """Bindings shared by compiled patterns and the documents they run on.

    Parameters
    ----------
    registry : AttributeKeyRegistry
        Attribute key registry used when the patterns were built
    filler_words : Iterable[str]
        Words bound to ``$FILLER``
    stop_words : Iterable[str]
        Words bound to ``$STOPWORD``
    use_lemma_context_tokens, match_lower_case_context : bool
        Must agree with the factory so literal context values line up
    background_symbol : str
        Value of labels a token does not carry
    """

    FEATURES_EXTENSION = "sp_features"
    LABEL_EXTENSION_PREFIX = "sp_label_"

    def __init__(
        self,
        registry: AttributeKeyRegistry,
        filler_words: Iterable[str] = (),
        stop_words: Iterable[str] = (),
        use_lemma_context_tokens: bool = True,
        match_lower_case_context: bool = True,
        background_symbol: str = "O",
        nlp=None,
    ):
        self.registry = registry
        self.filler_words = sorted({w.lower() for w in filler_words})
        self.stop_words = sorted({w.lower() for w in stop_words})
        self.use_lemma_context_tokens = use_lemma_context_tokens
        self.match_lower_case_context = match_lower_case_context
        self.background_symbol = background_symbol
        self.nlp = nlp if nlp is not None else spacy.blank("en")
        self.vocab = self.nlp.vocab
        if not Token.has_extension(self.FEATURES_EXTENSION):
            Token.set_extension(self.FEATURES_EXTENSION, default=None)

    @classmethod
    def from_config(cls, config, registry: AttributeKeyRegistry, stop_words: Iterable[str] = (),
                    nlp=None) -> "MatcherEnv":
        return cls(
            registry,
            filler_words=config.filler_words,
            stop_words=stop_words,
            use_lemma_context_tokens=config.use_lemma_context_tokens,
            match_lower_case_context=config.match_lower_case_context,
            background_symbol=config.background_symbol,
            nlp=nlp,
        )

    @staticmethod
    def feature(key: str, value: str) -> str:
        return f"{key}={value}"

    def label_extension(self, key: str) -> str:
        name = self.LABEL_EXTENSION_PREFIX + key
        if not Token.has_extension(name):
            Token.set_extension(name, default=self.background_symbol)
        return name

    def wildcard_words(self, name: str) -> List[str]:
        if name == FILLER_WILDCARD:
            return self.filler_words
        if name == STOPWORD_WILDCARD:
            return self.stop_words
        raise RuntimeError(f"Unknown wildcard {name}")

    def token_features(self, token: CorpusToken) -> List[str]:
        registry = self.registry
        text = token.processed_text(self.use_lemma_context_tokens, self.match_lower_case_context)
        features = [
            self.feature(registry.key_for(TEXT_ATTRIBUTE), text),
            self.feature(registry.key_for(NER_ATTRIBUTE), token.ner or self.background_symbol),
            self.feature(registry.key_for(PARENT_ATTRIBUTE), token.parent_tag or "null"),
        ]
        for label, value in token.labels.items():
            features.append(self.feature(registry.key_for(label), value))
        return features

    def build_doc(self, tokens: Sequence[CorpusToken]) -> Doc:
        doc = Doc(self.vocab, words=[t.word for t in tokens])
        for spacy_token, token in zip(doc, tokens):
            if token.tag:
                spacy_token.tag_ = token.tag
            if token.lemma:
                spacy_token.lemma_ = token.lemma
            spacy_token._.set(self.FEATURES_EXTENSION, self.token_features(token))
            for label, value in token.labels.items():
                spacy_token._.set(self.label_extension(self.registry.key_for(label)), value)
        return doc


class TokenSequenceMatcher:
    """Matches compiled surface patterns against corpus token sequences.

    Parameters
    ----------
    env : MatcherEnv
        Wildcard bindings, attribute registry and vocabulary
    max_matches_per_sentence : int
        Upper bound on matches reported per sentence
    """

    def __init__(self, env: MatcherEnv, max_matches_per_sentence: int = 1000):
        self.env = env
        self.max_matches_per_sentence = max_matches_per_sentence
        self._matcher = Matcher(env.vocab)
        self._keys: Dict[str, Hashable] = {}
        self._term_index: Dict[str, int] = {}

    def compile(self, pattern: SurfacePattern,
                not_allowed_classes: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
        """Translate a pattern into a spaCy token pattern list."""
        env = self.env
        not_allowed = {
            env.registry.key_for(label): value
            for label, value in (not_allowed_classes or {}).items()
        }
        specs = [r.to_matcher_spec(env) for r in pattern.prev_context or ()]
        specs.append(pattern.token.to_matcher_spec(env, not_allowed))
        specs.extend(r.to_matcher_spec(env) for r in pattern.next_context or ())
        return specs

    def add(self, key: Hashable, pattern: SurfacePattern,
            not_allowed_classes: Optional[Dict[str, str]] = None) -> None:
        """Register ``pattern`` under ``key``; ``not_allowed_classes`` maps labels to values the target must lack."""
        rule_id = f"rule_{len(self._keys)}"
        self._matcher.add(rule_id, [self.compile(pattern, not_allowed_classes)])
        self._keys[rule_id] = key
        self._term_index[rule_id] = pattern.prev_context_len

    def __len__(self) -> int:
        return len(self._keys)

    @staticmethod
    def _non_overlapping(matches: List[SequenceMatch]) -> List[SequenceMatch]:
        """Leftmost-longest selection over ``matches`` sorted by start, then longest.

        Matches covering exactly a selected span are all kept, so patterns
        that fire on the same occurrence each report it.
        """
        selected: List[SequenceMatch] = []
        last_span = None
        last_end = -1
        for m in matches:
            if (m.start, m.end) == last_span:
                selected.append(m)
            elif m.start >= last_end:
                selected.append(m)
                last_span = (m.start, m.end)
                last_end = m.end
        return selected

    def find(self, tokens: Sequence[CorpusToken], find_all: bool = False,
             across_patterns: bool = False) -> Iterator[SequenceMatch]:
        """Matches in ``tokens``.

        By default each pattern reports leftmost-longest, non-overlapping
        matches. With ``across_patterns`` the selection runs over the matches
        of all patterns together. ``find_all`` reports every distinct match.
        """
        if not tokens or not self._keys:
            return iter(())
        doc = self.env.build_doc(tokens)
        raw = self._matcher(doc, with_alignments=True)
        by_rule: Dict[str, Set[SequenceMatch]] = {}
        for match_id, start, end, alignments in raw:
            rule_id = self.env.vocab.strings[match_id]
            term_index = self._term_index[rule_id]
            term_positions = [start + k for k, idx in enumerate(alignments) if idx == term_index]
            if not term_positions:
                continue
            by_rule.setdefault(rule_id, set()).add(SequenceMatch(
                self._keys[rule_id], start, end, term_positions[0], term_positions[-1] + 1,
            ))

        def order(m: SequenceMatch):
            return (m.start, -m.end, m.term_start, -m.term_end)

        results: List[SequenceMatch] = []
        if across_patterns and not find_all:
            ranked = [
                (order(m), rank, m)
                for rank, rule_id in enumerate(self._keys)
                for m in by_rule.get(rule_id, ())
            ]
            ranked.sort(key=lambda item: item[:2])
            results = self._non_overlapping([m for _, _, m in ranked])
        else:
            for rule_id in self._keys:
                matches = sorted(by_rule.get(rule_id, ()), key=order)
                results.extend(matches if find_all else self._non_overlapping(matches))
        if len(results) > self.max_matches_per_sentence:
            logger.warning(
                "Sentence %s produced %d matches; keeping the first %d",
                tokens[0].sent_id, len(results), self.max_matches_per_sentence,
            )
            results = results[:self.max_matches_per_sentence]
        return iter(results)
