"""Generate surface patterns around tokens of a sentence."""

import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .config import SurfacePatternConfig
from .corpus import CorpusToken, DataInstance
from .errors import DataIntegrityError
from .restrictions import (
    FILLER_WILDCARD,
    NER_ATTRIBUTE,
    STOPWORD_WILDCARD,
    TEXT_ATTRIBUTE,
    AttributeKeyRegistry,
    PatternToken,
    Restriction,
)
from .surface_pattern import Genre, SurfacePattern

logger = logging.getLogger(__name__)


def is_ascii(text: str) -> bool:
    return all(ord(ch) < 128 for ch in text)


class SurfacePatternFactory:
    """Enumerate all surface patterns for a token position.

    Parameters
    ----------
    config : SurfacePatternConfig
        Window, restriction and wildcard options
    registry : AttributeKeyRegistry
        Shared attribute key registry; the matcher must use the same instance
    generalize_classes : Iterable[str]
        Label classes whose non-background values replace the literal word in
        context restrictions
    """

    def __init__(
        self,
        config: SurfacePatternConfig,
        registry: AttributeKeyRegistry,
        generalize_classes: Iterable[str] = (),
    ):
        config.validate()
        self.config = config
        self.registry = registry
        self.generalize_classes = sorted(generalize_classes)
        self._ignore_word_re = re.compile(config.ignore_word_regex)
        self._text_key = registry.key_for(TEXT_ATTRIBUTE)
        self._ner_key = registry.key_for(NER_ATTRIBUTE)
        self._label_keys = {label: registry.key_for(label) for label in self.generalize_classes}

        self.fw: Optional[Restriction] = None
        if config.use_filler_words_in_pat:
            self.fw = Restriction.wildcard(FILLER_WILDCARD, 0, 2)
        self.sw: Optional[Restriction] = None
        if config.use_stop_words_before_term:
            self.sw = Restriction.wildcard(STOPWORD_WILDCARD, 0, 2)

    def do_not_use(self, word: str, stop_words: Set[str]) -> bool:
        """Stop words and words fully matching the ignore regex are never targets."""
        return word.lower() in stop_words or self._ignore_word_re.fullmatch(word) is not None

    def get_context_token(self, token: CorpusToken) -> Tuple[bool, Restriction, str]:
        """Render a context token through its labels.

        Returns
        -------
        Tuple[bool, Restriction, str]
            Whether the token is unlabeled, the label restriction, and the
            ``|``-joined label names it was generalised to
        """
        background = self.config.background_symbol
        generic = Restriction()
        original = []
        is_labeled_o = True
        for label in self.generalize_classes:
            value = token.labels.get(label)
            if value is None:
                raise DataIntegrityError(
                    f"Label {label} not set for token {token.word!r} "
                    f"(sentence {token.sent_id}, index {token.index})"
                )
            if value != background:
                is_labeled_o = False
                original.append(label)
                generic.add_restriction(self._label_keys[label], label)
        if self.config.use_context_ner_restriction:
            ner = token.ner
            if ner is not None and ner != background:
                is_labeled_o = False
                original.append(ner)
                generic.add_restriction(self._ner_key, ner)
        return is_labeled_o, generic, "|".join(original)

    def _target_templates(self, token: CorpusToken) -> List[PatternToken]:
        config = self.config
        compound = config.num_words_compound_max > 1
        templates = []
        if config.use_pos_4_pattern:
            tag = token.tag[:2] if config.use_coarse_pos else token.tag
            templates.append(PatternToken(
                tag, True, compound, config.num_words_compound_max,
                token.ner, config.use_target_ner_restriction,
                config.use_target_parser_parent_restriction, token.parent_tag,
            ))
        if config.add_pat_without_pos:
            templates.append(PatternToken(
                token.tag, False, compound, config.num_words_compound_max,
                token.ner, config.use_target_ner_restriction,
                config.use_target_parser_parent_restriction, token.parent_tag,
            ))
        return templates

    def _walk(self, tokens: Sequence[CorpusToken], positions: Iterable[int],
              max_win: int, stop_words: Set[str]) -> Tuple[List[Restriction], List[str], int, int]:
        """Collect up to ``max_win`` context restrictions, nearest token first."""
        config = self.config
        context: List[Restriction] = []
        originals: List[str] = []
        num_stop = num_non_stop = 0
        for j in positions:
            if len(context) >= max_win:
                break
            token = tokens[j]
            if config.use_filler_words_in_pat and token.word.lower() in config.filler_words:
                continue
            is_labeled_o, generic, original = self.get_context_token(token)
            if not is_labeled_o:
                num_non_stop += 1
                context.append(generic)
                originals.append(original)
                continue
            if token.word.startswith("http"):
                return [], [], 0, 0
            text = token.processed_text(config.use_lemma_context_tokens, config.match_lower_case_context)
            literal = Restriction()
            literal.add_restriction(self._text_key, text)
            context.append(literal)
            originals.append(text)
            if self.do_not_use(text, stop_words):
                num_stop += 1
            else:
                num_non_stop += 1
        return context, originals, num_stop, num_non_stop

    def _accepted(self, num_stop: int, num_non_stop: int) -> bool:
        return num_non_stop > 0 or num_stop > self.config.num_min_stop_words_to_add

    def get_context(self, tokens: Sequence[CorpusToken], i: int,
                    stop_words: Set[str]) -> Set[SurfacePattern]:
        """All patterns for the token at ``i``, over every window size."""
        config = self.config
        templates = self._target_templates(tokens[i])
        patterns: Set[SurfacePattern] = set()

        for max_win in range(1, config.max_window_4_pattern + 1):
            prev_context: List[Restriction] = []
            next_context: List[Restriction] = []
            use_prev = use_next = False

            if config.use_previous_context:
                context, originals, num_stop, num_non_stop = self._walk(
                    tokens, range(i - 1, -1, -1), max_win, stop_words)
                if len(context) >= config.min_window_4_pattern and self._accepted(num_stop, num_non_stop):
                    # outermost first, glue after every token
                    for restriction in reversed(context):
                        prev_context.append(restriction)
                        if self.fw is not None:
                            prev_context.append(self.fw)
                    if self.sw is not None:
                        prev_context.append(self.sw)
                    if is_ascii(" ".join(reversed(originals))):
                        for template in templates:
                            patterns.add(SurfacePattern(prev_context, template, None, Genre.PREV))
                        use_prev = True

            num_next = 0
            if config.use_next_context:
                context, originals, num_stop, num_non_stop = self._walk(
                    tokens, range(i + 1, len(tokens)), max_win, stop_words)
                num_next = len(context)
                if context and self._accepted(num_stop, num_non_stop) and is_ascii(" ".join(originals)):
                    if self.sw is not None:
                        next_context.append(self.sw)
                    for restriction in context:
                        if self.fw is not None:
                            next_context.append(self.fw)
                        next_context.append(restriction)
                    if num_next >= config.min_window_4_pattern:
                        for template in templates:
                            patterns.add(SurfacePattern(None, template, next_context, Genre.NEXT))
                    use_next = True

            if use_prev and use_next:
                num_prev = sum(1 for r in prev_context if r.bound_wildcard is None)
                if num_prev + num_next >= config.min_window_4_pattern:
                    for template in templates:
                        patterns.add(SurfacePattern(prev_context, template, next_context, Genre.PREVNEXT))
        return patterns

    def get_patterns_around_tokens(self, sentence: DataInstance,
                                   stop_words: Set[str]) -> Dict[int, Set[SurfacePattern]]:
        """Pattern sets for every token index; unusable targets get an empty set."""
        tokens = sentence.tokens
        result: Dict[int, Set[SurfacePattern]] = {}
        for i, token in enumerate(tokens):
            if self.do_not_use(token.word, stop_words):
                result[i] = set()
            else:
                result[i] = self.get_context(tokens, i, stop_words)
        return result
