"""Corpus tokens, sentences, candidate phrases and frequency counters."""

import threading
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterator, List, Optional, Set, Tuple


@dataclass(eq=False)
class CorpusToken:
    """One annotated token of a sentence.

    Attributes
    ----------
    sent_id : str
        Identifier of the sentence the token belongs to
    index : int
        Position of the token in its sentence
    word, lemma, tag : str
        Surface form, lemma and part-of-speech tag
    ner : str
        Named-entity tag, background ``"O"``
    parent_tag : Optional[str]
        Part-of-speech tag of the token's dependency parent
    labels : Dict[str, str]
        Label name to current value; positive tokens carry the label name itself
    matched_patterns : Set
        Patterns that extracted this token, filled by ``merge_annotations``
    """

    sent_id: str
    index: int
    word: str
    lemma: Optional[str] = None
    tag: str = ""
    ner: str = "O"
    parent_tag: Optional[str] = None
    labels: Dict[str, str] = field(default_factory=dict)
    matched_patterns: Set = field(default_factory=set)
    matched_pattern: bool = False

    def __post_init__(self):
        if self.lemma is None:
            self.lemma = self.word

    def processed_text(self, use_lemma: bool = True, lower_case: bool = True) -> str:
        text = self.lemma if use_lemma else self.word
        return text.lower() if lower_case else text

    def label_value(self, label: str) -> Optional[str]:
        return self.labels.get(label)

    def has_label(self, label: str) -> bool:
        return self.labels.get(label) == label

    def attribute(self, name: str):
        """Label value for label names, otherwise the token field of that name."""
        if name in self.labels:
            return self.labels[name]
        return getattr(self, name, None)


@dataclass
class DataInstance:
    """A sentence: its id and ordered tokens."""

    sent_id: str
    tokens: List[CorpusToken] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.tokens)

    @classmethod
    def from_words(cls, sent_id: str, words: List[str], tags: Optional[List[str]] = None,
                   **token_fields) -> "DataInstance":
        """Build a sentence from parallel word/tag lists; extra per-token fields are lists too."""
        tags = tags or [""] * len(words)
        tokens = []
        for i, (word, tag) in enumerate(zip(words, tags)):
            extra = {name: values[i] for name, values in token_fields.items()}
            tokens.append(CorpusToken(sent_id=sent_id, index=i, word=word, tag=tag, **extra))
        return cls(sent_id=sent_id, tokens=tokens)


class CandidatePhrase:
    """An extracted phrase; identity is the phrase string alone."""

    __slots__ = ("phrase", "lemma", "features")

    def __init__(self, phrase: str, lemma: Optional[str] = None):
        self.phrase = phrase
        self.lemma = lemma if lemma is not None else phrase
        self.features: Dict[str, float] = {}

    def __eq__(self, other):
        return isinstance(other, CandidatePhrase) and self.phrase == other.phrase

    def __hash__(self):
        return hash(self.phrase)

    def __repr__(self):
        return f"CandidatePhrase({self.phrase!r})"

    def __str__(self):
        return self.phrase


class PhraseTable:
    """Thread-safe intern table for candidate phrases.

    Equal phrase strings map to one shared ``CandidatePhrase``; the first
    caller decides the stored lemma.
    """

    def __init__(self):
        self._phrases: Dict[str, CandidatePhrase] = {}
        self._lock = threading.Lock()

    def create_or_get(self, phrase: str, lemma: Optional[str] = None) -> CandidatePhrase:
        with self._lock:
            existing = self._phrases.get(phrase)
            if existing is None:
                existing = CandidatePhrase(phrase, lemma)
                self._phrases[phrase] = existing
            return existing

    def __contains__(self, phrase: str) -> bool:
        return phrase in self._phrases

    def __len__(self) -> int:
        return len(self._phrases)


class TwoDimensionalCounter:
    """Counts over pairs ``(first, second)`` kept as nested ``Counter`` objects."""

    def __init__(self):
        self._counts: Dict[Hashable, Counter] = defaultdict(Counter)

    def increment(self, first, second, by: float = 1.0) -> None:
        self._counts[first][second] += by

    def get_count(self, first, second) -> float:
        inner = self._counts.get(first)
        return inner[second] if inner is not None else 0.0

    def get_counter(self, first) -> Counter:
        return self._counts.get(first, Counter())

    def first_keys(self) -> Set:
        return set(self._counts)

    def second_keys(self) -> Set:
        return {second for inner in self._counts.values() for second in inner}

    def total_count(self, first=None) -> float:
        if first is not None:
            return sum(self.get_counter(first).values())
        return sum(sum(inner.values()) for inner in self._counts.values())

    def items(self) -> Iterator[Tuple[Hashable, Hashable, float]]:
        for first, inner in self._counts.items():
            for second, count in inner.items():
                yield first, second, count

    def transpose(self) -> "TwoDimensionalCounter":
        flipped = TwoDimensionalCounter()
        for first, second, count in self.items():
            flipped.increment(second, first, count)
        return flipped

    def add_all(self, other: "TwoDimensionalCounter") -> None:
        for first, second, count in other.items():
            self.increment(first, second, count)

    def remove_first_key(self, first) -> None:
        self._counts.pop(first, None)

    def __contains__(self, first) -> bool:
        return first in self._counts

    def __len__(self) -> int:
        return len(self._counts)

    def __repr__(self):
        return f"TwoDimensionalCounter({dict(self._counts)!r})"
