"""Surface patterns: context restrictions around a target token."""

from enum import Enum
from functools import total_ordering
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .restrictions import PatternToken, Restriction

MAX_INT = 2 ** 31 - 1


class Genre(Enum):
    """Which context sides a pattern carries."""

    PREV = "PREV"
    NEXT = "NEXT"
    PREVNEXT = "PREVNEXT"


def _context_str(context: Optional[Tuple[Restriction, ...]]) -> str:
    if not context:
        return ""
    return " ".join(r.to_string() for r in context)


@total_ordering
class SurfacePattern:
    """An immutable pattern ``(prev_context, token, next_context)``.

    Parameters
    ----------
    prev_context : Optional[Sequence[Restriction]]
        Restrictions left of the target, outermost first; ``None`` for NEXT patterns
    token : PatternToken
        Restrictions on the target phrase
    next_context : Optional[Sequence[Restriction]]
        Restrictions right of the target; ``None`` for PREV patterns
    genre : Genre
        Which sides are present

    Equality is structural over the three parts. The hash is computed once
    from the canonical string rendering.
    """

    __slots__ = ("prev_context", "token", "next_context", "genre", "_str", "_hash")

    def __init__(
        self,
        prev_context: Optional[Sequence[Restriction]],
        token: PatternToken,
        next_context: Optional[Sequence[Restriction]],
        genre: Genre,
    ):
        if genre is Genre.PREV and next_context is not None:
            raise ValueError("PREV patterns cannot have a next context")
        if genre is Genre.NEXT and prev_context is not None:
            raise ValueError("NEXT patterns cannot have a previous context")
        if genre is Genre.PREVNEXT and (prev_context is None or next_context is None):
            raise ValueError("PREVNEXT patterns need both contexts")
        self.prev_context = tuple(prev_context) if prev_context is not None else None
        self.token = token
        self.next_context = tuple(next_context) if next_context is not None else None
        self.genre = genre
        for restriction in (self.prev_context or ()) + (self.next_context or ()):
            restriction.freeze()
        self._str = self.to_string()
        self._hash = hash(self._str)

    @property
    def prev_context_str(self) -> str:
        return _context_str(self.prev_context)

    @property
    def next_context_str(self) -> str:
        return _context_str(self.next_context)

    @property
    def prev_context_len(self) -> int:
        return len(self.prev_context) if self.prev_context else 0

    @property
    def next_context_len(self) -> int:
        return len(self.next_context) if self.next_context else 0

    def to_string(self, not_allowed_classes: Optional[Dict[str, str]] = None) -> str:
        return " ".join(
            part for part in (
                self.prev_context_str,
                self.token.get_token_str(not_allowed_classes),
                self.next_context_str,
            ) if part
        )

    def get_simpler_tokens_prev(self) -> List[str]:
        return [r.get_simple() for r in self.prev_context or () if not r.is_empty()]

    def get_simpler_tokens_next(self) -> List[str]:
        return [r.get_simple() for r in self.next_context or () if not r.is_empty()]

    def to_string_simple(self) -> str:
        """Readable form, e.g. ``the FW <b>X:NN</b>``."""
        return " ".join(
            part for part in (
                " ".join(self.get_simpler_tokens_prev()),
                "<b>" + self.token.to_string_to_write() + "</b>",
                " ".join(self.get_simpler_tokens_next()),
            ) if part
        )

    def to_string_to_write(self) -> str:
        return f"{self.prev_context_str}##{self.token.to_string_to_write()}##{self.next_context_str}"

    def get_relevant_words(self) -> Dict[str, Set[str]]:
        """Context literal values grouped by attribute key."""
        words: Dict[str, Set[str]] = {}
        for restriction in (self.prev_context or ()) + (self.next_context or ()):
            for key, value in restriction.values_by_key():
                words.setdefault(key, set()).add(value)
        return words

    def copy_new_token(self, num_words_compound: Optional[int] = None) -> "SurfacePattern":
        """Return a pattern with the same contexts and a copied target."""
        token = (
            self.token.copy() if num_words_compound is None
            else self.token.with_num_words_compound(num_words_compound)
        )
        return SurfacePattern(self.prev_context, token, self.next_context, self.genre)

    def same_genre(self, other: "SurfacePattern") -> bool:
        return self.genre is other.genre

    def same_length(self, other: "SurfacePattern") -> bool:
        return (self.prev_context_len == other.prev_context_len
                and self.next_context_len == other.next_context_len)

    def same_restrictions(self, other: "SurfacePattern") -> bool:
        return self.token == other.token

    def equal_context(self, other: "SurfacePattern") -> int:
        """Compare two patterns that share their contexts.

        Returns 0 for equal patterns and ``MAX_INT`` when the contexts differ.
        Otherwise the result is positive when this pattern carries more target
        restrictions than ``other`` (compound length counts against it).
        """
        if self == other:
            return 0
        if self.prev_context != other.prev_context or self.next_context != other.next_context:
            return MAX_INT
        mine = self.token.restriction_count() - self.token.num_words_compound
        theirs = other.token.restriction_count() - other.token.num_words_compound
        return mine - theirs

    @staticmethod
    def subsumes_array(outer: Optional[Sequence[Restriction]],
                       inner: Optional[Sequence[Restriction]]) -> bool:
        """Whether ``inner`` appears as a contiguous run inside ``outer``."""
        if outer is None and inner is None:
            return True
        if outer is None or inner is None:
            return False
        outer, inner = list(outer), list(inner)
        if len(inner) > len(outer):
            return False
        for start in range(len(outer) - len(inner) + 1):
            if outer[start:start + len(inner)] == inner:
                return True
        return False

    @staticmethod
    def subsumes(pat1: "SurfacePattern", pat2: "SurfacePattern") -> bool:
        """Whether ``pat2``'s contexts are contained in ``pat1``'s on both sides.

        Only patterns with the same target restrictions are comparable.
        """
        return (pat1.token == pat2.token
                and SurfacePattern.subsumes_array(pat1.prev_context, pat2.prev_context)
                and SurfacePattern.subsumes_array(pat1.next_context, pat2.next_context))

    @staticmethod
    def subsumes_either_way(pat1: "SurfacePattern", pat2: "SurfacePattern") -> bool:
        return SurfacePattern.subsumes(pat1, pat2) or SurfacePattern.subsumes(pat2, pat1)

    def __eq__(self, other):
        if not isinstance(other, SurfacePattern):
            return NotImplemented
        return (self.token == other.token
                and self.prev_context == other.prev_context
                and self.next_context == other.next_context)

    def __lt__(self, other):
        if not isinstance(other, SurfacePattern):
            return NotImplemented
        mine = self.prev_context_len + self.next_context_len
        theirs = other.prev_context_len + other.next_context_len
        if mine != theirs:
            return mine > theirs
        return self._str < other._str

    def __hash__(self):
        return self._hash

    def __getstate__(self):
        return (self.prev_context, self.token, self.next_context, self.genre.value)

    def __setstate__(self, state):
        prev_context, token, next_context, genre = state
        self.prev_context = prev_context
        self.token = token
        self.next_context = next_context
        self.genre = Genre(genre)
        self._str = self.to_string()
        self._hash = hash(self._str)

    def __str__(self):
        return self._str

    def __repr__(self):
        return f"SurfacePattern({self._str!r})"
