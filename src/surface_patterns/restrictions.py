"""Restriction model for surface pattern positions.

A ``Restriction`` describes one context position of a pattern: either a
disjunction of ``{key: value}`` attribute tests or a bound wildcard class such
as ``$FILLER``. A ``PatternToken`` describes the target phrase position.
Attribute keys are the short names handed out by an ``AttributeKeyRegistry``.
"""

import re
import threading
from typing import Any, Dict, List, Optional, Tuple

from .errors import ConfigurationError

FILLER_WILDCARD = "$FILLER"
STOPWORD_WILDCARD = "$STOPWORD"

TEXT_ATTRIBUTE = "text"
NER_ATTRIBUTE = "ner"
TAG_ATTRIBUTE = "tag"
PARENT_ATTRIBUTE = "parent"

_ALNUM_RE = re.compile(r"^[A-Za-z0-9]+$")


class AttributeKeyRegistry:
    """Bidirectional map from attribute names to short lowercase keys.

    ``key_for`` is idempotent and thread-safe. Two attributes never share a
    key: when the lowercased name is taken a numeric suffix is appended.
    """

    def __init__(self):
        self._keys: Dict[str, str] = {}
        self._attributes: Dict[str, str] = {}
        self._lock = threading.Lock()
        for attribute in (TEXT_ATTRIBUTE, NER_ATTRIBUTE, TAG_ATTRIBUTE, PARENT_ATTRIBUTE):
            self.key_for(attribute)

    def key_for(self, attribute: str) -> str:
        """Short key for ``attribute``, allocating one on first use."""
        with self._lock:
            key = self._keys.get(attribute)
            if key is not None:
                return key
            base = re.sub(r"[^a-z0-9_]", "", attribute.lower()) or "attr"
            key, n = base, 0
            while key in self._attributes:
                n += 1
                key = f"{base}{n}"
            self._keys[attribute] = key
            self._attributes[key] = attribute
            return key

    def attribute_for(self, key: str) -> Optional[str]:
        """Attribute name behind ``key``, or ``None`` when unknown."""
        return self._attributes.get(key)

    def keys(self) -> Dict[str, str]:
        """Snapshot of the attribute to key map."""
        with self._lock:
            return dict(self._keys)


def _render_value(value: str) -> str:
    if _ALNUM_RE.match(value):
        return f'"{value}"'
    return "/" + re.escape(value).replace("/", "\\/") + "/"


class Restriction:
    """A context position: OR of attribute tests, or a bound wildcard.

    Parameters
    ----------
    min_occ, max_occ : int
        Repetition bounds of the position, default exactly once
    """

    __slots__ = ("_or_restrictions", "_bound_wildcard", "_min_occ", "_max_occ", "_str", "_frozen")

    def __init__(self, min_occ: int = 1, max_occ: int = 1):
        self._or_restrictions: Dict[str, str] = {}
        self._bound_wildcard: Optional[str] = None
        self._min_occ = min_occ
        self._max_occ = max_occ
        self._str: Optional[str] = None
        self._frozen = False

    @classmethod
    def wildcard(cls, name: str, min_occ: int = 1, max_occ: int = 1) -> "Restriction":
        """A restriction bound to the wildcard class ``name``."""
        restriction = cls(min_occ, max_occ)
        restriction.set_bound_wildcard(name)
        return restriction

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RuntimeError(f"Restriction {self.to_string()} is frozen; copy it first")

    def freeze(self) -> None:
        """Disallow further changes; called when the restriction joins a pattern."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def add_restriction(self, key: str, value: str) -> None:
        """OR the test ``key == value`` into this position."""
        self._check_mutable()
        if self._bound_wildcard is not None:
            raise RuntimeError(
                f"Cannot add {key}:{value}; restriction is bound to {self._bound_wildcard}"
            )
        self._or_restrictions[key] = value
        self._str = None

    def set_bound_wildcard(self, name: str) -> None:
        """Bind the position to a wildcard class instead of attribute tests."""
        self._check_mutable()
        if self._or_restrictions:
            raise RuntimeError(
                f"Cannot bind {name}; attribute restrictions are already set"
            )
        self._bound_wildcard = name
        self._str = None

    def set_occurrence(self, min_occ: int, max_occ: int) -> None:
        """Set the repetition bounds of the position."""
        self._check_mutable()
        self._min_occ = min_occ
        self._max_occ = max_occ
        self._str = None

    @property
    def min_occ(self) -> int:
        return self._min_occ

    @property
    def max_occ(self) -> int:
        return self._max_occ

    @property
    def bound_wildcard(self) -> Optional[str]:
        return self._bound_wildcard

    @property
    def or_restrictions(self) -> Dict[str, str]:
        return dict(self._or_restrictions)

    def is_empty(self) -> bool:
        """True when neither tests nor a wildcard are set."""
        return not self._or_restrictions and self._bound_wildcard is None

    def to_string(self) -> str:
        """Detailed rendering, the canonical identity of the restriction."""
        if self._str is None:
            if self._bound_wildcard is not None:
                text = self._bound_wildcard
            else:
                parts = [
                    "{" + key + ":" + _render_value(value) + "}"
                    for key, value in sorted(self._or_restrictions.items())
                ]
                text = "[" + " | ".join(parts) + "]"
            if self.min_occ != 1 or self.max_occ != 1:
                text += "{" + f"{self.min_occ},{self.max_occ}" + "}"
            self._str = text
        return self._str

    def get_simple(self) -> str:
        """Short rendering for display: the values, or ``FW``/``SW``."""
        if self._bound_wildcard == FILLER_WILDCARD:
            return "FW"
        if self._bound_wildcard == STOPWORD_WILDCARD:
            return "SW"
        if self._bound_wildcard is not None:
            return self._bound_wildcard
        if not self._or_restrictions:
            raise RuntimeError("Empty restriction has no simple form")
        return "|".join(value for _, value in sorted(self._or_restrictions.items()))

    def values_by_key(self) -> List[Tuple[str, str]]:
        """``(key, value)`` tests sorted by key."""
        return sorted(self._or_restrictions.items())

    def to_matcher_spec(self, env) -> Dict[str, Any]:
        """Compile to a spaCy ``Matcher`` token pattern through a ``MatcherEnv``."""
        if self._bound_wildcard is not None:
            spec = {"LOWER": {"IN": env.wildcard_words(self._bound_wildcard)}}
        else:
            spec = {"_": {env.FEATURES_EXTENSION: {"INTERSECTS": [
                env.feature(key, value) for key, value in sorted(self._or_restrictions.items())
            ]}}}
        if self.min_occ != 1 or self.max_occ != 1:
            spec["OP"] = "{" + f"{self.min_occ},{self.max_occ}" + "}"
        return spec

    def copy(self) -> "Restriction":
        """Unfrozen copy with the same tests and bounds."""
        other = Restriction(self._min_occ, self._max_occ)
        other._or_restrictions = dict(self._or_restrictions)
        other._bound_wildcard = self._bound_wildcard
        return other

    def __eq__(self, other):
        return isinstance(other, Restriction) and self.to_string() == other.to_string()

    def __hash__(self):
        return hash(self.to_string())

    def __getstate__(self):
        return (self._or_restrictions, self._bound_wildcard, self._min_occ, self._max_occ,
                self._frozen)

    def __setstate__(self, state):
        (self._or_restrictions, self._bound_wildcard, self._min_occ, self._max_occ,
         self._frozen) = state
        self._str = None

    def __str__(self):
        return self.to_string()

    def __repr__(self):
        return f"Restriction({self.to_string()!r})"


class PatternToken:
    """Restrictions on the target phrase of a pattern.

    Parameters
    ----------
    tag : Optional[str]
        POS tag (or its coarse prefix); matched as a prefix
    use_tag : bool
        Whether the tag restriction is active
    get_compound_phrases : bool
        Whether the target may span several tokens
    num_words_compound : int
        Maximum target length, clamped to 1 without compounding
    ner_tag : Optional[str]
        NER tag of the target
    use_ner : bool
        Whether the NER restriction is active; requires ``ner_tag``
    use_parent : bool
        Whether the parse-parent tag restriction is active
    parent_tag : Optional[str]
        POS tag of the parse parent, ``"null"`` when unknown
    """

    __slots__ = ("tag", "use_tag", "num_words_compound", "ner_tag", "use_ner",
                 "use_parent", "parent_tag")

    def __init__(
        self,
        tag: Optional[str],
        use_tag: bool,
        get_compound_phrases: bool,
        num_words_compound: int,
        ner_tag: Optional[str],
        use_ner: bool,
        use_parent: bool,
        parent_tag: Optional[str],
    ):
        if use_ner and ner_tag is None:
            raise ConfigurationError("NER restriction requested but the target has no NER tag")
        self.tag = tag
        self.use_tag = use_tag
        self.num_words_compound = num_words_compound if get_compound_phrases else 1
        self.ner_tag = ner_tag
        self.use_ner = use_ner
        self.use_parent = use_parent
        self.parent_tag = parent_tag if parent_tag is not None else "null"

    def _identity(self) -> Tuple:
        return (
            self.use_tag, self.use_ner, self.use_parent, self.num_words_compound,
            self.tag if self.use_tag else None,
            self.ner_tag if self.use_ner else None,
            self.parent_tag if self.use_parent else None,
        )

    def restriction_count(self) -> int:
        """Number of active target restrictions."""
        return int(self.use_tag) + int(self.use_ner) + int(self.use_parent)

    def to_string_to_write(self) -> str:
        """Compact form such as ``X:NN{2}``."""
        text = "X"
        if self.use_tag:
            text += ":" + self.tag
        if self.use_ner:
            text += ":" + self.ner_tag
        if self.use_parent:
            text += ":" + self.parent_tag
        if self.num_words_compound > 1:
            text += "{" + str(self.num_words_compound) + "}"
        return text

    def get_token_str(self, not_allowed_classes: Optional[Dict[str, str]] = None) -> str:
        """Detailed rendering of the target position.

        ``not_allowed_classes`` maps attribute keys to label values the target
        must not carry.
        """
        restrictions = []
        if self.use_tag:
            restrictions.append("{tag:/" + self.tag + ".*/}")
        if self.use_ner:
            restrictions.append("{ner:" + self.ner_tag + "}")
        if self.use_parent:
            restrictions.append("{parent:" + self.parent_tag + "}")
        for key, value in sorted((not_allowed_classes or {}).items()):
            restrictions.append("!{" + key + ":" + value + "}")
        return "(?$term [" + " & ".join(restrictions) + "]{1," + str(self.num_words_compound) + "})"

    def to_matcher_spec(self, env, not_allowed_classes: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Compile the target position to a spaCy ``Matcher`` token pattern."""
        spec: Dict[str, Any] = {}
        if self.use_tag:
            spec["TAG"] = {"REGEX": "^" + re.escape(self.tag)}
        required = []
        if self.use_ner:
            required.append(env.feature(env.registry.key_for(NER_ATTRIBUTE), self.ner_tag))
        if self.use_parent:
            required.append(env.feature(env.registry.key_for(PARENT_ATTRIBUTE), self.parent_tag))
        extensions: Dict[str, Any] = {}
        if required:
            extensions[env.FEATURES_EXTENSION] = {"IS_SUPERSET": required}
        for key, value in (not_allowed_classes or {}).items():
            extensions[env.label_extension(key)] = {"NOT_IN": [value]}
        if extensions:
            spec["_"] = extensions
        if self.num_words_compound > 1:
            spec["OP"] = "{1," + str(self.num_words_compound) + "}"
        return spec

    def copy(self) -> "PatternToken":
        return self.with_num_words_compound(self.num_words_compound)

    def with_num_words_compound(self, num_words_compound: int) -> "PatternToken":
        """Copy with a different maximum compound length."""
        return PatternToken(
            self.tag, self.use_tag, True, num_words_compound,
            self.ner_tag, self.use_ner, self.use_parent, self.parent_tag,
        )

    def __eq__(self, other):
        return isinstance(other, PatternToken) and self._identity() == other._identity()

    def __hash__(self):
        return hash(self._identity())

    def __getstate__(self):
        return {slot: getattr(self, slot) for slot in self.__slots__}

    def __setstate__(self, state):
        for slot, value in state.items():
            setattr(self, slot, value)

    def __repr__(self):
        return f"PatternToken({self.to_string_to_write()!r})"
