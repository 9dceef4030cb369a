"""Configuration for surface pattern construction, storage and application.

Module-level constants hold the defaults; ``SurfacePatternConfig`` bundles
them into one object that is passed explicitly to every component.
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Set, Union

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


# Context window
MIN_WINDOW_4_PATTERN = 2
MAX_WINDOW_4_PATTERN = 4
USE_PREVIOUS_CONTEXT = True
USE_NEXT_CONTEXT = False
NUM_MIN_STOP_WORDS_TO_ADD = 3

# Target token restrictions
USE_POS_4_PATTERN = True
USE_COARSE_POS = True
ADD_PAT_WITHOUT_POS = True
USE_TARGET_NER_RESTRICTION = False
USE_TARGET_PARSER_PARENT_RESTRICTION = False
NUM_WORDS_COMPOUND_MAX = 2

# Context token restrictions
USE_CONTEXT_NER_RESTRICTION = False
USE_LEMMA_CONTEXT_TOKENS = True
MATCH_LOWER_CASE_CONTEXT = True
USE_FILLER_WORDS_IN_PAT = True
USE_STOP_WORDS_BEFORE_TERM = False
FILLER_WORDS = frozenset({"a", "an", "the", "`", "``", "'", "''"})
IGNORE_WORD_REGEX = r"[^a-zA-Z]*"
BACKGROUND_SYMBOL = "O"

# Construction and storage
NUM_THREADS = 1
COMMIT_EVERY_N_SENTENCES = 1000
PATTERNS_FILE_NAME = "allpatterns.ser"
SEARCH_INDEX_FILE_NAME = "patterns_index.db"
DEFAULT_TABLE_NAME = "patterns"

# Application
MAX_MATCHES_PER_SENTENCE = 1000

# Scoring and selection
NUM_PATTERNS = 10
MIN_POS_PHRASE_SUPPORT_FOR_PAT = 1
MIN_UNLAB_PHRASE_SUPPORT_FOR_PAT = 0


@dataclass
class SurfacePatternConfig:
    """All knobs of the pattern engine.

    Attributes
    ----------
    min_window_4_pattern, max_window_4_pattern : int
        Bounds on the number of context tokens around the target
    use_previous_context, use_next_context : bool
        Which context sides are turned into patterns
    num_min_stop_words_to_add : int
        A context side made only of stop words needs more than this many
    use_pos_4_pattern, use_coarse_pos, add_pat_without_pos : bool
        Target POS restriction options; at least one target template is needed
    use_target_ner_restriction, use_target_parser_parent_restriction : bool
        Extra restrictions on the target token
    num_words_compound_max : int
        Maximum length of a compound target phrase
    use_context_ner_restriction, use_lemma_context_tokens : bool
        Context token rendering options
    match_lower_case_context : bool
        Lowercase literal context tokens
    use_filler_words_in_pat, use_stop_words_before_term : bool
        Insert the ``$FILLER`` and ``$STOPWORD`` glue wildcards
    filler_words : Set[str]
        Words skipped while walking the context window
    ignore_word_regex : str
        Words fully matching this are never targets
    background_symbol : str
        Value of an unlabeled label or NER tag
    num_threads : int
        Worker count for construction and statistics
    db_url, table_name, create_table, delete_existing : storage options
        Relational backend location and table lifecycle
    index_dir, create_pat_index : storage options
        Search index location and whether to rebuild it
    remove_stop_words_from_selected_phrases, remove_phrases_with_stop_words,
    club_neighboring_labeled_words : bool
        Phrase extraction policy when applying patterns
    """

    min_window_4_pattern: int = MIN_WINDOW_4_PATTERN
    max_window_4_pattern: int = MAX_WINDOW_4_PATTERN
    use_previous_context: bool = USE_PREVIOUS_CONTEXT
    use_next_context: bool = USE_NEXT_CONTEXT
    num_min_stop_words_to_add: int = NUM_MIN_STOP_WORDS_TO_ADD

    use_pos_4_pattern: bool = USE_POS_4_PATTERN
    use_coarse_pos: bool = USE_COARSE_POS
    add_pat_without_pos: bool = ADD_PAT_WITHOUT_POS
    use_target_ner_restriction: bool = USE_TARGET_NER_RESTRICTION
    use_target_parser_parent_restriction: bool = USE_TARGET_PARSER_PARENT_RESTRICTION
    num_words_compound_max: int = NUM_WORDS_COMPOUND_MAX

    use_context_ner_restriction: bool = USE_CONTEXT_NER_RESTRICTION
    use_lemma_context_tokens: bool = USE_LEMMA_CONTEXT_TOKENS
    match_lower_case_context: bool = MATCH_LOWER_CASE_CONTEXT
    use_filler_words_in_pat: bool = USE_FILLER_WORDS_IN_PAT
    use_stop_words_before_term: bool = USE_STOP_WORDS_BEFORE_TERM
    filler_words: Set[str] = field(default_factory=lambda: set(FILLER_WORDS))
    ignore_word_regex: str = IGNORE_WORD_REGEX
    background_symbol: str = BACKGROUND_SYMBOL

    num_threads: int = NUM_THREADS
    commit_every_n_sentences: int = COMMIT_EVERY_N_SENTENCES
    show_progress: bool = True

    db_url: Optional[str] = None
    table_name: str = DEFAULT_TABLE_NAME
    create_table: bool = False
    delete_existing: bool = False
    index_dir: Optional[str] = None
    create_pat_index: bool = True

    remove_stop_words_from_selected_phrases: bool = False
    remove_phrases_with_stop_words: bool = False
    club_neighboring_labeled_words: bool = False
    max_matches_per_sentence: int = MAX_MATCHES_PER_SENTENCE

    num_patterns: int = NUM_PATTERNS
    min_pos_phrase_support_for_pat: int = MIN_POS_PHRASE_SUPPORT_FOR_PAT
    min_unlab_phrase_support_for_pat: int = MIN_UNLAB_PHRASE_SUPPORT_FOR_PAT

    def __post_init__(self):
        self.filler_words = set(self.filler_words)
        self.validate()

    def validate(self) -> None:
        """Reject option combinations that cannot produce patterns."""
        if not self.use_pos_4_pattern and not self.add_pat_without_pos:
            raise ConfigurationError(
                "Either use_pos_4_pattern or add_pat_without_pos must be enabled"
            )
        if self.min_window_4_pattern < 0 or self.max_window_4_pattern < 0:
            raise ConfigurationError("Window sizes must be non-negative")
        if self.num_threads < 1:
            raise ConfigurationError(f"num_threads must be >= 1, got {self.num_threads}")
        if self.num_words_compound_max < 1:
            raise ConfigurationError("num_words_compound_max must be >= 1")
        if self.create_table and not self.delete_existing:
            raise ConfigurationError(
                "create_table requires delete_existing; an existing table cannot be recreated in place"
            )

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "SurfacePatternConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**values)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "SurfacePatternConfig":
        """Load a configuration from a YAML mapping."""
        with open(path, "r", encoding="utf-8") as f:
            values = yaml.safe_load(f) or {}
        if not isinstance(values, dict):
            raise ConfigurationError(f"Expected a mapping in {path}")
        logger.info("Loaded configuration from %s", path)
        return cls.from_dict(values)

    def to_dict(self) -> Dict[str, Any]:
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["filler_words"] = sorted(self.filler_words)
        return out
