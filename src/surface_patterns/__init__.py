"""Surface pattern mining and matching.

This package builds lexico-syntactic surface patterns around tokens of an
annotated corpus, stores them per token, applies them to extract candidate
phrases and scores them against known positive phrases.

The pipeline:
1. Generate patterns around every token (SurfacePatternFactory)
2. Build the per-token pattern index in parallel (CreatePatterns)
3. Apply patterns of a label to extract phrases (ApplyPatterns)
4. Score and select patterns (ScorePatternsF1)
"""

__version__ = "1.0.0"

from .config import SurfacePatternConfig
from .errors import ConfigurationError, DataIntegrityError
from .corpus import CandidatePhrase, CorpusToken, DataInstance, PhraseTable, TwoDimensionalCounter
from .restrictions import AttributeKeyRegistry, PatternToken, Restriction
from .surface_pattern import Genre, SurfacePattern
from .pattern_factory import SurfacePatternFactory
from .matcher import MatcherEnv, SequenceMatch, TokenSequenceMatcher
from .storage import (
    IndexWriterPool,
    InMemoryPatternStore,
    PatternsForEachToken,
    PatternsForEachTokenDB,
    PatternsForEachTokenInMemory,
    PatternsForEachTokenSearchIndex,
    StoreWay,
    get_patterns_instance,
)
from .create_patterns import CreatePatterns
from .apply_patterns import ApplyPatterns, ApplyPatternsMulti, ApplyPatternsResult
from .scoring import ScorePatterns, ScorePatternsF1, select_top_patterns

__all__ = [
    # Configuration & errors
    "SurfacePatternConfig",
    "ConfigurationError",
    "DataIntegrityError",
    # Corpus
    "CandidatePhrase",
    "CorpusToken",
    "DataInstance",
    "PhraseTable",
    "TwoDimensionalCounter",
    # Pattern model
    "AttributeKeyRegistry",
    "PatternToken",
    "Restriction",
    "Genre",
    "SurfacePattern",
    "SurfacePatternFactory",
    # Matching
    "MatcherEnv",
    "SequenceMatch",
    "TokenSequenceMatcher",
    # Pattern index
    "IndexWriterPool",
    "InMemoryPatternStore",
    "PatternsForEachToken",
    "PatternsForEachTokenDB",
    "PatternsForEachTokenInMemory",
    "PatternsForEachTokenSearchIndex",
    "StoreWay",
    "get_patterns_instance",
    # Construction, application & scoring
    "CreatePatterns",
    "ApplyPatterns",
    "ApplyPatternsMulti",
    "ApplyPatternsResult",
    "ScorePatterns",
    "ScorePatternsF1",
    "select_top_patterns",
]
