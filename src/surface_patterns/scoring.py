"""Pattern scoring against a reference set of positive phrases."""

import logging
import math
from abc import ABC, abstractmethod
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

import yaml

from .config import SurfacePatternConfig
from .corpus import CandidatePhrase, TwoDimensionalCounter
from .errors import ConfigurationError
from .surface_pattern import SurfacePattern

logger = logging.getLogger(__name__)


class ScorePatterns(ABC):
    """Base class for pattern scorers of one label.

    Parameters
    ----------
    config : SurfacePatternConfig
        Engine configuration
    label : str
        Label whose patterns are scored
    patterns_and_words_4_label : TwoDimensionalCounter
        ``(pattern, phrase)`` counts of positive phrases
    neg_patterns_and_words_4_label : Optional[TwoDimensionalCounter]
        ``(pattern, phrase)`` counts of negative phrases
    unlabeled_patterns_and_words_4_label : Optional[TwoDimensionalCounter]
        ``(pattern, phrase)`` counts of unlabeled phrases
    all_candidate_phrases : Optional[TwoDimensionalCounter]
        ``(phrase, pattern)`` counts from pattern application
    """

    def __init__(
        self,
        config: SurfacePatternConfig,
        label: str,
        patterns_and_words_4_label: TwoDimensionalCounter,
        neg_patterns_and_words_4_label: Optional[TwoDimensionalCounter] = None,
        unlabeled_patterns_and_words_4_label: Optional[TwoDimensionalCounter] = None,
        all_candidate_phrases: Optional[TwoDimensionalCounter] = None,
    ):
        self.config = config
        self.label = label
        self.patterns_and_words_4_label = patterns_and_words_4_label
        self.neg_patterns_and_words_4_label = neg_patterns_and_words_4_label or TwoDimensionalCounter()
        self.unlabeled_patterns_and_words_4_label = (
            unlabeled_patterns_and_words_4_label or TwoDimensionalCounter()
        )
        self.all_candidate_phrases = all_candidate_phrases or TwoDimensionalCounter()

    def set_up(self) -> None:
        pass

    @abstractmethod
    def score(self) -> Counter:
        """Return a score per pattern; unscored patterns are absent."""


class ScorePatternsF1(ScorePatterns):
    """F1 of each pattern's phrases against the reference set ``p0_set``.

    specificity = overlap / phrases of the pattern,
    sensitivity = overlap / size of ``p0_set``. Patterns that share no
    phrase with ``p0_set`` are left out of the result.
    """

    def __init__(self, config: SurfacePatternConfig, label: str,
                 patterns_and_words_4_label: TwoDimensionalCounter,
                 p0_set: Iterable[CandidatePhrase], p0: Optional[SurfacePattern] = None, **kwargs):
        super().__init__(config, label, patterns_and_words_4_label, **kwargs)
        self.p0_set: Set[CandidatePhrase] = set(p0_set)
        self.p0 = p0
        self.specificity: Counter = Counter()
        self.sensitivity: Counter = Counter()

    def score(self) -> Counter:
        if not self.p0_set:
            raise ConfigurationError(f"Reference phrase set is empty for {self.p0}")
        specificity: Counter = Counter()
        sensitivity: Counter = Counter()
        for pattern in self.patterns_and_words_4_label.first_keys():
            phrases = {p for p, c in self.patterns_and_words_4_label.get_counter(pattern).items() if c}
            common = len(phrases & self.p0_set)
            if common == 0:
                continue
            specificity[pattern] = common / len(phrases)
            sensitivity[pattern] = common / len(self.p0_set)

        self.specificity = Counter({k: v for k, v in specificity.items() if v != 0})
        self.sensitivity = Counter({k: v for k, v in sensitivity.items() if v != 0})
        scores: Counter = Counter()
        for pattern in self.specificity.keys() & self.sensitivity.keys():
            spec, sens = self.specificity[pattern], self.sensitivity[pattern]
            product = spec * sens
            if product != 0:
                scores[pattern] = 2 * product / (spec + sens)
        logger.debug("Scored %d of %d patterns for %s", len(scores),
                     len(self.patterns_and_words_4_label), self.label)
        return scores


def enforce_min_support(pos_counter: TwoDimensionalCounter,
                        unlab_counter: TwoDimensionalCounter,
                        min_pos: int, min_unlab: int) -> Set[SurfacePattern]:
    """Patterns backed by too few distinct positive or unlabeled phrases."""
    remove = {p for p in pos_counter.first_keys() if len(pos_counter.get_counter(p)) < min_pos}
    remove |= {p for p in unlab_counter.first_keys() if len(unlab_counter.get_counter(p)) < min_unlab}
    return remove


def select_top_patterns(scores: Counter, already_identified: Iterable[SurfacePattern] = (),
                        num_patterns: int = 10) -> Counter:
    """Drop known and zero-scored patterns and keep the ``num_patterns`` best."""
    already_identified = set(already_identified)
    for pattern, value in scores.items():
        if math.isnan(value):
            raise RuntimeError(f"Score of pattern {pattern} is NaN")
    remaining = Counter({
        p: v for p, v in scores.items() if p not in already_identified and v != 0
    })
    ranked = sorted(remaining.items(), key=lambda kv: (-kv[1], kv[0]))
    return Counter(dict(ranked[:num_patterns]))


def export_patterns_to_yaml(scores_by_label: Dict[str, Counter], output_path: str) -> None:
    """Write selected patterns with their scores for review.

    Parameters
    ----------
    scores_by_label : Dict[str, Counter]
        Pattern scores per label
    output_path : str
        Output YAML file path
    """
    config: Dict[str, Any] = {"version": "1.0", "labels": {}}
    for label, scores in scores_by_label.items():
        ranked = sorted(scores.items(), key=lambda kv: (-kv[1], kv[0]))
        config["labels"][label] = {
            "patterns": [
                {
                    "pattern": pattern.to_string(),
                    "simple": pattern.to_string_simple(),
                    "genre": pattern.genre.value,
                    "score": round(float(score), 4),
                }
                for pattern, score in ranked
            ]
        }

    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)
    logger.info("Exported %d patterns to %s",
                sum(len(s) for s in scores_by_label.values()), output_path)


def load_patterns_from_yaml(yaml_path: str) -> Dict[str, List[Dict[str, Any]]]:
    """Read a file written by ``export_patterns_to_yaml``; returns entries per label."""
    with open(yaml_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}
    return {label: entry.get("patterns", []) for label, entry in config.get("labels", {}).items()}
