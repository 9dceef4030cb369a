from .statistics import SufficientStats, SufficientStatsCalculator, stats_without_applying_patterns
from .validators import CorpusValidator

__all__ = [
    "SufficientStats",
    "SufficientStatsCalculator",
    "stats_without_applying_patterns",
    "CorpusValidator",
]
