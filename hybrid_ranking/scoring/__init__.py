"""Keyword evidence scoring and the tenant-selectable scoring strategies."""

from hybrid_ranking.scoring.keywords import extract_keywords, score_keywords
from hybrid_ranking.scoring.strategies import (
    DEFAULT_STRATEGY,
    ScoringInput,
    ScoringOutcome,
    ScoringStrategy,
    resolve_strategy,
    score,
)

__all__ = [
    "extract_keywords",
    "score_keywords",
    "DEFAULT_STRATEGY",
    "ScoringInput",
    "ScoringOutcome",
    "ScoringStrategy",
    "resolve_strategy",
    "score",
]
