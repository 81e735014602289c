"""Scoring strategies that blend keyword evidence with semantic similarity.

Strategies form a closed set (ScoringStrategy) dispatched through one table of
pure functions. Adding a strategy means adding an enum member and a function
to STRATEGY_FUNCTIONS.

Examples for the query "Kubernetes Yugabyte PostgreSQL" (3 keywords):

    all_or_nothing
      all three found                       -> 1.00
      two found, semantic 0.55              -> 0.55

    tiered_multi_keyword
      {1.0, 0.9, 0.85}, semantic 0.92       -> max(0.85, 0.917*0.7 + 0.92*0.3) = 0.92
      {1.0, 0.0, 0.8},  semantic 0.70       -> 0.6*0.667*0.6 + 0.70*0.4         = 0.52
      none found,       semantic 0.75       -> 0.75*0.8                         = 0.60
"""

import enum
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from hybrid_ranking.errors import ConfigurationError

logger = logging.getLogger(__name__)

TIER1_FLOOR = 0.85
TIER1_QUALITY_WEIGHT = 0.7
TIER1_SEMANTIC_WEIGHT = 0.3
TIER2_QUALITY_WEIGHT = 0.6
TIER2_SEMANTIC_WEIGHT = 0.4
TIER3_SEMANTIC_WEIGHT = 0.8


class ScoringStrategy(str, enum.Enum):
    ALL_OR_NOTHING = "all_or_nothing"
    TIERED_MULTI_KEYWORD = "tiered_multi_keyword"


DEFAULT_STRATEGY = ScoringStrategy.ALL_OR_NOTHING

# Names stored by older client_config rows
STRATEGY_ALIASES: dict[str, ScoringStrategy] = {
    "option1": ScoringStrategy.ALL_OR_NOTHING,
    "option4": ScoringStrategy.TIERED_MULTI_KEYWORD,
}


@dataclass(frozen=True)
class ScoringInput:
    keyword_scores: Mapping[str, float]
    semantic_score: float
    total_keywords: int


@dataclass(frozen=True)
class ScoringOutcome:
    final_score: float
    explanation: str
    matched_keywords: tuple[str, ...]
    tier: int | None = None


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _matched(keyword_scores: Mapping[str, float]) -> tuple[str, ...]:
    return tuple(keyword for keyword, score in keyword_scores.items() if score > 0)


def _coverage(matched_count: int, total_keywords: int) -> float:
    # No keywords means no coverage; both strategies then fall through to semantic scoring.
    if total_keywords <= 0:
        return 0.0
    return min(matched_count, total_keywords) / total_keywords


def _summary(matched: tuple[str, ...], total_keywords: int, final_score: float) -> str:
    matched_count = min(len(matched), max(total_keywords, 0))
    coverage_percent = round(_coverage(matched_count, total_keywords) * 100)
    keyword_list = ", ".join(matched) if matched else "none"
    return (
        f"{matched_count} of {total_keywords} keywords matched ({coverage_percent}% coverage). "
        f"Final score: {round(final_score * 100)}%. Matched keywords: {keyword_list}."
    )


def all_or_nothing(scoring_input: ScoringInput) -> ScoringOutcome:
    """Full credit when every keyword is found, otherwise the semantic score unchanged."""
    matched = _matched(scoring_input.keyword_scores)
    total = scoring_input.total_keywords
    all_found = total > 0 and len(matched) >= total

    if all_found:
        final_score = 1.0
        label = "Perfect match! All keywords found (All-or-Nothing)"
    else:
        final_score = _clamp(scoring_input.semantic_score)
        if matched:
            label = "Partial match: score is semantic similarity only (All-or-Nothing)"
        else:
            label = "Semantic match: no keywords found (All-or-Nothing)"

    return ScoringOutcome(
        final_score=final_score,
        explanation=f"{label}. {_summary(matched, total, final_score)}",
        matched_keywords=matched,
    )


def tiered_multi_keyword(scoring_input: ScoringInput) -> ScoringOutcome:
    """Coverage-tiered blend with an 85% floor when every keyword is found."""
    matched = _matched(scoring_input.keyword_scores)
    total = scoring_input.total_keywords
    semantic = scoring_input.semantic_score
    matched_count = min(len(matched), max(total, 0))
    coverage = _coverage(matched_count, total)

    if total > 0:
        quality_sum = sum(max(score, 0.0) for score in scoring_input.keyword_scores.values())
        avg_quality = quality_sum / total
    else:
        avg_quality = 0.0

    # Tier boundaries on integer counts: coverage == 1.0, then coverage >= 0.5
    if total > 0 and matched_count == total:
        tier = 1
        raw = avg_quality * TIER1_QUALITY_WEIGHT + semantic * TIER1_SEMANTIC_WEIGHT
        final_score = max(TIER1_FLOOR, raw)
        label = "Excellent match! All keywords found (Tiered, full coverage)"
    elif total > 0 and matched_count * 2 >= total:
        tier = 2
        final_score = (
            avg_quality * coverage * TIER2_QUALITY_WEIGHT + semantic * TIER2_SEMANTIC_WEIGHT
        )
        label = (
            "Good match: keyword quality combined with semantic similarity "
            "(Tiered, partial coverage)"
        )
    else:
        tier = 3
        final_score = semantic * TIER3_SEMANTIC_WEIGHT
        label = "Semantic match: low keyword coverage, based on semantic similarity (Tiered)"

    final_score = _clamp(final_score)
    return ScoringOutcome(
        final_score=final_score,
        explanation=f"{label}. {_summary(matched, total, final_score)}",
        matched_keywords=matched,
        tier=tier,
    )


STRATEGY_FUNCTIONS: dict[ScoringStrategy, Callable[[ScoringInput], ScoringOutcome]] = {
    ScoringStrategy.ALL_OR_NOTHING: all_or_nothing,
    ScoringStrategy.TIERED_MULTI_KEYWORD: tiered_multi_keyword,
}


def available_strategies() -> list[str]:
    return [strategy.value for strategy in STRATEGY_FUNCTIONS]


def parse_strategy(name: str | None) -> ScoringStrategy:
    """Strictly map a configured name (or legacy alias) to a strategy.

    Raises:
        ConfigurationError: if the name is not a known strategy.
    """
    normalized = (name or "").strip().lower()
    if not normalized:
        return DEFAULT_STRATEGY
    if normalized in STRATEGY_ALIASES:
        return STRATEGY_ALIASES[normalized]
    try:
        return ScoringStrategy(normalized)
    except ValueError as exc:
        raise ConfigurationError(
            f"Unknown scoring strategy {name!r}; expected one of {available_strategies()}"
        ) from exc


def resolve_strategy(name: str | None) -> ScoringStrategy:
    """Like parse_strategy, but logs unknown names and returns DEFAULT_STRATEGY."""
    try:
        return parse_strategy(name)
    except ConfigurationError as exc:
        logger.warning("%s. Falling back to %s", exc, DEFAULT_STRATEGY.value)
        return DEFAULT_STRATEGY


def score(strategy: ScoringStrategy, scoring_input: ScoringInput) -> ScoringOutcome:
    return STRATEGY_FUNCTIONS[strategy](scoring_input)
