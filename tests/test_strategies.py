"""Tests for the scoring strategies and their dispatch table."""

import logging
import random

import pytest

from hybrid_ranking.errors import ConfigurationError
from hybrid_ranking.scoring.strategies import (
    DEFAULT_STRATEGY,
    STRATEGY_FUNCTIONS,
    ScoringInput,
    ScoringStrategy,
    all_or_nothing,
    available_strategies,
    parse_strategy,
    resolve_strategy,
    score,
    tiered_multi_keyword,
)


def _input(keyword_scores, semantic, total=None):
    return ScoringInput(
        keyword_scores=keyword_scores,
        semantic_score=semantic,
        total_keywords=len(keyword_scores) if total is None else total,
    )


class TestAllOrNothing:
    """Tests for the All-or-Nothing strategy."""

    def test_all_keywords_found_scores_one(self):
        outcome = all_or_nothing(_input({"k8s": 1.0, "go": 0.9}, 0.5))

        assert outcome.final_score == 1.0
        assert outcome.matched_keywords == ("k8s", "go")
        assert "Perfect match" in outcome.explanation

    def test_partial_match_is_semantic_score(self):
        outcome = all_or_nothing(_input({"k8s": 1.0, "go": 0.0}, 0.6))

        assert outcome.final_score == 0.6
        assert outcome.matched_keywords == ("k8s",)
        assert "1 of 2 keywords matched (50% coverage)" in outcome.explanation

    def test_no_keywords_is_semantic_score(self):
        outcome = all_or_nothing(_input({}, 0.42, total=0))

        assert outcome.final_score == 0.42


class TestTieredMultiKeyword:
    """Tests for the Tiered Multi-Keyword strategy."""

    def test_tier1_uses_blend_above_floor(self):
        outcome = tiered_multi_keyword(_input({"a": 1.0, "b": 0.9, "c": 0.85}, 0.92))

        assert outcome.tier == 1
        assert outcome.final_score == pytest.approx(0.9177, abs=1e-3)
        assert "Excellent match" in outcome.explanation

    def test_tier1_floor_applies(self):
        outcome = tiered_multi_keyword(_input({"a": 0.5, "b": 0.5, "c": 0.5}, 0.60))

        assert outcome.tier == 1
        assert outcome.final_score == 0.85

    def test_tier2_partial_coverage(self):
        outcome = tiered_multi_keyword(_input({"a": 1.0, "b": 0.0, "c": 0.8}, 0.70))

        assert outcome.tier == 2
        assert outcome.final_score == pytest.approx(0.52, abs=1e-3)
        assert "Good match" in outcome.explanation
        assert "2 of 3 keywords matched (67% coverage)" in outcome.explanation
        assert "Final score: 52%" in outcome.explanation

    def test_tier3_all_zero(self):
        outcome = tiered_multi_keyword(_input({"a": 0.0, "b": 0.0, "c": 0.0}, 0.75))

        assert outcome.tier == 3
        assert outcome.final_score == pytest.approx(0.60)
        assert "Semantic match" in outcome.explanation
        assert "Matched keywords: none" in outcome.explanation

    def test_half_coverage_routes_to_tier2(self):
        outcome = tiered_multi_keyword(
            _input({"a": 1.0, "b": 1.0, "c": 0.0, "d": 0.0}, 0.5)
        )

        assert outcome.tier == 2
        # avg 0.5 * coverage 0.5 * 0.6 + 0.5 * 0.4
        assert outcome.final_score == pytest.approx(0.35)

    def test_just_below_half_routes_to_tier3(self):
        outcome = tiered_multi_keyword(_input({"a": 1.0, "b": 0.0, "c": 0.0}, 0.5))

        assert outcome.tier == 3
        assert outcome.final_score == pytest.approx(0.4)

    def test_zero_keywords_routes_to_tier3(self):
        outcome = tiered_multi_keyword(_input({}, 0.9, total=0))

        assert outcome.tier == 3
        assert outcome.final_score == pytest.approx(0.72)

    def test_tier3_monotonic_in_semantic_score(self):
        keyword_scores = {"a": 0.7, "b": 0.0, "c": 0.0}
        previous = -1.0
        for step in range(101):
            semantic = step / 100
            outcome = tiered_multi_keyword(_input(keyword_scores, semantic))
            assert outcome.tier == 3
            assert outcome.final_score == pytest.approx(semantic * 0.8)
            assert outcome.final_score >= previous
            previous = outcome.final_score


class TestStrategyProperties:
    """Properties shared by every strategy."""

    @pytest.mark.parametrize("strategy", list(ScoringStrategy))
    def test_scores_stay_in_unit_interval(self, strategy):
        rng = random.Random(1234)
        for _ in range(500):
            total = rng.randint(0, 6)
            keyword_scores = {
                f"kw{i}": rng.choice([0.0, 0.5, 0.7, 0.9, 0.95, 1.0]) for i in range(total)
            }
            outcome = score(strategy, _input(keyword_scores, rng.random(), total))
            assert 0.0 <= outcome.final_score <= 1.0

    @pytest.mark.parametrize("strategy", list(ScoringStrategy))
    def test_deterministic(self, strategy):
        scoring_input = _input({"a": 1.0, "b": 0.5, "c": 0.0}, 0.66)

        assert score(strategy, scoring_input) == score(strategy, scoring_input)

    def test_out_of_range_semantic_is_clamped(self):
        assert all_or_nothing(_input({"a": 0.0}, 1.7)).final_score == 1.0
        assert tiered_multi_keyword(_input({"a": 0.0}, -0.3)).final_score == 0.0

    def test_every_strategy_is_dispatchable(self):
        assert set(STRATEGY_FUNCTIONS) == set(ScoringStrategy)
        assert available_strategies() == ["all_or_nothing", "tiered_multi_keyword"]


class TestStrategyResolution:
    """Tests for mapping configured names to strategies."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("all_or_nothing", ScoringStrategy.ALL_OR_NOTHING),
            ("Tiered_Multi_Keyword", ScoringStrategy.TIERED_MULTI_KEYWORD),
            ("option1", ScoringStrategy.ALL_OR_NOTHING),
            ("option4", ScoringStrategy.TIERED_MULTI_KEYWORD),
            ("", DEFAULT_STRATEGY),
            (None, DEFAULT_STRATEGY),
        ],
    )
    def test_parse_known_names(self, name, expected):
        assert parse_strategy(name) == expected

    def test_parse_unknown_raises(self):
        with pytest.raises(ConfigurationError):
            parse_strategy("option7")

    def test_resolve_unknown_falls_back_with_warning(self, caplog):
        caplog.set_level(logging.WARNING, logger="hybrid_ranking.scoring.strategies")

        assert resolve_strategy("option7") == DEFAULT_STRATEGY
        assert "option7" in caplog.text
