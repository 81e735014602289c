"""Tests for ScoringConfig snapshots and the tenant config TTL cache."""

import asyncio
import logging

from fakes import FakeClientConfig

from hybrid_ranking.errors import TransientExternalError
from hybrid_ranking.ranking.config import (
    DEFAULT_CANDIDATE_POOL_SIZE,
    DEFAULT_SIMILARITY_THRESHOLD,
    ScoringConfig,
    TenantConfigCache,
)
from hybrid_ranking.scoring.strategies import DEFAULT_STRATEGY, ScoringStrategy


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestScoringConfig:
    """Tests for building config snapshots from raw settings."""

    def test_defaults(self):
        config = ScoringConfig.default("acme")

        assert config.tenant_id == "acme"
        assert config.strategy == DEFAULT_STRATEGY
        assert config.candidate_pool_size == DEFAULT_CANDIDATE_POOL_SIZE

    def test_parses_all_keys(self):
        config = ScoringConfig.from_settings(
            "acme",
            {
                "search.scoring_strategy": "tiered_multi_keyword",
                "search.semantic_weight": "0.7",
                "search.keyword_weight": "0.3",
                "search.similarity_threshold": "0.4",
                "search.relaxed_similarity_threshold": "0.2",
                "search.candidate_pool_size": "50",
            },
        )

        assert config.strategy == ScoringStrategy.TIERED_MULTI_KEYWORD
        assert config.semantic_weight == 0.7
        assert config.keyword_weight == 0.3
        assert config.similarity_threshold == 0.4
        assert config.relaxed_similarity_threshold == 0.2
        assert config.candidate_pool_size == 50

    def test_invalid_values_fall_back_to_defaults(self, caplog):
        caplog.set_level(logging.WARNING)

        config = ScoringConfig.from_settings(
            "acme",
            {
                "search.scoring_strategy": "option9",
                "search.similarity_threshold": "high",
                "search.candidate_pool_size": "-5",
            },
        )

        assert config.strategy == DEFAULT_STRATEGY
        assert config.similarity_threshold == DEFAULT_SIMILARITY_THRESHOLD
        assert config.candidate_pool_size == DEFAULT_CANDIDATE_POOL_SIZE
        assert "option9" in caplog.text
        assert "search.similarity_threshold" in caplog.text

    def test_relaxed_threshold_never_exceeds_primary(self):
        config = ScoringConfig.from_settings(
            "acme",
            {
                "search.similarity_threshold": "0.2",
                "search.relaxed_similarity_threshold": "0.5",
            },
        )

        assert config.relaxed_similarity_threshold == 0.2


class TestTenantConfigCache:
    """Tests for TTL caching with stale-while-refresh."""

    def test_first_miss_loads_then_caches(self):
        store = FakeClientConfig({"acme": {"search.scoring_strategy": "option4"}})
        cache = TenantConfigCache(store.get_settings, ttl_seconds=60, clock=FakeClock())

        async def run():
            first = await cache.get("acme")
            second = await cache.get("acme")
            return first, second

        first, second = asyncio.run(run())

        assert first.strategy == ScoringStrategy.TIERED_MULTI_KEYWORD
        assert second is first
        assert store.calls == ["acme"]

    def test_expired_entry_is_served_while_refreshing(self):
        store = FakeClientConfig({"acme": {"search.scoring_strategy": "all_or_nothing"}})
        clock = FakeClock()
        cache = TenantConfigCache(store.get_settings, ttl_seconds=60, clock=clock)

        async def run():
            original = await cache.get("acme")
            store.settings_by_tenant["acme"] = {"search.scoring_strategy": "tiered_multi_keyword"}
            clock.now = 61.0
            stale = await cache.get("acme")
            await cache.wait_for_refreshes()
            fresh = await cache.get("acme")
            return original, stale, fresh

        original, stale, fresh = asyncio.run(run())

        assert stale is original
        assert stale.strategy == ScoringStrategy.ALL_OR_NOTHING
        assert fresh.strategy == ScoringStrategy.TIERED_MULTI_KEYWORD
        assert store.calls == ["acme", "acme"]

    def test_concurrent_misses_are_coalesced(self):
        calls = []

        async def slow_loader(tenant_id):
            calls.append(tenant_id)
            await asyncio.sleep(0.02)
            return {}

        cache = TenantConfigCache(slow_loader)

        async def run():
            return await asyncio.gather(*(cache.get("acme") for _ in range(5)))

        configs = asyncio.run(run())

        assert calls == ["acme"]
        assert all(config is configs[0] for config in configs)

    def test_tenant_lock_released_after_first_load(self):
        store = FakeClientConfig()
        cache = TenantConfigCache(store.get_settings, clock=FakeClock())

        async def run():
            for tenant in ("acme", "globex", "initech"):
                await cache.get(tenant)

        asyncio.run(run())

        assert cache._locks == {}

    def test_loader_failure_without_snapshot_uses_default(self):
        store = FakeClientConfig()
        store.error = TransientExternalError("Database unavailable during get_settings")
        cache = TenantConfigCache(store.get_settings, clock=FakeClock())

        async def run():
            first = await cache.get("acme")
            second = await cache.get("acme")
            return first, second

        first, second = asyncio.run(run())

        assert first == ScoringConfig.default("acme")
        assert second == ScoringConfig.default("acme")
        # defaults are not cached, so the store is retried
        assert store.calls == ["acme", "acme"]

    def test_loader_failure_on_refresh_keeps_previous_snapshot(self):
        store = FakeClientConfig({"acme": {"search.candidate_pool_size": "25"}})
        clock = FakeClock()
        cache = TenantConfigCache(store.get_settings, ttl_seconds=10, clock=clock)

        async def run():
            await cache.get("acme")
            store.error = TransientExternalError("down")
            clock.now = 20.0
            await cache.get("acme")
            await cache.wait_for_refreshes()
            return await cache.get("acme")

        config = asyncio.run(run())

        assert config.candidate_pool_size == 25

    def test_invalidate_forces_reload(self):
        store = FakeClientConfig()
        cache = TenantConfigCache(store.get_settings, clock=FakeClock())

        async def run():
            await cache.get("acme")
            cache.invalidate("acme")
            await cache.get("acme")

        asyncio.run(run())

        assert store.calls == ["acme", "acme"]
