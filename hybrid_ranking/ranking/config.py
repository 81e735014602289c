"""Per-tenant scoring configuration snapshots and their TTL cache."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass

from hybrid_ranking.errors import ConfigurationError
from hybrid_ranking.scoring.strategies import DEFAULT_STRATEGY, ScoringStrategy, resolve_strategy

logger = logging.getLogger(__name__)

STRATEGY_KEY = "search.scoring_strategy"
SEMANTIC_WEIGHT_KEY = "search.semantic_weight"
KEYWORD_WEIGHT_KEY = "search.keyword_weight"
SIMILARITY_THRESHOLD_KEY = "search.similarity_threshold"
RELAXED_THRESHOLD_KEY = "search.relaxed_similarity_threshold"
CANDIDATE_POOL_SIZE_KEY = "search.candidate_pool_size"

DEFAULT_SEMANTIC_WEIGHT = 0.6
DEFAULT_KEYWORD_WEIGHT = 0.4
DEFAULT_SIMILARITY_THRESHOLD = 0.3
DEFAULT_RELAXED_SIMILARITY_THRESHOLD = 0.1
DEFAULT_CANDIDATE_POOL_SIZE = 100
MAX_CANDIDATE_POOL_SIZE = 1000

DEFAULT_CONFIG_TTL_SECONDS = 60.0


def _parse_unit_float(settings: Mapping[str, str], key: str, default: float) -> float:
    raw = settings.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        value = float(raw)
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"{value} is outside [0, 1]")
    except ValueError as exc:
        error = ConfigurationError(f"Invalid value {raw!r} for {key}: {exc}")
        logger.warning("%s. Using default %s", error, default)
        return default
    return value


def _parse_pool_size(settings: Mapping[str, str], key: str, default: int) -> int:
    raw = settings.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        value = int(raw)
        if not 1 <= value <= MAX_CANDIDATE_POOL_SIZE:
            raise ValueError(f"{value} is outside 1..{MAX_CANDIDATE_POOL_SIZE}")
    except ValueError as exc:
        error = ConfigurationError(f"Invalid value {raw!r} for {key}: {exc}")
        logger.warning("%s. Using default %s", error, default)
        return default
    return value


@dataclass(frozen=True)
class ScoringConfig:
    """Immutable scoring settings for one tenant, taken once per request.

    semantic_weight and keyword_weight are carried for reporting; the
    strategies apply their own fixed blend.
    """

    tenant_id: str
    strategy: ScoringStrategy = DEFAULT_STRATEGY
    semantic_weight: float = DEFAULT_SEMANTIC_WEIGHT
    keyword_weight: float = DEFAULT_KEYWORD_WEIGHT
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    relaxed_similarity_threshold: float = DEFAULT_RELAXED_SIMILARITY_THRESHOLD
    candidate_pool_size: int = DEFAULT_CANDIDATE_POOL_SIZE

    @classmethod
    def default(cls, tenant_id: str) -> "ScoringConfig":
        return cls(tenant_id=tenant_id)

    @classmethod
    def from_settings(cls, tenant_id: str, settings: Mapping[str, str]) -> "ScoringConfig":
        """Build a snapshot from raw key/value settings, defaulting anything unusable."""
        similarity_threshold = _parse_unit_float(
            settings, SIMILARITY_THRESHOLD_KEY, DEFAULT_SIMILARITY_THRESHOLD
        )
        relaxed = _parse_unit_float(
            settings, RELAXED_THRESHOLD_KEY, DEFAULT_RELAXED_SIMILARITY_THRESHOLD
        )
        if relaxed > similarity_threshold:
            logger.warning(
                "Relaxed similarity threshold %.2f for tenant %s is above the primary "
                "threshold %.2f; using the primary threshold",
                relaxed,
                tenant_id,
                similarity_threshold,
            )
            relaxed = similarity_threshold
        return cls(
            tenant_id=tenant_id,
            strategy=resolve_strategy(settings.get(STRATEGY_KEY)),
            semantic_weight=_parse_unit_float(
                settings, SEMANTIC_WEIGHT_KEY, DEFAULT_SEMANTIC_WEIGHT
            ),
            keyword_weight=_parse_unit_float(settings, KEYWORD_WEIGHT_KEY, DEFAULT_KEYWORD_WEIGHT),
            similarity_threshold=similarity_threshold,
            relaxed_similarity_threshold=relaxed,
            candidate_pool_size=_parse_pool_size(
                settings, CANDIDATE_POOL_SIZE_KEY, DEFAULT_CANDIDATE_POOL_SIZE
            ),
        )


SettingsLoader = Callable[[str], Awaitable[Mapping[str, str]]]


@dataclass(frozen=True)
class _Entry:
    config: ScoringConfig
    loaded_at: float


class TenantConfigCache:
    """TTL cache of ScoringConfig snapshots, one per tenant.

    - A fresh entry is returned as-is.
    - An expired entry is returned immediately while one background task
      reloads it; readers never wait on a refresh.
    - A first-time miss awaits the loader, coalesced per tenant.
    - A loader failure keeps the previous snapshot, or yields the default
      snapshot (not cached) when there is none.
    """

    def __init__(
        self,
        loader: SettingsLoader,
        ttl_seconds: float = DEFAULT_CONFIG_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._refreshing: dict[str, asyncio.Task] = {}

    async def get(self, tenant_id: str) -> ScoringConfig:
        entry = self._entries.get(tenant_id)
        if entry is not None:
            if self._clock() - entry.loaded_at >= self._ttl:
                self._schedule_refresh(tenant_id)
            return entry.config

        lock = self._locks.setdefault(tenant_id, asyncio.Lock())
        async with lock:
            entry = self._entries.get(tenant_id)
            if entry is not None:
                return entry.config
            try:
                config = await self._load(tenant_id)
            finally:
                # waiters already hold this lock; later callers see the cached entry
                if self._locks.get(tenant_id) is lock:
                    del self._locks[tenant_id]
            return config if config is not None else ScoringConfig.default(tenant_id)

    def invalidate(self, tenant_id: str | None = None) -> None:
        if tenant_id is None:
            self._entries.clear()
        else:
            self._entries.pop(tenant_id, None)

    def _schedule_refresh(self, tenant_id: str) -> None:
        task = self._refreshing.get(tenant_id)
        if task is not None and not task.done():
            return
        task = asyncio.create_task(self._load(tenant_id), name=f"config-refresh-{tenant_id}")
        self._refreshing[tenant_id] = task
        task.add_done_callback(lambda done: self._forget_refresh(tenant_id, done))

    def _forget_refresh(self, tenant_id: str, task: asyncio.Task) -> None:
        if self._refreshing.get(tenant_id) is task:
            del self._refreshing[tenant_id]

    async def _load(self, tenant_id: str) -> ScoringConfig | None:
        try:
            settings = await self._loader(tenant_id)
        except Exception as exc:
            logger.warning(
                "Failed to load scoring config for tenant %s: %s. Keeping previous/default config",
                tenant_id,
                exc,
            )
            return None
        config = ScoringConfig.from_settings(tenant_id, settings)
        self._entries[tenant_id] = _Entry(config=config, loaded_at=self._clock())
        return config

    async def wait_for_refreshes(self) -> None:
        """Await in-flight background refreshes."""
        tasks = list(self._refreshing.values())
        if tasks:
            await asyncio.gather(*tasks)
