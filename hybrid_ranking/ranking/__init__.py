"""Ranking orchestrator and per-tenant scoring configuration."""

from hybrid_ranking.ranking.config import ScoringConfig, TenantConfigCache
from hybrid_ranking.ranking.orchestrator import RankingOrchestrator, build_orchestrator

__all__ = [
    "RankingOrchestrator",
    "ScoringConfig",
    "TenantConfigCache",
    "build_orchestrator",
]
