"""Dagster sensors for the hybrid ranking engine."""

from hybrid_ranking.sensors.run_failure_sensor import run_failure_tagger
from hybrid_ranking.sensors.stale_embedding_sensor import stale_embedding_sensor

__all__ = ["run_failure_tagger", "stale_embedding_sensor"]
