"""Sensor that requests an embedding backfill when candidates have stale embeddings.

A candidate is stale when it has no embedding or its embedding predates the
last profile edit. The run key is derived from the stale count and the hour,
so a backlog that does not shrink is not re-requested more than once an hour.
"""

import asyncio
from datetime import UTC, datetime

from dagster import RunRequest, SensorEvaluationContext, SkipReason, sensor

from hybrid_ranking.jobs import embedding_backfill_job


@sensor(
    job=embedding_backfill_job,
    minimum_interval_seconds=300,
    description="Requests embedding_backfill_job when candidates need (re-)embedding",
    required_resource_keys={"candidate_store"},
)
def stale_embedding_sensor(context: SensorEvaluationContext):
    candidate_store = context.resources.candidate_store

    stale_count = asyncio.run(candidate_store.count_candidates_needing_embeddings())
    if stale_count == 0:
        return SkipReason("All active candidates have up-to-date embeddings")

    hour = datetime.now(UTC).strftime("%Y%m%d%H")
    context.log.info(f"{stale_count} candidates need embeddings; requesting backfill")
    return RunRequest(
        run_key=f"embedding-backfill-{hour}-{stale_count}",
        tags={"stale_candidates": str(stale_count)},
    )
