"""Run failure sensor that tags failed runs with a classified failure type.

Known failures get a specific tag (e.g. RATE_LIMIT, DIMENSION_MISMATCH);
anything else is tagged UNKNOWN_FAILURE so it surfaces for investigation.
"""

import dagster as dg

FAILURE_TAG = "failure_type"

KNOWN_FAILURES: list[tuple[str, list[str]]] = [
    (
        "RATE_LIMIT",
        ["429", "Too Many Requests", "rate limit"],
    ),
    (
        "EMBEDDING_PROVIDER_ERROR",
        ["openrouter.ai", "Embedding provider", "Embedding request timed out"],
    ),
    (
        "DIMENSION_MISMATCH",
        ["dimension mismatch", "expected 1536 dimensions", "different vector dimensions"],
    ),
    (
        "DATABASE_UNAVAILABLE",
        ["Database unavailable", "OperationalError", "connection refused"],
    ),
    (
        "DEADLINE_EXCEEDED",
        ["RankingTimeoutError", "Deadline exceeded"],
    ),
]


def classify_failure(error_str: str) -> list[str]:
    """Return all matching failure tags for the given error string."""
    lowered = error_str.lower()
    return [tag for tag, patterns in KNOWN_FAILURES if any(p.lower() in lowered for p in patterns)]


@dg.run_failure_sensor(
    name="run_failure_tagger",
    description=(
        "Tags failed runs with classified failure reasons. "
        "Known failures get a specific tag; unknown failures get UNKNOWN_FAILURE."
    ),
    default_status=dg.DefaultSensorStatus.RUNNING,
)
def run_failure_tagger(context: dg.RunFailureSensorContext):
    run_id = context.dagster_run.run_id
    job_name = context.dagster_run.job_name

    all_tags: set[str] = set()

    for event in context.get_step_failure_events():
        failure_data = event.step_failure_data
        if failure_data is None or failure_data.error is None:
            continue
        all_tags.update(classify_failure(failure_data.error.to_string()))

    if not all_tags:
        pipeline_error = context.failure_event.pipeline_failure_data.error
        if pipeline_error is not None:
            all_tags.update(classify_failure(pipeline_error.to_string()))

    if not all_tags:
        all_tags.add("UNKNOWN_FAILURE")

    tag_value = ", ".join(sorted(all_tags))
    context.instance.add_run_tags(run_id, {FAILURE_TAG: tag_value})

    context.log.info(f"Tagged failed run {run_id} ({job_name}) with {FAILURE_TAG}={tag_value}")
