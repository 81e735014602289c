import argparse
import asyncio
import logging
import os
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

from hybrid_ranking.errors import RankingError, ValidationError
from hybrid_ranking.ranking.orchestrator import DEFAULT_PAGE_SIZE, build_orchestrator
from hybrid_ranking.resources import (
    CandidateStoreResource,
    ClientConfigResource,
    MockEmbeddingResource,
    OpenRouterResource,
    PgVectorStoreResource,
)

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def local_dev():
    os.chdir(PROJECT_ROOT)
    os.environ.setdefault("DAGSTER_HOME", str(PROJECT_ROOT))
    os.execvp(
        sys.executable,
        [sys.executable, "-m", "dagster", "dev", "-m", "hybrid_ranking.definitions"]
        + sys.argv[1:],
    )


def deploy():
    """Pull latest code, install deps, migrate, restart Dagster services."""
    os.chdir(PROJECT_ROOT)

    steps = [
        ("Pulling latest code", ["git", "pull"]),
        ("Installing dependencies", ["poetry", "install", "--no-interaction"]),
        ("Running migrations", ["poetry", "run", "alembic", "upgrade", "head"]),
        ("Restarting dagster-code", ["systemctl", "restart", "dagster-code"]),
        ("Restarting dagster-daemon", ["systemctl", "restart", "dagster-daemon"]),
    ]

    for label, cmd in steps:
        print(f"  {label}...")
        subprocess.run(cmd, check=True)

    print()
    print("Deploy complete. Checking service status...")
    subprocess.run(["systemctl", "status", "dagster-code", "dagster-daemon", "--no-pager"])


def _embedder():
    if os.getenv("EMBEDDING_PROVIDER", "openrouter").strip().lower() == "mock":
        return MockEmbeddingResource()
    return OpenRouterResource()


def rank():
    """Rank candidates for a query and print one page of results."""
    parser = argparse.ArgumentParser(description="Rank candidates for a free-text query")
    parser.add_argument("query", help="Free-text search query")
    parser.add_argument("--tenant", default="GLOBAL", help="Tenant (client) id")
    parser.add_argument("--page", type=int, default=1)
    parser.add_argument("--page-size", type=int, default=DEFAULT_PAGE_SIZE)
    parser.add_argument("--deadline", type=float, default=None, help="Deadline in seconds")
    parser.add_argument("--explain", metavar="CANDIDATE_ID", help="Explain one candidate instead")
    args = parser.parse_args()

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    orchestrator = build_orchestrator(
        _embedder(), PgVectorStoreResource(), CandidateStoreResource(), ClientConfigResource()
    )

    try:
        if args.explain:
            explanation = asyncio.run(
                orchestrator.explain(args.query, args.tenant, args.explain, args.deadline)
            )
            _print_explanation(explanation)
            return
        response = asyncio.run(
            orchestrator.rank(args.query, args.tenant, args.page, args.page_size, args.deadline)
        )
    except ValidationError as exc:
        parser.error(str(exc))
    except RankingError as exc:
        print(f"Ranking failed: {exc}", file=sys.stderr)
        sys.exit(1)

    print(f"Keywords: {', '.join(response.keywords) or '(none)'}")
    print(
        f"Mode: {response.mode.value}{' (degraded)' if response.degraded else ''} | "
        f"Strategy: {response.strategy} | "
        f"Page {response.page}/{max(response.total_pages, 1)} ({response.total_count} total)"
    )
    print("=" * 80)
    start = (response.page - 1) * response.page_size
    for position, result in enumerate(response.results, start=start + 1):
        matched = ", ".join(result.matched_keywords) or "-"
        print(
            f"{position:>4}. {result.candidate_id}  final={result.final_score:.3f}  "
            f"semantic={result.semantic_score:.3f}  matched=[{matched}]"
        )
        print(f"      {result.explanation}")


def _print_explanation(explanation):
    semantic = (
        f"{explanation.semantic_score:.3f}" if explanation.semantic_score is not None else "n/a"
    )
    print(f"Candidate: {explanation.candidate_id}")
    print(f"Final score: {explanation.final_score:.3f} | Semantic: {semantic}")
    print(f"Explanation: {explanation.explanation}")
    print("Keyword scores:")
    for keyword, score in explanation.keyword_scores.items():
        print(f"  {keyword:<20} {score:.2f}")
    if explanation.snippets:
        print("Snippets:")
        for snippet in explanation.snippets:
            print(f"  [{snippet.source}] {snippet.keyword}: {snippet.text}")
