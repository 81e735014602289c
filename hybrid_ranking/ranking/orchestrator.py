"""Ranking orchestrator: hybrid ranking with a semantic and keyword fallback chain.

    rank(query, tenant)
      -> hybrid    nearest neighbours above the tenant threshold, keyword
                   evidence and the tenant's scoring strategy
      -> semantic  nearest neighbours above the relaxed threshold, scored by
                   similarity alone
      -> keyword   plain substring filter over stored profile text

A step runs only when the previous one raised a retryable error or found no
candidates. Every external call is bounded by the request deadline.
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Sequence
from typing import TypeVar
from uuid import UUID

from hybrid_ranking.domain import (
    MatchExplanation,
    RankedResult,
    RankingMode,
    RankingResponse,
    SearchQuery,
)
from hybrid_ranking.embeddings.embed_text import EmbeddingGenerator, embed_text
from hybrid_ranking.errors import (
    MalformedInputError,
    PartialDataError,
    RankingError,
    RankingTimeoutError,
    TransientExternalError,
    ValidationError,
)
from hybrid_ranking.models.candidates import EMBEDDING_DIMENSIONS
from hybrid_ranking.ranking.config import ScoringConfig, TenantConfigCache
from hybrid_ranking.scoring.keywords import (
    extract_keywords,
    find_snippets,
    matched_keywords,
    score_keywords,
)
from hybrid_ranking.scoring.strategies import ScoringInput, score

T = TypeVar("T")

logger = logging.getLogger(__name__)
semantic_fallback_logger = logging.getLogger("hybrid_ranking.ranking.fallback.semantic")
keyword_fallback_logger = logging.getLogger("hybrid_ranking.ranking.fallback.keyword")
degraded_logger = logging.getLogger("hybrid_ranking.ranking.degraded")

TENANT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{1,50}$")
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20
DEFAULT_DEADLINE_SECONDS = 10.0

# Errors that move the chain to its next step
FALLBACK_ERRORS = (TransientExternalError, MalformedInputError, RankingTimeoutError)


def _sort_key(result: RankedResult) -> tuple[float, str]:
    return (-result.final_score, result.candidate_id)


def _keyword_only_score(keyword_scores: dict[str, float], total_keywords: int) -> float:
    if total_keywords <= 0:
        return 0.0
    return max(0.0, min(1.0, sum(keyword_scores.values()) / total_keywords))


class RankingOrchestrator:
    """Stateless ranking service; the tenant config cache is its only shared state."""

    def __init__(
        self,
        embedder: EmbeddingGenerator,
        vector_store,
        candidate_store,
        config_cache: TenantConfigCache,
        default_deadline_seconds: float = DEFAULT_DEADLINE_SECONDS,
        expected_dimensions: int = EMBEDDING_DIMENSIONS,
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.candidate_store = candidate_store
        self.config_cache = config_cache
        self.default_deadline_seconds = default_deadline_seconds
        self.expected_dimensions = expected_dimensions

    # ------------------------------------------------------------------
    # Validation and deadline plumbing
    # ------------------------------------------------------------------

    @staticmethod
    def validate(query: str, tenant_id: str, page: int = 1, page_size: int = 20) -> SearchQuery:
        """Reject malformed requests and extract the query keywords.

        Raises:
            ValidationError: empty query, blank or malformed tenant id, page < 1
                or page_size outside 1..100.
        """
        if query is None or not query.strip():
            raise ValidationError("Query must not be empty")
        if tenant_id is None or not TENANT_ID_PATTERN.match(tenant_id.strip()):
            raise ValidationError(f"Unknown or malformed tenant id: {tenant_id!r}")
        if page < 1:
            raise ValidationError(f"page must be >= 1, got {page}")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError(
                f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {page_size}"
            )
        return SearchQuery(
            raw_text=query.strip(),
            tenant_id=tenant_id.strip(),
            keywords=extract_keywords(query),
        )

    def _deadline(self, deadline_seconds: float | None) -> float:
        budget = self.default_deadline_seconds if deadline_seconds is None else deadline_seconds
        return asyncio.get_running_loop().time() + budget

    async def _bounded(self, awaitable: Awaitable[T], deadline: float, operation: str) -> T:
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise RankingTimeoutError(operation)
        try:
            return await asyncio.wait_for(awaitable, remaining)
        except TimeoutError as exc:
            raise RankingTimeoutError(operation) from exc

    async def _embed_query(self, search_query: SearchQuery, deadline: float) -> list[float]:
        result = await self._bounded(
            embed_text(
                self.embedder,
                [search_query.raw_text],
                expected_dimensions=self.expected_dimensions,
                operation="embed_query",
            ),
            deadline,
            "embed_query",
        )
        return result.embeddings[0]

    # ------------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------------

    async def rank(
        self,
        query: str,
        tenant_id: str,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        deadline_seconds: float | None = None,
    ) -> RankingResponse:
        """Rank candidates for a query and return one page.

        Raises:
            ValidationError: the request is malformed (no fallback is attempted).
            TransientExternalError, MalformedInputError, RankingTimeoutError:
                the last step of the fallback chain failed.
        """
        search_query = self.validate(query, tenant_id, page, page_size)
        deadline = self._deadline(deadline_seconds)
        config = await self._bounded(
            self.config_cache.get(search_query.tenant_id), deadline, "load_config"
        )
        query_vector: list[float] | None = None

        # 1. Hybrid
        try:
            query_vector = await self._embed_query(search_query, deadline)
            ranked = await self._rank_hybrid(search_query, config, query_vector, deadline)
            reason = "found no candidates above the similarity threshold"
        except FALLBACK_ERRORS as exc:
            ranked, reason = [], f"failed: {exc}"
        if ranked:
            return self._paginate(ranked, search_query, config, RankingMode.HYBRID, page, page_size)
        semantic_fallback_logger.warning(
            "Hybrid ranking for tenant %s %s. Falling back to semantic-only (threshold %.2f)",
            search_query.tenant_id,
            reason,
            config.relaxed_similarity_threshold,
        )

        # 2. Semantic only, relaxed threshold
        try:
            if query_vector is None:
                query_vector = await self._embed_query(search_query, deadline)
            ranked = await self._rank_semantic(config, query_vector, deadline)
            reason = "found no candidates above the relaxed threshold"
        except FALLBACK_ERRORS as exc:
            ranked, reason = [], f"failed: {exc}"
        if ranked:
            return self._paginate(
                ranked, search_query, config, RankingMode.SEMANTIC, page, page_size
            )
        keyword_fallback_logger.warning(
            "Semantic ranking for tenant %s %s. Falling back to keyword filter",
            search_query.tenant_id,
            reason,
        )

        # 3. Keyword substring filter; its errors propagate
        try:
            ranked = await self._rank_keyword(search_query, config, deadline)
        except RankingError as exc:
            degraded_logger.error(
                "All ranking strategies failed for tenant %s: %s", search_query.tenant_id, exc
            )
            raise
        if ranked:
            return self._paginate(
                ranked, search_query, config, RankingMode.KEYWORD, page, page_size
            )

        degraded_logger.warning(
            "No scorable candidates for tenant %s query %r. Returning empty degraded result",
            search_query.tenant_id,
            search_query.raw_text,
        )
        return RankingResponse(
            results=(),
            total_count=0,
            page=page,
            page_size=page_size,
            mode=RankingMode.NONE,
            strategy=config.strategy.value,
            keywords=search_query.keywords,
            degraded=True,
        )

    async def _rank_hybrid(
        self,
        search_query: SearchQuery,
        config: ScoringConfig,
        query_vector: Sequence[float],
        deadline: float,
    ) -> list[RankedResult]:
        similar = await self._bounded(
            self.vector_store.find_similar_candidates(
                query_vector,
                limit=config.candidate_pool_size,
                min_similarity=config.similarity_threshold,
            ),
            deadline,
            "find_similar_candidates",
        )
        if not similar:
            return []
        profiles = await self._bounded(
            self.candidate_store.get_profiles([hit.candidate_id for hit in similar]),
            deadline,
            "get_profiles",
        )

        keywords = search_query.keywords
        results = []
        for hit in similar:
            profile = profiles.get(hit.candidate_id)
            if profile is None:
                logger.debug("Candidate %s vanished between search and load", hit.candidate_id)
                continue
            keyword_scores = score_keywords(keywords, profile)
            outcome = score(
                config.strategy,
                ScoringInput(
                    keyword_scores=keyword_scores,
                    semantic_score=hit.similarity,
                    total_keywords=len(keywords),
                ),
            )
            results.append(
                RankedResult(
                    candidate_id=hit.candidate_id,
                    final_score=outcome.final_score,
                    semantic_score=hit.similarity,
                    keyword_scores=keyword_scores,
                    matched_keywords=outcome.matched_keywords,
                    explanation=outcome.explanation,
                )
            )
        return sorted(results, key=_sort_key)

    async def _rank_semantic(
        self,
        config: ScoringConfig,
        query_vector: Sequence[float],
        deadline: float,
    ) -> list[RankedResult]:
        similar = await self._bounded(
            self.vector_store.find_similar_candidates(
                query_vector,
                limit=config.candidate_pool_size,
                min_similarity=config.relaxed_similarity_threshold,
            ),
            deadline,
            "find_similar_candidates",
        )
        results = [
            RankedResult(
                candidate_id=hit.candidate_id,
                final_score=hit.similarity,
                semantic_score=hit.similarity,
                keyword_scores={},
                matched_keywords=(),
                explanation=(
                    f"Semantic-only match (fallback): similarity {round(hit.similarity * 100)}%."
                ),
            )
            for hit in similar
        ]
        return sorted(results, key=_sort_key)

    async def _rank_keyword(
        self,
        search_query: SearchQuery,
        config: ScoringConfig,
        deadline: float,
    ) -> list[RankedResult]:
        terms = list(search_query.keywords) or [search_query.raw_text]
        profiles = await self._bounded(
            self.candidate_store.keyword_filter(terms, limit=config.candidate_pool_size),
            deadline,
            "keyword_filter",
        )
        keywords = search_query.keywords
        results = []
        for profile in profiles:
            keyword_scores = score_keywords(keywords, profile)
            matched = matched_keywords(keyword_scores)
            if keywords and not matched:
                # substring hit only, e.g. "java" inside "javascript"
                continue
            final_score = _keyword_only_score(keyword_scores, len(keywords))
            results.append(
                RankedResult(
                    candidate_id=profile.id,
                    final_score=final_score,
                    semantic_score=0.0,
                    keyword_scores=keyword_scores,
                    matched_keywords=matched,
                    explanation=(
                        f"Keyword match (fallback): {len(matched)} of {len(keywords)} "
                        f"keywords matched. Final score: {round(final_score * 100)}%."
                    ),
                )
            )
        return sorted(results, key=_sort_key)

    @staticmethod
    def _paginate(
        ranked: list[RankedResult],
        search_query: SearchQuery,
        config: ScoringConfig,
        mode: RankingMode,
        page: int,
        page_size: int,
    ) -> RankingResponse:
        start = (page - 1) * page_size
        return RankingResponse(
            results=tuple(ranked[start : start + page_size]),
            total_count=len(ranked),
            page=page,
            page_size=page_size,
            mode=mode,
            strategy=config.strategy.value,
            keywords=search_query.keywords,
            degraded=mode is not RankingMode.HYBRID,
        )

    # ------------------------------------------------------------------
    # Explain
    # ------------------------------------------------------------------

    async def explain(
        self,
        query: str,
        tenant_id: str,
        candidate_id: str,
        deadline_seconds: float | None = None,
    ) -> MatchExplanation:
        """Score a single candidate against a query, with the text that matched.

        A candidate without an embedding (or an unavailable embedding provider)
        gets a keyword-only explanation.
        """
        search_query = self.validate(query, tenant_id)
        try:
            UUID(candidate_id)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Malformed candidate id: {candidate_id!r}") from exc
        deadline = self._deadline(deadline_seconds)
        config = await self._bounded(
            self.config_cache.get(search_query.tenant_id), deadline, "load_config"
        )
        profiles = await self._bounded(
            self.candidate_store.get_profiles([candidate_id]), deadline, "get_profiles"
        )
        profile = profiles.get(candidate_id)
        if profile is None:
            raise ValidationError(f"Candidate {candidate_id} not found")

        keywords = search_query.keywords
        keyword_scores = score_keywords(keywords, profile)
        snippets = find_snippets(matched_keywords(keyword_scores), profile)

        try:
            query_vector = await self._embed_query(search_query, deadline)
            semantic = await self._bounded(
                self.vector_store.similarity_to(candidate_id, query_vector),
                deadline,
                "similarity_to",
            )
        except (PartialDataError, *FALLBACK_ERRORS) as exc:
            keyword_fallback_logger.info(
                "Keyword-only explanation for candidate %s: %s", candidate_id, exc
            )
            matched = matched_keywords(keyword_scores)
            final_score = _keyword_only_score(keyword_scores, len(keywords))
            return MatchExplanation(
                candidate_id=candidate_id,
                final_score=final_score,
                semantic_score=None,
                keyword_scores=keyword_scores,
                matched_keywords=matched,
                snippets=snippets,
                explanation=(
                    f"Keyword-only evidence ({exc}). {len(matched)} of {len(keywords)} "
                    f"keywords matched. Final score: {round(final_score * 100)}%."
                ),
            )

        outcome = score(
            config.strategy,
            ScoringInput(
                keyword_scores=keyword_scores,
                semantic_score=semantic,
                total_keywords=len(keywords),
            ),
        )
        return MatchExplanation(
            candidate_id=candidate_id,
            final_score=outcome.final_score,
            semantic_score=semantic,
            keyword_scores=keyword_scores,
            matched_keywords=outcome.matched_keywords,
            snippets=snippets,
            explanation=outcome.explanation,
        )


def build_orchestrator(
    embedder: EmbeddingGenerator,
    vector_store,
    candidate_store,
    client_config,
    config_ttl_seconds: float = 60.0,
    default_deadline_seconds: float = DEFAULT_DEADLINE_SECONDS,
) -> RankingOrchestrator:
    """Wire an orchestrator from Dagster resources (or any objects with the same methods)."""
    return RankingOrchestrator(
        embedder=embedder,
        vector_store=vector_store,
        candidate_store=candidate_store,
        config_cache=TenantConfigCache(client_config.get_settings, ttl_seconds=config_ttl_seconds),
        default_deadline_seconds=default_deadline_seconds,
        expected_dimensions=getattr(embedder, "dimensions", EMBEDDING_DIMENSIONS),
    )
