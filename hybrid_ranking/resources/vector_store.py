"""pgvector-backed Vector Store for candidate profile embeddings.

Embeddings live on the candidates row (profile_embedding + metadata columns)
and are searched with pgvector's cosine distance operator through the HNSW
index created by the migrations.

Writes are full replacements keyed by candidate id: every upsert sets the
vector and all of its metadata in one UPDATE, so readers never observe a
vector from one job with metadata from another.
"""

import logging
from collections.abc import Sequence
from uuid import UUID

from dagster import ConfigurableResource
from pydantic import Field
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from hybrid_ranking.db import run_in_session
from hybrid_ranking.domain import EmbeddingMetadata, SimilarCandidate
from hybrid_ranking.errors import MalformedInputError, PartialDataError
from hybrid_ranking.models import Candidate

logger = logging.getLogger(__name__)


def normalize_similarity(similarity: float) -> float:
    """Cosine similarity is in [-1, 1]; ranking works on [0, 1]."""
    return max(0.0, min(1.0, float(similarity)))


class PgVectorStoreResource(ConfigurableResource):
    """Upserts and nearest-neighbour queries over candidates.profile_embedding."""

    hnsw_ef_search: int = Field(
        default=100,
        description="hnsw.ef_search for KNN queries (must be >= the candidate pool size)",
    )

    async def upsert_embedding(
        self,
        candidate_id: str,
        vector: Sequence[float],
        metadata: EmbeddingMetadata,
    ) -> bool:
        """Replace a candidate's embedding and its metadata.

        Returns:
            True if the candidate row exists and was updated, False otherwise.

        Raises:
            MalformedInputError: ``candidate_id`` is not a UUID.
        """
        try:
            row_id = UUID(candidate_id)
        except (TypeError, ValueError) as exc:
            raise MalformedInputError(f"Invalid candidate id: {candidate_id!r}") from exc

        def _update(session: Session) -> int:
            result = session.execute(
                update(Candidate)
                .where(Candidate.id == row_id)
                .values(
                    profile_embedding=list(vector),
                    embedding_model=metadata.model,
                    embedding_generated_at=metadata.generated_at,
                    embedding_tokens=metadata.token_count,
                )
            )
            session.commit()
            return result.rowcount

        rowcount = await run_in_session("upsert_embedding", _update)
        if not rowcount:
            logger.warning(
                "No rows updated for candidate %s. Candidate may not exist.", candidate_id
            )
            return False
        return True

    async def find_similar_candidates(
        self,
        query_vector: Sequence[float],
        limit: int = 100,
        min_similarity: float = 0.0,
        active_only: bool = True,
    ) -> list[SimilarCandidate]:
        """Find candidates nearest to the query vector by cosine distance.

        Candidates without an embedding are excluded. Results are ordered by
        similarity (highest first), ties broken by candidate id.
        """
        query = list(query_vector)
        ef_search = max(self.hnsw_ef_search, limit)

        def _query(session: Session) -> list[SimilarCandidate]:
            session.connection().exec_driver_sql(f"SET LOCAL hnsw.ef_search = {int(ef_search)}")

            distance = Candidate.profile_embedding.cosine_distance(query)
            similarity = (1 - distance).label("similarity")
            stmt = select(Candidate.id, similarity).where(Candidate.profile_embedding.is_not(None))
            if active_only:
                stmt = stmt.where(Candidate.is_active.is_(True))
            if min_similarity > 0:
                stmt = stmt.where((1 - distance) >= min_similarity)
            stmt = stmt.order_by(distance, Candidate.id).limit(limit)

            rows = session.execute(stmt).all()
            return [
                SimilarCandidate(
                    candidate_id=str(row.id),
                    similarity=normalize_similarity(row.similarity),
                )
                for row in rows
            ]

        return await run_in_session("find_similar_candidates", _query)

    async def similarity_to(self, candidate_id: str, query_vector: Sequence[float]) -> float:
        """Cosine similarity (normalized to [0, 1]) between one candidate and a query.

        Raises:
            PartialDataError: the candidate has no embedding (or does not exist).
        """
        query = list(query_vector)

        def _query(session: Session) -> float | None:
            distance = Candidate.profile_embedding.cosine_distance(query)
            return session.execute(
                select(1 - distance).where(
                    Candidate.id == UUID(candidate_id),
                    Candidate.profile_embedding.is_not(None),
                )
            ).scalar_one_or_none()

        similarity = await run_in_session("similarity_to", _query)
        if similarity is None:
            raise PartialDataError(
                f"Candidate {candidate_id} has no embedding", candidate_id=candidate_id
            )
        return normalize_similarity(similarity)
