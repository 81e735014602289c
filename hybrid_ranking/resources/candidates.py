"""Candidate text store: profile loading, substring search and stale-embedding lookup."""

from collections.abc import Iterable, Sequence
from typing import Any
from uuid import UUID

from dagster import ConfigurableResource
from pydantic import Field
from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.orm import Session

from hybrid_ranking.db import run_in_session
from hybrid_ranking.domain import CandidateProfile, EmbeddingMetadata
from hybrid_ranking.models import Candidate


def _to_profile(row: Candidate) -> CandidateProfile:
    metadata = None
    if row.embedding_model and row.embedding_generated_at:
        metadata = EmbeddingMetadata(
            model=row.embedding_model,
            generated_at=row.embedding_generated_at,
            token_count=row.embedding_tokens or 0,
        )
    return CandidateProfile(
        id=str(row.id),
        full_name=row.full_name or "",
        title=row.current_title or "",
        skills=tuple(row.skills or ()),
        resume_text=row.resume_text or "",
        embedding_metadata=metadata,
    )


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class CandidateStoreResource(ConfigurableResource):
    """Read access to candidate profile text for scoring and the keyword fallback."""

    keyword_filter_limit: int = Field(
        default=100,
        description="Maximum candidates returned by the plain substring fallback",
    )

    async def get_profiles(self, candidate_ids: Iterable[str]) -> dict[str, CandidateProfile]:
        """Load profiles by id. Unknown ids are omitted from the result."""
        uuids = [UUID(cid) for cid in candidate_ids]
        if not uuids:
            return {}

        def _load(session: Session) -> dict[str, CandidateProfile]:
            rows = session.execute(select(Candidate).where(Candidate.id.in_(uuids))).scalars().all()
            return {str(row.id): _to_profile(row) for row in rows}

        return await run_in_session("get_profiles", _load)

    async def keyword_filter(
        self,
        terms: Sequence[str],
        limit: int | None = None,
    ) -> list[CandidateProfile]:
        """Active candidates whose title, skills or resume contain any term (case-insensitive).

        This is a plain substring filter with no ranking; callers score the rows.
        """
        if not terms:
            return []
        limit = limit or self.keyword_filter_limit
        skills_text = func.coalesce(func.array_to_string(Candidate.skills, " "), "")
        haystacks = [
            func.coalesce(Candidate.current_title, ""),
            cast(skills_text, String),
            func.coalesce(Candidate.resume_text, ""),
        ]
        conditions = [
            haystack.ilike(f"%{_escape_like(term)}%", escape="\\")
            for term in terms
            for haystack in haystacks
        ]

        def _load(session: Session) -> list[CandidateProfile]:
            rows = (
                session.execute(
                    select(Candidate)
                    .where(Candidate.is_active.is_(True), or_(*conditions))
                    .order_by(Candidate.id)
                    .limit(limit)
                )
                .scalars()
                .all()
            )
            return [_to_profile(row) for row in rows]

        return await run_in_session("keyword_filter", _load)

    async def find_candidates_needing_embeddings(self, limit: int = 500) -> list[CandidateProfile]:
        """Active candidates with no embedding, or an embedding older than the last profile edit."""

        def _load(session: Session) -> list[CandidateProfile]:
            rows = (
                session.execute(
                    select(Candidate)
                    .where(
                        Candidate.is_active.is_(True),
                        or_(
                            Candidate.profile_embedding.is_(None),
                            Candidate.embedding_generated_at.is_(None),
                            Candidate.embedding_generated_at < Candidate.profile_updated_at,
                        ),
                    )
                    .order_by(Candidate.profile_updated_at, Candidate.id)
                    .limit(limit)
                )
                .scalars()
                .all()
            )
            return [_to_profile(row) for row in rows]

        return await run_in_session("find_candidates_needing_embeddings", _load)

    async def count_candidates_needing_embeddings(self) -> int:
        def _count(session: Session) -> int:
            return session.execute(
                select(func.count())
                .select_from(Candidate)
                .where(
                    Candidate.is_active.is_(True),
                    or_(
                        Candidate.profile_embedding.is_(None),
                        Candidate.embedding_generated_at.is_(None),
                        Candidate.embedding_generated_at < Candidate.profile_updated_at,
                    ),
                )
            ).scalar_one()

        return await run_in_session("count_candidates_needing_embeddings", _count)

    async def embedding_coverage(self) -> dict[str, Any]:
        """Counts of active candidates with and without embeddings."""

        def _stats(session: Session) -> dict[str, Any]:
            total = session.execute(
                select(func.count()).select_from(Candidate).where(Candidate.is_active.is_(True))
            ).scalar_one()
            embedded = session.execute(
                select(func.count())
                .select_from(Candidate)
                .where(Candidate.is_active.is_(True), Candidate.profile_embedding.is_not(None))
            ).scalar_one()
            return {
                "active_candidates": total,
                "with_embedding": embedded,
                "without_embedding": total - embedded,
            }

        return await run_in_session("embedding_coverage", _stats)
