"""Candidate profile model with its profile embedding."""

from datetime import datetime
from uuid import uuid4

from pgvector.sqlalchemy import Vector
from sqlalchemy import Boolean, DateTime, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column

from hybrid_ranking.models.base import Base

# Deployment constant: must match the embedding model (text-embedding-3-small).
EMBEDDING_DIMENSIONS = 1536


class Candidate(Base):
    """Searchable candidate profile.

    The four embedding columns (profile_embedding, embedding_model,
    embedding_generated_at, embedding_tokens) are owned by the embedding
    pipeline and are always written together in one UPDATE.
    """

    __tablename__ = "candidates"

    id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid4)

    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    current_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    skills: Mapped[list[str] | None] = mapped_column(ARRAY(Text), nullable=True)
    resume_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Embedding (nullable until the pipeline has processed the candidate)
    profile_embedding: Mapped[list[float] | None] = mapped_column(
        Vector(EMBEDDING_DIMENSIONS), nullable=True
    )
    embedding_model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    embedding_generated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    embedding_tokens: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Bumped whenever title/skills/resume change; an embedding older than this is stale
    profile_updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
