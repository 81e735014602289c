"""Create candidates table with profile embedding and HNSW index.

Revision ID: 20261019_candidates
Revises:
Create Date: 2026-10-19

- pgvector extension
- candidates: profile text, is_active, profile_embedding vector(1536) and its metadata
- HNSW cosine index on profile_embedding (rows with NULL embeddings are not indexed)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects import postgresql

revision: str = "20261019_candidates"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")
    op.create_table(
        "candidates",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("current_title", sa.Text(), nullable=True),
        sa.Column("skills", postgresql.ARRAY(sa.Text()), nullable=True),
        sa.Column("resume_text", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("profile_embedding", Vector(1536), nullable=True),
        sa.Column("embedding_model", sa.String(100), nullable=True),
        sa.Column("embedding_generated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("embedding_tokens", sa.Integer(), nullable=True),
        sa.Column(
            "profile_updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_candidates_profile_embedding_hnsw",
        "candidates",
        ["profile_embedding"],
        postgresql_using="hnsw",
        postgresql_with={"m": 16, "ef_construction": 64},
        postgresql_ops={"profile_embedding": "vector_cosine_ops"},
    )
    op.create_index("idx_candidates_is_active", "candidates", ["is_active"])


def downgrade() -> None:
    op.drop_index("idx_candidates_is_active", table_name="candidates")
    op.drop_index("idx_candidates_profile_embedding_hnsw", table_name="candidates")
    op.drop_table("candidates")
