"""Create client_config table and seed GLOBAL search defaults.

Revision ID: 20261019_client_config
Revises: 20261019_candidates
Create Date: 2026-10-19

Per-tenant key/value settings. Rows with client_id='GLOBAL' are the
system-wide defaults; a tenant row with the same key overrides them.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "20261019_client_config"
down_revision: str | None = "20261019_candidates"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

GLOBAL_DEFAULTS = [
    ("search.scoring_strategy", "all_or_nothing", "string", "Scoring strategy for hybrid search"),
    ("search.semantic_weight", "0.6", "float", "Weight of semantic similarity (reporting)"),
    ("search.keyword_weight", "0.4", "float", "Weight of keyword evidence (reporting)"),
    ("search.similarity_threshold", "0.3", "float", "Minimum cosine similarity for hybrid"),
    (
        "search.relaxed_similarity_threshold",
        "0.1",
        "float",
        "Minimum cosine similarity for the semantic-only fallback",
    ),
    ("search.candidate_pool_size", "100", "integer", "Nearest neighbours scored per query"),
]


def upgrade() -> None:
    client_config = op.create_table(
        "client_config",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("client_id", sa.String(50), nullable=False, server_default="GLOBAL"),
        sa.Column("config_key", sa.String(100), nullable=False),
        sa.Column("config_value", sa.Text(), nullable=False),
        sa.Column("config_type", sa.String(50), nullable=False, server_default="string"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("client_id", "config_key", name="uk_client_config_client_key"),
    )
    op.create_index("idx_client_config_client_id", "client_config", ["client_id"])
    op.bulk_insert(
        client_config,
        [
            {
                "client_id": "GLOBAL",
                "config_key": key,
                "config_value": value,
                "config_type": config_type,
                "description": description,
            }
            for key, value, config_type, description in GLOBAL_DEFAULTS
        ],
    )


def downgrade() -> None:
    op.drop_index("idx_client_config_client_id", table_name="client_config")
    op.drop_table("client_config")
