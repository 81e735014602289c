"""Tenant configuration store backed by the client_config table."""

from datetime import UTC, datetime

from dagster import ConfigurableResource
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from hybrid_ranking.db import run_in_session
from hybrid_ranking.models import GLOBAL_CLIENT_ID, ClientConfig, ConfigTypeEnum

SEARCH_KEY_PREFIX = "search."


class ClientConfigResource(ConfigurableResource):
    """Reads and writes per-tenant settings with GLOBAL fallback.

    Values are stored as text; ScoringConfig.from_settings interprets them.
    """

    key_prefix: str = SEARCH_KEY_PREFIX

    async def get_settings(self, client_id: str) -> dict[str, str]:
        """Effective settings for a tenant: GLOBAL rows overridden by the tenant's own rows."""

        def _load(session: Session) -> dict[str, str]:
            rows = session.execute(
                select(ClientConfig.client_id, ClientConfig.config_key, ClientConfig.config_value)
                .where(
                    ClientConfig.client_id.in_([GLOBAL_CLIENT_ID, client_id]),
                    ClientConfig.config_key.startswith(self.key_prefix),
                )
            ).all()
            settings: dict[str, str] = {}
            for row in rows:
                if row.client_id == GLOBAL_CLIENT_ID:
                    settings[row.config_key] = row.config_value
            for row in rows:
                if row.client_id == client_id and client_id != GLOBAL_CLIENT_ID:
                    settings[row.config_key] = row.config_value
            return settings

        return await run_in_session("get_settings", _load)

    async def upsert_config(
        self,
        config_key: str,
        config_value: str,
        client_id: str = GLOBAL_CLIENT_ID,
        config_type: ConfigTypeEnum = ConfigTypeEnum.STRING,
        description: str | None = None,
    ) -> None:
        def _upsert(session: Session) -> None:
            stmt = insert(ClientConfig).values(
                client_id=client_id,
                config_key=config_key,
                config_value=config_value,
                config_type=config_type.value,
                description=description,
            )
            stmt = stmt.on_conflict_do_update(
                constraint="uk_client_config_client_key",
                set_={
                    "config_value": stmt.excluded.config_value,
                    "config_type": stmt.excluded.config_type,
                    "description": stmt.excluded.description,
                    "updated_at": datetime.now(UTC),
                },
            )
            session.execute(stmt)
            session.commit()

        await run_in_session("upsert_config", _upsert)
