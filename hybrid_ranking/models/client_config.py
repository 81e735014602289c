"""Multi-tenant key/value configuration."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from hybrid_ranking.models.base import Base
from hybrid_ranking.models.enums import ConfigTypeEnum

GLOBAL_CLIENT_ID = "GLOBAL"


class ClientConfig(Base):
    """One setting for one tenant.

    Rows with client_id='GLOBAL' hold system-wide defaults; a tenant row with
    the same config_key overrides them.
    """

    __tablename__ = "client_config"
    __table_args__ = (
        UniqueConstraint("client_id", "config_key", name="uk_client_config_client_key"),
    )

    id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    client_id: Mapped[str] = mapped_column(String(50), nullable=False, default=GLOBAL_CLIENT_ID)
    config_key: Mapped[str] = mapped_column(String(100), nullable=False)
    config_value: Mapped[str] = mapped_column(Text, nullable=False)
    config_type: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ConfigTypeEnum.STRING.value
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
