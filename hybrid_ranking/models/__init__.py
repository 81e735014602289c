"""SQLAlchemy models for the hybrid ranking database."""

from hybrid_ranking.models.base import Base
from hybrid_ranking.models.candidates import EMBEDDING_DIMENSIONS, Candidate
from hybrid_ranking.models.client_config import GLOBAL_CLIENT_ID, ClientConfig
from hybrid_ranking.models.enums import ConfigTypeEnum

__all__ = [
    # Base
    "Base",
    # Enums
    "ConfigTypeEnum",
    # Candidates
    "Candidate",
    "EMBEDDING_DIMENSIONS",
    # Configuration
    "ClientConfig",
    "GLOBAL_CLIENT_ID",
]
