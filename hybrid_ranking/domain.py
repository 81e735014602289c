"""In-memory value types shared by the pipeline, scoring and ranking layers.

These are plain frozen dataclasses so they can cross thread boundaries
(asyncio.to_thread) and be compared in tests without a database.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class EmbeddingMetadata:
    """Provenance of a stored profile embedding."""

    model: str
    generated_at: datetime
    token_count: int


@dataclass(frozen=True)
class CandidateProfile:
    """Text fields of a candidate plus the provenance of its stored embedding, if any."""

    id: str
    full_name: str = ""
    title: str = ""
    skills: tuple[str, ...] = ()
    resume_text: str = ""
    embedding_metadata: EmbeddingMetadata | None = None

    @property
    def has_embedding(self) -> bool:
        return self.embedding_metadata is not None


@dataclass(frozen=True)
class SimilarCandidate:
    """One nearest-neighbour hit; similarity is cosine similarity clamped to [0, 1]."""

    candidate_id: str
    similarity: float


@dataclass(frozen=True)
class SearchQuery:
    raw_text: str
    tenant_id: str
    keywords: tuple[str, ...]


class RankingMode(str, enum.Enum):
    """Which step of the fallback chain produced a response."""

    HYBRID = "hybrid"
    SEMANTIC = "semantic"
    KEYWORD = "keyword"
    NONE = "none"


@dataclass(frozen=True)
class RankedResult:
    candidate_id: str
    final_score: float
    semantic_score: float
    keyword_scores: dict[str, float]
    matched_keywords: tuple[str, ...]
    explanation: str


@dataclass(frozen=True)
class RankingResponse:
    """One page of ranked candidates.

    ``degraded`` is True whenever the hybrid step did not produce the page,
    including the explicit empty result returned when nothing was scorable.
    """

    results: tuple[RankedResult, ...]
    total_count: int
    page: int
    page_size: int
    mode: RankingMode
    strategy: str
    keywords: tuple[str, ...]
    degraded: bool = False

    @property
    def total_pages(self) -> int:
        return -(-self.total_count // self.page_size) if self.total_count else 0

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages


@dataclass(frozen=True)
class MatchedSnippet:
    """A piece of profile text that contains a query keyword."""

    source: str  # "title", "skills" or "resume"
    keyword: str
    text: str


@dataclass(frozen=True)
class MatchExplanation:
    candidate_id: str
    final_score: float
    semantic_score: float | None
    keyword_scores: dict[str, float]
    matched_keywords: tuple[str, ...]
    snippets: tuple[MatchedSnippet, ...] = field(default_factory=tuple)
    explanation: str = ""
