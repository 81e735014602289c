"""In-memory stand-ins for the embedding provider and the database-backed stores."""

import asyncio

from hybrid_ranking.domain import CandidateProfile, SimilarCandidate
from hybrid_ranking.errors import PartialDataError

DIMENSIONS = 8

CANDIDATE_A = "00000000-0000-0000-0000-00000000000a"
CANDIDATE_B = "00000000-0000-0000-0000-00000000000b"
CANDIDATE_C = "00000000-0000-0000-0000-00000000000c"
CANDIDATE_D = "00000000-0000-0000-0000-00000000000d"


class FakeEmbedder:
    """Returns constant vectors; ``failures`` are raised on successive calls (None = succeed)."""

    model_version = "fake-embedding-v1"

    def __init__(self, dimensions: int = DIMENSIONS, failures=None, delay: float = 0.0):
        self.dimensions = dimensions
        self.failures = list(failures or [])
        self.delay = delay
        self.calls: list[list[str]] = []

    async def embed(self, input, model=None, operation="embed"):
        if isinstance(input, str):
            input = [input]
        self.calls.append(list(input))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failures:
            failure = self.failures.pop(0)
            if failure is not None:
                raise failure
        tokens = sum(len(text.split()) for text in input)
        return {
            "model": self.model_version,
            "data": [
                {"index": i, "embedding": [0.1] * self.dimensions} for i in range(len(input))
            ],
            "usage": {"prompt_tokens": tokens, "total_tokens": tokens, "cost": 0.0001},
        }


class FakeVectorStore:
    """Similarity per candidate id; ``errors`` are raised by successive searches."""

    def __init__(self, similarities=None, known_ids=None):
        self.similarities = dict(similarities or {})
        self.known_ids = known_ids
        self.errors: list = []
        self.search_calls: list[tuple[int, float]] = []
        self.upserts: list[tuple[str, list[float], object]] = []
        self.embeddings: dict[str, tuple[list[float], object]] = {}

    async def upsert_embedding(self, candidate_id, vector, metadata):
        if self.known_ids is not None and candidate_id not in self.known_ids:
            return False
        self.upserts.append((candidate_id, list(vector), metadata))
        self.embeddings[candidate_id] = (list(vector), metadata)
        return True

    async def find_similar_candidates(
        self, query_vector, limit=100, min_similarity=0.0, active_only=True
    ):
        self.search_calls.append((limit, min_similarity))
        if self.errors:
            error = self.errors.pop(0)
            if error is not None:
                raise error
        hits = [
            SimilarCandidate(candidate_id=cid, similarity=similarity)
            for cid, similarity in self.similarities.items()
            if similarity >= min_similarity
        ]
        hits.sort(key=lambda hit: (-hit.similarity, hit.candidate_id))
        return hits[:limit]

    async def similarity_to(self, candidate_id, query_vector):
        if candidate_id not in self.similarities:
            raise PartialDataError(
                f"Candidate {candidate_id} has no embedding", candidate_id=candidate_id
            )
        return self.similarities[candidate_id]


class FakeCandidateStore:
    """Profiles by id; coverage counts ids stored in ``vector_store`` when one is given."""

    def __init__(self, profiles=(), vector_store=None):
        self.profiles = {profile.id: profile for profile in profiles}
        self.vector_store = vector_store
        self.keyword_error = None
        self.keyword_delay = 0.0
        self.keyword_calls: list[list[str]] = []

    async def get_profiles(self, candidate_ids):
        return {cid: self.profiles[cid] for cid in candidate_ids if cid in self.profiles}

    async def keyword_filter(self, terms, limit=None):
        self.keyword_calls.append(list(terms))
        if self.keyword_delay:
            await asyncio.sleep(self.keyword_delay)
        if self.keyword_error is not None:
            raise self.keyword_error
        lowered = [term.lower() for term in terms]
        hits = []
        for profile in self.profiles.values():
            haystack = " ".join([profile.title, " ".join(profile.skills), profile.resume_text])
            if any(term in haystack.lower() for term in lowered):
                hits.append(profile)
        hits.sort(key=lambda profile: profile.id)
        return hits[:limit]

    async def find_candidates_needing_embeddings(self, limit=500):
        stale = [profile for profile in self.profiles.values() if not profile.has_embedding]
        return stale[:limit]

    async def count_candidates_needing_embeddings(self):
        return len(await self.find_candidates_needing_embeddings())

    async def embedding_coverage(self):
        stored = set(self.vector_store.embeddings) if self.vector_store is not None else set()
        embedded = sum(
            1
            for profile in self.profiles.values()
            if profile.has_embedding or profile.id in stored
        )
        return {
            "active_candidates": len(self.profiles),
            "with_embedding": embedded,
            "without_embedding": len(self.profiles) - embedded,
        }


class FakeClientConfig:
    """Settings per tenant; raises ``error`` when set."""

    def __init__(self, settings_by_tenant=None):
        self.settings_by_tenant = dict(settings_by_tenant or {})
        self.error = None
        self.calls: list[str] = []

    async def get_settings(self, client_id):
        self.calls.append(client_id)
        if self.error is not None:
            raise self.error
        return dict(self.settings_by_tenant.get(client_id, {}))


def profile(candidate_id, title="", skills=(), resume_text="", full_name="Test Candidate"):
    return CandidateProfile(
        id=candidate_id,
        full_name=full_name,
        title=title,
        skills=tuple(skills),
        resume_text=resume_text,
    )
