import asyncio
import hashlib
from collections.abc import AsyncGenerator
from datetime import UTC, datetime

import numpy as np
import pytest
import pytest_asyncio
import structlog

from rolo.contacts.models import Person, Role, SocialHandle, VectorHit
from rolo.contacts.store import ContactStore
from rolo.contacts.vectors import InteractionIndex
from rolo.embedder import EmbeddingConfig

TEST_EMBEDDING_DIM = 64
NOW = datetime(2024, 6, 1, tzinfo=UTC)


def mock_embedding(text: str) -> np.ndarray:
    h = hashlib.md5(text.encode()).hexdigest()
    # MD5 is 32 chars, repeat to get TEST_EMBEDDING_DIM
    arr = np.array([int(c, 16) / 15.0 for c in h] * (TEST_EMBEDDING_DIM // 32), dtype=np.float32)
    norm = np.linalg.norm(arr)
    return arr / norm if norm > 0 else arr


class MockEmbedder:
    def __init__(self):
        self.config = EmbeddingConfig(model="text-embedding-3-small", dim=TEST_EMBEDDING_DIM)
        self.calls: list[str] = []

    async def embed(self, texts: list[str]) -> np.ndarray:
        self.calls.extend(texts)
        if not texts:
            return np.empty((0, TEST_EMBEDDING_DIM), dtype=np.float32)
        return np.stack([mock_embedding(t) for t in texts])

    async def embed_one(self, text: str) -> np.ndarray:
        return (await self.embed([text]))[0]


def make_person(
    person_id: int,
    name: str,
    *,
    org: str | None = None,
    title: str = "Engineer",
    latest: datetime | None = None,
    handles: tuple[tuple[str, str], ...] = (),
    current: bool = True,
) -> Person:
    roles = (Role(title=title, organization=org, is_current=current),) if org else ()
    return Person(
        id=person_id,
        name=name,
        current_roles=roles if current else (),
        previous_roles=() if current else roles,
        social_handles=tuple(SocialHandle(platform=p, handle=h) for p, h in handles),
        latest_interaction_at=latest,
    )


class FakeRepository:
    """In-memory repository with the same containment semantics as the SQLite one."""

    def __init__(self, people: list[Person] | None = None, error: Exception | None = None, delay: float = 0.0):
        self.people = people or []
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, str | None]] = []

    async def _run(self, method: str, arg: str | None, matches) -> list[Person]:
        self.calls.append((method, arg))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return [p for p in self.people if matches(p)]

    async def find_by_organization(self, name: str) -> list[Person]:
        needle = name.lower()
        return await self._run(
            "organization", name, lambda p: any(needle in r.organization.lower() for r in p.current_roles)
        )

    async def find_by_name(self, name: str) -> list[Person]:
        return await self._run("name", name, lambda p: name.lower() in p.name.lower())

    async def find_by_title(self, title: str) -> list[Person]:
        needle = title.lower()
        return await self._run("title", title, lambda p: any(needle in r.title.lower() for r in p.current_roles))

    async def find_by_social_handle(self, name: str) -> list[Person]:
        return await self._run("social", name, lambda p: name.lower() in p.name.lower())

    async def find_all(self) -> list[Person]:
        return await self._run("all", None, lambda p: True)


class FakeVectorSearch:
    def __init__(self, hits: list[VectorHit] | None = None, error: Exception | None = None, delay: float = 0.0):
        self.hits = hits or []
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, int, float]] = []

    async def search(self, query: str, limit: int, min_similarity: float) -> list[VectorHit]:
        self.calls.append((query, limit, min_similarity))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return [h for h in self.hits if h.similarity >= min_similarity][:limit]


@pytest.fixture(autouse=True)
def reset_logging():
    # configure_logging binds whatever sys.stderr is at call time, which may be a capture stream
    yield
    structlog.reset_defaults()


@pytest.fixture
def people() -> list[Person]:
    return [
        make_person(1, "Felix", org="Think", title="CEO", latest=NOW, handles=(("twitter", "@lefclicksave"),)),
        make_person(2, "Mikey Anderson", org="Think", title="Constant Gardener"),
        make_person(3, "Sarah", org="InnovateX", title="CTO"),
        make_person(4, "John", handles=(("twitter", "@johndoe"), ("linkedin", "john-doe"))),
    ]


@pytest.fixture
def hits() -> list[VectorHit]:
    return [
        VectorHit(id="1", content="Felix shared his vision for Think", similarity=0.82, metadata={"person": "Felix"}),
        VectorHit(id="2", content="Mikey talked about building systems", similarity=0.64, metadata={"person": "Mikey"}),
        VectorHit(id="3", content="Sarah believes small teams ship faster", similarity=0.41),
    ]


@pytest_asyncio.fixture
async def store(tmp_path) -> AsyncGenerator[ContactStore]:
    store = ContactStore(tmp_path / "contacts.db")
    await store.connect()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def index(tmp_path) -> AsyncGenerator[InteractionIndex]:
    index = InteractionIndex(tmp_path / "vectors.db", MockEmbedder())
    await index.connect()
    yield index
    await index.close()
