import sqlite3

import numpy as np
import pytest

from rolo.contacts.vectors import InteractionIndex, similarity_from_distance
from rolo.embedder import EmbeddingConfig
from tests.conftest import MockEmbedder

NOTES = {
    1: "Felix shared his vision for Think Foundation",
    2: "Mikey talked about building and maintaining systems",
    3: "Sarah believes small teams ship faster",
}


async def fill(index: InteractionIndex) -> None:
    for interaction_id, content in NOTES.items():
        await index.upsert(interaction_id, content, {"person_id": interaction_id})


class TestUpsert:
    @pytest.mark.asyncio
    async def test_unchanged_content_is_skipped(self, index: InteractionIndex):
        assert await index.upsert(1, NOTES[1])
        calls = len(index.embedder.calls)

        assert not await index.upsert(1, NOTES[1])
        assert len(index.embedder.calls) == calls
        assert await index.count() == 1

    @pytest.mark.asyncio
    async def test_changed_content_reindexes(self, index: InteractionIndex):
        await index.upsert(1, NOTES[1])
        assert await index.upsert(1, "Felix moved to a new role")
        assert await index.count() == 1

        hits = await index.search("Felix moved to a new role", limit=1)
        assert hits[0].content == "Felix moved to a new role"

    @pytest.mark.asyncio
    async def test_delete(self, index: InteractionIndex):
        await fill(index)
        assert await index.delete(2)
        assert await index.find_similar(2) is None
        assert await index.count() == 2
        assert not await index.delete(2)

    @pytest.mark.asyncio
    async def test_failed_vector_write_rolls_back_entry(self, index: InteractionIndex, monkeypatch):
        async def wrong_dim(text: str) -> np.ndarray:
            return np.ones(3, dtype=np.float32)

        with monkeypatch.context() as m:
            m.setattr(index.embedder, "embed_one", wrong_dim)
            with pytest.raises(sqlite3.Error):
                await index.upsert(1, NOTES[1])

        assert await index.find_similar(1) is None
        assert await index.upsert(1, NOTES[1])
        assert await index.count() == 1

    @pytest.mark.asyncio
    async def test_clear(self, index: InteractionIndex):
        await fill(index)
        assert await index.clear() == 3
        assert await index.count() == 0
        assert await index.search(NOTES[1], limit=3, min_similarity=0.0) == []


class TestSearch:
    @pytest.mark.asyncio
    async def test_exact_content_ranks_first(self, index: InteractionIndex):
        await fill(index)
        hits = await index.search(NOTES[2], limit=3)

        assert hits[0].id == "2"
        assert hits[0].similarity == pytest.approx(1.0, abs=1e-4)
        assert hits[0].metadata == {"person_id": 2}
        assert [h.similarity for h in hits] == sorted((h.similarity for h in hits), reverse=True)

    @pytest.mark.asyncio
    async def test_min_similarity_filters(self, index: InteractionIndex):
        await fill(index)
        hits = await index.search(NOTES[3], limit=3, min_similarity=0.999)
        assert [h.id for h in hits] == ["3"]

    @pytest.mark.asyncio
    async def test_empty_index(self, index: InteractionIndex):
        assert await index.search("anything", limit=5) == []


class TestFindSimilar:
    @pytest.mark.asyncio
    async def test_excludes_itself(self, index: InteractionIndex):
        await fill(index)
        hits = await index.find_similar(1, limit=5, min_similarity=0.0)

        assert hits is not None
        assert {h.id for h in hits} == {"2", "3"}

    @pytest.mark.asyncio
    async def test_respects_limit(self, index: InteractionIndex):
        await fill(index)
        hits = await index.find_similar(1, limit=1, min_similarity=0.0)
        assert len(hits) == 1

    @pytest.mark.asyncio
    async def test_unknown_interaction(self, index: InteractionIndex):
        await fill(index)
        assert await index.find_similar(42) is None


class TestSchema:
    @pytest.mark.asyncio
    async def test_dimension_change_rebuilds(self, tmp_path):
        path = tmp_path / "vectors.db"
        async with InteractionIndex(path, MockEmbedder()) as index:
            await fill(index)

        embedder = MockEmbedder()
        embedder.config = EmbeddingConfig(model="text-embedding-3-small", dim=32)
        async with InteractionIndex(path, embedder) as reopened:
            assert await reopened.count() == 0

    @pytest.mark.asyncio
    async def test_same_dimension_keeps_entries(self, tmp_path):
        path = tmp_path / "vectors.db"
        async with InteractionIndex(path, MockEmbedder()) as index:
            await fill(index)
        async with InteractionIndex(path, MockEmbedder()) as reopened:
            assert await reopened.count() == 3


def test_similarity_from_distance_is_clamped():
    assert similarity_from_distance(0.0) == 1.0
    assert similarity_from_distance(0.25) == 0.75
    assert similarity_from_distance(1.5) == 0.0
    assert similarity_from_distance(-0.001) == 1.0
