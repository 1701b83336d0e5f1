import hashlib
import json
from datetime import UTC, datetime
from pathlib import Path

from rolo.constants import MIN_SIMILARITY, SIMILAR_INTERACTION_LIMIT, SIMILAR_INTERACTION_THRESHOLD
from rolo.contacts.models import VectorHit
from rolo.database import VectorDatabase, serialize_embedding
from rolo.embedder import Embedder
from rolo.logging import get_logger

_logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS indexed_interactions (
    interaction_id INTEGER PRIMARY KEY,
    content TEXT NOT NULL,
    content_hash TEXT NOT NULL,
    metadata TEXT,
    indexed_at TEXT
);

CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT);
"""

_SQL_GET_ENTRY = "SELECT * FROM indexed_interactions WHERE interaction_id = ?"
_SQL_GET_ENTRIES = "SELECT * FROM indexed_interactions WHERE interaction_id IN ({placeholders})"
_SQL_COUNT = "SELECT COUNT(*) FROM indexed_interactions"

_SQL_UPSERT_ENTRY = """
    INSERT INTO indexed_interactions (interaction_id, content, content_hash, metadata, indexed_at)
    VALUES (?, ?, ?, ?, ?)
    ON CONFLICT(interaction_id) DO UPDATE SET
        content = excluded.content,
        content_hash = excluded.content_hash,
        metadata = excluded.metadata,
        indexed_at = excluded.indexed_at
"""

_SQL_DELETE_ENTRY = "DELETE FROM indexed_interactions WHERE interaction_id = ?"
_SQL_DELETE_VEC = "DELETE FROM interactions_vec WHERE interaction_id = ?"
_SQL_INSERT_VEC = "INSERT INTO interactions_vec (interaction_id, embedding) VALUES (?, ?)"
_SQL_GET_VEC = "SELECT embedding FROM interactions_vec WHERE interaction_id = ?"

_SQL_SEARCH_VEC = """
    SELECT interaction_id, distance
    FROM interactions_vec
    WHERE embedding MATCH ? AND k = ?
    ORDER BY distance
"""


def hash_content(content: str) -> str:
    return hashlib.md5(content.encode()).hexdigest()


def similarity_from_distance(distance: float) -> float:
    # vec0 cosine distance is 1 - cos, so it lies in [0, 2]
    return min(max(1.0 - distance, 0.0), 1.0)


class InteractionIndex(VectorDatabase):
    """Embeddings of interaction notes in a sqlite-vec ``vec0`` table."""

    def __init__(self, db_path: Path, embedder: Embedder):
        super().__init__(db_path)
        self.embedder = embedder

    @property
    def embedding_dim(self) -> int:
        return self.embedder.config.dim

    async def on_connect(self) -> None:
        await super().on_connect()
        await self.init_schema()

    async def init_schema(self) -> None:
        await self.conn.executescript(SCHEMA)

        stored_dim = await self._get_meta("embedding_dim")
        if stored_dim is not None and int(stored_dim) != self.embedding_dim:
            _logger.info(
                "Rebuilding interaction vectors (stored=%s, current=%d)",
                stored_dim,
                self.embedding_dim,
            )
            await self.conn.execute("DROP TABLE IF EXISTS interactions_vec")
            await self.conn.execute("DELETE FROM indexed_interactions")

        await self.conn.execute(f"""
            CREATE VIRTUAL TABLE IF NOT EXISTS interactions_vec USING vec0(
                interaction_id INTEGER PRIMARY KEY,
                embedding float[{self.embedding_dim}] distance_metric=cosine
            );
        """)
        await self._set_meta("embedding_dim", str(self.embedding_dim))
        await self.conn.commit()

    async def _get_meta(self, key: str) -> str | None:
        rows = await self.conn.execute_fetchall("SELECT value FROM meta WHERE key = ?", (key,))
        return rows[0][0] if rows else None

    async def _set_meta(self, key: str, value: str) -> None:
        await self.conn.execute("INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)", (key, value))

    async def upsert(self, interaction_id: int, content: str, metadata: dict | None = None) -> bool:
        """Index one interaction note. Returns False when the content is unchanged."""
        content_hash = hash_content(content)
        existing = await self.conn.execute_fetchall(_SQL_GET_ENTRY, (interaction_id,))
        if existing and existing[0]["content_hash"] == content_hash:
            return False

        embedding = await self.embedder.embed_one(content)
        async with self.transaction():
            await self.conn.execute(
                _SQL_UPSERT_ENTRY,
                (
                    interaction_id,
                    content,
                    content_hash,
                    json.dumps(metadata) if metadata else None,
                    datetime.now(UTC).isoformat(),
                ),
            )
            await self.conn.execute(_SQL_DELETE_VEC, (interaction_id,))
            await self.conn.execute(_SQL_INSERT_VEC, (interaction_id, serialize_embedding(embedding)))
        return True

    async def delete(self, interaction_id: int) -> bool:
        existing = await self.conn.execute_fetchall(_SQL_GET_ENTRY, (interaction_id,))
        if not existing:
            return False
        async with self.transaction():
            await self.conn.execute(_SQL_DELETE_VEC, (interaction_id,))
            await self.conn.execute(_SQL_DELETE_ENTRY, (interaction_id,))
        return True

    async def clear(self) -> int:
        """Drop every indexed note. Returns how many were removed."""
        async with self.transaction():
            await self.conn.execute("DELETE FROM interactions_vec")
            cursor = await self.conn.execute("DELETE FROM indexed_interactions")
        return cursor.rowcount

    async def count(self) -> int:
        rows = await self.conn.execute_fetchall(_SQL_COUNT)
        return rows[0][0]

    async def search(self, query: str, limit: int, min_similarity: float = MIN_SIMILARITY) -> list[VectorHit]:
        embedding = await self.embedder.embed_one(query)
        return await self._nearest(serialize_embedding(embedding), limit, min_similarity)

    async def find_similar(
        self,
        interaction_id: int,
        limit: int = SIMILAR_INTERACTION_LIMIT,
        min_similarity: float = SIMILAR_INTERACTION_THRESHOLD,
    ) -> list[VectorHit] | None:
        """Neighbours of an indexed interaction, excluding itself. None when it is not indexed."""
        rows = await self.conn.execute_fetchall(_SQL_GET_VEC, (interaction_id,))
        if not rows:
            return None
        hits = await self._nearest(rows[0][0], limit + 1, min_similarity)
        return [h for h in hits if h.id != str(interaction_id)][:limit]

    async def _nearest(self, query_bytes: bytes, limit: int, min_similarity: float) -> list[VectorHit]:
        if limit < 1:
            return []
        rows = await self.conn.execute_fetchall(_SQL_SEARCH_VEC, (query_bytes, limit))
        if not rows:
            return []

        similarities = {r[0]: similarity_from_distance(r[1]) for r in rows}
        ids = [i for i, sim in similarities.items() if sim >= min_similarity]
        if not ids:
            return []

        placeholders = ",".join("?" * len(ids))
        entries = {
            r["interaction_id"]: r
            for r in await self.conn.execute_fetchall(_SQL_GET_ENTRIES.format(placeholders=placeholders), ids)
        }

        hits = []
        for interaction_id in ids:
            entry = entries.get(interaction_id)
            if entry is None:
                continue
            hits.append(
                VectorHit(
                    id=str(interaction_id),
                    content=entry["content"],
                    similarity=similarities[interaction_id],
                    metadata=json.loads(entry["metadata"]) if entry["metadata"] else {},
                )
            )
        return hits
