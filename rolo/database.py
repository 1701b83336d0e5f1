import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite
import numpy as np
import sqlite_vec

PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA busy_timeout=30000",
    "PRAGMA foreign_keys=ON",
)


def serialize_embedding(embedding: np.ndarray | list[float]) -> bytes:
    """float32 bytes, the layout ``vec0`` columns expect."""
    return np.asarray(embedding, dtype=np.float32).tobytes()


class Database:
    """A single aiosqlite connection. Subclasses prepare it in ``on_connect``."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def connect(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(self.db_path)
        conn.row_factory = aiosqlite.Row
        for pragma in PRAGMAS:
            await conn.execute(pragma)
        self._conn = conn
        await self.on_connect()

    async def on_connect(self) -> None:
        pass

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError(f"Database {self.db_path.name} not connected")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[None]:
        """Commit the writes made inside the block, or roll all of them back."""
        async with self._write_lock:
            try:
                yield
                await self.conn.commit()
            except Exception:
                await self.conn.rollback()
                raise

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()


class VectorDatabase(Database):
    """Connection with the sqlite-vec extension loaded."""

    async def on_connect(self) -> None:
        await self.conn.enable_load_extension(True)
        await self.conn.load_extension(sqlite_vec.loadable_path())
        await self.conn.enable_load_extension(False)
