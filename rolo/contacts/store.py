from rolo.contacts.repository import ContactRepository
from rolo.database import Database
from rolo.logging import get_logger

_logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS organizations (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL UNIQUE COLLATE NOCASE,
    description TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS people (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    bio TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_people_name ON people(name COLLATE NOCASE);

-- is_current = 0 marks a previous role
CREATE TABLE IF NOT EXISTS roles (
    id INTEGER PRIMARY KEY,
    person_id INTEGER NOT NULL REFERENCES people(id) ON DELETE CASCADE,
    organization_id INTEGER NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    is_current INTEGER NOT NULL DEFAULT 1,
    start_date TIMESTAMP,
    end_date TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_roles_person ON roles(person_id);
CREATE INDEX IF NOT EXISTS idx_roles_org ON roles(organization_id);

CREATE TABLE IF NOT EXISTS social_handles (
    id INTEGER PRIMARY KEY,
    person_id INTEGER NOT NULL REFERENCES people(id) ON DELETE CASCADE,
    platform TEXT NOT NULL COLLATE NOCASE,
    handle TEXT NOT NULL,
    UNIQUE(person_id, platform)
);

CREATE TABLE IF NOT EXISTS interactions (
    id INTEGER PRIMARY KEY,
    person_id INTEGER NOT NULL REFERENCES people(id) ON DELETE CASCADE,
    summary TEXT NOT NULL,
    notes TEXT,
    happened_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_interactions_person ON interactions(person_id, happened_at DESC);
"""

_TABLES = ("interactions", "social_handles", "roles", "people", "organizations")


class ContactStore(Database):
    """SQLite store for people, organizations, roles, handles and interaction notes."""

    async def on_connect(self) -> None:
        await self.init_schema()

    @property
    def repository(self) -> ContactRepository:
        return ContactRepository(self.conn)

    async def init_schema(self) -> None:
        await self.conn.executescript(SCHEMA)
        await self.conn.commit()

    async def clear_all(self) -> None:
        for table in _TABLES:
            await self.conn.execute(f"DELETE FROM {table}")
        await self.conn.commit()
        _logger.info("Cleared contact store", path=str(self.db_path))
