from collections import defaultdict
from datetime import datetime

import aiosqlite

from rolo.contacts.models import Interaction, Organization, Person, Role, SocialHandle

_SQL_PERSON_COLUMNS = "SELECT p.id, p.name, p.bio FROM people p"

_SQL_ALL_PEOPLE = f"{_SQL_PERSON_COLUMNS} ORDER BY p.id"
_SQL_COUNT_PEOPLE = "SELECT COUNT(*) FROM people"
_SQL_COUNT_INTERACTIONS = "SELECT COUNT(*) FROM interactions"

_SQL_PEOPLE_BY_NAME = f"""
    {_SQL_PERSON_COLUMNS}
    WHERE instr(lower(p.name), lower(?)) > 0
    ORDER BY p.id
"""

_SQL_PEOPLE_BY_ORGANIZATION = f"""
    {_SQL_PERSON_COLUMNS}
    WHERE p.id IN (
        SELECT r.person_id FROM roles r
        JOIN organizations o ON o.id = r.organization_id
        WHERE r.is_current = 1 AND instr(lower(o.name), lower(?)) > 0
    )
    ORDER BY p.id
"""

_SQL_PEOPLE_BY_TITLE = f"""
    {_SQL_PERSON_COLUMNS}
    WHERE p.id IN (
        SELECT r.person_id FROM roles r
        WHERE r.is_current = 1 AND instr(lower(r.title), lower(?)) > 0
    )
    ORDER BY p.id
"""

_SQL_ROLES_BATCH = """
    SELECT r.person_id, r.title, r.is_current, r.start_date, r.end_date, o.name AS organization
    FROM roles r
    JOIN organizations o ON o.id = r.organization_id
    WHERE r.person_id IN ({placeholders})
    ORDER BY r.is_current DESC, r.start_date DESC, r.id
"""

_SQL_HANDLES_BATCH = """
    SELECT person_id, platform, handle FROM social_handles
    WHERE person_id IN ({placeholders})
    ORDER BY platform
"""

_SQL_LATEST_INTERACTION_BATCH = """
    SELECT person_id, MAX(happened_at) AS latest FROM interactions
    WHERE person_id IN ({placeholders})
    GROUP BY person_id
"""

_SQL_GET_ORGANIZATION_BY_NAME = "SELECT * FROM organizations WHERE name = ? COLLATE NOCASE"
_SQL_INSERT_ORGANIZATION = "INSERT INTO organizations (name, description) VALUES (?, ?)"
_SQL_INSERT_PERSON = "INSERT INTO people (name, bio) VALUES (?, ?)"

_SQL_INSERT_ROLE = """
    INSERT INTO roles (person_id, organization_id, title, is_current, start_date, end_date)
    VALUES (?, ?, ?, ?, ?, ?)
"""

_SQL_UPSERT_HANDLE = """
    INSERT INTO social_handles (person_id, platform, handle) VALUES (?, ?, ?)
    ON CONFLICT(person_id, platform) DO UPDATE SET handle = excluded.handle
"""

_SQL_INSERT_INTERACTION = "INSERT INTO interactions (person_id, summary, notes, happened_at) VALUES (?, ?, ?, ?)"
_SQL_GET_INTERACTION = "SELECT * FROM interactions WHERE id = ?"
_SQL_LIST_INTERACTIONS = "SELECT * FROM interactions ORDER BY happened_at DESC"
_SQL_UPDATE_INTERACTION = "UPDATE interactions SET summary = ?, notes = ?, happened_at = ? WHERE id = ?"
_SQL_DELETE_INTERACTION = "DELETE FROM interactions WHERE id = ?"
_SQL_GET_PERSON = f"{_SQL_PERSON_COLUMNS} WHERE p.id = ?"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class ContactRepository:
    """Structured lookups over the contact store.

    Name, organization and title filters are case-insensitive containment
    matches; organization and title filters only consider current roles.
    """

    def __init__(self, conn: aiosqlite.Connection):
        self.conn = conn

    # --- Lookups ---

    async def find_all(self) -> list[Person]:
        rows = await self.conn.execute_fetchall(_SQL_ALL_PEOPLE)
        return await self._hydrate(rows)

    async def get_person(self, person_id: int) -> Person | None:
        rows = await self.conn.execute_fetchall(_SQL_GET_PERSON, (person_id,))
        people = await self._hydrate(rows)
        return people[0] if people else None

    async def find_by_name(self, name: str) -> list[Person]:
        rows = await self.conn.execute_fetchall(_SQL_PEOPLE_BY_NAME, (name,))
        return await self._hydrate(rows)

    async def find_by_organization(self, name: str) -> list[Person]:
        rows = await self.conn.execute_fetchall(_SQL_PEOPLE_BY_ORGANIZATION, (name,))
        return await self._hydrate(rows)

    async def find_by_title(self, title: str) -> list[Person]:
        rows = await self.conn.execute_fetchall(_SQL_PEOPLE_BY_TITLE, (title,))
        return await self._hydrate(rows)

    async def find_by_social_handle(self, name: str) -> list[Person]:
        # Handles are looked up by the owner's name; the platform is picked by the caller
        return await self.find_by_name(name)

    async def count(self) -> int:
        rows = await self.conn.execute_fetchall(_SQL_COUNT_PEOPLE)
        return rows[0][0]

    async def count_interactions(self) -> int:
        rows = await self.conn.execute_fetchall(_SQL_COUNT_INTERACTIONS)
        return rows[0][0]

    async def get_interaction(self, interaction_id: int) -> Interaction | None:
        rows = await self.conn.execute_fetchall(_SQL_GET_INTERACTION, (interaction_id,))
        return Interaction.model_validate(dict(rows[0])) if rows else None

    async def list_interactions(self) -> list[Interaction]:
        rows = await self.conn.execute_fetchall(_SQL_LIST_INTERACTIONS)
        return [Interaction.model_validate(dict(r)) for r in rows]

    async def _hydrate(self, rows) -> list[Person]:
        if not rows:
            return []
        ids = [r["id"] for r in rows]
        placeholders = ",".join("?" * len(ids))

        roles: dict[int, list[Role]] = defaultdict(list)
        for r in await self.conn.execute_fetchall(_SQL_ROLES_BATCH.format(placeholders=placeholders), ids):
            roles[r["person_id"]].append(
                Role(
                    title=r["title"],
                    organization=r["organization"],
                    is_current=bool(r["is_current"]),
                    start_date=r["start_date"],
                    end_date=r["end_date"],
                )
            )

        handles: dict[int, list[SocialHandle]] = defaultdict(list)
        for r in await self.conn.execute_fetchall(_SQL_HANDLES_BATCH.format(placeholders=placeholders), ids):
            handles[r["person_id"]].append(SocialHandle(platform=r["platform"], handle=r["handle"]))

        latest = {
            r["person_id"]: r["latest"]
            for r in await self.conn.execute_fetchall(
                _SQL_LATEST_INTERACTION_BATCH.format(placeholders=placeholders), ids
            )
        }

        return [
            Person(
                id=r["id"],
                name=r["name"],
                bio=r["bio"],
                current_roles=tuple(role for role in roles[r["id"]] if role.is_current),
                previous_roles=tuple(role for role in roles[r["id"]] if not role.is_current),
                social_handles=tuple(handles[r["id"]]),
                latest_interaction_at=latest.get(r["id"]),
            )
            for r in rows
        ]

    # --- Writes ---

    async def create_organization(self, name: str, description: str | None = None) -> Organization:
        rows = await self.conn.execute_fetchall(_SQL_GET_ORGANIZATION_BY_NAME, (name,))
        if rows:
            return Organization.model_validate(dict(rows[0]))
        cursor = await self.conn.execute(_SQL_INSERT_ORGANIZATION, (name, description))
        return Organization(id=cursor.lastrowid, name=name, description=description)

    async def create_person(self, name: str, bio: str | None = None) -> int:
        cursor = await self.conn.execute(_SQL_INSERT_PERSON, (name, bio))
        return cursor.lastrowid

    async def add_role(
        self,
        person_id: int,
        organization: str,
        title: str,
        is_current: bool = True,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> Role:
        org = await self.create_organization(organization)
        await self.conn.execute(
            _SQL_INSERT_ROLE,
            (person_id, org.id, title, int(is_current), _iso(start_date), _iso(end_date)),
        )
        return Role(
            title=title,
            organization=org.name,
            is_current=is_current,
            start_date=start_date,
            end_date=end_date,
        )

    async def add_social_handle(self, person_id: int, platform: str, handle: str) -> SocialHandle:
        await self.conn.execute(_SQL_UPSERT_HANDLE, (person_id, platform.lower(), handle))
        return SocialHandle(platform=platform.lower(), handle=handle)

    async def add_interaction(
        self, person_id: int, summary: str, happened_at: datetime, notes: str | None = None
    ) -> Interaction:
        cursor = await self.conn.execute(_SQL_INSERT_INTERACTION, (person_id, summary, notes, _iso(happened_at)))
        return Interaction(
            id=cursor.lastrowid, person_id=person_id, summary=summary, notes=notes, happened_at=happened_at
        )

    async def update_interaction(
        self,
        interaction_id: int,
        summary: str | None = None,
        notes: str | None = None,
        happened_at: datetime | None = None,
    ) -> Interaction | None:
        """Overwrite the given fields; fields left as None keep their stored value."""
        current = await self.get_interaction(interaction_id)
        if current is None:
            return None
        changes = {"summary": summary, "notes": notes, "happened_at": happened_at}
        updated = current.model_copy(update={k: v for k, v in changes.items() if v is not None})
        await self.conn.execute(
            _SQL_UPDATE_INTERACTION,
            (updated.summary, updated.notes, _iso(updated.happened_at), interaction_id),
        )
        return updated

    async def delete_interaction(self, interaction_id: int) -> bool:
        cursor = await self.conn.execute(_SQL_DELETE_INTERACTION, (interaction_id,))
        return cursor.rowcount > 0

    async def commit(self) -> None:
        await self.conn.commit()
