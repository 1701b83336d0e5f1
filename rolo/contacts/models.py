from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, str):
        dt = datetime.fromisoformat(value)
        return dt if dt.tzinfo else dt.replace(tzinfo=UTC)
    raise ValueError(f"Cannot parse datetime from {type(value)}")


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class Organization(_FrozenModel):
    id: int
    name: str
    description: str | None = None


class Role(_FrozenModel):
    title: str
    organization: str
    is_current: bool = True
    start_date: datetime | None = None
    end_date: datetime | None = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _parse_dt(cls, v: Any) -> datetime | None:
        return _parse_datetime(v)

    def active_at(self, when: datetime) -> bool:
        if not self.is_current:
            return False
        return self.end_date is None or self.end_date > when


class SocialHandle(_FrozenModel):
    platform: str
    handle: str


class Interaction(_FrozenModel):
    id: int
    person_id: int
    summary: str
    happened_at: datetime
    notes: str | None = None

    @field_validator("happened_at", mode="before")
    @classmethod
    def _parse_dt(cls, v: Any) -> datetime | None:
        return _parse_datetime(v)

    @property
    def text(self) -> str:
        return f"{self.summary}. {self.notes}" if self.notes else self.summary

    def index_metadata(self, person: str | None) -> dict:
        """Metadata stored beside the note's vector and returned with semantic hits."""
        return {"person": person, "person_id": self.person_id, "summary": self.summary}


class Person(_FrozenModel):
    id: int
    name: str
    bio: str | None = None
    current_roles: tuple[Role, ...] = ()
    previous_roles: tuple[Role, ...] = ()
    social_handles: tuple[SocialHandle, ...] = ()
    latest_interaction_at: datetime | None = None

    @field_validator("latest_interaction_at", mode="before")
    @classmethod
    def _parse_dt(cls, v: Any) -> datetime | None:
        return _parse_datetime(v)

    def has_current_role(self, when: datetime | None = None) -> bool:
        when = when or datetime.now(UTC)
        return any(role.active_at(when) for role in self.current_roles)

    def handle_for(self, platform: str) -> SocialHandle | None:
        wanted = platform.lower()
        for handle in self.social_handles:
            if handle.platform.lower() == wanted:
                return handle
        return None


class VectorHit(_FrozenModel):
    """One nearest-neighbour match from the interaction index."""

    id: str
    content: str
    similarity: float
    metadata: dict[str, Any] = {}
