from typing import Protocol

from rolo.contacts.models import Person, VectorHit


class ContactRepository(Protocol):
    """Read-only structured lookups over people and their roles."""

    async def find_by_organization(self, name: str) -> list[Person]: ...

    async def find_by_name(self, name: str) -> list[Person]: ...

    async def find_by_title(self, title: str) -> list[Person]: ...

    async def find_by_social_handle(self, name: str) -> list[Person]: ...

    async def find_all(self) -> list[Person]: ...


class VectorSearch(Protocol):
    async def search(self, query: str, limit: int, min_similarity: float) -> list[VectorHit]: ...
