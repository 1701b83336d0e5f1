"""Demo contacts used by ``rolo seed`` and the API tests."""

from datetime import UTC, datetime

from rolo.contacts.store import ContactStore
from rolo.contacts.vectors import InteractionIndex
from rolo.logging import get_logger

_logger = get_logger(__name__)


def _date(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=UTC)


ORGANIZATIONS = {
    "Think": "Technology and innovation company",
    "Proof": "Digital proof and verification services",
    "Moonbirds": "NFT and digital collectibles platform",
    "InnovateX": "Developer tooling startup",
}

PEOPLE = [
    {
        "name": "Felix",
        "bio": "CEO of Think Foundation, technology entrepreneur",
        "roles": [
            ("Think", "CEO", True, "2023-01-01", None),
            ("Proof", "CEO", False, "2021-01-01", "2022-12-31"),
            ("Moonbirds", "Team Member", False, "2020-06-01", "2021-06-30"),
        ],
        "handles": [("twitter", "@lefclicksave")],
        "interactions": [
            (
                "Initial meeting to discuss Think Foundation vision",
                "Felix shared his vision for Think Foundation and his background at Proof and Moonbirds. "
                "Very passionate about technology and innovation.",
                "2023-01-15",
            ),
        ],
    },
    {
        "name": "Mikey Anderson",
        "bio": "Constant Gardener at Think, building enthusiast",
        "roles": [("Think", "Constant Gardener", True, "2023-03-15", None)],
        "handles": [],
        "interactions": [
            (
                "Discussion about building and systems architecture",
                "Mikey talked about his approach to building and maintaining systems. "
                "Very knowledgeable about infrastructure and scaling.",
                "2023-03-20",
            ),
        ],
    },
    {
        "name": "Jesse Bryan",
        "bio": "Technology professional and team member",
        "roles": [("Think", "Team Member", True, "2023-02-01", None)],
        "handles": [],
        "interactions": [
            (
                "Introduced by Felix to the team",
                "Jesse was introduced as a new team member. Seems very capable and eager to contribute to projects.",
                "2023-02-10",
            ),
        ],
    },
    {
        "name": "John",
        "bio": "Technology professional with social media presence",
        "roles": [],
        "handles": [("twitter", "@johndoe"), ("linkedin", "john-doe")],
        "interactions": [
            (
                "Met at technology conference",
                "John is active on social media and shares thoughts about developer tools and open source.",
                "2023-04-05",
            ),
        ],
    },
    {
        "name": "Sarah",
        "bio": "CTO at InnovateX",
        "roles": [("InnovateX", "CTO", True, "2022-05-01", None)],
        "handles": [("linkedin", "sarah-innovatex")],
        "interactions": [
            (
                "Coffee with Sarah from InnovateX",
                "Sarah believes small teams ship faster and thinks AI pair programming will reshape onboarding.",
                "2023-05-12",
            ),
        ],
    },
]


async def seed_contacts(
    store: ContactStore,
    index: InteractionIndex | None = None,
    clear: bool = True,
    embed: bool = True,
) -> dict:
    """Load the demo contacts.

    Clearing empties the interaction index along with the store, so no vector
    outlives its interaction. Notes are embedded only when ``embed`` is set.
    """
    repo = store.repository
    if clear:
        await store.clear_all()
        if index is not None:
            await index.clear()

    for name, description in ORGANIZATIONS.items():
        await repo.create_organization(name, description)

    interactions = []
    for entry in PEOPLE:
        person_id = await repo.create_person(entry["name"], entry["bio"])
        for org, title, is_current, start, end in entry["roles"]:
            await repo.add_role(
                person_id,
                org,
                title,
                is_current=is_current,
                start_date=_date(start),
                end_date=_date(end) if end else None,
            )
        for platform, handle in entry["handles"]:
            await repo.add_social_handle(person_id, platform, handle)
        for summary, notes, happened in entry["interactions"]:
            interaction = await repo.add_interaction(person_id, summary, _date(happened), notes=notes)
            interactions.append((interaction, entry["name"]))
    await repo.commit()

    indexed = 0
    if index is not None and embed:
        for interaction, person in interactions:
            metadata = interaction.index_metadata(person)
            if await index.upsert(interaction.id, interaction.text, metadata):
                indexed += 1

    _logger.info("Seeded contacts", people=len(PEOPLE), interactions=len(interactions), indexed=indexed)
    return {"people": len(PEOPLE), "interactions": len(interactions), "indexed": indexed}
