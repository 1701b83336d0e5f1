from dataclasses import replace
from datetime import UTC, datetime

from rapidfuzz.distance import Levenshtein

from rolo.constants import CURRENT_ROLE_BOOST, HYBRID_SOURCE_BONUS, RECENCY_MAX_BOOST, RECENCY_WINDOW_DAYS
from rolo.contacts.models import Person
from rolo.search.types import EntityType, FusionConfig, ResultSource, SearchResult

_NAMED_TYPES = frozenset({EntityType.PERSON, EntityType.ORGANIZATION})
_SECONDS_PER_DAY = 86400


def normalize_scores(results: list[SearchResult]) -> list[SearchResult]:
    """Min-max scale raw scores into [0, 1]; a flat list scales against a range of 1."""
    if not results:
        return []
    scores = [r.score for r in results]
    low = min(scores)
    span = (max(scores) - low) or 1.0
    return [replace(r, normalized_score=(r.score - low) / span) for r in results]


def name_similarity(a: str, b: str) -> float:
    """Case-insensitive ``(longest - edit distance) / longest``."""
    a_lower = a.lower()
    b_lower = b.lower()
    if a_lower == b_lower:
        return 1.0
    return Levenshtein.normalized_similarity(a_lower, b_lower)


def result_name(result: SearchResult) -> str | None:
    payload = result.payload
    if isinstance(payload, dict):
        name = payload.get("name")
    else:
        name = getattr(payload, "name", None)
    return name or None


def is_duplicate(a: SearchResult, b: SearchResult, threshold: float) -> bool:
    if a.key == b.key:
        return True
    if a.entity_type != b.entity_type or a.entity_type not in _NAMED_TYPES:
        return False
    name_a, name_b = result_name(a), result_name(b)
    if name_a is None or name_b is None:
        return False
    if name_a.lower() == name_b.lower():
        return True
    return name_similarity(name_a, name_b) > threshold


def dedupe(results: list[SearchResult], threshold: float) -> list[SearchResult]:
    kept: list[SearchResult] = []
    seen: set[tuple[str, str]] = set()
    for result in results:
        if result.key in seen:
            continue
        if any(is_duplicate(existing, result, threshold) for existing in kept):
            continue
        seen.add(result.key)
        kept.append(result)
    return kept


def source_weight(source: ResultSource, config: FusionConfig) -> float:
    if source == ResultSource.BASIC:
        return config.basic_weight
    if source == ResultSource.SEMANTIC:
        return config.semantic_weight
    return HYBRID_SOURCE_BONUS * (config.basic_weight + config.semantic_weight) / 2


def recency_boost(person: Person, now: datetime) -> float:
    if person.latest_interaction_at is None:
        return 1.0
    days = (now - person.latest_interaction_at).total_seconds() / _SECONDS_PER_DAY
    freshness = min(max(1.0 - days / RECENCY_WINDOW_DAYS, 0.0), 1.0)
    return 1.0 + RECENCY_MAX_BOOST * freshness


def rerank(result: SearchResult, config: FusionConfig, now: datetime) -> SearchResult:
    normalized = result.normalized_score if result.normalized_score is not None else result.score
    rank = normalized * source_weight(result.source, config)

    person = result.payload
    if result.entity_type == EntityType.PERSON and isinstance(person, Person):
        rank *= recency_boost(person, now)
        if person.has_current_role(now):
            rank *= CURRENT_ROLE_BOOST

    return replace(result, rank=rank)


def fuse(
    basic: list[SearchResult],
    semantic: list[SearchResult],
    config: FusionConfig | None = None,
    now: datetime | None = None,
) -> list[SearchResult]:
    """Merge structured and semantic results into one bounded, ranked list.

    Each list is normalized on its own, then the combined list (structured
    first) is deduplicated with first occurrence winning, reranked by source
    weight and person signals, and stably sorted by rank.
    """
    config = config or FusionConfig()
    now = now or datetime.now(UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)

    merged = dedupe(normalize_scores(basic) + normalize_scores(semantic), config.duplicate_threshold)
    ranked = [rerank(r, config, now) for r in merged]
    ranked.sort(key=lambda r: r.rank, reverse=True)
    return ranked[: config.max_results]
