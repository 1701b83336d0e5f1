from dataclasses import dataclass, field, fields, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from rolo.constants import (
    DEFAULT_SEARCH_LIMIT,
    FUSION_BASIC_WEIGHT,
    FUSION_DUPLICATE_THRESHOLD,
    FUSION_MAX_RESULTS,
    FUSION_SEMANTIC_WEIGHT,
)

if TYPE_CHECKING:
    from rolo.search.analyzer import QueryAnalysis


class EntityType(StrEnum):
    PERSON = "person"
    ORGANIZATION = "organization"
    ROLE = "role"
    INTERACTION = "interaction"


class ResultSource(StrEnum):
    BASIC = "basic"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"


class QueryType(StrEnum):
    STRUCTURED = "structured"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"


class Strategy(StrEnum):
    BASIC_ONLY = "basic_only"
    SEMANTIC_ONLY = "semantic_only"
    HYBRID = "hybrid"


class Intent(StrEnum):
    ORGANIZATION = "organization"
    PERSON_INFO = "person_info"
    LOCATION = "location"
    TITLE = "title"
    SOCIAL_MEDIA = "social_media"
    GENERAL = "general"
    COMPOUND = "compound"


# Reported by the executor in addition to the three Strategy values
SEMANTIC_FALLBACK_STRATEGY = "semantic_only_fallback"
FAILED_STRATEGY = "failed"


@dataclass(frozen=True)
class SearchResult:
    """One retrieved entity, tagged with the backend that produced it."""

    id: str
    entity_type: EntityType
    payload: Any
    score: float
    source: ResultSource
    rank: float = 0.0
    normalized_score: float | None = None
    metadata: dict | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.entity_type.value, self.id)


@dataclass(frozen=True)
class FusionConfig:
    basic_weight: float = FUSION_BASIC_WEIGHT
    semantic_weight: float = FUSION_SEMANTIC_WEIGHT
    duplicate_threshold: float = FUSION_DUPLICATE_THRESHOLD
    max_results: int = FUSION_MAX_RESULTS

    def __post_init__(self):
        for name in ("basic_weight", "semantic_weight", "duplicate_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")
        if self.max_results < 1:
            raise ValueError(f"max_results must be at least 1, got {self.max_results}")

    def merged(self, **overrides: Any) -> "FusionConfig":
        """Copy with the non-None overrides applied; the original is untouched."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown fusion settings: {', '.join(sorted(unknown))}")
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_dict(self) -> dict[str, float | int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class SearchContext:
    query: str
    analysis: "QueryAnalysis"
    user_id: str | None = None
    limit: int = DEFAULT_SEARCH_LIMIT
    offset: int = 0
    fusion: FusionConfig | None = None


@dataclass
class ExecutionResult:
    results: list[SearchResult]
    strategy: str
    execution_time_ms: float
    basic_count: int
    semantic_count: int
    fusion_config: FusionConfig


@dataclass
class BranchResult:
    """Results of one executor branch plus the per-backend counts behind them."""

    results: list[SearchResult] = field(default_factory=list)
    basic_count: int = 0
    semantic_count: int = 0
