from datetime import UTC, datetime

from pydantic import BaseModel, Field

import rolo
from rolo.contacts.models import Interaction, VectorHit
from rolo.search.analyzer import QueryAnalysis
from rolo.search.types import SearchResult


class FusionOverrides(BaseModel):
    basic_weight: float | None = Field(default=None, ge=0.0, le=1.0)
    semantic_weight: float | None = Field(default=None, ge=0.0, le=1.0)
    duplicate_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    max_results: int | None = Field(default=None, ge=1)


class SearchRequest(BaseModel):
    query: str = ""
    user_id: str | None = None
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
    fusion: FusionOverrides | None = None


class InteractionUpdate(BaseModel):
    summary: str | None = Field(default=None, min_length=1)
    notes: str | None = None
    happened_at: datetime | None = None

    def has_changes(self) -> bool:
        return any(v is not None for v in self.model_dump().values())


# --- Serialization ---


def query_info(analysis: QueryAnalysis) -> dict:
    return {
        "original": analysis.original_query,
        "rewritten": analysis.rewritten_query,
        "was_rewritten": analysis.was_rewritten,
        "rewrite_confidence": analysis.rewrite_confidence,
    }


def analysis_info(analysis: QueryAnalysis) -> dict:
    return {
        "query_type": analysis.query_type.value,
        "intent": analysis.intent.value,
        "strategy": analysis.strategy.value,
        "confidence": analysis.confidence,
        "entities": analysis.entities.as_dict(),
        "patterns": list(analysis.patterns),
    }


def serialize_payload(payload) -> dict:
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json")
    return payload


def serialize_result(result: SearchResult) -> dict:
    return {
        "id": result.id,
        "type": result.entity_type.value,
        "data": serialize_payload(result.payload),
        "score": result.score,
        "normalized_score": result.normalized_score,
        "rank": result.rank,
        "source": result.source.value,
        "metadata": result.metadata,
    }


def serialize_hit(hit: VectorHit) -> dict:
    return hit.model_dump(mode="json")


def serialize_interaction(interaction: Interaction) -> dict:
    return interaction.model_dump(mode="json")


def response_metadata() -> dict:
    return {"timestamp": datetime.now(UTC).isoformat(), "version": rolo.__version__}
