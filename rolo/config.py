import json
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rolo.constants import (
    BACKEND_TIMEOUT,
    DEFAULT_SEARCH_LIMIT,
    EMBEDDING_MODELS,
    FUSION_BASIC_WEIGHT,
    FUSION_DUPLICATE_THRESHOLD,
    FUSION_MAX_RESULTS,
    FUSION_SEMANTIC_WEIGHT,
    MIN_SIMILARITY,
)
from rolo.embedder import EmbeddingConfig
from rolo.logging import get_logger
from rolo.search.types import FusionConfig

ROLO_DIR = Path.home() / ".rolo"
SETTINGS_PATH = ROLO_DIR / "settings.json"

_logger = get_logger(__name__)


def load_user_settings() -> dict:
    if not SETTINGS_PATH.exists():
        return {}
    try:
        return json.loads(SETTINGS_PATH.read_text())
    except (json.JSONDecodeError, OSError):
        _logger.warning("Failed to load user settings", exc_info=True)
        return {}


def save_user_settings(settings: dict) -> None:
    ROLO_DIR.mkdir(exist_ok=True)
    SETTINGS_PATH.write_text(json.dumps(settings, indent=2))


class Config(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ROLO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
        populate_by_name=True,
    )

    # API key for hosted embedding models - standard env var, no prefix
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")

    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int | None = None

    # Retrieval
    min_similarity: float = MIN_SIMILARITY
    backend_timeout: float = BACKEND_TIMEOUT
    default_limit: int = DEFAULT_SEARCH_LIMIT

    # Fusion defaults; requests may override per call
    fusion_basic_weight: float = FUSION_BASIC_WEIGHT
    fusion_semantic_weight: float = FUSION_SEMANTIC_WEIGHT
    fusion_duplicate_threshold: float = FUSION_DUPLICATE_THRESHOLD
    fusion_max_results: int = FUSION_MAX_RESULTS

    log_level: str = "INFO"
    log_json: bool = False

    @model_validator(mode="after")
    def _default_embedding_dim(self) -> "Config":
        if self.embedding_dim is None:
            self.embedding_dim = EMBEDDING_MODELS[self.embedding_model]
        return self

    @field_validator("embedding_model")
    @classmethod
    def _validate_embedding_model(cls, v: str) -> str:
        if v not in EMBEDDING_MODELS:
            raise ValueError(f"Unsupported embedding model: {v}. Must be one of: {', '.join(EMBEDDING_MODELS)}")
        return v

    @field_validator(
        "fusion_basic_weight", "fusion_semantic_weight", "fusion_duplicate_threshold", "min_similarity"
    )
    @classmethod
    def _validate_unit_interval(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"must be within [0, 1], got {v}")
        return v

    @field_validator("backend_timeout")
    @classmethod
    def _validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"backend_timeout must be positive, got {v}")
        return v

    @field_validator("default_limit", "fusion_max_results")
    @classmethod
    def _validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be at least 1, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def embedding(self) -> EmbeddingConfig:
        return EmbeddingConfig(model=self.embedding_model, dim=self.embedding_dim, api_key=self.openai_api_key)

    @property
    def fusion(self) -> FusionConfig:
        return FusionConfig(
            basic_weight=self.fusion_basic_weight,
            semantic_weight=self.fusion_semantic_weight,
            duplicate_threshold=self.fusion_duplicate_threshold,
            max_results=self.fusion_max_results,
        )

    @property
    def db_dir(self) -> Path:
        return ROLO_DIR

    @property
    def contacts_db_path(self) -> Path:
        return self.db_dir / "contacts.db"

    @property
    def vectors_db_path(self) -> Path:
        return self.db_dir / "vectors.db"


PERSIST_KEYS = frozenset(
    {
        "embedding_model",
        "min_similarity",
        "backend_timeout",
        "default_limit",
        "fusion_basic_weight",
        "fusion_semantic_weight",
        "fusion_duplicate_threshold",
        "fusion_max_results",
        "log_level",
        "log_json",
    }
)


def get_config() -> Config:
    settings = load_user_settings()

    # Build config: init args (settings.json) > env vars > defaults
    overrides = {k: settings[k] for k in PERSIST_KEYS if k in settings}
    return Config(**overrides)
