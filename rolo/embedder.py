from dataclasses import dataclass

import litellm
import numpy as np

from rolo.constants import EMBEDDING_TEXT_LIMIT
from rolo.retry import with_retry


@dataclass(frozen=True)
class EmbeddingConfig:
    model: str
    dim: int
    api_key: str | None = None


class Embedder:
    """Turns interaction notes and queries into unit-length vectors."""

    def __init__(self, config: EmbeddingConfig):
        self.config = config

    def _normalize(self, embeddings: np.ndarray) -> np.ndarray:
        norms = np.linalg.norm(embeddings, axis=1, keepdims=True)
        return embeddings / np.where(norms == 0, 1, norms)

    def _parse_response(self, response) -> np.ndarray:
        ordered = sorted(response.data, key=lambda x: x["index"])
        embeddings = np.array([item["embedding"] for item in ordered], dtype=np.float32)
        if embeddings.shape[1] != self.config.dim:
            raise ValueError(
                f"{self.config.model} returned {embeddings.shape[1]}-dim vectors, index expects {self.config.dim}"
            )
        return self._normalize(embeddings)

    async def embed(self, texts: list[str]) -> np.ndarray:
        if not texts:
            return np.empty((0, self.config.dim), dtype=np.float32)
        truncated = [" ".join(t.split())[:EMBEDDING_TEXT_LIMIT] for t in texts]
        response = await with_retry(
            litellm.aembedding, model=self.config.model, input=truncated, api_key=self.config.api_key
        )
        return self._parse_response(response)

    async def embed_one(self, text: str) -> np.ndarray:
        return (await self.embed([text]))[0]
