from dataclasses import dataclass
from datetime import datetime
from uuid import uuid4

from rolo.config import Config, get_config
from rolo.contacts.models import Interaction, VectorHit
from rolo.contacts.repository import ContactRepository
from rolo.contacts.store import ContactStore
from rolo.contacts.vectors import InteractionIndex
from rolo.embedder import Embedder
from rolo.logging import get_logger, request_context
from rolo.search.analyzer import QueryAnalysis, QueryAnalyzer
from rolo.search.executor import SearchStrategyExecutor
from rolo.search.types import FusionConfig, Intent, SearchContext, SearchResult, Strategy

_logger = get_logger(__name__)


@dataclass
class UnifiedSearchResponse:
    results: list[SearchResult]
    strategy: str
    execution_time_ms: float
    basic_count: int
    semantic_count: int
    analysis: QueryAnalysis
    fusion_config: FusionConfig
    request_id: str

    @property
    def fusion_applied(self) -> bool:
        # Compound questions merge by raw score and never reach the fusion engine
        return self.strategy == Strategy.HYBRID and self.analysis.intent != Intent.COMPOUND


class UnifiedSearch:
    """Entry point: analyze a question, run the chosen strategy, return ranked results."""

    def __init__(
        self,
        analyzer: QueryAnalyzer,
        executor: SearchStrategyExecutor,
        store: ContactStore | None = None,
        index: InteractionIndex | None = None,
        config: Config | None = None,
    ):
        self.analyzer = analyzer
        self.executor = executor
        self.store = store
        self.index = index
        self.config = config

    @classmethod
    async def create(cls, config: Config | None = None, embedder: Embedder | None = None) -> "UnifiedSearch":
        config = config or get_config()

        store = ContactStore(config.contacts_db_path)
        await store.connect()
        index = InteractionIndex(config.vectors_db_path, embedder or Embedder(config.embedding))
        await index.connect()

        analyzer = QueryAnalyzer()
        executor = SearchStrategyExecutor(
            repository=store.repository,
            vector_search=index,
            fusion=config.fusion,
            analyzer=analyzer,
            backend_timeout=config.backend_timeout,
            min_similarity=config.min_similarity,
        )
        _logger.info("Search service ready", contacts=str(config.contacts_db_path), vectors=str(config.vectors_db_path))
        return cls(analyzer, executor, store=store, index=index, config=config)

    async def close(self) -> None:
        if self.index:
            await self.index.close()
        if self.store:
            await self.store.close()

    @property
    def default_limit(self) -> int:
        return self.config.default_limit if self.config else 20

    def analyze(self, query: str) -> QueryAnalysis:
        return self.analyzer.analyze(query)

    async def execute(
        self,
        query: str,
        user_id: str | None = None,
        limit: int | None = None,
        offset: int = 0,
        fusion: FusionConfig | None = None,
    ) -> UnifiedSearchResponse:
        if not query or not query.strip():
            raise ValueError("Query is required")
        limit = limit if limit is not None else self.default_limit
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")

        request_id = uuid4().hex[:12]
        with request_context(request_id, user_id=user_id):
            analysis = self.analyze(query)
            _logger.debug(
                "Query analyzed",
                intent=analysis.intent.value,
                strategy=analysis.strategy.value,
                confidence=analysis.confidence,
                rewritten=analysis.rewritten_query if analysis.was_rewritten else None,
            )

            result = await self.executor.execute(
                SearchContext(
                    query=query,
                    analysis=analysis,
                    user_id=user_id,
                    limit=limit,
                    offset=offset,
                    fusion=fusion,
                )
            )
            _logger.info(
                "Search finished",
                strategy=result.strategy,
                results=len(result.results),
                basic=result.basic_count,
                semantic=result.semantic_count,
                ms=round(result.execution_time_ms, 1),
            )

        return UnifiedSearchResponse(
            results=result.results,
            strategy=result.strategy,
            execution_time_ms=result.execution_time_ms,
            basic_count=result.basic_count,
            semantic_count=result.semantic_count,
            analysis=analysis,
            fusion_config=result.fusion_config,
            request_id=request_id,
        )

    async def similar(self, interaction_id: int, limit: int, min_similarity: float | None = None) -> list[VectorHit] | None:
        _, index = self._storage()
        if min_similarity is None:
            return await index.find_similar(interaction_id, limit)
        return await index.find_similar(interaction_id, limit, min_similarity)

    # --- Interaction maintenance ---

    async def update_interaction(
        self,
        interaction_id: int,
        summary: str | None = None,
        notes: str | None = None,
        happened_at: datetime | None = None,
    ) -> Interaction | None:
        """Update a stored interaction and re-embed its note when the text changed."""
        repo, _ = self._storage()
        interaction = await repo.update_interaction(interaction_id, summary, notes, happened_at)
        if interaction is None:
            return None
        await repo.commit()
        reindexed = await self._index_interaction(interaction)
        _logger.info("Interaction updated", interaction_id=interaction_id, reindexed=reindexed)
        return interaction

    async def delete_interaction(self, interaction_id: int) -> bool:
        """Delete an interaction and its vector. False when it does not exist."""
        repo, index = self._storage()
        if not await repo.delete_interaction(interaction_id):
            return False
        await repo.commit()
        await index.delete(interaction_id)
        _logger.info("Interaction deleted", interaction_id=interaction_id)
        return True

    async def reindex(self) -> int:
        """Embed every stored interaction whose note is missing or stale in the index."""
        repo, _ = self._storage()
        indexed = 0
        for interaction in await repo.list_interactions():
            if await self._index_interaction(interaction):
                indexed += 1
        _logger.info("Reindexed interactions", indexed=indexed)
        return indexed

    async def _index_interaction(self, interaction: Interaction) -> bool:
        repo, index = self._storage()
        person = await repo.get_person(interaction.person_id)
        metadata = interaction.index_metadata(person.name if person else None)
        return await index.upsert(interaction.id, interaction.text, metadata)

    async def status(self) -> dict[str, int]:
        repo, index = self._storage()
        return {
            "people": await repo.count(),
            "interactions": await repo.count_interactions(),
            "indexed": await index.count(),
        }

    def _storage(self) -> tuple[ContactRepository, InteractionIndex]:
        if self.store is None or self.index is None:
            raise RuntimeError("Search service not connected to storage")
        return self.store.repository, self.index
