import asyncio
import time
from collections.abc import Awaitable
from dataclasses import dataclass

from rolo.constants import (
    BACKEND_TIMEOUT,
    FULL_SCAN_NAME_SCORE,
    FULL_SCAN_ORGANIZATION_SCORE,
    FULL_SCAN_TITLE_SCORE,
    HYBRID_OVERFETCH_FACTOR,
    MIN_SIMILARITY,
)
from rolo.contacts.models import Person, VectorHit
from rolo.errors import BackendUnavailable, TotalExecutionFailure
from rolo.logging import get_logger
from rolo.search.analyzer import QueryAnalysis, QueryAnalyzer
from rolo.search.backends import ContactRepository, VectorSearch
from rolo.search.fusion import fuse
from rolo.search.types import (
    FAILED_STRATEGY,
    SEMANTIC_FALLBACK_STRATEGY,
    BranchResult,
    EntityType,
    ExecutionResult,
    FusionConfig,
    Intent,
    ResultSource,
    SearchContext,
    SearchResult,
    Strategy,
)

_logger = get_logger(__name__)

BASIC_BACKEND = "basic"
SEMANTIC_BACKEND = "semantic"

STRUCTURED_LEAN = ("work", "company", "organization", "title", "role")
SEMANTIC_LEAN = ("thoughts", "opinion", "think", "believe", "about", "why", "how")


@dataclass(frozen=True)
class Conjunct:
    text: str
    strategy: Strategy


def lean(text: str) -> Strategy | None:
    """Which backend a single clause of a compound question should go to."""
    lowered = text.lower()
    if any(k in lowered for k in STRUCTURED_LEAN):
        return Strategy.BASIC_ONLY
    if any(k in lowered for k in SEMANTIC_LEAN):
        return Strategy.SEMANTIC_ONLY
    return None


def split_compound_query(query: str) -> list[str]:
    lowered = query.lower()
    for conjunction in (" and ", " or "):
        index = lowered.find(conjunction)
        if index != -1:
            parts = [query[:index].strip(), query[index + len(conjunction) :].strip()]
            return [p for p in parts if p]
    return []


def route_conjuncts(query: str) -> list[Conjunct]:
    routed = []
    for part in split_compound_query(query):
        strategy = lean(part)
        if strategy is not None:
            routed.append(Conjunct(part, strategy))
    return routed


def person_result(person: Person, score: float = 1.0, metadata: dict | None = None) -> SearchResult:
    return SearchResult(
        id=f"person_{person.id}",
        entity_type=EntityType.PERSON,
        payload=person,
        score=score,
        source=ResultSource.BASIC,
        rank=score,
        metadata=metadata,
    )


def social_metadata(person: Person, platform: str | None) -> dict | None:
    if not platform:
        return None
    metadata = {"platform": platform}
    if handle := person.handle_for(platform):
        metadata["handle"] = handle.handle
    return metadata


def interaction_result(hit: VectorHit) -> SearchResult:
    return SearchResult(
        id=f"interaction_{hit.id}",
        entity_type=EntityType.INTERACTION,
        payload=hit,
        score=hit.similarity,
        source=ResultSource.SEMANTIC,
        rank=hit.similarity,
        metadata=dict(hit.metadata) or None,
    )


def full_scan_score(person: Person, term: str) -> float:
    term = term.lower()
    score = 0.0
    if term in person.name.lower():
        score += FULL_SCAN_NAME_SCORE
    if any(term in role.organization.lower() for role in person.current_roles):
        score += FULL_SCAN_ORGANIZATION_SCORE
    if any(term in role.title.lower() for role in person.current_roles):
        score += FULL_SCAN_TITLE_SCORE
    return score


def scan_term(query: str, analysis: QueryAnalysis) -> str:
    """Term for the full scan: the first extracted entity, else the raw query."""
    entities = analysis.entities
    for category in ("people", "organizations", "titles"):
        if value := entities.first(category):
            return value
    return query


def dedupe_by_key(results: list[SearchResult]) -> list[SearchResult]:
    seen: set[tuple[str, str]] = set()
    unique = []
    for result in results:
        if result.key not in seen:
            seen.add(result.key)
            unique.append(result)
    return unique


class SearchStrategyExecutor:
    """Runs an analyzed query against the structured and semantic backends.

    Every backend call is bounded by ``backend_timeout`` and guarded, so one
    failing backend degrades to an empty contribution instead of failing the
    request. ``execute`` itself never raises.
    """

    def __init__(
        self,
        repository: ContactRepository,
        vector_search: VectorSearch,
        fusion: FusionConfig | None = None,
        analyzer: QueryAnalyzer | None = None,
        backend_timeout: float = BACKEND_TIMEOUT,
        min_similarity: float = MIN_SIMILARITY,
    ):
        self.repository = repository
        self.vector_search = vector_search
        self.fusion = fusion or FusionConfig()
        self.analyzer = analyzer or QueryAnalyzer()
        self.backend_timeout = backend_timeout
        self.min_similarity = min_similarity

    async def execute(self, context: SearchContext) -> ExecutionResult:
        start = time.perf_counter()
        fusion = context.fusion or self.fusion
        strategy = context.analysis.strategy.value

        try:
            branch, strategy = await self._run_with_retry(context, fusion, strategy)
        except TotalExecutionFailure:
            _logger.error("Search failed", query=context.query, exc_info=True)
            branch, strategy = BranchResult(), FAILED_STRATEGY

        return ExecutionResult(
            results=branch.results,
            strategy=strategy,
            execution_time_ms=(time.perf_counter() - start) * 1000,
            basic_count=branch.basic_count,
            semantic_count=branch.semantic_count,
            fusion_config=fusion,
        )

    async def _run_with_retry(
        self, context: SearchContext, fusion: FusionConfig, strategy: str
    ) -> tuple[BranchResult, str]:
        try:
            return await self._dispatch(context, fusion), strategy
        except Exception:
            _logger.warning("Search dispatch failed, retrying semantic only", query=context.query, exc_info=True)

        try:
            results = await self._semantic(context.query, context.limit)
        except Exception as e:
            raise TotalExecutionFailure(f"Semantic retry failed for {context.query!r}") from e
        return BranchResult(results, semantic_count=len(results)), SEMANTIC_FALLBACK_STRATEGY

    async def _dispatch(self, context: SearchContext, fusion: FusionConfig) -> BranchResult:
        analysis = context.analysis
        match analysis.strategy:
            case Strategy.BASIC_ONLY:
                results = await self._basic(context.query, analysis, context.limit, context.offset)
                return BranchResult(results, basic_count=len(results))
            case Strategy.HYBRID if analysis.intent == Intent.COMPOUND:
                return await self._compound(context)
            case Strategy.HYBRID:
                return await self._hybrid(context, fusion)
            case _:
                results = await self._semantic(context.query, context.limit)
                return BranchResult(results, semantic_count=len(results))

    # --- Backend guard ---

    async def _guard[T](self, backend: str, call: Awaitable[list[T]]) -> list[T]:
        try:
            return await asyncio.wait_for(call, timeout=self.backend_timeout)
        except Exception as e:
            failure = BackendUnavailable(backend, e)
            _logger.warning(str(failure), backend=backend)
            return []

    # --- Structured lookup ---

    async def _basic(self, query: str, analysis: QueryAnalysis, limit: int, offset: int) -> list[SearchResult]:
        results = await self._guard(BASIC_BACKEND, self._structured_lookup(query, analysis))
        return results[offset : offset + limit]

    async def _structured_lookup(self, query: str, analysis: QueryAnalysis) -> list[SearchResult]:
        entities = analysis.entities
        intent = analysis.intent

        if intent == Intent.ORGANIZATION and (org := entities.first("organizations")):
            return [person_result(p) for p in await self.repository.find_by_organization(org)]
        if intent in (Intent.PERSON_INFO, Intent.LOCATION) and (name := entities.first("people")):
            return [person_result(p) for p in await self.repository.find_by_name(name)]
        if intent == Intent.TITLE and (title := entities.first("titles")):
            return [person_result(p) for p in await self.repository.find_by_title(title)]
        if intent == Intent.SOCIAL_MEDIA and (name := entities.first("people")):
            platform = entities.first("platforms")
            people = await self.repository.find_by_social_handle(name)
            return [person_result(p, metadata=social_metadata(p, platform)) for p in people]
        return await self._full_scan(scan_term(query, analysis))

    async def _full_scan(self, query: str) -> list[SearchResult]:
        scored = []
        for person in await self.repository.find_all():
            score = full_scan_score(person, query)
            if score > 0:
                scored.append(person_result(person, score))
        scored.sort(key=lambda r: r.score, reverse=True)
        return scored

    # --- Semantic lookup ---

    async def _semantic(self, query: str, limit: int) -> list[SearchResult]:
        hits = await self._guard(SEMANTIC_BACKEND, self.vector_search.search(query, limit, self.min_similarity))
        return [interaction_result(hit) for hit in hits]

    # --- Hybrid ---

    async def _hybrid(self, context: SearchContext, fusion: FusionConfig) -> BranchResult:
        fetch = context.limit * HYBRID_OVERFETCH_FACTOR
        basic, semantic = await asyncio.gather(
            self._basic(context.query, context.analysis, fetch, context.offset),
            self._semantic(context.query, fetch),
        )
        fused = fuse(basic, semantic, fusion)
        return BranchResult(fused[: context.limit], basic_count=len(basic), semantic_count=len(semantic))

    async def _compound(self, context: SearchContext) -> BranchResult:
        conjuncts = route_conjuncts(context.query)
        basic: list[SearchResult] = []
        semantic: list[SearchResult] = []

        if conjuncts:
            routed = await asyncio.gather(*(self._run_conjunct(c, context) for c in conjuncts))
            for conjunct, results in zip(conjuncts, routed):
                (basic if conjunct.strategy == Strategy.BASIC_ONLY else semantic).extend(results)

        if not basic and not semantic:
            _logger.debug("Compound split yielded nothing, searching full query", query=context.query)
            basic, semantic = await asyncio.gather(
                self._basic(context.query, context.analysis, context.limit, context.offset),
                self._semantic(context.query, context.limit),
            )

        merged = dedupe_by_key(basic + semantic)
        merged.sort(key=lambda r: r.score, reverse=True)
        return BranchResult(merged[: context.limit], basic_count=len(basic), semantic_count=len(semantic))

    async def _run_conjunct(self, conjunct: Conjunct, context: SearchContext) -> list[SearchResult]:
        if conjunct.strategy == Strategy.SEMANTIC_ONLY:
            return await self._semantic(conjunct.text, context.limit)
        analysis = self.analyzer.analyze(conjunct.text)
        return await self._basic(conjunct.text, analysis, context.limit, context.offset)
