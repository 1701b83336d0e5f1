from rolo.search.analyzer import ExtractedEntities, QueryAnalysis, QueryAnalyzer
from rolo.search.executor import SearchStrategyExecutor
from rolo.search.fusion import fuse
from rolo.search.rewriter import QueryRewriter, RewriteResult, RewriteRule
from rolo.search.types import (
    EntityType,
    ExecutionResult,
    FusionConfig,
    Intent,
    QueryType,
    ResultSource,
    SearchContext,
    SearchResult,
    Strategy,
)

__all__ = [
    "EntityType",
    "ExecutionResult",
    "ExtractedEntities",
    "FusionConfig",
    "Intent",
    "QueryAnalysis",
    "QueryAnalyzer",
    "QueryRewriter",
    "QueryType",
    "ResultSource",
    "RewriteResult",
    "RewriteRule",
    "SearchContext",
    "SearchResult",
    "SearchStrategyExecutor",
    "Strategy",
    "fuse",
]
