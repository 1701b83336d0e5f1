from fastapi import APIRouter, HTTPException, Query

import rolo
from rolo.constants import SIMILAR_INTERACTION_LIMIT
from rolo.server.runtime import get_service
from rolo.server.schemas import (
    InteractionUpdate,
    SearchRequest,
    analysis_info,
    query_info,
    response_metadata,
    serialize_hit,
    serialize_interaction,
    serialize_result,
)

router = APIRouter(tags=["search"])


@router.post("/unified-search")
async def unified_search(request: SearchRequest):
    if not request.query.strip():
        raise HTTPException(status_code=400, detail="Query is required")

    service = get_service()
    fusion = None
    if request.fusion is not None:
        fusion = service.executor.fusion.merged(**request.fusion.model_dump())

    response = await service.execute(
        request.query,
        user_id=request.user_id,
        limit=request.limit,
        offset=request.offset,
        fusion=fusion,
    )

    return {
        "success": True,
        "request_id": response.request_id,
        "query": query_info(response.analysis),
        "analysis": analysis_info(response.analysis),
        "search": {
            "strategy": response.strategy,
            "execution_time_ms": response.execution_time_ms,
            "basic_count": response.basic_count,
            "semantic_count": response.semantic_count,
            "total_results": len(response.results),
        },
        "results": [serialize_result(r) for r in response.results],
        "fusion": {
            "config": response.fusion_config.to_dict(),
            "applied": response.fusion_applied,
        },
        "metadata": response_metadata(),
    }


@router.get("/unified-search")
async def analyze_query(q: str | None = None):
    if not q:
        return {
            "message": "Unified search is running. POST a query to search.",
            "endpoints": {
                "POST": "/unified-search - execute unified search",
                "GET": "/unified-search?q=... - analyze a query without searching",
            },
            "version": rolo.__version__,
        }

    analysis = get_service().analyze(q)
    return {
        "success": True,
        "query": query_info(analysis),
        "analysis": analysis_info(analysis),
        "metadata": response_metadata(),
    }


@router.get("/interactions/{interaction_id}/similar")
async def similar_interactions(
    interaction_id: int,
    limit: int = Query(default=SIMILAR_INTERACTION_LIMIT, ge=1, le=50),
    min_similarity: float | None = Query(default=None, ge=0.0, le=1.0),
):
    hits = await get_service().similar(interaction_id, limit, min_similarity)
    if hits is None:
        raise HTTPException(status_code=404, detail="Interaction not indexed")
    return {
        "interaction_id": interaction_id,
        "similar": [serialize_hit(h) for h in hits],
        "total": len(hits),
    }


@router.put("/interactions/{interaction_id}")
async def update_interaction(interaction_id: int, request: InteractionUpdate):
    if not request.has_changes():
        raise HTTPException(status_code=400, detail="Nothing to update")
    interaction = await get_service().update_interaction(
        interaction_id,
        summary=request.summary,
        notes=request.notes,
        happened_at=request.happened_at,
    )
    if interaction is None:
        raise HTTPException(status_code=404, detail="Interaction not found")
    return {"success": True, "data": serialize_interaction(interaction)}


@router.delete("/interactions/{interaction_id}")
async def delete_interaction(interaction_id: int):
    if not await get_service().delete_interaction(interaction_id):
        raise HTTPException(status_code=404, detail="Interaction not found")
    return {"success": True, "interaction_id": interaction_id}


@router.get("/status")
async def status():
    return await get_service().status()
