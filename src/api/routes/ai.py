"""
Storefront AI Routes.

Behavior analysis, recommendations and product-grid ranking, plus the
session endpoints that feed the interaction log.

Malformed fields inside a body are treated as absent (non-array
interactions, unparsable events, bad limits); only an unreadable body is
rejected, with a generic 400 from the app's validation handler. Unexpected
failures return a generic 500 and are logged with the detail.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from core.logging import bind_context, get_logger
from recs.catalog import CatalogRepository, get_catalog
from recs.interaction_log import now_ms
from recs.models import (
    BehaviorAnalysisRequest,
    CatalogItem,
    FilterContext,
    InteractionBatchRequest,
    RankedResult,
    RankRequest,
    RecommendationsRequest,
)
from recs.pipeline import RecommendationPipeline, get_pipeline
from services.session_manager import SessionManager, get_session_manager


logger = get_logger(__name__)

router = APIRouter(prefix="/api/ai", tags=["Storefront AI"])


# =============================================================================
# Helper Functions
# =============================================================================

def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def format_ranked(result: RankedResult) -> Dict[str, Any]:
    payload = result.model_dump(by_alias=True, mode="json")
    return {"success": True, **payload}


def resolve_candidates(
    candidates: Optional[List[CatalogItem]],
    context: FilterContext,
    catalog: CatalogRepository,
) -> List[CatalogItem]:
    """Request candidates when given, else the collection or the whole catalog."""
    if candidates is not None:
        return candidates
    if context.collection_handle:
        return catalog.by_collection(context.collection_handle)
    return catalog.all_items()


def resolve_anchor(
    candidates: List[CatalogItem],
    context: FilterContext,
    catalog: CatalogRepository,
) -> Optional[CatalogItem]:
    if not context.current_product_id:
        return None
    for item in candidates:
        if item.id == context.current_product_id:
            return item
    return catalog.get(context.current_product_id)


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/behavior-analysis", summary="Classify a session's shopping intent")
def behavior_analysis(
    request: BehaviorAnalysisRequest,
    pipeline: RecommendationPipeline = Depends(get_pipeline),
):
    """
    Aggregate the interaction log into a behavior profile and classify it.

    A pre-aggregated ``behaviorData`` is classified as is when no
    interactions are sent. With neither, the default classification is
    returned with a zeroed profile.
    """
    if request.session_id:
        bind_context(session_id=request.session_id)
    try:
        profile, analysis = pipeline.analyze(
            events=request.interactions,
            behavior_data=request.behavior_data,
        )
    except Exception as e:
        logger.error("Behavior analysis failed", error=str(e), exc_info=True)
        return error_response(500, "Failed to analyze behavior")

    logger.info(
        "Behavior analyzed",
        interactions=len(request.interactions),
        label=analysis.label.value,
        source=analysis.source,
    )
    return {
        "success": True,
        "sessionId": request.session_id,
        "analysis": analysis.model_dump(by_alias=True, mode="json"),
        "behaviorData": profile.model_dump(by_alias=True, mode="json"),
        "timestamp": int(now_ms()),
    }


@router.post("/recommendations", summary="Recommendations for a page")
def recommendations(
    request: RecommendationsRequest,
    pipeline: RecommendationPipeline = Depends(get_pipeline),
    catalog: CatalogRepository = Depends(get_catalog),
):
    """
    Score candidates with every signal generator and return the top ``limit``.

    Candidates come from the request, or from the catalog when omitted. The
    intent is classified with the rule table from ``userBehavior``.
    """
    try:
        context = request.filter_context()
        candidates = resolve_candidates(request.candidates, context, catalog)
        result = pipeline.rank(
            candidates,
            context,
            events=request.user_behavior,
            limit=request.limit,
            anchor=resolve_anchor(candidates, context, catalog),
        )
    except Exception as e:
        logger.error("Recommendation generation failed", error=str(e), exc_info=True)
        return error_response(500, "Failed to generate recommendations")

    return format_ranked(result)


@router.post("/rank", summary="Rank a product grid")
def rank(
    request: RankRequest,
    pipeline: RecommendationPipeline = Depends(get_pipeline),
    catalog: CatalogRepository = Depends(get_catalog),
    sessions: SessionManager = Depends(get_session_manager),
):
    """
    Rank a product grid under the user's filters and sort.

    With a ``sessionId`` the session's interaction log and debounced intent
    feed the ranking, and the result is served from the session's ranking
    cache until it expires or the session is refreshed.
    """
    try:
        context = request.filter_context()
        candidates = resolve_candidates(request.candidates, context, catalog)

        session = sessions.get_or_create(request.session_id) if request.session_id else None
        events = list(request.user_behavior)
        classification = None
        cache = None
        if session is not None:
            bind_context(session_id=session.session_id)
            events = list(session.log.events()) + events
            cache = session.cache
            if len(session.log):
                _, classification = session.current_analysis()

        result = pipeline.rank(
            candidates,
            context,
            events=events,
            classification=classification,
            limit=request.limit,
            cache=cache,
            anchor=resolve_anchor(candidates, context, catalog),
        )
    except Exception as e:
        logger.error("Ranking failed", error=str(e), exc_info=True)
        return error_response(500, "Failed to rank products")

    response = format_ranked(result)
    response["sessionId"] = request.session_id
    return response


@router.post("/sessions/{session_id}/interactions", summary="Record interaction events")
def record_interactions(
    session_id: str,
    request: InteractionBatchRequest,
    sessions: SessionManager = Depends(get_session_manager),
) -> Dict[str, Any]:
    """Append events to the session's log. Cached rankings stay as they are."""
    session = sessions.get_or_create(session_id)
    recorded = session.record(request.interactions)
    logger.debug("Interactions recorded", session_id=session_id, recorded=recorded)
    return {
        "success": True,
        "sessionId": session_id,
        "recorded": recorded,
        "totalEvents": len(session.log),
    }


@router.post("/sessions/{session_id}/refresh", summary="Drop cached rankings")
def refresh_session(
    session_id: str,
    sessions: SessionManager = Depends(get_session_manager),
) -> Dict[str, Any]:
    session = sessions.get_session(session_id)
    invalidated = session.refresh() if session is not None else 0
    return {"success": True, "sessionId": session_id, "invalidated": invalidated}


@router.delete("/sessions/{session_id}", summary="End a session")
def delete_session(
    session_id: str,
    sessions: SessionManager = Depends(get_session_manager),
) -> Dict[str, Any]:
    deleted = sessions.delete_session(session_id)
    return {"success": True, "sessionId": session_id, "deleted": deleted}
