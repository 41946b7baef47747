from fastapi import APIRouter, Depends, Request
from analytics_app.schemas.tracking import (
    TrackVisitRequest,
    TrackPageViewRequest,
    TrackInteractionRequest,
    TrackResponse,
    VisitData,
)
from analytics_app.services.collection_service import CollectionService
from analytics_app.dependencies import get_collection_service

router = APIRouter(prefix="/analytics", tags=["tracking"])


def _client_ip(request: Request):
    return request.client.host if request.client else None


def _track_response(result) -> TrackResponse:
    # Skipped (admin path / repeat visit) is still a success
    return TrackResponse(
        success=True,
        id=result.id if result is not None else None,
        tracked=result is not None,
    )


@router.post("/track-visit", response_model=TrackResponse)
async def track_visit(
    body: TrackVisitRequest,
    request: Request,
    collection_service: CollectionService = Depends(get_collection_service)
):
    """Record a visit. IP and user agent come from the request."""
    result = await collection_service.track_visit(VisitData(
        path=body.path,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        referer=body.referer,
        session_id=body.session_id,
    ))
    return _track_response(result)


@router.post("/track-page-view", response_model=TrackResponse)
async def track_page_view(
    body: TrackPageViewRequest,
    request: Request,
    collection_service: CollectionService = Depends(get_collection_service)
):
    """Record a page view, with device/browser/OS parsed from the user agent."""
    result = await collection_service.track_page_view(body.path, {
        "ip_address": _client_ip(request),
        "user_agent": request.headers.get("user-agent"),
        "referer": body.referer,
        "session_id": body.session_id,
        "duration": body.duration,
    })
    return _track_response(result)


@router.post("/track-interaction", response_model=TrackResponse)
async def track_interaction(
    body: TrackInteractionRequest,
    collection_service: CollectionService = Depends(get_collection_service)
):
    """Record an interaction (click, download...). Never deduplicated."""
    result = await collection_service.track_interaction(
        body.type,
        {
            "element": body.element,
            "value": body.value,
            "metadata": body.metadata,
            "path": body.path,
        },
        {
            "session_id": body.session_id,
            "path": body.path,
        },
    )
    return _track_response(result)
