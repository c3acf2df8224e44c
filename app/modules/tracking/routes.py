from fastapi import APIRouter, Depends, HTTPException, Request
from app.core.dependencies import get_client_ip, get_optional_user_id
from app.core.rate_limit import limiter
from app.config import settings
from app.modules.tracking.facebook import FacebookConversions, get_facebook_conversions
from app.database.supabase_client import get_supabase
from app.modules.tracking.schemas import TrackEventRequest, TrafficSourceRequest
from app.modules.tracking.traffic import TrafficSourceService
from supabase import Client
from typing import Optional

router = APIRouter(tags=["tracking"])


@router.post("/fb-track")
@limiter.limit(settings.public_rate_limit)
async def track_event(
    request: Request,
    body: TrackEventRequest,
    tracker: FacebookConversions = Depends(get_facebook_conversions)
):
    """Relay a browser pixel event to the Conversions API (same event_id for deduplication)"""
    if not tracker.enabled:
        raise HTTPException(status_code=500, detail="Missing Pixel ID or access token")
    user_data = {k: v for k, v in body.user_data.items() if k in ("em", "external_id", "fbc", "fbp")}
    if body.hashed_email and "em" not in user_data:
        user_data["em"] = body.hashed_email
    result = tracker.send_event(
        body.event_name,
        event_id=body.event_id,
        event_source_url=body.event_source_url,
        user_data=user_data,
        custom_data={**body.params, **body.custom_data} or None,
        client_ip=get_client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
    )
    if result is None:
        return {"ok": False}
    return {"ok": True, **result}


def get_traffic_service(supabase: Client = Depends(get_supabase)) -> TrafficSourceService:
    return TrafficSourceService(supabase)


@router.post("/track-source")
@limiter.limit(settings.public_rate_limit)
async def track_source(
    request: Request,
    body: TrafficSourceRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    service: TrafficSourceService = Depends(get_traffic_service)
):
    service.record(user_id, body.model_dump())
    return {"success": True}
