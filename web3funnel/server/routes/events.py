from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Body, Depends, Query, Request

from web3funnel.constants import MAX_BATCH_EVENTS
from web3funnel.errors import BatchSizeError
from web3funnel.events import EventType

from ..aggregation import (
    GroupBy,
    SortOrder,
    count_by,
    event_stats,
    filter_events,
    paginate,
    sort_events,
)
from ..auth import get_store, require_website
from ..ingest import ingest_events, validate_batch
from ..models import TrackEventRequest, Website, as_utc
from ..rate_limit import limit_event_tracking
from ..responses import failure_message, success
from ..storage import MemoryStore

RECENT_EVENTS_LIMIT = 100

router = APIRouter(prefix="/events", tags=["events"])


def date_range(
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
) -> Tuple[Optional[datetime], Optional[datetime]]:
    return (
        as_utc(start_date) if start_date else None,
        as_utc(end_date) if end_date else None,
    )


@router.post("/track", status_code=201)
def track_event(
    event: TrackEventRequest,
    request: Request,
    website: Website = Depends(limit_event_tracking),
    store: MemoryStore = Depends(get_store),
):
    with failure_message("Failed to track event"):
        [stored] = ingest_events(store, website, [event], request.headers.get("user-agent"))

    return success(
        {"eventId": stored.event_id, "timestamp": stored.timestamp},
        message="Event tracked successfully",
    )


@router.post("/track/batch", status_code=201)
def track_batch_events(
    request: Request,
    body: Dict[str, Any] = Body(...),
    website: Website = Depends(limit_event_tracking),
    store: MemoryStore = Depends(get_store),
):
    items = body.get("events")

    if not isinstance(items, list) or not items:
        raise BatchSizeError("Events array is required and must not be empty")

    if len(items) > MAX_BATCH_EVENTS:
        raise BatchSizeError(f"Maximum {MAX_BATCH_EVENTS} events allowed per batch")

    records = validate_batch(items)

    with failure_message("Failed to track batch events"):
        stored = ingest_events(store, website, records, request.headers.get("user-agent"))

    return success(
        {"eventIds": [e.event_id for e in stored], "count": len(stored)},
        message=f"{len(stored)} events tracked successfully",
    )


@router.get("/events")
def get_events(
    event_type: Optional[EventType] = Query(default=None, alias="eventType"),
    user_id: Optional[str] = Query(default=None, alias="userId"),
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    wallet_address: Optional[str] = Query(default=None, alias="walletAddress"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=1000),
    sort_by: str = Query(default="timestamp", alias="sortBy"),
    sort_order: SortOrder = Query(default=SortOrder.DESC, alias="sortOrder"),
    dates: Tuple[Optional[datetime], Optional[datetime]] = Depends(date_range),
    website: Website = Depends(require_website),
    store: MemoryStore = Depends(get_store),
):
    with failure_message("Failed to retrieve events"):
        events = filter_events(
            store.events_for(website.website_id, *dates),
            event_type=event_type,
            user_id=user_id,
            session_id=session_id,
            wallet_address=wallet_address,
        )
        return success(paginate(sort_events(events, sort_by, sort_order), page, limit))


@router.get("/stats")
def get_event_stats(
    group_by: GroupBy = Query(default=GroupBy.DAY, alias="groupBy"),
    dates: Tuple[Optional[datetime], Optional[datetime]] = Depends(date_range),
    website: Website = Depends(require_website),
    store: MemoryStore = Depends(get_store),
):
    with failure_message("Failed to retrieve event statistics"):
        events = store.events_for(website.website_id, *dates)
        return success(event_stats(events, group_by))


@router.get("/analytics")
def get_dashboard_analytics(
    website: Website = Depends(require_website),
    store: MemoryStore = Depends(get_store),
):
    with failure_message("Analytics error"):
        events = store.events_for(website.website_id)
        recent = sorted(events, key=lambda e: e.created_at, reverse=True)[:RECENT_EVENTS_LIMIT]

        return success(
            totalEvents=len(events),
            recentEvents=[e.to_payload() for e in recent],
            eventTypeCounts=count_by(events, lambda e: e.event_type),
        )
