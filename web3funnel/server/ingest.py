"""
Turning validated track requests into stored events and rollups.
"""

import ipaddress
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from web3funnel.constants import MAX_USER_AGENT_LENGTH
from web3funnel.errors import RequestValidationFailedError

from .models import StoredEvent, TrackEventRequest, Website
from .storage import MemoryStore

LOG = logging.getLogger(__name__)


def describe_errors(errors: Iterable[Dict[str, Any]], prefix: Sequence[Any] = ()) -> List[Dict[str, Any]]:
    """
    Flatten pydantic error entries into ``{field, message, value}`` items.
    """
    described = []
    for error in errors:
        loc = [*prefix, *error.get("loc", ())]
        described.append({
            "field": ".".join(str(part) for part in loc),
            "message": error.get("msg", "Invalid value"),
            "value": error.get("input"),
        })
    return described


def validate_batch(items: Sequence[Any]) -> List[TrackEventRequest]:
    """
    Validate every item of a batch; nothing is accepted unless all of them are.

    Raises:
        RequestValidationFailedError: Listing the problems of every bad item.
    """
    records = []
    errors: List[Dict[str, Any]] = []

    for index, item in enumerate(items):
        try:
            records.append(TrackEventRequest.model_validate(item))
        except ValidationError as e:
            errors.extend(describe_errors(e.errors(), prefix=("events", index)))

    if errors:
        raise RequestValidationFailedError(errors)

    return records


def sanitize_user_agent(user_agent: Optional[str]) -> Optional[str]:
    if user_agent is None:
        return None
    return user_agent[:MAX_USER_AGENT_LENGTH]


def is_ipv4(value: str) -> bool:
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


def build_stored_event(request: TrackEventRequest, website_id: str,
                       user_agent: Optional[str] = None) -> StoredEvent:
    event = StoredEvent(
        **request.model_dump(),
        website_id=website_id,
        user_agent=sanitize_user_agent(user_agent),
    )

    if event.wallet_address:
        event.wallet_address = event.wallet_address.lower()

    if event.location and event.location.ip and not is_ipv4(event.location.ip):
        LOG.debug("Dropping invalid IP address from event %s", event.event_id)
        event.location.ip = None

    return event


def ingest_events(store: MemoryStore, website: Website,
                  requests: Sequence[TrackEventRequest],
                  user_agent: Optional[str] = None) -> List[StoredEvent]:
    """
    Store events for ``website`` and update its stats and sessions.

    Rollup failures are logged; the events stay stored.
    """
    events = [build_stored_event(r, website.website_id, user_agent) for r in requests]
    store.insert_events(events)
    LOG.debug("Stored %s events for website %s", len(events), website.website_id)

    try:
        store.record_website_activity(website.website_id, len(events))
    except Exception:
        LOG.exception("Stats update failed for website %s", website.website_id)

    for event in events:
        try:
            store.roll_up_session(event)
        except Exception:
            LOG.exception("Session update failed for session %s", event.session_id)

    try:
        store.end_idle_sessions(website.website_id)
    except Exception:
        LOG.exception("Ending idle sessions failed for website %s", website.website_id)

    return events
