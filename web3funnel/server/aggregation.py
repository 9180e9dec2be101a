"""
Statistics computed on demand from stored events.

Grouped results keep the ``{"_id": key, "count": n}`` shape dashboards
consume.
"""

from __future__ import annotations

import math
from collections import Counter
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from pydantic.alias_generators import to_snake

from web3funnel.events import EventType
from web3funnel.events.models import utc_now

from .models import StoredEvent, as_utc

TRANSACTION_OUTCOMES = (EventType.TRANSACTION_COMPLETE, EventType.TRANSACTION_FAILED)
RECENT_WINDOW = timedelta(hours=24)
TOP_PAGES_LIMIT = 10

# Listing sorts only on scalar fields; anything else falls back to timestamp
SORTABLE_FIELDS = frozenset({
    "event_type",
    "user_id",
    "session_id",
    "timestamp",
    "wallet_address",
    "wallet_type",
    "event_id",
    "website_id",
    "user_agent",
    "created_at",
})


class GroupBy(str, Enum):
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


TIME_BUCKET_FORMATS = {
    GroupBy.HOUR: "%Y-%m-%d-%H",
    GroupBy.DAY: "%Y-%m-%d",
    GroupBy.WEEK: "%Y-%U",
    GroupBy.MONTH: "%Y-%m",
}


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


def _value(item: Any) -> Any:
    return item.value if isinstance(item, Enum) else item


def count_by(
    events: Iterable[StoredEvent], key: Callable[[StoredEvent], Any]
) -> List[Dict[str, Any]]:
    """Group and count, most frequent first; ties keep first-seen order."""
    counts = Counter(_value(key(e)) for e in events)
    return [{"_id": k, "count": n} for k, n in counts.most_common()]


def time_stats(events: Iterable[StoredEvent], group_by: GroupBy = GroupBy.DAY) -> List[Dict[str, Any]]:
    fmt = TIME_BUCKET_FORMATS[group_by]
    counts = Counter(as_utc(e.timestamp).strftime(fmt) for e in events)
    return [{"_id": k, "count": counts[k]} for k in sorted(counts)]


def unique_count(events: Iterable[StoredEvent], attribute: str) -> int:
    return len({getattr(e, attribute) for e in events})


def event_stats(events: Sequence[StoredEvent], group_by: GroupBy = GroupBy.DAY) -> Dict[str, Any]:
    event_type_stats = count_by(events, lambda e: e.event_type)

    return {
        "eventTypeStats": event_type_stats,
        "timeStats": time_stats(events, group_by),
        "uniqueUsers": unique_count(events, "user_id"),
        "uniqueSessions": unique_count(events, "session_id"),
        "walletStats": count_by(
            (e for e in events if e.event_type is EventType.WALLET_CONNECT),
            lambda e: e.wallet_type,
        ),
        "totalEvents": sum(stat["count"] for stat in event_type_stats),
    }


def top_pages(events: Iterable[StoredEvent], limit: int = TOP_PAGES_LIMIT) -> List[Dict[str, Any]]:
    counts: Counter = Counter()
    titles: Dict[Optional[str], Optional[str]] = {}

    for event in events:
        if event.event_type is not EventType.PAGE_VIEW:
            continue
        url = event.page.url if event.page else None
        counts[url] += 1
        titles.setdefault(url, event.page.title if event.page else None)

    return [
        {"_id": url, "count": n, "title": titles[url]}
        for url, n in counts.most_common(limit)
    ]


def conversion_rate(wallet_connections: int, transactions: int) -> float:
    if wallet_connections <= 0:
        return 0
    return round(transactions / wallet_connections * 100, 2)


def website_overview(
    events: Sequence[StoredEvent],
    recent_events: Sequence[StoredEvent],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Analytics overview for one website.

    Args:
        events: Events inside the requested date range.
        recent_events: All events of the website, for the last-24h counter.
        now: Reference time, defaults to the current time.
    """
    now = now or utc_now()
    since = now - RECENT_WINDOW

    wallet_connections = sum(1 for e in events if e.event_type is EventType.WALLET_CONNECT)
    transactions = sum(1 for e in events if e.event_type in TRANSACTION_OUTCOMES)

    return {
        "overview": {
            "totalEvents": len(events),
            "uniqueUsers": unique_count(events, "user_id"),
            "uniqueSessions": unique_count(events, "session_id"),
            "walletConnections": wallet_connections,
            "transactions": transactions,
            "conversionRate": conversion_rate(wallet_connections, transactions),
            "recentEvents": sum(1 for e in recent_events if as_utc(e.timestamp) >= since),
        },
        "eventTypeBreakdown": count_by(events, lambda e: e.event_type),
        "topPages": top_pages(events),
    }


def filter_events(
    events: Iterable[StoredEvent],
    event_type: Optional[EventType] = None,
    user_id: Optional[str] = None,
    session_id: Optional[str] = None,
    wallet_address: Optional[str] = None,
) -> List[StoredEvent]:
    wallet_address = wallet_address.lower() if wallet_address else None
    return [
        e
        for e in events
        if (event_type is None or e.event_type is event_type)
        and (user_id is None or e.user_id == user_id)
        and (session_id is None or e.session_id == session_id)
        and (wallet_address is None or e.wallet_address == wallet_address)
    ]


def sort_events(
    events: List[StoredEvent], sort_by: str = "timestamp", order: SortOrder = SortOrder.DESC
) -> List[StoredEvent]:
    attribute = to_snake(sort_by)
    if attribute not in SORTABLE_FIELDS:
        attribute = "timestamp"

    def key(event: StoredEvent):
        value = _value(getattr(event, attribute))
        # Missing values sort before present ones
        return (value is not None, value if value is not None else 0)

    return sorted(events, key=key, reverse=order is SortOrder.DESC)


def paginate(events: Sequence[StoredEvent], page: int, limit: int) -> Dict[str, Any]:
    start = (page - 1) * limit
    total = len(events)
    return {
        "events": [e.to_payload() for e in events[start:start + limit]],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }
