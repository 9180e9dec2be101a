"""
Wire models for the Event Record and its optional sub-records.

Python attributes are snake_case; the JSON representation uses the camelCase
names the ingest API expects. These models only check types, format rules are
enforced at ingest time.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .types import EventType, TransactionStatus, WalletType


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WireModel(BaseModel):
    """
    Base model for everything that travels between the tracker and the API.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_payload(self, **kwargs: Any) -> Dict[str, Any]:
        """
        JSON-ready dictionary with camelCase keys and unset fields left out.
        Extra keyword arguments go to ``model_dump``, e.g. ``include``.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=True, **kwargs)


class PageInfo(WireModel):
    url: Optional[str] = None
    title: Optional[str] = None
    path: Optional[str] = None


class ElementInfo(WireModel):
    id: Optional[str] = None
    class_name: Optional[str] = None
    tag_name: Optional[str] = None
    text: Optional[str] = None


class TransactionInfo(WireModel):
    hash: Optional[str] = None
    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None
    value: Optional[str] = None
    gas_used: Optional[str] = None
    gas_price: Optional[str] = None
    network: Optional[str] = None
    status: Optional[TransactionStatus] = None


class PerformanceMetrics(WireModel):
    load_time: Optional[float] = None
    dom_content_loaded: Optional[float] = None
    first_contentful_paint: Optional[float] = None


class DeviceInfo(WireModel):
    browser: Optional[str] = None
    browser_version: Optional[str] = None
    os: Optional[str] = None
    device_type: Optional[str] = None
    screen_resolution: Optional[str] = None


class LocationInfo(WireModel):
    country: Optional[str] = None
    city: Optional[str] = None
    ip: Optional[str] = None


class EventRecord(WireModel):
    """
    One captured interaction. ``timestamp`` is the capture time, not the
    time the record is sent.
    """

    event_type: EventType
    user_id: str
    session_id: str
    timestamp: datetime = Field(default_factory=utc_now)

    page: Optional[PageInfo] = None
    element: Optional[ElementInfo] = None
    transaction: Optional[TransactionInfo] = None
    wallet_address: Optional[str] = None
    wallet_type: Optional[WalletType] = None
    performance: Optional[PerformanceMetrics] = None
    device_info: Optional[DeviceInfo] = None
    custom_data: Optional[Dict[str, Any]] = None
    location: Optional[LocationInfo] = None
