"""
Request and persisted models for the ingest and analytics API.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from urllib.parse import urlsplit

from pydantic import Field, StringConstraints, field_validator
from typing_extensions import Annotated

from web3funnel.constants import MAX_USER_AGENT_LENGTH
from web3funnel.events import EventRecord, EventType, PageInfo, TransactionInfo, WireModel
from web3funnel.events.models import utc_now

WALLET_ADDRESS_PATTERN = r"^0x[a-fA-F0-9]{40}$"
TRANSACTION_HASH_PATTERN = r"^0x[a-fA-F0-9]{64}$"
DOMAIN_PATTERN = r"^[a-zA-Z0-9][a-zA-Z0-9-]{1,61}[a-zA-Z0-9]\.[a-zA-Z]{2,}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


# Events


class ValidatedPage(PageInfo):
    @field_validator("url")
    @classmethod
    def check_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError("Invalid page URL")
        return value


class ValidatedTransaction(TransactionInfo):
    hash: Optional[str] = Field(default=None, pattern=TRANSACTION_HASH_PATTERN)


class TrackEventRequest(EventRecord):
    """
    An Event Record as accepted by the ingest endpoints.
    """

    user_id: str = Field(min_length=1)
    session_id: str = Field(min_length=1)
    wallet_address: Optional[str] = Field(default=None, pattern=WALLET_ADDRESS_PATTERN)
    page: Optional[ValidatedPage] = None
    transaction: Optional[ValidatedTransaction] = None

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, value: datetime) -> datetime:
        return as_utc(value)


class StoredEvent(EventRecord):
    event_id: str = Field(default_factory=new_id)
    website_id: str
    user_agent: Optional[str] = Field(default=None, max_length=MAX_USER_AGENT_LENGTH)
    created_at: datetime = Field(default_factory=utc_now)


# Sessions


class SessionStatus(str, Enum):
    ACTIVE = "active"
    ENDED = "ended"
    ABANDONED = "abandoned"


class SessionEngagement(WireModel):
    total_clicks: int = 0
    total_transactions: int = 0
    wallet_connections: int = 0
    time_on_site: int = 0


class SessionEventRef(WireModel):
    event_id: str
    event_type: EventType
    timestamp: datetime


class Session(WireModel):
    session_id: str
    website_id: str
    user_id: str
    start_time: datetime = Field(default_factory=utc_now)
    end_time: Optional[datetime] = None
    duration: int = 0
    status: SessionStatus = SessionStatus.ACTIVE
    wallet_address: Optional[str] = None
    wallet_type: Optional[str] = None
    events: List[SessionEventRef] = Field(default_factory=list)
    engagement: SessionEngagement = Field(default_factory=SessionEngagement)

    def update_engagement(self, event: StoredEvent) -> None:
        self.events.append(
            SessionEventRef(
                event_id=event.event_id,
                event_type=event.event_type,
                timestamp=event.timestamp,
            )
        )

        if event.event_type is EventType.BUTTON_CLICK:
            self.engagement.total_clicks += 1
        elif event.event_type is EventType.TRANSACTION_COMPLETE:
            self.engagement.total_transactions += 1
        elif event.event_type is EventType.WALLET_CONNECT:
            self.engagement.wallet_connections += 1
            self.wallet_address = event.wallet_address
            self.wallet_type = event.wallet_type.value if event.wallet_type else None

        last_seen = as_utc(event.timestamp)
        self.engagement.time_on_site = max(
            self.engagement.time_on_site,
            int((last_seen - as_utc(self.start_time)).total_seconds()),
        )

    @property
    def last_activity(self) -> datetime:
        if self.events:
            return as_utc(self.events[-1].timestamp)
        return as_utc(self.start_time)

    def end(self, at: Optional[datetime] = None) -> None:
        self.end_time = as_utc(at) if at else utc_now()
        self.duration = int((self.end_time - as_utc(self.start_time)).total_seconds())
        self.status = SessionStatus.ENDED


# Websites


Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
Domain = Annotated[str, StringConstraints(strip_whitespace=True, pattern=DOMAIN_PATTERN)]
Description = Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)]


class WebsiteStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class Owner(WireModel):
    name: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=100)]] = None
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN)
    wallet_address: Optional[str] = Field(default=None, pattern=WALLET_ADDRESS_PATTERN)


class TrackEventsSettings(WireModel):
    wallet_connections: bool = True
    transactions: bool = True
    page_views: bool = True
    clicks: bool = True
    custom_events: bool = True


class PrivacySettings(WireModel):
    anonymize_ips: bool = Field(default=False, alias="anonymizeIPs")
    respect_dnt: bool = Field(default=True, alias="respectDNT")
    cookie_consent: bool = True


class CustomTracking(WireModel):
    funnel_steps: List[str] = Field(default_factory=list)
    conversion_goals: List[str] = Field(default_factory=list)
    excluded_paths: List[str] = Field(default_factory=list)


class WebsiteSettings(WireModel):
    tracking_enabled: bool = True
    track_events: TrackEventsSettings = Field(default_factory=TrackEventsSettings)
    privacy: PrivacySettings = Field(default_factory=PrivacySettings)
    custom_tracking: CustomTracking = Field(default_factory=CustomTracking)


class WebsiteStats(WireModel):
    total_events: int = 0
    unique_users: int = 0
    last_event_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)


class Website(WireModel):
    website_id: str = Field(default_factory=new_id)
    name: str
    domain: str
    description: Optional[str] = None
    owner: Optional[Owner] = None
    api_key: str
    settings: WebsiteSettings = Field(default_factory=WebsiteSettings)
    status: WebsiteStatus = WebsiteStatus.ACTIVE
    stats: WebsiteStats = Field(default_factory=WebsiteStats)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class WebsiteCreate(WireModel):
    name: Name
    domain: Domain
    description: Optional[Description] = None
    owner: Optional[Owner] = None
    settings: Optional[WebsiteSettings] = None


class WebsiteUpdate(WireModel):
    name: Optional[Name] = None
    description: Optional[Description] = None
    owner: Optional[Owner] = None
    settings: Optional[WebsiteSettings] = None
    status: Optional[WebsiteStatus] = None
