from __future__ import annotations

import logging
import secrets
import threading
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from web3funnel.constants import SESSION_TIMEOUT
from web3funnel.errors import DuplicateWebsiteError
from web3funnel.events.models import utc_now

from .models import Session, SessionStatus, StoredEvent, Website

LOG = logging.getLogger(__name__)


def generate_api_key() -> str:
    return secrets.token_hex(32)


class MemoryStore:
    """
    In-process storage for websites, events and sessions.

    All reads and writes go through one re-entrant lock, so request handlers
    running in the threadpool observe whole batches or nothing.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._websites: Dict[str, Website] = {}
        self._events: List[StoredEvent] = []
        self._sessions: Dict[str, Session] = {}

    # Websites

    def add_website(self, website: Website) -> Website:
        with self._lock:
            if self.find_website_by_domain(website.domain) is not None:
                raise DuplicateWebsiteError(website.domain)
            self._websites[website.website_id] = website
            LOG.info("Registered website %s (%s)", website.website_id, website.domain)
            return website

    def get_website(self, website_id: str) -> Optional[Website]:
        with self._lock:
            return self._websites.get(website_id)

    def find_website_by_domain(self, domain: str) -> Optional[Website]:
        with self._lock:
            return next(
                (w for w in self._websites.values() if w.domain == domain), None
            )

    def find_website_by_api_key(self, api_key: str) -> Optional[Website]:
        with self._lock:
            return next(
                (
                    w
                    for w in self._websites.values()
                    if secrets.compare_digest(w.api_key, api_key)
                ),
                None,
            )

    def update_website(self, website_id: str, changes: Dict[str, Any]) -> Website:
        with self._lock:
            website = self._websites[website_id]
            updated = website.model_copy(update={**changes, "updated_at": utc_now()})
            self._websites[website_id] = updated
            return updated

    def regenerate_api_key(self, website_id: str) -> Website:
        return self.update_website(website_id, {"api_key": generate_api_key()})

    def record_website_activity(self, website_id: str, event_count: int) -> None:
        with self._lock:
            website = self._websites[website_id]
            website.stats.total_events += event_count
            website.stats.last_event_at = utc_now()
            website.stats.unique_users = len(
                {e.user_id for e in self._events if e.website_id == website_id}
            )

    # Events

    def insert_events(self, events: Sequence[StoredEvent]) -> None:
        with self._lock:
            self._events.extend(events)

    def events_for(
        self,
        website_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[StoredEvent]:
        with self._lock:
            return [
                e
                for e in self._events
                if e.website_id == website_id
                and (start is None or e.timestamp >= start)
                and (end is None or e.timestamp <= end)
            ]

    # Sessions

    def get_session(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def roll_up_session(self, event: StoredEvent) -> Session:
        """
        Create the session on first sight and update its engagement counters.
        An ended session that receives a new event becomes active again.
        """
        with self._lock:
            session = self._sessions.get(event.session_id)
            if session is None:
                session = Session(
                    session_id=event.session_id,
                    website_id=event.website_id,
                    user_id=event.user_id,
                    start_time=event.timestamp,
                )
                self._sessions[event.session_id] = session
            elif session.status is not SessionStatus.ACTIVE:
                session.status = SessionStatus.ACTIVE
                session.end_time = None
            session.update_engagement(event)
            return session

    def end_idle_sessions(self, website_id: str, now: Optional[datetime] = None,
                          timeout: float = SESSION_TIMEOUT) -> List[Session]:
        """
        End active sessions of ``website_id`` with no activity for ``timeout`` seconds.
        The end time is the last activity, not ``now``.
        """
        cutoff = (now or utc_now()) - timedelta(seconds=timeout)
        ended = []
        with self._lock:
            for session in self._sessions.values():
                if (session.website_id == website_id
                        and session.status is SessionStatus.ACTIVE
                        and session.last_activity <= cutoff):
                    session.end(at=session.last_activity)
                    ended.append(session)
        if ended:
            LOG.debug("Ended %s idle sessions for website %s", len(ended), website_id)
        return ended
