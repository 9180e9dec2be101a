"""
In-memory sliding window rate limiting.

Two limiters hang off ``app.state``: one for event ingest, one for the
management API. Requests are keyed by API key, or by client host when the
request carries none.
"""

import logging
import math
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

from fastapi import Depends, Request, Response

from web3funnel.constants import API_KEY_HEADER
from web3funnel.errors import RateLimitExceededError

from .auth import require_website
from .models import Website

LOG = logging.getLogger(__name__)

EVENT_RATE_LIMIT = (1000, 60)
API_RATE_LIMIT = (100, 15 * 60)


class SlidingWindowLimiter:
    """
    Allows ``max_requests`` per key in any ``window_seconds`` long window.

    Keys whose hits have all left the window are dropped once per window, so
    memory follows the number of recently active clients.
    """

    def __init__(self, max_requests: int, window_seconds: float,
                 clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._hits)

    def hit(self, key: str) -> int:
        """
        Record one request for ``key``.

        Returns:
            int: Requests still allowed in the current window.

        Raises:
            RateLimitExceededError: When the window is already full.
        """
        now = self._clock()
        window_start = now - self.window_seconds

        with self._lock:
            if self._last_sweep <= window_start:
                self._sweep(window_start)
                self._last_sweep = now

            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= window_start:
                hits.popleft()

            if len(hits) >= self.max_requests:
                retry_after = math.ceil(hits[0] + self.window_seconds - now)
                LOG.warning("Rate limit exceeded for %s", key[:8])
                raise RateLimitExceededError(retry_after=max(retry_after, 1))

            hits.append(now)
            return self.max_requests - len(hits)

    def _sweep(self, window_start: float) -> None:
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for key in stale:
            del self._hits[key]

        if stale:
            LOG.debug("Evicted %s idle rate limit keys", len(stale))

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


def request_key(request: Request) -> str:
    api_key = request.headers.get(API_KEY_HEADER) or request.query_params.get("apiKey")
    if api_key:
        return f"key:{api_key}"
    host = request.client.host if request.client else "unknown"
    return f"host:{host}"


def _apply(limiter: SlidingWindowLimiter, request: Request, response: Response) -> None:
    remaining = limiter.hit(request_key(request))
    response.headers["X-RateLimit-Limit"] = str(limiter.max_requests)
    response.headers["X-RateLimit-Remaining"] = str(remaining)


def limit_event_tracking(
    request: Request,
    response: Response,
    website: Website = Depends(require_website),
) -> Website:
    _apply(request.app.state.event_limiter, request, response)
    return website


def limit_api(
    request: Request,
    response: Response,
    website: Website = Depends(require_website),
) -> Website:
    _apply(request.app.state.api_limiter, request, response)
    return website


def limit_anonymous_api(request: Request, response: Response) -> Optional[Website]:
    _apply(request.app.state.api_limiter, request, response)
    return None
