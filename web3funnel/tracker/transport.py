from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from web3funnel.constants import (
    API_KEY_HEADER,
    CONNECT_ATTEMPTS,
    EVENTS_TRACK_BATCH_PATH,
    EVENTS_TRACK_PATH,
    REQUEST_TIMEOUT,
)
from web3funnel.errors import TransportError
from web3funnel.events import EventRecord
from web3funnel.meta import get_meta_http_headers

LOG = logging.getLogger(__name__)

# Errors raised before the request reached the server
CONNECT_EXCEPTIONS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
)


class Transport:
    """
    Async HTTP adapter to the ingest API.

    Every method either returns the decoded response body or raises
    ``TransportError``; a batch is accepted or rejected as a whole.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = float(REQUEST_TIMEOUT),
        connect_attempts: int = CONNECT_ATTEMPTS,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.connect_attempts = connect_attempts

        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            API_KEY_HEADER: self.api_key,
        }
        headers.update(get_meta_http_headers())
        return headers

    async def submit_one(self, record: EventRecord) -> Dict[str, Any]:
        return await self._post(EVENTS_TRACK_PATH, record.to_payload())

    async def submit_batch(self, records: Sequence[EventRecord]) -> Dict[str, Any]:
        payload = {"events": [record.to_payload() for record in records]}
        return await self._post(EVENTS_TRACK_BATCH_PATH, payload)

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"

        try:
            async for attempt in AsyncRetrying(
                reraise=True,
                stop=stop_after_attempt(self.connect_attempts),
                wait=wait_exponential(multiplier=0.1, min=0.1, max=1.0),
                retry=retry_if_exception_type(CONNECT_EXCEPTIONS),
                before_sleep=before_sleep_log(LOG, logging.WARNING),
            ):
                with attempt:
                    response = await self.client.post(
                        url, json=payload, headers=self._headers(), timeout=self.timeout
                    )
        except httpx.HTTPError as e:
            LOG.debug("Request to %s failed: %s", url, e)
            raise TransportError(f"{e.__class__.__name__}: {e}") from e

        if not response.is_success:
            raise TransportError(
                extract_detail(response) or response.reason_phrase,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            return {}

    async def aclose(self) -> None:
        # Injected clients belong to the caller
        if self._owns_client:
            await self.client.aclose()


def extract_detail(response: httpx.Response) -> Optional[str]:
    """
    Extract the error message from an ingest API error envelope.

    Args:
        response: The HTTP response to extract detail from

    Returns:
        The ``message`` (and ``error``) fields, or None if there are none
    """
    try:
        data = response.json()
    except ValueError:
        return None

    if not isinstance(data, dict) or not data.get("message"):
        return None

    message = str(data["message"])
    if data.get("error"):
        message = f"{message} ({data['error']})"
    return message
