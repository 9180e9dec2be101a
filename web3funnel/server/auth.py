from typing import Optional

from fastapi import Depends, Header, Query, Request

from web3funnel.constants import API_KEY_HEADER
from web3funnel.errors import InvalidApiKeyError

from .models import Website, WebsiteStatus
from .storage import MemoryStore


def get_store(request: Request) -> MemoryStore:
    return request.app.state.store


def require_website(
    header_key: Optional[str] = Header(default=None, alias=API_KEY_HEADER),
    query_key: Optional[str] = Query(default=None, alias="apiKey"),
    store: MemoryStore = Depends(get_store),
) -> Website:
    """
    Resolve the active website owning the API key sent in the ``X-API-Key``
    header or the ``apiKey`` query parameter.
    """
    api_key = header_key or query_key
    if not api_key:
        raise InvalidApiKeyError("API key is required")

    website = store.find_website_by_api_key(api_key)
    if website is None or website.status != WebsiteStatus.ACTIVE:
        raise InvalidApiKeyError()

    return website
