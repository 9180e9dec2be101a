"""
The ingest and analytics backend.
"""

import logging
from typing import Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from web3funnel.errors import ApiError, RateLimitExceededError, RequestValidationFailedError
from web3funnel.meta import get_version

from .ingest import describe_errors
from .rate_limit import API_RATE_LIMIT, EVENT_RATE_LIMIT, SlidingWindowLimiter
from .routes import events, websites
from .storage import MemoryStore

LOG = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = {"Retry-After": str(exc.retry_after)}

    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(exc.to_content()),
        headers=headers,
    )


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Drop the leading "body" / "query" part of each location
    errors = [{**error, "loc": tuple(error.get("loc", ()))[1:]} for error in exc.errors()]
    failure = RequestValidationFailedError(describe_errors(errors))
    return await handle_api_error(request, failure)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    LOG.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"},
    )


def create_app(
    store: Optional[MemoryStore] = None,
    event_rate: Tuple[int, float] = EVENT_RATE_LIMIT,
    api_rate: Tuple[int, float] = API_RATE_LIMIT,
) -> FastAPI:
    """
    Build the backend application.

    Args:
        store: Storage shared by all requests, a fresh in-memory store by default.
        event_rate: ``(max_requests, window_seconds)`` for event ingest.
        api_rate: ``(max_requests, window_seconds)`` for the management API.
    """
    app = FastAPI(title="Web3 Funnel API", version=get_version() or "unknown")

    app.state.store = store if store is not None else MemoryStore()
    app.state.event_limiter = SlidingWindowLimiter(*event_rate)
    app.state.api_limiter = SlidingWindowLimiter(*api_rate)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ApiError, handle_api_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(events.router, prefix=API_PREFIX)
    app.include_router(websites.router, prefix=API_PREFIX)

    @app.get("/", response_class=PlainTextResponse)
    def root():
        return "Web3 Funnel Backend is running!"

    @app.get("/health")
    def health():
        return {"ok": True, "service": "web3funnel-api", "version": get_version() or "unknown"}

    return app
