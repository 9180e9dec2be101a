import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from web3funnel.errors import ApiError

LOG = logging.getLogger(__name__)


def success(data: Any = None, message: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    """
    The ``{"success": true, ...}`` envelope every endpoint answers with.
    """
    content: Dict[str, Any] = {"success": True}
    if message is not None:
        content["message"] = message
    if data is not None:
        content["data"] = data
    content.update(extra)
    return content


@contextmanager
def failure_message(message: str) -> Iterator[None]:
    """
    Report unexpected errors in the block as a 500 ``ApiError`` carrying
    ``message``. API errors pass through untouched.
    """
    try:
        yield
    except ApiError:
        raise
    except Exception as e:
        LOG.exception(message)
        raise ApiError(message, error=str(e)) from e
