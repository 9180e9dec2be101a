from importlib.metadata import PackageNotFoundError, version
import logging
import os
import platform
from typing import Dict, Optional


LOG = logging.getLogger(__name__)

CLIENT_ID_HEADER = "Web3funnel-Client-Id"
DEFAULT_CLIENT_ID = "web3funnel-python"


def get_version() -> Optional[str]:
    """
    Installed version of the web3funnel distribution, None when not installed.
    """
    try:
        return version("web3funnel")
    except PackageNotFoundError:
        LOG.debug("web3funnel is not installed, version unknown")
        return None


def get_identifier() -> str:
    """
    Name of the client sending events, overridable with WEB3FUNNEL_SOURCE_TYPE.
    """
    return os.environ.get("WEB3FUNNEL_SOURCE_TYPE") or DEFAULT_CLIENT_ID


def get_user_agent() -> str:
    # web3funnel/{version} (Python/{python_version}; {os})
    return "web3funnel/{} (Python/{}; {})".format(
        get_version() or "unknown",
        platform.python_version(),
        platform.system() or "unknown",
    )


def get_meta_http_headers() -> Dict[str, str]:
    return {
        "User-Agent": get_user_agent(),
        CLIENT_ID_HEADER: get_identifier(),
    }
