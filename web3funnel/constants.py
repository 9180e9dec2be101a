# -*- coding: utf-8 -*-
import configparser
import os
from enum import Enum
from pathlib import Path
from typing import Optional

from web3funnel.meta import get_version

DIR_NAME = ".web3funnel"


def get_user_dir() -> Path:
    """
    Get the user directory for the web3funnel configuration.

    Returns:
        Path: The user directory path.
    """
    path = Path("~", DIR_NAME).expanduser()
    return path


USER_CONFIG_DIR = get_user_dir()

CONFIG_FILE_NAME = "config.ini"
CONFIG_FILE_USER = USER_CONFIG_DIR / CONFIG_FILE_NAME


def get_config_path() -> Path:
    raw_path = os.getenv("WEB3FUNNEL_CONFIG_PATH")
    return Path(raw_path).expanduser() if raw_path else CONFIG_FILE_USER


class URLSettings(Enum):
    API_BASE_URL = "http://localhost:3000/api/v1"


def get_config_setting(name: str, default=None) -> Optional[str]:
    """
    Get a configuration setting.

    The environment variable ``WEB3FUNNEL_<NAME>`` wins over the ``[settings]``
    section of the config file, which wins over the built-in default.

    Args:
        name (str): The name of the setting to retrieve.
        default: Fallback value when the setting is defined nowhere.

    Returns:
        Optional[str]: The value of the setting if found, otherwise the default.
    """
    if name in [setting.name for setting in URLSettings]:
        default = URLSettings[name].value

    if value := os.getenv(f"WEB3FUNNEL_{name}"):
        return value

    config = configparser.ConfigParser()
    config.read(get_config_path())

    if "settings" in config.sections() and name in config["settings"]:
        value = config["settings"][name]
        if value:
            return value

    return default


API_BASE_URL = get_config_setting("API_BASE_URL")

EVENTS_TRACK_PATH = "/events/track"
EVENTS_TRACK_BATCH_PATH = "/events/track/batch"

# Fetch the REQUEST_TIMEOUT from the environment variable, defaulting to 30 if not set
REQUEST_TIMEOUT = int(os.getenv("WEB3FUNNEL_REQUEST_TIMEOUT", 30))

# Client batching
BATCH_SIZE = 10
BATCH_TIMEOUT = 5.0  # seconds
RETRY_ATTEMPTS = 3
RETRY_DELAY = 1.0  # seconds, multiplied by the current retry count
CONNECT_ATTEMPTS = 2
SESSION_TIMEOUT = 30 * 60  # seconds

# Ingest limits
MAX_BATCH_EVENTS = 100
MAX_USER_AGENT_LENGTH = 500
ELEMENT_TEXT_LIMIT = 100

API_KEY_HEADER = "X-API-Key"
EMBED_MARKER_ATTRIBUTE = "data-web3-funnel"

# Server defaults
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000

# Exit codes
EXIT_CODE_OK = 0
EXIT_CODE_FAILURE = 1
EXIT_CODE_UNDELIVERED_EVENTS = 64
EXIT_CODE_INVALID_EVENT_FILE = 65

CLI_VERSION = get_version()
CLI_MAIN_INTRODUCTION = (
    "web3funnel - Web3 funnel analytics collector\n\n"
    "Run the ingest and analytics backend, replay captured events, and "
    "generate the embed snippet for your website.\n"
)
DEFAULT_EPILOG = f"\nweb3funnel version: {CLI_VERSION}\n"
