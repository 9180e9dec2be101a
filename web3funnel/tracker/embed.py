"""
Auto-initialization from the embed marker script.

A page opts in with::

    <script data-web3-funnel data-website-id="..." data-api-key="..." src="..."></script>
"""

from __future__ import annotations

import html
import logging
from html.parser import HTMLParser
from typing import Any, List, NamedTuple, Optional, Tuple

from web3funnel.constants import EMBED_MARKER_ATTRIBUTE

from .main import Tracker

LOG = logging.getLogger(__name__)

WEBSITE_ID_ATTRIBUTE = "data-website-id"
API_KEY_ATTRIBUTE = "data-api-key"
DEFAULT_WIDGET_SRC = "/widget.js"


class EmbedConfig(NamedTuple):
    website_id: str
    api_key: str


class _MarkerScriptParser(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.config: Optional[EmbedConfig] = None

    def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        if self.config is not None or tag != "script":
            return

        attributes = dict(attrs)
        if EMBED_MARKER_ATTRIBUTE not in attributes:
            return

        website_id = attributes.get(WEBSITE_ID_ATTRIBUTE)
        api_key = attributes.get(API_KEY_ATTRIBUTE)

        if website_id and api_key:
            self.config = EmbedConfig(website_id=website_id, api_key=api_key)
        else:
            LOG.debug("Marker script found without website id or API key, skipped")


def find_embed_config(document: str) -> Optional[EmbedConfig]:
    """
    Find the first marker script carrying both a website id and an API key.

    Args:
        document: The HTML of the page.

    Returns:
        The embed configuration, or None when the page does not opt in.
    """
    parser = _MarkerScriptParser()
    parser.feed(document)
    parser.close()
    return parser.config


def auto_init(document: str, **tracker_kwargs: Any) -> Optional[Tracker]:
    """
    Build and initialize a tracker for a page that carries the marker script.
    Call once the document is loaded, from a running event loop.
    """
    config = find_embed_config(document)
    if config is None:
        return None

    tracker = Tracker(config.website_id, config.api_key, **tracker_kwargs)
    tracker.init()
    return tracker


def render_snippet(website_id: str, api_key: str, src: str = DEFAULT_WIDGET_SRC) -> str:
    return (
        f'<script {EMBED_MARKER_ATTRIBUTE} '
        f'{WEBSITE_ID_ATTRIBUTE}="{html.escape(website_id)}" '
        f'{API_KEY_ATTRIBUTE}="{html.escape(api_key)}" '
        f'src="{html.escape(src)}"></script>'
    )
