"""
Environment probe.

Turns snapshots of the page the tracker runs in into event payload fragments.
Every function is synchronous, keeps no state and never raises: missing data
degrades to empty values or "Unknown".
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, NamedTuple, Optional, Pattern, Sequence
from urllib.parse import urlsplit

from web3funnel.constants import ELEMENT_TEXT_LIMIT
from web3funnel.events import DeviceInfo, ElementInfo, PageInfo, PerformanceMetrics

UNKNOWN = "Unknown"
DEFAULT_DEVICE_TYPE = "desktop"
FIRST_CONTENTFUL_PAINT = "first-contentful-paint"


@dataclass
class NavigationTiming:
    """Milliseconds since the epoch, as exposed by the navigation timing API."""

    navigation_start: float
    dom_content_loaded_event_end: float = 0.0
    load_event_end: float = 0.0


@dataclass
class PaintEntry:
    name: str
    start_time: float


@dataclass
class BrowserEnvironment:
    url: str = ""
    title: str = ""
    user_agent: str = ""
    timing: Optional[NavigationTiming] = None
    paint_entries: List[PaintEntry] = field(default_factory=list)


@dataclass
class ElementSnapshot:
    id: str = ""
    class_name: str = ""
    tag_name: str = ""
    text_content: str = ""


class BrowserPattern(NamedTuple):
    token: str
    name: str
    version: Pattern[str]


class SystemPattern(NamedTuple):
    token: str
    os: str
    device_type: str


# Evaluated top to bottom, first token found in the user agent wins.
BROWSER_PATTERNS: Sequence[BrowserPattern] = (
    BrowserPattern("Chrome", "Chrome", re.compile(r"Chrome/(\d+)")),
    BrowserPattern("Firefox", "Firefox", re.compile(r"Firefox/(\d+)")),
    BrowserPattern("Safari", "Safari", re.compile(r"Version/(\d+)")),
    BrowserPattern("Edge", "Edge", re.compile(r"Edge/(\d+)")),
)

SYSTEM_PATTERNS: Sequence[SystemPattern] = (
    SystemPattern("Windows", "Windows", "desktop"),
    SystemPattern("Mac", "macOS", "desktop"),
    SystemPattern("Linux", "Linux", "desktop"),
    SystemPattern("Android", "Android", "mobile"),
    SystemPattern("iOS", "iOS", "mobile"),
)


def page_info(environment: Optional[BrowserEnvironment]) -> PageInfo:
    if environment is None:
        return PageInfo(url="", title="", path="")

    try:
        path = urlsplit(environment.url).path
    except ValueError:
        path = ""

    return PageInfo(url=environment.url, title=environment.title, path=path)


def _first_match(user_agent: str, patterns: Iterable[Any]) -> Optional[Any]:
    for pattern in patterns:
        if pattern.token in user_agent:
            return pattern
    return None


def device_info(
    user_agent: Optional[str],
    browsers: Sequence[BrowserPattern] = BROWSER_PATTERNS,
    systems: Sequence[SystemPattern] = SYSTEM_PATTERNS,
) -> DeviceInfo:
    """
    Approximate browser and operating system from a user agent string.

    Args:
        user_agent: The raw user agent, may be empty.
        browsers: Ordered browser table.
        systems: Ordered operating system table.

    Returns:
        DeviceInfo: "Unknown" values and a desktop device when nothing matches.
    """
    user_agent = user_agent or ""
    info = DeviceInfo(
        browser=UNKNOWN,
        browser_version=UNKNOWN,
        os=UNKNOWN,
        device_type=DEFAULT_DEVICE_TYPE,
    )

    browser = _first_match(user_agent, browsers)
    if browser is not None:
        info.browser = browser.name
        match = browser.version.search(user_agent)
        if match:
            info.browser_version = match.group(1)

    system = _first_match(user_agent, systems)
    if system is not None:
        info.os = system.os
        info.device_type = system.device_type

    return info


def performance_metrics(
    timing: Optional[NavigationTiming],
    paint_entries: Iterable[PaintEntry] = (),
) -> PerformanceMetrics:
    if timing is None:
        return PerformanceMetrics()

    first_contentful_paint = next(
        (
            entry.start_time
            for entry in paint_entries
            if entry.name == FIRST_CONTENTFUL_PAINT
        ),
        0,
    )

    return PerformanceMetrics(
        load_time=timing.load_event_end - timing.navigation_start,
        dom_content_loaded=timing.dom_content_loaded_event_end - timing.navigation_start,
        first_contentful_paint=first_contentful_paint,
    )


def element_info(element: Any) -> ElementInfo:
    """
    Describe the UI element that triggered an event.

    Any object exposing ``id``, ``class_name``, ``tag_name`` and
    ``text_content`` attributes works; missing attributes become "".
    """
    if element is None:
        return ElementInfo()

    text = getattr(element, "text_content", None) or ""

    return ElementInfo(
        id=str(getattr(element, "id", None) or ""),
        class_name=str(getattr(element, "class_name", None) or ""),
        tag_name=str(getattr(element, "tag_name", None) or ""),
        text=str(text)[:ELEMENT_TEXT_LIMIT],
    )
