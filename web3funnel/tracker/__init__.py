from .callbacks import CountingTrackerCallbacks, NullTrackerCallbacks, TrackerCallbacks
from .config import TrackerConfig
from .embed import EmbedConfig, auto_init, find_embed_config, render_snippet
from .main import Tracker
from .probe import (
    BrowserEnvironment,
    ElementSnapshot,
    NavigationTiming,
    PaintEntry,
)
from .queue import EventQueue
from .transport import Transport

__all__ = [
    "BrowserEnvironment",
    "CountingTrackerCallbacks",
    "ElementSnapshot",
    "EmbedConfig",
    "EventQueue",
    "NavigationTiming",
    "NullTrackerCallbacks",
    "PaintEntry",
    "Tracker",
    "TrackerCallbacks",
    "TrackerConfig",
    "Transport",
    "auto_init",
    "find_embed_config",
    "render_snippet",
]
