from . import events, websites

__all__ = ["events", "websites"]
