from .app import create_app
from .storage import MemoryStore

__all__ = ["MemoryStore", "create_app"]
