"""Session store backends."""

from .file import FileSessionStore
from .memory import MemorySessionStore
from .service import create_session_store
from .types import SessionStore

__all__ = [
    "FileSessionStore",
    "MemorySessionStore",
    "SessionStore",
    "create_session_store",
]
