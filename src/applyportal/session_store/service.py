"""Session store selection from configuration.

ASCII-only.
"""

from __future__ import annotations

from applyportal.core.config import ConfigResolver
from applyportal.core.errors import ConfigError
from applyportal.core.logging import get_logger

from .file import FileSessionStore
from .memory import MemorySessionStore
from .types import SessionStore

log = get_logger(__name__)


def create_session_store(resolver: ConfigResolver) -> SessionStore:
    """Build the backend named by session.storage_type."""
    storage_type = resolver.resolve_enum("session.storage_type")
    ttl = resolver.resolve_int("session.ttl_seconds", 1200)

    if storage_type == "memory":
        log.info("Using in-memory sessions.")
        return MemorySessionStore(default_ttl=ttl)
    if storage_type == "file":
        file_dir = resolver.resolve_str("session.file_dir")
        if not file_dir:
            raise ConfigError("session.file_dir is required for file-backed sessions")
        log.warning("Using file-backed sessions. This is not recommended for production.")
        return FileSessionStore(file_dir, default_ttl=ttl)

    raise ConfigError(f"Unknown session storage type: {storage_type}")
