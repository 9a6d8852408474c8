"""Session store contract.

Values are opaque bytes. Keys are plain strings chosen by callers.

ASCII-only.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class SessionStore(Protocol):
    """Key-value persistence for per-session data."""

    def get(self, key: str) -> bytes | None:
        """Return the stored value, or None when absent or expired."""
        ...

    def set(self, key: str, value: bytes, ttl: int | None = None) -> None:
        """Store value, replacing any previous one. ttl is in seconds."""
        ...

    def add(self, key: str, value: bytes, ttl: int | None = None) -> bool:
        """Store value only if key is absent. Returns True when stored.

        Must be atomic with respect to concurrent add() calls on the same key.
        """
        ...

    def delete(self, key: str) -> None:
        """Remove key; missing keys are ignored."""
        ...
