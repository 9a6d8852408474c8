"""In-process session store.

Suitable for tests and single-process deployments. Expiry uses a monotonic
clock. Reads evict their own key; writes sweep every expired key at most
once per sweep_interval seconds.

ASCII-only.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

DEFAULT_SWEEP_INTERVAL = 60.0


class MemorySessionStore:
    """Thread-safe dict-backed SessionStore."""

    def __init__(
        self,
        *,
        default_ttl: int | None = None,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
    ) -> None:
        self._default_ttl = default_ttl
        self._clock = clock
        self._sweep_interval = float(sweep_interval)
        self._lock = threading.Lock()
        self._data: dict[str, tuple[bytes, float | None]] = {}
        self._last_sweep = clock()

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._get_locked(key)

    def set(self, key: str, value: bytes, ttl: int | None = None) -> None:
        with self._lock:
            self._maybe_sweep_locked()
            self._data[key] = (bytes(value), self._expires_at(ttl))

    def add(self, key: str, value: bytes, ttl: int | None = None) -> bool:
        with self._lock:
            self._maybe_sweep_locked()
            if self._get_locked(key) is not None:
                return False
            self._data[key] = (bytes(value), self._expires_at(ttl))
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        """Return live keys (test/debug helper)."""
        with self._lock:
            return sorted(k for k in list(self._data) if self._get_locked(k) is not None)

    def sweep(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        with self._lock:
            return self._sweep_locked()

    def size(self) -> int:
        """Raw entry count, including entries not yet swept."""
        with self._lock:
            return len(self._data)

    def _maybe_sweep_locked(self) -> None:
        if self._clock() - self._last_sweep >= self._sweep_interval:
            self._sweep_locked()

    def _sweep_locked(self) -> int:
        now = self._clock()
        self._last_sweep = now
        dead = [k for k, (_v, exp) in self._data.items() if exp is not None and now >= exp]
        for k in dead:
            del self._data[k]
        return len(dead)

    def _get_locked(self, key: str) -> bytes | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    def _expires_at(self, ttl: int | None) -> float | None:
        eff = ttl if ttl is not None else self._default_ttl
        if eff is None:
            return None
        return self._clock() + int(eff)
