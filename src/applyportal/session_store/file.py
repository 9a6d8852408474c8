"""File-backed session store.

One JSON envelope per key under a base directory:
    {"expires_at": <epoch seconds or null>, "value": "<base64>"}

All writes are atomic (temp + rename). add() links a fully written temp file
onto the target path, which fails when the target already exists.

Expired entries are never unlinked by path. They are first renamed to a
unique tombstone and re-read there, so a live entry written by another
process in the meantime is put back instead of lost.

ASCII-only.
"""

from __future__ import annotations

import base64
import contextlib
import json
import os
import time
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any

DEFAULT_SWEEP_INTERVAL = 300.0


class FileSessionStore:
    """SessionStore persisting each key as a file under base_dir."""

    def __init__(
        self,
        base_dir: Path | str,
        *,
        default_ttl: int | None = None,
        clock: Callable[[], float] = time.time,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
    ) -> None:
        self._base_dir = Path(base_dir)
        self._base_dir.mkdir(parents=True, exist_ok=True)
        self._default_ttl = default_ttl
        self._clock = clock
        self._sweep_interval = float(sweep_interval)
        self._last_sweep = clock()

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        value, expired = self._read(path)
        if expired:
            self._reap(path)
        return value

    def set(self, key: str, value: bytes, ttl: int | None = None) -> None:
        self._maybe_sweep()
        path = self._path(key)
        tmp = self._write_temp(path, value, ttl)
        os.replace(tmp, path)

    def add(self, key: str, value: bytes, ttl: int | None = None) -> bool:
        self._maybe_sweep()
        path = self._path(key)
        current, expired = self._read(path)
        if current is not None:
            return False
        # Expired entries do not block a new claim.
        if expired and not self._reap(path):
            return False
        tmp = self._write_temp(path, value, ttl)
        try:
            os.link(tmp, path)
            return True
        except FileExistsError:
            return False
        finally:
            with contextlib.suppress(FileNotFoundError):
                tmp.unlink()

    def delete(self, key: str) -> None:
        with contextlib.suppress(FileNotFoundError):
            self._path(key).unlink()

    def sweep(self) -> int:
        """Reap every expired entry. Returns the number removed."""
        self._last_sweep = self._clock()
        removed = 0
        for path in sorted(self._base_dir.glob("*.json")):
            _value, expired = self._read(path)
            if expired and self._reap(path):
                removed += 1
        return removed

    def _maybe_sweep(self) -> None:
        if self._clock() - self._last_sweep >= self._sweep_interval:
            self.sweep()

    def _read(self, path: Path) -> tuple[bytes | None, bool]:
        """Return (value, expired). value is None for absent, torn or expired files."""
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None, False
        try:
            obj = json.loads(raw.decode("utf-8"))
        except ValueError:
            # A torn or foreign file is treated as absent.
            return None, False
        if not isinstance(obj, dict):
            return None, False
        expires_at = obj.get("expires_at")
        if isinstance(expires_at, (int, float)) and self._clock() >= expires_at:
            return None, True
        value = obj.get("value")
        if not isinstance(value, str):
            return None, False
        return base64.b64decode(value.encode("ascii")), False

    def _reap(self, path: Path) -> bool:
        """Move an expired entry aside.

        Returns False when path turned out to hold a live entry, which is
        restored unless a newer entry already took its place.
        """
        tomb = path.with_name(f"{path.name}.{uuid.uuid4().hex}.dead")
        try:
            os.rename(path, tomb)
        except FileNotFoundError:
            return True
        try:
            value, _expired = self._read(tomb)
            if value is not None:
                with contextlib.suppress(FileExistsError):
                    os.link(tomb, path)
                return False
            return True
        finally:
            with contextlib.suppress(FileNotFoundError):
                tomb.unlink()

    def _write_temp(self, path: Path, value: bytes, ttl: int | None) -> Path:
        envelope: dict[str, Any] = {
            "expires_at": self._expires_at(ttl),
            "value": base64.b64encode(bytes(value)).decode("ascii"),
        }
        data = json.dumps(envelope, ensure_ascii=True, separators=(",", ":"), sort_keys=True)
        tmp = path.with_name(f"{path.name}.{uuid.uuid4().hex}.tmp")
        tmp.write_bytes(data.encode("utf-8"))
        return tmp

    def _expires_at(self, ttl: int | None) -> float | None:
        eff = ttl if ttl is not None else self._default_ttl
        if eff is None:
            return None
        return self._clock() + int(eff)

    def _path(self, key: str) -> Path:
        safe = "".join(ch if (ch.isalnum() or ch in "_-.") else "_" for ch in key)
        if not safe or safe.startswith("."):
            safe = f"k{safe}"
        return self._base_dir / f"{safe}.json"
