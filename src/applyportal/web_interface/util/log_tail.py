"""Bounded tail of recent core log records for the operator endpoint.

ASCII-only.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Any

from applyportal.core.log_bus import LogBus, LogRecord, get_log_bus, level_rank

MAX_TAIL_SIZE = 5000


class LogTail:
    """Keeps the last `size` records published on a LogBus, each with an id."""

    def __init__(self, size: int = 500) -> None:
        self._size = max(1, min(int(size), MAX_TAIL_SIZE))
        self._lock = threading.Lock()
        self._records: deque[tuple[int, LogRecord]] = deque(maxlen=self._size)
        self._next_id = 1
        self._unsubscribe: Any = None

    @property
    def size(self) -> int:
        return self._size

    def attach(self, bus: LogBus | None = None) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = (bus or get_log_bus()).subscribe(self._on_record)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def snapshot(
        self, *, since_id: int = 0, limit: int = 200, min_level: str = "DEBUG"
    ) -> list[dict[str, Any]]:
        """Newest `limit` records with id > since_id at min_level or above, oldest first."""
        limit = max(1, min(int(limit), self._size))
        threshold = level_rank(min_level)
        with self._lock:
            items = [
                (rid, rec)
                for rid, rec in self._records
                if rid > since_id and level_rank(rec.level_name) >= threshold
            ]
        return [_to_dict(rid, rec) for rid, rec in items[-limit:]]

    def _on_record(self, record: LogRecord) -> None:
        with self._lock:
            self._records.append((self._next_id, record))
            self._next_id += 1


def _to_dict(record_id: int, record: LogRecord) -> dict[str, Any]:
    return {
        "id": record_id,
        "timestamp": record.timestamp,
        "level": record.level_name,
        "logger": record.logger_name,
        "message": record.message or record.plain,
    }
