"""In-process fan-out of core log records.

The core logger publishes every emitted line here. Subscribers pick a
minimum level; the web layer keeps a bounded tail of recent records for
operators (see applyportal.web_interface.util.log_tail).

Diagnostics events do not go through this bus; they use the EventBus
(applyportal.core.events).
"""

from __future__ import annotations

import contextlib
import sys
import threading
import traceback
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

LEVEL_ORDER = ("DEBUG", "VERBOSE", "INFO", "WARNING", "ERROR")


def level_rank(level_name: str) -> int:
    """Position of level_name in LEVEL_ORDER; unknown names rank lowest."""
    try:
        return LEVEL_ORDER.index(level_name.upper())
    except ValueError:
        return 0


@dataclass(frozen=True)
class LogRecord:
    level_name: str
    plain: str
    logger_name: str
    message: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat(timespec="seconds"))


LogSubscriber = Callable[[LogRecord], None]


class LogBus:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subs: list[tuple[int, LogSubscriber]] = []

    def subscribe(self, cb: LogSubscriber, *, min_level: str = "DEBUG") -> Callable[[], None]:
        """Deliver records at min_level or above to cb.

        Returns a callable that removes this subscription.
        """
        entry = (level_rank(min_level), cb)
        with self._lock:
            self._subs.append(entry)

        def _unsubscribe() -> None:
            with self._lock, contextlib.suppress(ValueError):
                self._subs.remove(entry)

        return _unsubscribe

    def publish(self, record: LogRecord) -> None:
        rank = level_rank(record.level_name)
        with self._lock:
            targets = [cb for threshold, cb in self._subs if rank >= threshold]
        for cb in targets:
            try:
                cb(record)
            except Exception:
                # The core logger must not be used here; it publishes to this bus.
                with contextlib.suppress(Exception):
                    sys.stderr.write("log subscriber failed\n" + traceback.format_exc())

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subs)

    def clear(self) -> None:
        with self._lock:
            self._subs.clear()


_LOG_BUS = LogBus()


def get_log_bus() -> LogBus:
    return _LOG_BUS
