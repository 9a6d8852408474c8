"""Runtime diagnostics envelope + JSONL sink.

This module provides:
- A canonical envelope schema for diagnostic events.
- A fail-safe emit helper used by every component.
- A central JSONL sink that can be enabled/disabled via ConfigResolver.

The sink is registered once per process and self-filters when disabled.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from applyportal.core.config import ConfigError, ConfigResolver
from applyportal.core.events import get_event_bus
from applyportal.core.logging import get_logger

_logger = get_logger(__name__)


def iso_utc_now() -> str:
    # RFC3339 / ISO-8601 in UTC (Z suffix).
    return datetime.now(UTC).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_envelope(
    *,
    event: str,
    component: str,
    operation: str,
    data: dict[str, Any],
) -> dict[str, Any]:
    """Build the canonical diagnostics envelope.

    Schema:
        {
          "event": "<string>",
          "component": "<string>",
          "operation": "<string>",
          "timestamp": "<iso8601 utc>",
          "data": { ... }
        }
    """
    return {
        "event": event,
        "component": component,
        "operation": operation,
        "timestamp": iso_utc_now(),
        "data": data,
    }


def emit(event: str, *, component: str, operation: str, data: dict[str, Any]) -> None:
    """Publish a diagnostics envelope on the core event bus.

    Diagnostics must never break the caller.
    """
    try:
        env = build_envelope(event=event, component=component, operation=operation, data=data)
        get_event_bus().publish(event, env)
    except Exception:
        return


def is_diagnostics_enabled(resolver: ConfigResolver) -> bool:
    """Return whether diagnostics are enabled (key: diagnostics.enabled)."""
    try:
        return resolver.resolve_bool("diagnostics.enabled", False)
    except ConfigError:
        _logger.warning("Invalid diagnostics.enabled value; treating as disabled.")
        return False


def _is_envelope(obj: Any) -> bool:
    if not isinstance(obj, dict):
        return False

    required = {"event", "component", "operation", "timestamp", "data"}
    if set(obj.keys()) != required:
        return False

    if not all(
        isinstance(obj.get(k), str) for k in ("event", "component", "operation", "timestamp")
    ):
        return False

    data = obj.get("data")
    return isinstance(data, dict)


_SINK_INSTALLED = False


def install_jsonl_sink(*, resolver: ConfigResolver) -> None:
    """Install the JSONL diagnostics sink subscriber.

    This function is idempotent and registers exactly once per process.

    Sink path:
        <diagnostics.dir>/diagnostics.jsonl

    When diagnostics are disabled, the subscriber performs no file IO.
    """
    global _SINK_INSTALLED
    if _SINK_INSTALLED:
        return

    def _on_any_event(event: str, data: dict[str, Any]) -> None:
        if not is_diagnostics_enabled(resolver):
            return

        out_dir = resolver.resolve_str("diagnostics.dir")
        if not out_dir:
            _logger.warning("Missing diagnostics.dir; cannot write diagnostics JSONL.")
            return
        out_path = Path(out_dir) / "diagnostics.jsonl"

        payload: dict[str, Any]
        if _is_envelope(data):
            payload = data
        else:
            payload = build_envelope(
                event=event,
                component="unknown",
                operation="unknown",
                data=data,
            )

        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            line = json.dumps(
                payload,
                ensure_ascii=True,
                separators=(",", ":"),
                sort_keys=True,
                default=str,
            )
            with out_path.open("a", encoding="utf-8") as f:
                f.write(line)
                f.write("\n")
        except Exception as e:
            _logger.warning(f"Diagnostics sink write failed: {type(e).__name__}: {e}")

    get_event_bus().subscribe_all(_on_any_event)
    _SINK_INSTALLED = True
