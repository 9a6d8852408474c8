from __future__ import annotations

import time
import traceback
from collections.abc import Iterator
from contextlib import contextmanager, suppress
from typing import Any

from fastapi import Request

from applyportal.core.diagnostics import emit
from applyportal.core.logging import get_logger


def ascii_text(text: str) -> str:
    return (text or "").encode("ascii", "backslashreplace").decode("ascii")


def get_web_logger(request: Request) -> Any:
    injected = getattr(getattr(request, "app", None), "state", None)
    injected = getattr(injected, "web_logger", None)
    if injected is not None:
        return injected
    return get_logger("web_interface")


@contextmanager
def web_operation(
    request: Request,
    *,
    name: str,
    ctx: dict[str, Any] | None = None,
    component: str = "web_interface",
) -> Iterator[None]:
    """Emit diagnostics + core log records for a web internal operation.

    Wraps call boundaries inside route handlers (handler -> engine/service).
    Domain errors propagate unchanged.
    """
    if ctx is None:
        ctx = {}

    logger = get_web_logger(request)
    t0 = time.monotonic()

    emit("operation.start", component=component, operation=name, data=ctx)
    with suppress(Exception):
        logger.verbose(ascii_text(f"{name}: start {ctx}"))

    try:
        yield
    except Exception as e:
        dur_ms = int((time.monotonic() - t0) * 1000)
        fail_ctx = dict(ctx)
        fail_ctx.update(
            {
                "status": "failed",
                "duration_ms": dur_ms,
                "error_type": type(e).__name__,
                "error": str(e),
            }
        )
        if int(getattr(request.app.state, "verbosity", 1)) >= 3:
            fail_ctx["traceback"] = traceback.format_exc()
        emit("operation.end", component=component, operation=name, data=fail_ctx)

        with suppress(Exception):
            logger.verbose(ascii_text(f"{name}: failed {fail_ctx}"))
        raise

    dur_ms = int((time.monotonic() - t0) * 1000)
    end_ctx = dict(ctx)
    end_ctx.update({"status": "succeeded", "duration_ms": dur_ms})
    emit("operation.end", component=component, operation=name, data=end_ctx)

    with suppress(Exception):
        logger.verbose(ascii_text(f"{name}: end {end_ctx}"))
