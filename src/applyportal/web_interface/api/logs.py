from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Query, Request

from applyportal.core.errors import ValidationError
from applyportal.core.log_bus import LEVEL_ORDER

from ..util.log_tail import LogTail


def _tail(request: Request) -> LogTail:
    return request.app.state.log_tail


def mount_logs(app: FastAPI) -> None:
    @app.get("/api/logs/recent")
    def logs_recent(
        request: Request,
        lines: int = Query(default=200, ge=1),
        since_id: int = Query(default=0, ge=0),
        level: str = "DEBUG",
    ) -> dict[str, Any]:
        level = level.upper()
        if level not in LEVEL_ORDER:
            raise ValidationError(
                f"Unknown log level '{level}'",
                details=[
                    {"path": "$.level", "reason": "invalid_enum", "meta": {"allowed": list(LEVEL_ORDER)}}
                ],
            )
        records = _tail(request).snapshot(since_id=since_id, limit=lines, min_level=level)
        last_id = records[-1]["id"] if records else since_id
        return {"records": records, "last_id": last_id}
