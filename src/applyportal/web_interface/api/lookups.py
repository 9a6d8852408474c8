from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request

from applyportal.services.lookup import LookupService


def _lookups(request: Request) -> LookupService:
    return request.app.state.lookup_service


def mount_lookups(app: FastAPI) -> None:
    @app.get("/api/lookups")
    def list_catalogs(request: Request) -> dict[str, Any]:
        return {"catalogs": _lookups(request).names()}

    @app.get("/api/lookups/{catalog}")
    def get_catalog(request: Request, catalog: str) -> dict[str, Any]:
        # Unknown catalogs raise NotFoundError -> 404 envelope.
        return {"catalog": catalog, "items": _lookups(request).get_all(catalog)}
