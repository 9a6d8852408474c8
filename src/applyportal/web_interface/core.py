from __future__ import annotations

import logging
import time
from contextlib import suppress
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from applyportal.apply.engine import ApplyWizardEngine
from applyportal.apply.errors import envelope_for
from applyportal.core.config import ConfigResolver
from applyportal.core.diagnostics import emit
from applyportal.core.errors import ApplyPortalError
from applyportal.core.logging import get_logger
from applyportal.services.lookup import LookupService
from applyportal.session_store.service import create_session_store
from applyportal.session_store.types import SessionStore
from applyportal.subscriptions.service import SubscriptionService

from .api.apply import mount_apply
from .api.logs import mount_logs
from .api.lookups import mount_lookups
from .api.subscriptions import mount_subscriptions
from .util.log_tail import LogTail
from .util.web_observability import ascii_text


def _uvicorn_log_settings(verbosity: int) -> tuple[str, bool]:
    """Map portal verbosity to uvicorn log settings.

    Returns:
        (log_level, access_log)
    """
    # Access logs stay off; per-request visibility comes from
    # boundary.start / boundary.end diagnostics.
    if verbosity <= 0:
        return ("error", False)
    if verbosity <= 2:
        return ("info", False)
    return ("debug", False)


def _silence_uvicorn_loggers() -> None:
    """Best-effort silencing for uvicorn loggers (quiet mode)."""
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.propagate = False
        logger.setLevel(logging.ERROR)


class WebInterface:
    """FastAPI application factory for the apply portal."""

    def create_app(
        self,
        *,
        config_resolver: ConfigResolver | None = None,
        session_store: SessionStore | None = None,
        apply_engine: ApplyWizardEngine | None = None,
        subscription_service: SubscriptionService | None = None,
        lookup_service: LookupService | None = None,
        verbosity: int = 1,
    ) -> FastAPI:
        resolver = config_resolver or ConfigResolver()
        store = session_store or create_session_store(resolver)

        app = FastAPI(title="Apply Portal")

        app.state.config_resolver = resolver
        app.state.verbosity = int(verbosity)
        app.state.web_logger = get_logger("web_interface")
        app.state.session_store = store
        app.state.session_ttl = resolver.resolve_int("session.ttl_seconds", 1200)
        app.state.session_cookie_name = resolver.resolve_str("session.cookie_name", "_apply_session")
        app.state.session_cookie_secure = resolver.resolve_bool("session.cookie_secure", False)
        app.state.captcha_site_key = resolver.resolve_str("apply.captcha.site_key", "") or ""
        app.state.apply_engine = apply_engine or ApplyWizardEngine.from_resolver(resolver, store)
        app.state.lookup_service = lookup_service or app.state.apply_engine.lookups
        app.state.subscription_service = subscription_service or SubscriptionService.from_resolver(
            resolver
        )
        app.state.log_tail = LogTail(resolver.resolve_int("web.log_tail_size", 500))
        app.state.log_tail.attach()

        @app.middleware("http")
        async def _emit_route_boundary(request: Request, call_next: Any) -> Any:
            # Call-boundary diagnostics for each HTTP route.
            path = request.url.path
            method = request.method
            op = f"{method} {path}"

            logger = getattr(request.app.state, "web_logger", get_logger("web_interface"))

            start_data: dict[str, Any] = {"path": path, "method": method}
            if int(getattr(request.app.state, "verbosity", 1)) >= 3:
                with suppress(Exception):
                    start_data["query"] = dict(request.query_params)

            emit("boundary.start", component="web_interface", operation=op, data=start_data)
            with suppress(Exception):
                logger.debug(ascii_text(f"{op}: start {start_data}"))

            t0 = time.monotonic()
            try:
                response = await call_next(request)
            except Exception as e:
                dur_ms = int((time.monotonic() - t0) * 1000)
                fail_data: dict[str, Any] = {
                    "status": "failed",
                    "error_type": type(e).__name__,
                    "error": str(e),
                    "duration_ms": dur_ms,
                }
                emit("boundary.end", component="web_interface", operation=op, data=fail_data)
                with suppress(Exception):
                    logger.error(ascii_text(f"{op}: failed {fail_data}"))
                raise

            dur_ms = int((time.monotonic() - t0) * 1000)
            end_data: dict[str, Any] = {
                "status": "succeeded",
                "status_code": int(getattr(response, "status_code", 200)),
                "duration_ms": dur_ms,
            }
            emit("boundary.end", component="web_interface", operation=op, data=end_data)
            with suppress(Exception):
                logger.verbose(ascii_text(f"{op}: end {end_data}"))

            return response

        @app.exception_handler(ApplyPortalError)
        async def _domain_error(request: Request, exc: ApplyPortalError) -> JSONResponse:
            status, env = envelope_for(exc)
            if status >= 500:
                app.state.web_logger.error(ascii_text(f"{request.method} {request.url.path}: {exc}"))
            return JSONResponse(status_code=status, content=env)

        # API first, wizard routes after (the step route is a catch-all path).
        @app.get("/api/health")
        def api_health() -> dict[str, Any]:
            return {"ok": True}

        mount_logs(app)
        mount_lookups(app)
        mount_subscriptions(app)
        mount_apply(app)

        return app

    def run(
        self,
        host: str,
        port: int,
        *,
        config_resolver: ConfigResolver | None = None,
        verbosity: int = 1,
    ) -> None:
        """Run the web server in a standalone (non-async) context."""
        import uvicorn

        app = self.create_app(config_resolver=config_resolver, verbosity=verbosity)
        log_level, access_log = _uvicorn_log_settings(int(verbosity))
        if int(verbosity) <= 0:
            _silence_uvicorn_loggers()
        uvicorn.run(
            app,
            host=host,
            port=port,
            log_level=log_level,
            access_log=access_log,
        )


def create_app(**kwargs: Any) -> FastAPI:
    return WebInterface().create_app(**kwargs)
