"""Run the apply portal web server: python -m applyportal."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any

from applyportal.core.config import ConfigResolver
from applyportal.core.diagnostics import install_jsonl_sink
from applyportal.core.errors import ApplyPortalError
from applyportal.core.logging import (
    apply_logging_policy,
    get_logger,
    get_verbosity,
    set_colors,
)
from applyportal.web_interface.core import WebInterface

log = get_logger("applyportal")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="applyportal", description="Benefits application portal")
    p.add_argument("--host", default=None)
    p.add_argument("--port", type=int, default=None)
    p.add_argument("--config", type=Path, default=None, help="User config YAML path")
    p.add_argument(
        "--log-level",
        choices=["quiet", "normal", "verbose", "debug"],
        default=None,
    )
    p.add_argument("--session-storage", choices=["memory", "file"], default=None)
    return p.parse_args(argv)


def _cli_args(args: argparse.Namespace) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if args.host is not None:
        out.setdefault("web", {})["host"] = args.host
    if args.port is not None:
        out.setdefault("web", {})["port"] = args.port
    if args.log_level is not None:
        out.setdefault("logging", {})["level"] = args.log_level
    if args.session_storage is not None:
        out.setdefault("session", {})["storage_type"] = args.session_storage
    return out


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    resolver = ConfigResolver(cli_args=_cli_args(args), user_config_path=args.config)
    try:
        apply_logging_policy(resolver.resolve_logging_policy())
        set_colors(resolver.resolve_bool("logging.color", True))
        install_jsonl_sink(resolver=resolver)
        host = resolver.resolve_str("web.host", "0.0.0.0") or "0.0.0.0"
        port = resolver.resolve_int("web.port", 8080)
    except ApplyPortalError as e:
        log.error(str(e))
        return 2

    log.info(f"Starting apply portal on {host}:{port}")
    WebInterface().run(host, port, config_resolver=resolver, verbosity=int(get_verbosity()))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
