"""HTTP surface (FastAPI) for the apply portal."""

from applyportal.web_interface.core import WebInterface, create_app

__all__ = ["WebInterface", "create_app"]
