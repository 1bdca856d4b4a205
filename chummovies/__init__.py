"""CHUM Movies: movie catalog viewer with relay fallback for the upstream API."""

from __future__ import annotations

from app.config import Settings, get_settings
from app.main import app, create_app

__version__ = "1.0.0"

__all__ = ["Settings", "app", "create_app", "get_settings", "__version__"]
