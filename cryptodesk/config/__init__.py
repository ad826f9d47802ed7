"""Configuration: pydantic-settings Settings + structlog logging.

Usage:
    from cryptodesk.config import get_settings, setup_logging
    settings = get_settings()
    setup_logging(settings)  # once, in the host application
"""

from .logging import bind_view_context, clear_view_context, setup_logging
from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "setup_logging",
    "bind_view_context",
    "clear_view_context",
]
