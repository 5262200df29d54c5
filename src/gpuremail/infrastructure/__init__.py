# src/gpuremail/infrastructure/__init__.py
"""Infrastructure layer - mail protocol adapters, logging and configuration."""

from gpuremail.infrastructure.logging import configure_logging
from gpuremail.infrastructure.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
]
