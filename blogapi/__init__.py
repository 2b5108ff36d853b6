"""Users and posts API whose server and client share one contract registry."""

from __future__ import annotations

from typing import Any

__version__ = "1.0.0"

from .database import Database, resolve_database_path


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the ASGI application."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Database",
    "__version__",
    "create_app",
    "resolve_database_path",
]
