"""Local SQLite backend for PrecastFlow."""
from __future__ import annotations

from .backend import LocalBackend
from .models import (
    Base,
    StoredRow,
    backend_session,
    create_all,
    ensure_db_path,
    get_db_path,
    get_engine,
    get_session_factory,
)

__all__ = [
    "ensure_db_path",
    "get_db_path",
    "LocalBackend",
    "Base",
    "StoredRow",
    "backend_session",
    "create_all",
    "get_engine",
    "get_session_factory",
]
