"""SQLite storage for the local backend: path resolution, engines and the row model."""
from __future__ import annotations

import os
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterator

from sqlalchemy import JSON, DateTime, Integer, String, UniqueConstraint, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

DEFAULT_DB_PATH = Path(os.getenv("PRECASTFLOW_DB_PATH", "out/precastflow.db"))


def get_db_path() -> Path:
    return DEFAULT_DB_PATH


def ensure_db_path(path: Path | None = None) -> Path:
    """Create the parent directory of ``path`` (or the default) and return it."""

    db_path = Path(path or get_db_path())
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


class Base(DeclarativeBase):
    pass


@lru_cache(maxsize=None)
def _engine_for(db_path: Path) -> Engine:
    # stores write from realtime threads as well as the caller's thread
    return create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})


@lru_cache(maxsize=None)
def _factory_for(db_path: Path) -> sessionmaker[Session]:
    return sessionmaker(bind=_engine_for(db_path), autoflush=False, expire_on_commit=False)


def get_engine(path: Path | None = None) -> Engine:
    """Engine for ``path``, shared by every caller that resolves to the same file."""

    return _engine_for(ensure_db_path(path).resolve())


def get_session_factory(path: Path | None = None) -> sessionmaker[Session]:
    return _factory_for(ensure_db_path(path).resolve())


@contextmanager
def backend_session(path: Path | None = None) -> Iterator[Session]:
    """Yield a session that commits when the block exits cleanly and rolls back otherwise."""

    session = get_session_factory(path)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoredRow(Base):
    """One row of one backend table, kept as a JSON payload."""

    __tablename__ = "backend_rows"
    __table_args__ = (UniqueConstraint("table_name", "row_key", name="uq_backend_rows_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    table_name: Mapped[str] = mapped_column(String(64), index=True)
    row_key: Mapped[str] = mapped_column(String(128))
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


def create_all(path: Path | None = None) -> None:
    Base.metadata.create_all(get_engine(path))


__all__ = [
    "DEFAULT_DB_PATH",
    "Base",
    "StoredRow",
    "backend_session",
    "create_all",
    "ensure_db_path",
    "get_db_path",
    "get_engine",
    "get_session_factory",
]
