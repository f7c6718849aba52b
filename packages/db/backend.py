"""SQLite-backed stand-in for the hosted backend, used offline and in tests."""
from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import select

from packages.backend_client.base import (
    DELETE,
    INSERT,
    UPDATE,
    BackendClientError,
    ChangeCallback,
    ChangeEvent,
    Channel,
    ChannelRegistry,
)
from packages.schema import ENTITIES, EntitySchema

from .models import StoredRow, backend_session, create_all

TIMESTAMP_FIELDS = ("created_at", "updated_at")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class LocalBackend:
    """Keep entity tables in SQLite and broadcast every write as a change event."""

    def __init__(
        self,
        db_path: Path | None = None,
        *,
        entities: Iterable[EntitySchema] | None = None,
        clock: Callable[[], str] | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.db_path = db_path
        self._tables: Dict[str, EntitySchema] = {
            entity.table: entity for entity in (entities or ENTITIES.values())
        }
        self._clock = clock or _utc_now
        self._channels = ChannelRegistry()
        self._write_lock = threading.Lock()
        self._logger = logger or logging.getLogger("precastflow.backend.local")
        create_all(db_path)

    # Table API ------------------------------------------------------------------
    def select_all(self, table: str, columns: str = "*") -> List[Dict[str, Any]]:
        self._entity(table)
        with backend_session(self.db_path) as session:
            rows = session.scalars(
                select(StoredRow).where(StoredRow.table_name == table).order_by(StoredRow.id)
            ).all()
            return [dict(row.payload) for row in rows]

    def insert(self, table: str, record: Mapping[str, Any], columns: str = "*") -> Dict[str, Any]:
        """Store ``record``; ``columns`` is accepted for parity, rows are returned flat."""

        entity = self._entity(table)
        payload = dict(record)
        now = self._clock()
        for name in entity.server_fields:
            if payload.get(name) in (None, ""):
                payload[name] = now if name in TIMESTAMP_FIELDS else str(uuid.uuid4())
        key = payload.get(entity.primary_key)
        if key in (None, ""):
            raise BackendClientError(
                f'null value in column "{entity.primary_key}" violates not-null constraint'
            )
        with self._write_lock:
            with backend_session(self.db_path) as session:
                if self._find(session, table, str(key)) is not None:
                    raise BackendClientError(
                        f'duplicate key value violates unique constraint "{table}_pkey"'
                    )
                session.add(StoredRow(table_name=table, row_key=str(key), payload=payload))
        self._broadcast(ChangeEvent(INSERT, table, new=dict(payload)))
        return dict(payload)

    def update(
        self,
        table: str,
        changes: Mapping[str, Any],
        *,
        match: Mapping[str, Any],
        columns: str = "*",
    ) -> Optional[Dict[str, Any]]:
        entity = self._entity(table)
        with self._write_lock:
            with backend_session(self.db_path) as session:
                row = self._match_one(session, entity, match)
                if row is None:
                    return None
                before = dict(row.payload)
                after = {**before, **dict(changes)}
                if "updated_at" in entity.server_fields:
                    after["updated_at"] = self._clock()
                new_key = str(after.get(entity.primary_key))
                if new_key != row.row_key and self._find(session, table, new_key) is not None:
                    raise BackendClientError(
                        f'duplicate key value violates unique constraint "{table}_pkey"'
                    )
                row.row_key = new_key
                row.payload = after
                row.updated_at = datetime.now(timezone.utc)
        self._broadcast(ChangeEvent(UPDATE, table, new=dict(after), old=before))
        return dict(after)

    def delete(self, table: str, *, match: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """Remove the matching row; the change event carries only its key."""

        entity = self._entity(table)
        with self._write_lock:
            with backend_session(self.db_path) as session:
                row = self._match_one(session, entity, match)
                if row is None:
                    return None
                removed = dict(row.payload)
                session.delete(row)
        self._broadcast(
            ChangeEvent(DELETE, table, old={entity.primary_key: removed.get(entity.primary_key)})
        )
        return removed

    # Change channels --------------------------------------------------------------
    def subscribe(self, table: str, callback: ChangeCallback, *, primary_key: str) -> Channel:
        entity = self._entity(table)
        if primary_key != entity.primary_key:
            self._logger.warning(
                "Subscriber for %s keys on %s, table key is %s", table, primary_key, entity.primary_key
            )
        channel = self._channels.add(Channel(table, callback, name=f"{table}-local"))
        self._logger.debug("Opened local change channel %s", channel.name)
        return channel

    def remove_channel(self, channel: Channel) -> None:
        self._channels.remove(channel)
        self._logger.debug("Closed local change channel %s", channel.name)

    def emit(self, event: ChangeEvent) -> None:
        """Deliver an externally produced event, as another client's write would."""

        self._broadcast(event)

    # Internal helpers ------------------------------------------------------------
    def _entity(self, table: str) -> EntitySchema:
        entity = self._tables.get(table)
        if entity is None:
            raise BackendClientError(f'relation "public.{table}" does not exist')
        return entity

    def _broadcast(self, event: ChangeEvent) -> None:
        for channel in self._channels.for_table(event.table):
            channel.deliver(event)

    @staticmethod
    def _find(session, table: str, key: str) -> Optional[StoredRow]:
        return session.scalars(
            select(StoredRow).where(StoredRow.table_name == table, StoredRow.row_key == key)
        ).first()

    def _match_one(self, session, entity: EntitySchema, match: Mapping[str, Any]) -> Optional[StoredRow]:
        if not match:
            raise BackendClientError("Refusing to write without a match filter")
        if entity.primary_key in match:
            row = self._find(session, entity.table, str(match[entity.primary_key]))
            candidates = [row] if row is not None else []
        else:
            candidates = session.scalars(
                select(StoredRow).where(StoredRow.table_name == entity.table).order_by(StoredRow.id)
            ).all()
        for candidate in candidates:
            if all(candidate.payload.get(column) == value for column, value in match.items()):
                return candidate
        return None


__all__ = ["LocalBackend"]
