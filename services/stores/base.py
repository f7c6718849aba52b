"""Remote-backed in-memory collections, one store per entity type."""
from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from packages.backend_client import (
    DELETE,
    INSERT,
    UPDATE,
    BackendClientError,
    ChangeEvent,
    Channel,
    DataSource,
    RecordNotFoundError,
)
from packages.schema import (
    DRAFT,
    FULL,
    KEY,
    PARTIAL,
    EntitySchema,
    FieldError,
    SchemaValidationError,
    validate_record,
    validate_records,
)

from .cancellation import CancelToken, RequestCancelled, check

Listener = Callable[["EntityStore"], None]


class StoreStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class EntityStore:
    """Single source of truth for one remote table.

    The store owns its collection: readers get tuples, and every mutation goes
    through the store so listeners fire. ``fetch`` loads once per instance;
    ``refresh`` bypasses that guard and ``reset`` clears it.
    """

    entity: EntitySchema
    columns: str = "*"
    label: str = "records"

    def __init__(self, source: DataSource, *, logger: Optional[logging.Logger] = None) -> None:
        self.source = source
        self._records: List[Dict[str, Any]] = []
        self._status = StoreStatus.UNINITIALIZED
        self._loading = False
        self._error: Optional[str] = None
        self._has_fetched = False
        self._channel: Optional[Channel] = None
        self._listeners: List[Listener] = []
        self._lock = threading.RLock()
        self._logger = logger or logging.getLogger(f"precastflow.stores.{self.entity.name}")

    # State ------------------------------------------------------------------------
    @property
    def primary_key(self) -> str:
        return self.entity.primary_key

    @property
    def records(self) -> Tuple[Dict[str, Any], ...]:
        with self._lock:
            return tuple(self._records)

    @property
    def status(self) -> StoreStatus:
        return self._status

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def subscribed(self) -> bool:
        return self._channel is not None

    def get(self, key: Any) -> Optional[Dict[str, Any]]:
        with self._lock:
            index = self._index_of(key)
            return self._records[index] if index is not None else None

    def keys(self) -> List[Any]:
        with self._lock:
            return [record[self.primary_key] for record in self._records]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return iter(self.records)

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener and return a callable that removes it."""

        with self._lock:
            self._listeners.append(listener)

        def remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    # Hooks --------------------------------------------------------------------------
    def normalize(self, payload: Any) -> Any:
        """Shape a raw backend row before validation."""

        return dict(payload) if isinstance(payload, Mapping) else payload

    def serialize(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        """Shape a validated record into the columns the backend accepts."""

        return dict(record)

    def merge(self, existing: Mapping[str, Any], payload: Mapping[str, Any]) -> Dict[str, Any]:
        """Overlay a (possibly partial) row from the backend onto a known record."""

        return {**existing, **payload}

    # Remote operations --------------------------------------------------------------
    def fetch(self, cancel: Optional[CancelToken] = None) -> None:
        """Load the table once; later calls are no-ops until ``reset``."""

        with self._lock:
            if self._has_fetched:
                self._logger.debug("Already fetched %s, skipping", self.label)
                return
            self._has_fetched = True
        self._load(cancel)

    def refresh(self, cancel: Optional[CancelToken] = None) -> None:
        """Reload the table regardless of the fetch guard."""

        with self._lock:
            self._has_fetched = True
        self._load(cancel)

    def add(self, record: Mapping[str, Any], cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        """Validate and insert ``record``; returns the server's canonical record."""

        self._begin_write()
        try:
            draft = validate_record(self.entity, self.normalize(record), DRAFT)
            check(cancel)
            created = self.source.insert(self.entity.table, self.serialize(draft), columns=self.columns)
            check(cancel)
            canonical = validate_record(self.entity, self.merge(draft, self.normalize(created)), FULL)
        except Exception as exc:
            self._write_failed("add", exc)
            raise
        with self._lock:
            self._upsert(canonical)
            self._loading = False
        self._logger.info("Added %s %s", self.entity.name, canonical[self.primary_key])
        self._notify()
        return canonical

    def update(
        self,
        key: Any,
        changes: Mapping[str, Any],
        cancel: Optional[CancelToken] = None,
    ) -> Dict[str, Any]:
        """Send a partial update for ``key``; returns the server's canonical record."""

        self._begin_write()
        try:
            if self.primary_key in changes and changes[self.primary_key] != key:
                raise SchemaValidationError(
                    self.entity.name, [FieldError(self.primary_key, "cannot be changed")]
                )
            partial = validate_record(self.entity, self.normalize(changes), PARTIAL)
            if not partial:
                raise SchemaValidationError(self.entity.name, [FieldError("", "no known fields to update")])
            check(cancel)
            updated = self.source.update(
                self.entity.table,
                self.serialize(partial),
                match={self.primary_key: key},
                columns=self.columns,
            )
            if updated is None:
                raise RecordNotFoundError(f"No {self.entity.name} found with {self.primary_key}={key}")
            check(cancel)
            current = self.get(key) or {}
            canonical = validate_record(self.entity, self.merge(current, self.normalize(updated)), FULL)
        except Exception as exc:
            self._write_failed("update", exc)
            raise
        with self._lock:
            index = self._index_of(key)
            if index is not None:
                self._records[index] = canonical
            else:
                self._logger.debug("Updated %s %s is not loaded locally", self.entity.name, key)
            self._loading = False
        self._logger.info("Updated %s %s", self.entity.name, key)
        self._notify()
        return canonical

    # Realtime -----------------------------------------------------------------------
    def subscribe_to_realtime(self) -> None:
        """Open the change channel for this store; a second call is a no-op."""

        with self._lock:
            if self._channel is not None:
                return
            try:
                self._channel = self.source.subscribe(
                    self.entity.table,
                    self.handle_change,
                    primary_key=self.primary_key,
                )
            except BackendClientError as exc:
                self._logger.error("Could not subscribe to %s: %s", self.entity.table, exc)
                self._error = str(exc) or f"Failed to subscribe to {self.label}"
            else:
                self._logger.info("Subscribed to %s changes", self.entity.table)
        self._notify()

    def unsubscribe_from_realtime(self) -> None:
        with self._lock:
            channel = self._channel
            self._channel = None
        if channel is None:
            return
        self.source.remove_channel(channel)
        self._logger.info("Unsubscribed from %s changes", self.entity.table)

    def reset(self) -> None:
        """Close the channel and return the store to its initial state."""

        self.unsubscribe_from_realtime()
        with self._lock:
            self._records = []
            self._status = StoreStatus.UNINITIALIZED
            self._loading = False
            self._error = None
            self._has_fetched = False
        self._notify()

    # Internal helpers ---------------------------------------------------------------
    def _load(self, cancel: Optional[CancelToken]) -> None:
        with self._lock:
            previous = self._status
            self._status = StoreStatus.LOADING
            self._loading = True
            self._error = None
        self._notify()
        self._logger.info("Fetching %s...", self.label)
        try:
            check(cancel)
            rows = self.source.select_all(self.entity.table, self.columns)
            check(cancel)
            validated = validate_records(self.entity, self._normalize_rows(rows))
        except RequestCancelled as exc:
            self._logger.info("Fetch of %s cancelled: %s", self.label, exc)
            with self._lock:
                self._has_fetched = False
                self._status = previous
                self._loading = False
        except SchemaValidationError as exc:
            self._logger.warning("Discarding invalid %s response: %s", self.label, exc)
            self._fail(f"Invalid {self.label} data received: {exc}")
        except BackendClientError as exc:
            self._logger.error("Fetch error for %s: %s", self.label, exc)
            self._fail(str(exc) or f"Failed to fetch {self.label}")
        except Exception as exc:
            self._logger.exception("Unexpected error fetching %s", self.label)
            self._fail(str(exc) or f"Failed to fetch {self.label}")
        else:
            with self._lock:
                self._records = validated
                self._status = StoreStatus.READY
                self._loading = False
            self._logger.info("Loaded %d %s", len(validated), self.label)
        self._notify()

    def _normalize_rows(self, rows: Any) -> Any:
        if isinstance(rows, list):
            return [self.normalize(row) for row in rows]
        return rows

    def _fail(self, message: str) -> None:
        with self._lock:
            self._status = StoreStatus.ERROR
            self._loading = False
            self._error = message

    def _begin_write(self) -> None:
        with self._lock:
            self._loading = True
            self._error = None
        self._notify()

    def _write_failed(self, action: str, exc: Exception) -> None:
        with self._lock:
            self._loading = False
            if isinstance(exc, RequestCancelled):
                self._logger.info("%s of %s cancelled: %s", action.capitalize(), self.entity.name, exc)
            else:
                self._error = str(exc) or f"Failed to {action} {self.entity.name}"
                if isinstance(exc, SchemaValidationError):
                    self._logger.warning("Rejected %s of %s: %s", action, self.entity.name, exc)
                else:
                    self._logger.error("%s error for %s: %s", action.capitalize(), self.entity.name, exc)
        self._notify()

    def handle_change(self, event: ChangeEvent) -> None:
        """Merge one change event; a bad event only sets ``error``."""

        try:
            changed = self._apply_change(event)
        except SchemaValidationError as exc:
            self._logger.warning("Realtime update error on %s: %s", self.entity.table, exc)
            with self._lock:
                self._error = f"Invalid real-time data received: {exc}"
            changed = True
        except Exception as exc:
            self._logger.exception("Realtime update error on %s", self.entity.table)
            with self._lock:
                self._error = f"Invalid real-time data received: {exc}"
            changed = True
        if changed:
            self._notify()

    def _apply_change(self, event: ChangeEvent) -> bool:
        event_type = event.event_type.upper()
        if event_type == INSERT:
            if not event.new:
                raise SchemaValidationError(self.entity.name, [FieldError("", "insert event without payload")])
            record = validate_record(self.entity, self.normalize(event.new), FULL)
            with self._lock:
                self._upsert(record)
            return True
        if event_type == UPDATE:
            if not event.new:
                raise SchemaValidationError(self.entity.name, [FieldError("", "update event without payload")])
            payload = self.normalize(event.new)
            key = (event.old or {}).get(self.primary_key, payload.get(self.primary_key))
            if key is None:
                raise SchemaValidationError(self.entity.name, [FieldError(self.primary_key, "is required")])
            with self._lock:
                index = self._index_of(key)
                if index is None:
                    self._logger.debug("Ignoring update for unknown %s %s", self.entity.name, key)
                    return False
                merged = self.merge(self._records[index], payload)
                self._records[index] = validate_record(self.entity, merged, FULL)
            return True
        if event_type == DELETE:
            old = validate_record(self.entity, event.old or {}, KEY)
            key = old[self.primary_key]
            with self._lock:
                before = len(self._records)
                self._records = [r for r in self._records if r[self.primary_key] != key]
                return len(self._records) != before
        self._logger.warning("Ignoring unknown change type %r on %s", event.event_type, self.entity.table)
        return False

    def _index_of(self, key: Any) -> Optional[int]:
        for index, record in enumerate(self._records):
            if record[self.primary_key] == key:
                return index
        return None

    def _upsert(self, record: Dict[str, Any]) -> None:
        index = self._index_of(record[self.primary_key])
        if index is None:
            self._records = [*self._records, record]
        else:
            records = list(self._records)
            records[index] = record
            self._records = records

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(self)
            except Exception:
                self._logger.exception("Store listener failed")


__all__ = ["EntityStore", "Listener", "StoreStatus"]
