"""Data-source contract shared by the remote and local backends."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
EVENT_TYPES = (INSERT, UPDATE, DELETE)


class BackendClientError(RuntimeError):
    """Raised when a remote call fails or the backend is misconfigured."""


class RecordNotFoundError(BackendClientError):
    """Raised when an update matched no remote row."""


@dataclass
class ChangeEvent:
    """A single row change delivered on a change channel."""

    event_type: str
    table: str
    new: Optional[Dict[str, Any]] = None
    old: Optional[Dict[str, Any]] = None
    received_at: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ChangeEvent":
        """Build an event from a Supabase style ``postgres_changes`` payload."""

        event_type = str(payload.get("eventType") or payload.get("type") or "").upper()
        new = payload.get("new") or payload.get("record")
        old = payload.get("old") or payload.get("old_record")
        return cls(
            event_type=event_type,
            table=str(payload.get("table") or ""),
            new=dict(new) if isinstance(new, Mapping) and new else None,
            old=dict(old) if isinstance(old, Mapping) and old else None,
            received_at=payload.get("commit_timestamp"),
        )


ChangeCallback = Callable[[ChangeEvent], None]


class Channel:
    """Open subscription to the changes of one table."""

    def __init__(self, table: str, callback: ChangeCallback, *, name: Optional[str] = None) -> None:
        self.table = table
        self.name = name or f"{table}-changes"
        self._callback = callback
        self._closed = threading.Event()
        self._logger = logging.getLogger("precastflow.backend.channel")

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def deliver(self, event: ChangeEvent) -> None:
        """Hand ``event`` to the subscriber unless the channel is closed."""

        if self.closed:
            return
        try:
            self._callback(event)
        except Exception:
            self._logger.exception("Change handler for %s raised", self.name)

    def close(self) -> None:
        self._closed.set()


class DataSource(Protocol):
    """Operations every backend offers to the entity stores."""

    def select_all(self, table: str, columns: str = "*") -> List[Dict[str, Any]]:
        ...

    def insert(self, table: str, record: Mapping[str, Any], columns: str = "*") -> Dict[str, Any]:
        ...

    def update(
        self,
        table: str,
        changes: Mapping[str, Any],
        *,
        match: Mapping[str, Any],
        columns: str = "*",
    ) -> Optional[Dict[str, Any]]:
        ...

    def subscribe(self, table: str, callback: ChangeCallback, *, primary_key: str) -> Channel:
        ...

    def remove_channel(self, channel: Channel) -> None:
        ...


@dataclass
class ChannelRegistry:
    """Track the channels a backend has handed out."""

    channels: Dict[str, List[Channel]] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def add(self, channel: Channel) -> Channel:
        with self.lock:
            self.channels.setdefault(channel.table, []).append(channel)
        return channel

    def remove(self, channel: Channel) -> None:
        channel.close()
        with self.lock:
            listeners = self.channels.get(channel.table, [])
            if channel in listeners:
                listeners.remove(channel)

    def for_table(self, table: str) -> List[Channel]:
        with self.lock:
            return list(self.channels.get(table, []))


__all__ = [
    "DELETE",
    "EVENT_TYPES",
    "INSERT",
    "UPDATE",
    "BackendClientError",
    "Channel",
    "ChangeCallback",
    "ChangeEvent",
    "ChannelRegistry",
    "DataSource",
    "RecordNotFoundError",
]
