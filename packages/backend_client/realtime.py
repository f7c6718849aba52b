"""Change channel that derives row events by polling a table."""
from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .base import DELETE, INSERT, UPDATE, BackendClientError, ChangeCallback, ChangeEvent, Channel

if TYPE_CHECKING:  # pragma: no cover
    from .client import BackendClient


logger = logging.getLogger(__name__)


class PollingChannel(Channel):
    """Poll ``table`` on an interval and emit the rows that changed."""

    def __init__(
        self,
        source: "BackendClient",
        table: str,
        callback: ChangeCallback,
        *,
        primary_key: str,
        columns: str = "*",
        interval: float = 5.0,
    ) -> None:
        super().__init__(table, callback, name=f"{table}-poll")
        self.source = source
        self.primary_key = primary_key
        self.columns = columns
        self.interval = interval
        self._snapshot: Optional[Dict[Any, Dict[str, Any]]] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def poll_once(self) -> List[ChangeEvent]:
        """Fetch the table once and deliver the differences to the subscriber."""

        rows = self.source.select_all(self.table, self.columns)
        current: Dict[Any, Dict[str, Any]] = {}
        for row in rows:
            key = row.get(self.primary_key)
            if key is not None:
                current[key] = row
        previous = self._snapshot
        self._snapshot = current
        if previous is None:
            return []

        events: List[ChangeEvent] = []
        for key, row in current.items():
            before = previous.get(key)
            if before is None:
                events.append(ChangeEvent(INSERT, self.table, new=row))
            elif before != row:
                events.append(ChangeEvent(UPDATE, self.table, new=row, old=before))
        for key, row in previous.items():
            if key not in current:
                events.append(ChangeEvent(DELETE, self.table, old={self.primary_key: key}))
        for event in events:
            self.deliver(event)
        return events

    def close(self) -> None:
        super().close()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.interval + 1.0)

    def _run(self) -> None:
        while not self.closed:
            try:
                self.poll_once()
            except BackendClientError as exc:
                logger.warning("Polling %s failed: %s", self.table, exc)
            self._closed.wait(self.interval)


__all__ = ["PollingChannel"]
