from __future__ import annotations

from typing import Any, Dict, List

from packages.backend_client import DELETE, INSERT, UPDATE, BackendClientError, ChangeEvent, PollingChannel


class ScriptedSource:
    """Returns one prepared table snapshot per poll."""

    def __init__(self, snapshots: List[List[Dict[str, Any]]]) -> None:
        self.snapshots = list(snapshots)
        self.calls: List[tuple[str, str]] = []

    def select_all(self, table: str, columns: str = "*") -> List[Dict[str, Any]]:
        self.calls.append((table, columns))
        if not self.snapshots:
            raise BackendClientError("no more snapshots")
        return self.snapshots.pop(0)


def test_first_poll_sets_baseline_without_events() -> None:
    received: List[ChangeEvent] = []
    source = ScriptedSource([[{"sku_id": "SKU0001", "current_stock": 1}]])
    channel = PollingChannel(source, "products", received.append, primary_key="sku_id")

    assert channel.poll_once() == []
    assert received == []


def test_poll_diff_emits_insert_update_and_delete() -> None:
    received: List[ChangeEvent] = []
    source = ScriptedSource(
        [
            [{"sku_id": "SKU0001", "current_stock": 1}, {"sku_id": "SKU0002", "current_stock": 4}],
            [{"sku_id": "SKU0001", "current_stock": 0}, {"sku_id": "SKU0003", "current_stock": 9}],
        ]
    )
    channel = PollingChannel(source, "products", received.append, primary_key="sku_id", columns="sku_id")

    channel.poll_once()
    events = channel.poll_once()

    assert [(e.event_type, (e.new or e.old)["sku_id"]) for e in events] == [
        (UPDATE, "SKU0001"),
        (INSERT, "SKU0003"),
        (DELETE, "SKU0002"),
    ]
    assert received == events
    assert events[0].old == {"sku_id": "SKU0001", "current_stock": 1}
    assert events[2].old == {"sku_id": "SKU0002"}
    assert source.calls[0] == ("products", "sku_id")


def test_closed_channel_delivers_nothing() -> None:
    received: List[ChangeEvent] = []
    source = ScriptedSource([[], [{"sku_id": "SKU0001"}]])
    channel = PollingChannel(source, "products", received.append, primary_key="sku_id")
    channel.poll_once()

    channel.close()
    channel.poll_once()

    assert received == []


def test_handler_errors_do_not_stop_delivery() -> None:
    received: List[str] = []

    def handler(event: ChangeEvent) -> None:
        received.append(event.new["sku_id"])
        raise ValueError("bad handler")

    source = ScriptedSource([[], [{"sku_id": "SKU0001"}, {"sku_id": "SKU0002"}]])
    channel = PollingChannel(source, "products", handler, primary_key="sku_id")
    channel.poll_once()
    channel.poll_once()

    assert received == ["SKU0001", "SKU0002"]


def test_change_event_from_supabase_payload() -> None:
    event = ChangeEvent.from_payload(
        {
            "eventType": "delete",
            "table": "products",
            "new": {},
            "old": {"sku_id": "SKU0001"},
            "commit_timestamp": "2024-03-01T08:30:00Z",
        }
    )

    assert event.event_type == DELETE
    assert event.new is None
    assert event.old == {"sku_id": "SKU0001"}
    assert event.received_at == "2024-03-01T08:30:00Z"
