"""Shared fixtures for the store, grid and backend tests."""
from __future__ import annotations

import copy
from typing import Any, Callable, Dict, List, Mapping, Optional

import pytest

from packages.backend_client import BackendClientError, ChangeEvent, Channel

PRODUCT_ID = "6f1f8a52-3c1e-4a57-9d0b-2d7c1f0e4a11"
MATERIAL_ID = "1b9d6bcd-bbfd-4b2d-9b5d-ab8dfbbd4bed"
BATCH_ID = "9c858901-8a57-4791-81fe-4c455b099bc9"
USAGE_ID = "3f2504e0-4f89-41d3-9a0c-0305e82c3301"
TIMESTAMP = "2024-03-01T08:30:00+00:00"


def make_product(sku_id: str = "SKU0001", **overrides: Any) -> Dict[str, Any]:
    number = int(sku_id[3:]) if sku_id[3:].isdigit() else 1
    record: Dict[str, Any] = {
        "product_id": f"6f1f8a52-3c1e-4a57-9d0b-{number:012d}",
        "sku_id": sku_id,
        "name": "Beam A",
        "category": "beams",
        "type": "structural",
        "dimensions": "6000x300x500",
        "weight": 2250,
        "material": "C40 concrete",
        "strength": "40 MPa",
        "design_file": "beam-a.dwg",
        "current_stock": 10,
        "minimum_req_stock": 5,
        "price": 100.0,
        "is_active": True,
        "is_deprecated": False,
        "created_at": TIMESTAMP,
        "updated_at": TIMESTAMP,
    }
    record.update(overrides)
    return record


def make_raw_material(**overrides: Any) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "raw_material_id": MATERIAL_ID,
        "name": "Portland cement",
        "unit": "kg",
        "cost_per_unit": 0.12,
        "current_stock": 2000,
        "min_required_stock": 500,
        "supplier": "Northern Cement",
        "created_at": TIMESTAMP,
        "updated_at": TIMESTAMP,
    }
    record.update(overrides)
    return record


def make_batch(batch_number: str = "B-001", **overrides: Any) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "batch_id": BATCH_ID,
        "product_id": PRODUCT_ID,
        "batch_number": batch_number,
        "status": "pending",
        "quantity_produced": 0,
        "quantity_wasted": 0,
        "start_date": None,
        "end_date": None,
        "notes": None,
        "created_at": TIMESTAMP,
        "updated_at": TIMESTAMP,
    }
    record.update(overrides)
    return record


class FakeSource:
    """In-memory data source that records every call."""

    def __init__(self, tables: Optional[Mapping[str, List[Dict[str, Any]]]] = None) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {
            name: [dict(row) for row in rows] for name, rows in (tables or {}).items()
        }
        self.select_calls: List[tuple[str, str]] = []
        self.insert_calls: List[tuple[str, Dict[str, Any]]] = []
        self.update_calls: List[tuple[str, Dict[str, Any], Dict[str, Any]]] = []
        self.write_columns: List[str] = []
        self.update_response: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None
        self.channels: List[Channel] = []
        self.removed: List[Channel] = []
        self.fail_with: Optional[Exception] = None
        self.insert_response: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None
        self.before_return: Optional[Callable[[], None]] = None

    def select_all(self, table: str, columns: str = "*") -> List[Dict[str, Any]]:
        self.select_calls.append((table, columns))
        if self.fail_with is not None:
            raise self.fail_with
        rows = copy.deepcopy(self.tables.get(table, []))
        if self.before_return is not None:
            self.before_return()
        return rows

    def insert(self, table: str, record: Mapping[str, Any], columns: str = "*") -> Dict[str, Any]:
        self.insert_calls.append((table, dict(record)))
        self.write_columns.append(columns)
        if self.fail_with is not None:
            raise self.fail_with
        created = dict(record)
        if self.insert_response is not None:
            created = self.insert_response(created)
        self.tables.setdefault(table, []).append(created)
        return dict(created)

    def update(
        self,
        table: str,
        changes: Mapping[str, Any],
        *,
        match: Mapping[str, Any],
        columns: str = "*",
    ) -> Optional[Dict[str, Any]]:
        self.update_calls.append((table, dict(changes), dict(match)))
        self.write_columns.append(columns)
        if self.fail_with is not None:
            raise self.fail_with
        for row in self.tables.get(table, []):
            if all(row.get(column) == value for column, value in match.items()):
                row.update(changes)
                if self.update_response is not None:
                    return self.update_response(dict(row))
                return dict(row)
        return None

    def subscribe(self, table: str, callback: Callable[[ChangeEvent], None], *, primary_key: str) -> Channel:
        if isinstance(self.fail_with, BackendClientError):
            raise self.fail_with
        channel = Channel(table, callback)
        self.channels.append(channel)
        return channel

    def remove_channel(self, channel: Channel) -> None:
        channel.close()
        self.removed.append(channel)

    def emit(self, event: ChangeEvent) -> None:
        for channel in self.channels:
            if channel.table == event.table:
                channel.deliver(event)


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()
