from __future__ import annotations

import csv
import io
from datetime import date

from conftest import make_product
from services.inventory import (
    CSV_HEADERS,
    IN_STOCK,
    LOW_STOCK,
    OUT_OF_STOCK,
    export_filename,
    export_inventory_csv,
    filter_inventory,
    next_sku_id,
    stock_level_percent,
    stock_status,
    summarize_inventory,
)


def test_stock_status_thresholds() -> None:
    assert stock_status(0, 5) == OUT_OF_STOCK
    assert stock_status(5, 5) == LOW_STOCK
    assert stock_status(6, 5) == IN_STOCK
    assert stock_status(None, None) == OUT_OF_STOCK


def test_stock_level_percent_is_capped() -> None:
    assert stock_level_percent(3, 4) == 75.0
    assert stock_level_percent(40, 4) == 100.0
    assert stock_level_percent(1, 0) == 100.0
    assert stock_level_percent(0, 0) == 0.0


def test_summarize_inventory_counts_and_value() -> None:
    products = [
        make_product("SKU0001", current_stock=10, minimum_req_stock=5, price=100.0),
        make_product("SKU0002", current_stock=2, minimum_req_stock=5, price=50.0),
        make_product("SKU0003", current_stock=0, minimum_req_stock=5, price=None),
    ]

    summary = summarize_inventory(products)

    assert summary.to_dict() == {
        "total_items": 3,
        "in_stock": 1,
        "low_stock": 1,
        "out_of_stock": 1,
        "total_value": 1100.0,
    }


def test_filter_inventory_by_category_status_and_query() -> None:
    products = [
        make_product("SKU0001", category="beams", name="Beam A"),
        make_product("SKU0002", category="slabs", name="Hollow Core", current_stock=1),
        make_product("SKU0003", category="slabs", name="Solid Slab"),
    ]

    assert [p["sku_id"] for p in filter_inventory(products, category="Slabs")] == ["SKU0002", "SKU0003"]
    assert [p["sku_id"] for p in filter_inventory(products, status=LOW_STOCK)] == ["SKU0002"]
    assert [p["sku_id"] for p in filter_inventory(products, query="sku0003")] == ["SKU0003"]


def test_export_inventory_csv() -> None:
    products = [
        make_product("SKU0001", name="Beam, long", price=850.5, updated_at="2024-04-02T10:00:00Z"),
        make_product("SKU0002", current_stock=0, price=None),
    ]

    text = export_inventory_csv(products)
    rows = list(csv.reader(io.StringIO(text)))

    assert rows[0] == list(CSV_HEADERS)
    assert rows[1] == ["SKU0001", "Beam, long", "beams", "10", "850.50", "In Stock", "2024-04-02"]
    assert rows[2][3:6] == ["0", "", "Out of Stock"]


def test_export_filename_uses_date() -> None:
    assert export_filename(date(2024, 4, 2)) == "inventory-export-2024-04-02.csv"


def test_next_sku_id() -> None:
    assert next_sku_id([]) == "SKU0001"
    products = [make_product("SKU0009"), make_product("SKU0012"), {"sku_id": "legacy"}]
    assert next_sku_id(products) == "SKU0013"
