"""Inventory reporting helpers."""
from .catalog import next_sku_id
from .export import CSV_HEADERS, export_filename, export_inventory_csv
from .metrics import (
    IN_STOCK,
    LOW_STOCK,
    OUT_OF_STOCK,
    STATUS_LABELS,
    InventorySummary,
    filter_inventory,
    record_status,
    stock_level_percent,
    stock_status,
    summarize_inventory,
)

__all__ = [
    "CSV_HEADERS",
    "IN_STOCK",
    "LOW_STOCK",
    "OUT_OF_STOCK",
    "STATUS_LABELS",
    "InventorySummary",
    "export_filename",
    "export_inventory_csv",
    "filter_inventory",
    "next_sku_id",
    "record_status",
    "stock_level_percent",
    "stock_status",
    "summarize_inventory",
]
