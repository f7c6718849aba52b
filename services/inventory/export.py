"""On-demand CSV export of the product inventory."""
from __future__ import annotations

import csv
import io
from datetime import date
from typing import Any, Iterable, Mapping, Sequence

from .metrics import STATUS_LABELS, record_status

CSV_HEADERS: Sequence[str] = (
    "SKU",
    "Name",
    "Category",
    "Stock",
    "Price",
    "Status",
    "Last Updated",
)


def export_filename(today: date | None = None) -> str:
    day = today or date.today()
    return f"inventory-export-{day.isoformat()}.csv"


def export_inventory_csv(products: Iterable[Mapping[str, Any]]) -> str:
    """Render products as CSV text with a header row."""

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for product in products:
        writer.writerow(
            [
                product.get("sku_id", ""),
                product.get("name", ""),
                product.get("category", ""),
                _format_number(product.get("current_stock")),
                _format_number(product.get("price")),
                STATUS_LABELS[record_status(product)],
                _date_part(product.get("updated_at")),
            ]
        )
    return buffer.getvalue()


def _format_number(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return str(value)
    if number.is_integer():
        return str(int(number))
    return f"{number:.2f}"


def _date_part(value: Any) -> str:
    text = str(value or "")
    return text[:10]


__all__ = ["CSV_HEADERS", "export_filename", "export_inventory_csv"]
