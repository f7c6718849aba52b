"""Stock status and inventory summary helpers."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable, List, Mapping, Optional

IN_STOCK = "in_stock"
LOW_STOCK = "low_stock"
OUT_OF_STOCK = "out_of_stock"
STATUS_LABELS = {
    IN_STOCK: "In Stock",
    LOW_STOCK: "Low Stock",
    OUT_OF_STOCK: "Out of Stock",
}


@dataclass(frozen=True)
class InventorySummary:
    """Headline numbers for an inventory listing."""

    total_items: int
    in_stock: int
    low_stock: int
    out_of_stock: int
    total_value: float

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def stock_status(current: Any, minimum: Any) -> str:
    """Classify a stock level against its minimum."""

    current_value = _coerce_float(current) or 0.0
    minimum_value = _coerce_float(minimum) or 0.0
    if current_value <= 0:
        return OUT_OF_STOCK
    if current_value <= minimum_value:
        return LOW_STOCK
    return IN_STOCK


def stock_level_percent(current: Any, minimum: Any) -> float:
    """Stock as a share of the minimum, capped at 100."""

    current_value = max(_coerce_float(current) or 0.0, 0.0)
    minimum_value = _coerce_float(minimum) or 0.0
    if minimum_value <= 0:
        return 100.0 if current_value > 0 else 0.0
    return round(min(current_value / minimum_value * 100.0, 100.0), 1)


def record_status(
    record: Mapping[str, Any],
    *,
    stock_field: str = "current_stock",
    minimum_field: str = "minimum_req_stock",
) -> str:
    return stock_status(record.get(stock_field), record.get(minimum_field))


def summarize_inventory(
    records: Iterable[Mapping[str, Any]],
    *,
    stock_field: str = "current_stock",
    minimum_field: str = "minimum_req_stock",
    price_field: str = "price",
) -> InventorySummary:
    counts = {IN_STOCK: 0, LOW_STOCK: 0, OUT_OF_STOCK: 0}
    total_value = 0.0
    total = 0
    for record in records:
        total += 1
        counts[record_status(record, stock_field=stock_field, minimum_field=minimum_field)] += 1
        stock = max(_coerce_float(record.get(stock_field)) or 0.0, 0.0)
        price = _coerce_float(record.get(price_field)) or 0.0
        total_value += stock * price
    return InventorySummary(
        total_items=total,
        in_stock=counts[IN_STOCK],
        low_stock=counts[LOW_STOCK],
        out_of_stock=counts[OUT_OF_STOCK],
        total_value=round(total_value, 2),
    )


def filter_inventory(
    records: Iterable[Mapping[str, Any]],
    *,
    category: str = "all",
    status: str = "all",
    query: str = "",
    stock_field: str = "current_stock",
    minimum_field: str = "minimum_req_stock",
    search_fields: tuple[str, ...] = ("name", "sku_id", "category"),
) -> List[Mapping[str, Any]]:
    """Filter by category, stock status and a free-text query."""

    wanted_category = (category or "all").strip().lower()
    wanted_status = (status or "all").strip().lower()
    needle = (query or "").strip().lower()
    matches: List[Mapping[str, Any]] = []
    for record in records:
        if wanted_category != "all" and str(record.get("category") or "").lower() != wanted_category:
            continue
        if wanted_status != "all":
            current = record_status(record, stock_field=stock_field, minimum_field=minimum_field)
            if current != wanted_status:
                continue
        if needle and not any(needle in str(record.get(name) or "").lower() for name in search_fields):
            continue
        matches.append(record)
    return matches


def _coerce_float(value: Any) -> Optional[float]:
    try:
        if isinstance(value, bool):
            return float(value)
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


__all__ = [
    "IN_STOCK",
    "LOW_STOCK",
    "OUT_OF_STOCK",
    "STATUS_LABELS",
    "InventorySummary",
    "filter_inventory",
    "record_status",
    "stock_level_percent",
    "stock_status",
    "summarize_inventory",
]
