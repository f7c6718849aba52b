"""Product catalog helpers."""
from __future__ import annotations

import re
from typing import Any, Iterable, Mapping

SKU_PATTERN = re.compile(r"^SKU(\d+)$")
SKU_WIDTH = 4


def next_sku_id(products: Iterable[Mapping[str, Any]]) -> str:
    """Return the SKU following the highest numeric SKU in ``products``."""

    highest = 0
    for product in products:
        match = SKU_PATTERN.match(str(product.get("sku_id") or ""))
        if match:
            highest = max(highest, int(match.group(1)))
    return f"SKU{highest + 1:0{SKU_WIDTH}d}"


__all__ = ["next_sku_id"]
