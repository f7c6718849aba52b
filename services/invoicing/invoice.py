"""Invoice line and total calculations."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Sequence

DEFAULT_TAX_RATE = 0.10


@dataclass(frozen=True)
class InvoiceLine:
    description: str
    quantity: float
    unit_price: float
    sku_id: str | None = None

    @property
    def amount(self) -> float:
        return round(self.quantity * self.unit_price, 2)


@dataclass(frozen=True)
class InvoiceTotals:
    """Totals with tax charged on the discounted subtotal."""

    subtotal: float
    discount: float
    tax: float
    total: float

    def to_dict(self) -> dict[str, float]:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "tax": self.tax,
            "total": self.total,
        }


def compute_invoice(
    lines: Sequence[InvoiceLine],
    *,
    discount: float = 0.0,
    tax_rate: float = DEFAULT_TAX_RATE,
) -> InvoiceTotals:
    for line in lines:
        if line.quantity < 0 or line.unit_price < 0:
            raise ValueError(f"Invoice line {line.description!r} has a negative quantity or price")
    if tax_rate < 0:
        raise ValueError("Tax rate must be non-negative")
    subtotal = sum(line.quantity * line.unit_price for line in lines)
    applied_discount = min(max(float(discount), 0.0), subtotal)
    taxable = subtotal - applied_discount
    tax = taxable * tax_rate
    return InvoiceTotals(
        subtotal=round(subtotal, 2),
        discount=round(applied_discount, 2),
        tax=round(tax, 2),
        total=round(taxable + tax, 2),
    )


def lines_from_products(
    products: Iterable[Mapping[str, Any]],
    quantities: Mapping[str, float],
) -> List[InvoiceLine]:
    """Build invoice lines for the SKUs in ``quantities`` using catalog prices."""

    by_sku = {str(product.get("sku_id")): product for product in products}
    lines: List[InvoiceLine] = []
    for sku_id, quantity in quantities.items():
        product = by_sku.get(sku_id)
        if product is None:
            raise KeyError(f"Unknown SKU {sku_id}")
        lines.append(
            InvoiceLine(
                description=str(product.get("name") or sku_id),
                quantity=float(quantity),
                unit_price=float(product.get("price") or 0.0),
                sku_id=sku_id,
            )
        )
    return lines


__all__ = ["DEFAULT_TAX_RATE", "InvoiceLine", "InvoiceTotals", "compute_invoice", "lines_from_products"]
