"""Invoice calculations."""
from .invoice import DEFAULT_TAX_RATE, InvoiceLine, InvoiceTotals, compute_invoice, lines_from_products

__all__ = ["DEFAULT_TAX_RATE", "InvoiceLine", "InvoiceTotals", "compute_invoice", "lines_from_products"]
