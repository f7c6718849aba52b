"""Grid layouts for the dashboard tables."""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence

from packages.schema import BATCH_STATUSES
from services.inventory import IN_STOCK, LOW_STOCK, OUT_OF_STOCK, record_status
from services.stores import EntityStore

from .grid import DEFAULT_PAGE_SIZE_OPTIONS, DataGrid, GridColumn, RowPredicate

PRODUCT_COLUMNS = (
    GridColumn("sku_id", "SKU", searchable=True),
    GridColumn("name", "Name", searchable=True, editable=True),
    GridColumn("category", "Category", searchable=True, editable=True),
    GridColumn("type", "Type", searchable=True),
    GridColumn("material", "Material"),
    GridColumn("current_stock", "Stock", editable=True),
    GridColumn("minimum_req_stock", "Min. Stock", editable=True),
    GridColumn("price", "Price", editable=True),
    GridColumn("updated_at", "Last Updated"),
)

RAW_MATERIAL_COLUMNS = (
    GridColumn("name", "Name", searchable=True, editable=True),
    GridColumn("supplier", "Supplier", searchable=True, editable=True),
    GridColumn("unit", "Unit"),
    GridColumn("current_stock", "Stock", editable=True),
    GridColumn("min_required_stock", "Min. Stock", editable=True),
    GridColumn("cost_per_unit", "Cost", editable=True),
)

PRODUCTION_COLUMNS = (
    GridColumn("batch_number", "Batch", searchable=True),
    GridColumn("status", "Status", searchable=True, editable=True),
    GridColumn("quantity_produced", "Produced", editable=True),
    GridColumn("quantity_wasted", "Wasted", editable=True),
    GridColumn("start_date", "Start"),
    GridColumn("end_date", "End"),
    GridColumn("notes", "Notes", searchable=True, editable=True, sortable=False),
)

PRODUCT_MATERIAL_COLUMNS = (
    GridColumn(
        "product",
        "Product",
        searchable=True,
        accessor=lambda record: (record.get("product") or {}).get("name"),
    ),
    GridColumn(
        "material",
        "Material",
        searchable=True,
        accessor=lambda record: (record.get("material") or {}).get("name"),
    ),
    GridColumn("quantity", "Quantity", editable=True),
    GridColumn("unit", "Unit", editable=True),
)


def _build(
    store: EntityStore,
    columns: Sequence[GridColumn],
    tabs: Mapping[str, RowPredicate],
    page_size: int,
    page_size_options: Sequence[int],
    **kwargs: Any,
) -> DataGrid:
    return DataGrid(
        store,
        columns,
        tabs=tabs,
        page_size=page_size,
        page_size_options=page_size_options,
        **kwargs,
    )


def product_grid(
    store: EntityStore,
    *,
    page_size: int = 10,
    page_size_options: Sequence[int] = DEFAULT_PAGE_SIZE_OPTIONS,
    **kwargs: Any,
) -> DataGrid:
    tabs: Dict[str, RowPredicate] = {
        "active": lambda r: bool(r.get("is_active")) and not r.get("is_deprecated"),
        "deprecated": lambda r: bool(r.get("is_deprecated")),
    }
    return _build(store, PRODUCT_COLUMNS, tabs, page_size, page_size_options, **kwargs)


def raw_material_grid(
    store: EntityStore,
    *,
    page_size: int = 10,
    page_size_options: Sequence[int] = DEFAULT_PAGE_SIZE_OPTIONS,
    **kwargs: Any,
) -> DataGrid:
    tabs = {status: _stock_tab(status) for status in (IN_STOCK, LOW_STOCK, OUT_OF_STOCK)}
    return _build(store, RAW_MATERIAL_COLUMNS, tabs, page_size, page_size_options, **kwargs)


def production_grid(
    store: EntityStore,
    *,
    page_size: int = 10,
    page_size_options: Sequence[int] = DEFAULT_PAGE_SIZE_OPTIONS,
    **kwargs: Any,
) -> DataGrid:
    tabs = {status: _status_tab(status) for status in BATCH_STATUSES}
    return _build(store, PRODUCTION_COLUMNS, tabs, page_size, page_size_options, **kwargs)


def product_material_grid(
    store: EntityStore,
    *,
    page_size: int = 10,
    page_size_options: Sequence[int] = DEFAULT_PAGE_SIZE_OPTIONS,
    **kwargs: Any,
) -> DataGrid:
    return _build(store, PRODUCT_MATERIAL_COLUMNS, {}, page_size, page_size_options, **kwargs)


def _stock_tab(status: str) -> RowPredicate:
    def predicate(record: Mapping[str, Any]) -> bool:
        return record_status(record, minimum_field="min_required_stock") == status

    return predicate


def _status_tab(status: str) -> RowPredicate:
    def predicate(record: Mapping[str, Any]) -> bool:
        return record.get("status") == status

    return predicate


def grid_for(store: EntityStore, **kwargs: Any) -> Optional[DataGrid]:
    """Return the preset grid matching ``store``'s entity, if there is one."""

    factory = {
        "products": product_grid,
        "raw_materials": raw_material_grid,
        "production_batches": production_grid,
        "precast_product_materials": product_material_grid,
    }.get(store.entity.table)
    if factory is None:
        return None
    return factory(store, **kwargs)


__all__ = [
    "PRODUCTION_COLUMNS",
    "PRODUCT_COLUMNS",
    "PRODUCT_MATERIAL_COLUMNS",
    "RAW_MATERIAL_COLUMNS",
    "grid_for",
    "product_grid",
    "product_material_grid",
    "production_grid",
    "raw_material_grid",
]
