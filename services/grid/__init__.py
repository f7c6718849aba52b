"""Table views over entity stores."""
from .grid import DEFAULT_PAGE_SIZE_OPTIONS, DataGrid, GridColumn, GridState, ReorderError, RowPredicate
from .presets import grid_for, product_grid, product_material_grid, production_grid, raw_material_grid

__all__ = [
    "DEFAULT_PAGE_SIZE_OPTIONS",
    "DataGrid",
    "GridColumn",
    "GridState",
    "ReorderError",
    "RowPredicate",
    "grid_for",
    "product_grid",
    "product_material_grid",
    "production_grid",
    "raw_material_grid",
]
