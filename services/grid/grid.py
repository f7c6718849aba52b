"""Sortable, filterable, paginated view over an entity store."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set

from services.stores import CancelToken, EntityStore

RowPredicate = Callable[[Mapping[str, Any]], bool]

ORDER_FIELD = "order_index"
DEFAULT_PAGE_SIZE_OPTIONS = (10, 20, 30, 40, 50)


class ReorderError(RuntimeError):
    """A reorder stopped part way; ``persisted`` lists the rows already written."""

    def __init__(self, message: str, persisted: Sequence[Any]) -> None:
        super().__init__(message)
        self.persisted = list(persisted)


@dataclass(frozen=True)
class GridColumn:
    key: str
    label: str = ""
    sortable: bool = True
    searchable: bool = False
    editable: bool = False
    accessor: Optional[Callable[[Mapping[str, Any]], Any]] = None

    def value(self, record: Mapping[str, Any]) -> Any:
        if self.accessor is not None:
            return self.accessor(record)
        return record.get(self.key)


@dataclass
class GridState:
    """Display state owned by one grid; never written back to the store."""

    sort_key: Optional[str] = None
    sort_descending: bool = False
    filter_text: str = ""
    tab: str = "all"
    page_index: int = 0
    page_size: int = 10
    expanded: Set[Any] = field(default_factory=set)
    selected: Set[Any] = field(default_factory=set)


class DataGrid:
    """Project a store's records into pages and route edits back to the store."""

    def __init__(
        self,
        store: EntityStore,
        columns: Sequence[GridColumn],
        *,
        tabs: Optional[Mapping[str, RowPredicate]] = None,
        default_tab: str = "all",
        page_size: int = 10,
        page_size_options: Sequence[int] = DEFAULT_PAGE_SIZE_OPTIONS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.columns: Dict[str, GridColumn] = {column.key: column for column in columns}
        self.tabs: Dict[str, RowPredicate] = {"all": lambda _record: True}
        self.tabs.update(tabs or {})
        if default_tab not in self.tabs:
            raise ValueError(f"Unknown tab: {default_tab}")
        self.page_size_options = tuple(sorted({int(size) for size in page_size_options if int(size) > 0}))
        if not self.page_size_options:
            raise ValueError("At least one positive page size is required")
        if page_size not in self.page_size_options:
            page_size = self.page_size_options[0]
        self.state = GridState(tab=default_tab, page_size=page_size)
        self._logger = logger or logging.getLogger("precastflow.grid")

    # Projection -------------------------------------------------------------------
    def visible_rows(self) -> List[Dict[str, Any]]:
        """All rows passing the tab and text filters, in display order."""

        predicate = self.tabs[self.state.tab]
        rows = [record for record in self.store.records if predicate(record)]
        needle = self.state.filter_text.strip().lower()
        if needle:
            searchable = [c for c in self.columns.values() if c.searchable] or list(self.columns.values())
            rows = [
                record
                for record in rows
                if any(needle in _text(column.value(record)) for column in searchable)
            ]
        return self._ordered(rows)

    def page_rows(self) -> List[Dict[str, Any]]:
        rows = self.visible_rows()
        pages = _page_count(len(rows), self.state.page_size)
        if self.state.page_index >= pages:
            self.state.page_index = pages - 1
        start = self.state.page_index * self.state.page_size
        return rows[start : start + self.state.page_size]

    def page_count(self) -> int:
        return _page_count(len(self.visible_rows()), self.state.page_size)

    def tab_counts(self) -> Dict[str, int]:
        records = self.store.records
        return {name: sum(1 for record in records if predicate(record)) for name, predicate in self.tabs.items()}

    # Sorting ------------------------------------------------------------------------
    def toggle_sort(self, key: str) -> None:
        """Cycle a column through ascending, descending and unsorted."""

        column = self._column(key)
        if not column.sortable:
            raise ValueError(f"Column {key} is not sortable")
        if self.state.sort_key != key:
            self.state.sort_key, self.state.sort_descending = key, False
        elif not self.state.sort_descending:
            self.state.sort_descending = True
        else:
            self.state.sort_key, self.state.sort_descending = None, False

    def set_sort(self, key: Optional[str], *, descending: bool = False) -> None:
        if key is not None and not self._column(key).sortable:
            raise ValueError(f"Column {key} is not sortable")
        self.state.sort_key = key
        self.state.sort_descending = descending if key is not None else False

    # Filtering ----------------------------------------------------------------------
    def set_filter(self, text: str) -> None:
        self.state.filter_text = text or ""
        self.state.page_index = 0

    def set_tab(self, tab: str) -> None:
        if tab not in self.tabs:
            raise ValueError(f"Unknown tab: {tab}")
        self.state.tab = tab
        self.state.page_index = 0

    # Pagination ---------------------------------------------------------------------
    def set_page_size(self, size: int) -> None:
        if size not in self.page_size_options:
            raise ValueError(f"Page size must be one of {list(self.page_size_options)}")
        self.state.page_size = size
        self.state.page_index = 0

    def go_to_page(self, index: int) -> None:
        self.state.page_index = min(max(int(index), 0), self.page_count() - 1)

    def first_page(self) -> None:
        self.go_to_page(0)

    def last_page(self) -> None:
        self.go_to_page(self.page_count() - 1)

    def next_page(self) -> None:
        self.go_to_page(self.state.page_index + 1)

    def previous_page(self) -> None:
        self.go_to_page(self.state.page_index - 1)

    def can_next_page(self) -> bool:
        return self.state.page_index < self.page_count() - 1

    def can_previous_page(self) -> bool:
        return self.state.page_index > 0

    # Row state ----------------------------------------------------------------------
    def toggle_expanded(self, key: Any) -> bool:
        """Flip a row's expanded flag and return the new value."""

        if key in self.state.expanded:
            self.state.expanded.discard(key)
            return False
        self.state.expanded.add(key)
        return True

    def is_expanded(self, key: Any) -> bool:
        return key in self.state.expanded

    def toggle_selected(self, key: Any) -> bool:
        if key in self.state.selected:
            self.state.selected.discard(key)
            return False
        self.state.selected.add(key)
        return True

    def select_page(self) -> None:
        pk = self.store.primary_key
        self.state.selected.update(record[pk] for record in self.page_rows())

    def clear_selection(self) -> None:
        self.state.selected.clear()

    # Persistent gestures --------------------------------------------------------------
    def edit_cell(
        self,
        key: Any,
        column_key: str,
        value: Any,
        cancel: Optional[CancelToken] = None,
    ) -> Dict[str, Any]:
        """Write an inline edit through the store."""

        column = self._column(column_key)
        if not column.editable:
            raise ValueError(f"Column {column_key} is not editable")
        return self.store.update(key, {column.key: value}, cancel)

    def move_row(
        self,
        active_key: Any,
        over_key: Any,
        cancel: Optional[CancelToken] = None,
    ) -> List[Any]:
        """Move ``active_key`` to the position of ``over_key`` and persist the order.

        Both rows must be visible, but the move is applied to the whole
        collection so rows hidden by the tab or filter keep a distinct
        ``order_index``. Writes stop at the first failure, raising
        ``ReorderError`` with the keys already persisted. Returns the new key
        order of the visible rows.
        """

        if ORDER_FIELD not in self.store.entity.fields:
            raise ValueError(f"{self.store.entity.name} rows cannot be reordered")
        if self.state.sort_key is not None:
            raise ValueError(f"Cannot reorder rows while sorted by {self.state.sort_key}")
        pk = self.store.primary_key
        visible = [record[pk] for record in self.visible_rows()]
        if active_key not in visible or over_key not in visible:
            raise ValueError("Both rows must be visible to reorder")
        if active_key == over_key:
            return visible
        rows = self._ordered(list(self.store.records))
        keys = [record[pk] for record in rows]
        reordered = _array_move(rows, keys.index(active_key), keys.index(over_key))
        shown = set(visible)
        new_keys = [record[pk] for record in reordered if record[pk] in shown]
        self._logger.info("Reordered %s: %s", self.store.entity.table, new_keys)
        persisted: List[Any] = []
        for position, record in enumerate(reordered):
            if record.get(ORDER_FIELD) == position:
                continue
            try:
                self.store.update(record[pk], {ORDER_FIELD: position}, cancel)
            except Exception as exc:
                self._logger.error(
                    "Reorder of %s stopped at %s after %d rows: %s",
                    self.store.entity.table,
                    record[pk],
                    len(persisted),
                    exc,
                )
                raise ReorderError(f"Could not move {record[pk]} to position {position}: {exc}", persisted) from exc
            persisted.append(record[pk])
        return new_keys

    # Internal helpers ---------------------------------------------------------------
    def _column(self, key: str) -> GridColumn:
        try:
            return self.columns[key]
        except KeyError:
            raise ValueError(f"Unknown column: {key}") from None

    def _ordered(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if self.state.sort_key is None:
            return sorted(rows, key=lambda r: (r.get(ORDER_FIELD) is None, r.get(ORDER_FIELD) or 0))
        column = self._column(self.state.sort_key)
        present = [r for r in rows if column.value(r) is not None]
        missing = [r for r in rows if column.value(r) is None]
        present.sort(key=lambda r: _sort_value(column.value(r)), reverse=self.state.sort_descending)
        return present + missing


def _page_count(total: int, page_size: int) -> int:
    return max(1, math.ceil(total / page_size))


def _array_move(items: List[Any], from_index: int, to_index: int) -> List[Any]:
    moved = list(items)
    moved.insert(to_index, moved.pop(from_index))
    return moved


def _text(value: Any) -> str:
    return "" if value is None else str(value).lower()


def _sort_value(value: Any) -> tuple:
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (0, value)
    if isinstance(value, str):
        return (1, value.lower())
    return (2, str(value))


__all__ = ["DEFAULT_PAGE_SIZE_OPTIONS", "DataGrid", "GridColumn", "GridState", "ReorderError", "RowPredicate"]
