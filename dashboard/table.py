"""Records table state: sorting, column filters, global search and paging.

``RecordsTable`` works on plain record dicts and knows nothing about HTTP.
The prices page builds one per request from the query string, and the
editable cells use it to apply (and roll back) optimistic edits.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import operator
import re
from typing import Any, Callable, Iterable, Mapping, Optional

from .models import format_price

MULTI = "multi"
EXACT = "exact"
PRICE = "price"


@dataclass(frozen=True)
class Column:
    id: str
    header: str
    filter_kind: str
    editable: bool = False


COLUMNS: tuple[Column, ...] = (
    Column("location", "Location", MULTI),
    Column("provider", "Provider", MULTI),
    Column("service_name", "Service", MULTI),
    Column("company_code", "Code", MULTI),
    Column("company_service_name", "Service (company)", MULTI),
    Column("on_sale", "On sale", EXACT, editable=True),
    Column("price", "Price", PRICE, editable=True),
)
COLUMNS_BY_ID = {column.id: column for column in COLUMNS}

GLOBAL_FILTER_FIELDS = (
    "location",
    "provider",
    "service_name",
    "company_service_name",
    "company_code",
    "on_sale",
    "price",
    "id",
)

DEFAULT_PAGE_SIZE = 10


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------
def display_value(record: Mapping[str, Any], column_id: str) -> str:
    value = record.get(column_id)
    if value is None:
        return ""
    if column_id == "price":
        return format_price(value)
    return str(value)


def global_filter_matches(record: Mapping[str, Any], query: str | None) -> bool:
    """Case-insensitive substring match against the searchable fields."""

    needle = str(query or "").strip().lower()
    if not needle:
        return True
    haystack = " ".join(display_value(record, name) for name in GLOBAL_FILTER_FIELDS)
    return needle in haystack.lower()


def multi_select_matches(value: Any, selected: Iterable[Any] | None) -> bool:
    choices = list(selected or ())
    if not choices:
        return True
    return any(choice == value for choice in choices)


_COMPARATORS: dict[str, Callable[[float, float], bool]] = {
    ">=": operator.ge,
    "<=": operator.le,
    ">": operator.gt,
    "<": operator.lt,
    "=": operator.eq,
}
_PRICE_EXPR = re.compile(r"^\s*(>=|<=|>|<|=)?\s*(-?\d+(?:[.,]\d+)?)\s*$")


def price_filter_matches(price: Any, expression: str | None) -> bool:
    """Match a price against ``>50``, ``<=70``, ``=12.5``, ``70`` or free text."""

    text = str(expression or "").strip()
    if not text:
        return True
    match = _PRICE_EXPR.match(text)
    if match and isinstance(price, (int, float)) and not isinstance(price, bool):
        symbol = match.group(1) or "="
        bound = float(match.group(2).replace(",", "."))
        return _COMPARATORS[symbol](float(price), bound)
    return text.lower() in format_price(price).lower()


def natural_key(value: Any) -> tuple:
    """Sort key that orders digit runs numerically and ignores case."""

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return ((0, float(value), ""),)
    parts = re.split(r"(\d+)", str(value if value is not None else "").lower())
    return tuple((0, int(part), "") if part.isdigit() else (1, 0, part) for part in parts if part)


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------
@dataclass
class TableState:
    """What the user asked for: search text, filters, sort and page."""

    global_filter: str = ""
    column_filters: dict[str, Any] = field(default_factory=dict)
    sort_by: Optional[str] = None
    sort_desc: bool = False
    page_index: int = 0
    page_size: int = DEFAULT_PAGE_SIZE

    @classmethod
    def from_query(cls, args, page_size: int = DEFAULT_PAGE_SIZE) -> "TableState":
        """Build state from a ``MultiDict``-style mapping (``getlist`` aware)."""

        def getlist(name: str) -> list[str]:
            if hasattr(args, "getlist"):
                return [v for v in args.getlist(name) if v is not None]
            value = args.get(name)
            if value is None:
                return []
            return list(value) if isinstance(value, (list, tuple)) else [value]

        def first(name: str) -> str:
            values = getlist(name)
            return str(values[0]).strip() if values else ""

        filters: dict[str, Any] = {}
        for column in COLUMNS:
            if column.filter_kind == MULTI:
                selected = [str(v) for v in getlist(column.id) if str(v).strip()]
                if selected:
                    filters[column.id] = selected
            else:
                value = first(column.id)
                if value:
                    filters[column.id] = value

        sort_by = first("sort") or None
        if sort_by not in COLUMNS_BY_ID:
            sort_by = None
        try:
            page_index = max(0, int(first("page") or 0))
        except ValueError:
            page_index = 0

        return cls(
            global_filter=first("q"),
            column_filters=filters,
            sort_by=sort_by,
            sort_desc=bool(sort_by) and first("desc") in {"1", "true", "yes"},
            page_index=page_index,
            page_size=max(1, page_size),
        )

    def to_query(self, **overrides: Any) -> list[tuple[str, str]]:
        """Serialise back into query pairs, applying ``overrides`` first."""

        state = replace(self, **overrides) if overrides else self
        pairs: list[tuple[str, str]] = []
        if state.global_filter:
            pairs.append(("q", state.global_filter))
        for column in COLUMNS:
            value = state.column_filters.get(column.id)
            if not value:
                continue
            if isinstance(value, (list, tuple)):
                pairs.extend((column.id, str(v)) for v in value)
            else:
                pairs.append((column.id, str(value)))
        if state.sort_by:
            pairs.append(("sort", state.sort_by))
            if state.sort_desc:
                pairs.append(("desc", "1"))
        if state.page_index:
            pairs.append(("page", str(state.page_index)))
        return pairs


class RecordsTable:
    """Client-side table model over an in-memory list of records."""

    def __init__(self, rows: Iterable[Mapping[str, Any]], state: TableState | None = None):
        self.rows: list[dict] = [dict(row) for row in rows]
        self.state = state or TableState()

    # ------------------------------------------------------------------
    # State changes
    # ------------------------------------------------------------------
    def set_global_filter(self, query: str) -> None:
        self.state.global_filter = query or ""
        self.state.page_index = 0

    def set_filter(self, column_id: str, value: Any) -> None:
        if column_id not in COLUMNS_BY_ID:
            raise KeyError(column_id)
        if value in (None, "", [], ()):
            self.state.column_filters.pop(column_id, None)
        else:
            self.state.column_filters[column_id] = value
        self.state.page_index = 0

    def toggle_filter_value(self, column_id: str, value: Any) -> None:
        current = list(self.state.column_filters.get(column_id) or [])
        if any(item == value for item in current):
            current = [item for item in current if item != value]
        else:
            current.append(value)
        self.set_filter(column_id, current or None)

    def toggle_sorting(self, column_id: str) -> None:
        """Cycle a column through ascending, descending and unsorted."""

        if column_id not in COLUMNS_BY_ID:
            raise KeyError(column_id)
        if self.state.sort_by != column_id:
            self.state.sort_by, self.state.sort_desc = column_id, False
        elif not self.state.sort_desc:
            self.state.sort_desc = True
        else:
            self.state.sort_by, self.state.sort_desc = None, False
        self.state.page_index = 0

    def reset(self) -> None:
        self.state.global_filter = ""
        self.state.column_filters = {}
        self.state.page_index = 0

    # ------------------------------------------------------------------
    # Row models
    # ------------------------------------------------------------------
    def _column_matches(self, row: Mapping[str, Any], skip: Optional[str] = None) -> bool:
        for column_id, value in self.state.column_filters.items():
            column = COLUMNS_BY_ID.get(column_id)
            if column is None or column_id == skip:
                continue
            if column.filter_kind == MULTI:
                if not multi_select_matches(row.get(column_id), value):
                    return False
            elif column.filter_kind == EXACT:
                if value and row.get(column_id) != value:
                    return False
            elif not price_filter_matches(row.get(column_id), value):
                return False
        return True

    def filtered_rows(self) -> list[dict]:
        return [
            row
            for row in self.rows
            if self._column_matches(row) and global_filter_matches(row, self.state.global_filter)
        ]

    def sorted_rows(self) -> list[dict]:
        rows = self.filtered_rows()
        if not self.state.sort_by:
            return rows
        column_id = self.state.sort_by
        return sorted(rows, key=lambda row: natural_key(row.get(column_id)), reverse=self.state.sort_desc)

    @property
    def row_count(self) -> int:
        return len(self.filtered_rows())

    @property
    def page_count(self) -> int:
        return max(1, -(-self.row_count // self.state.page_size))

    def page_rows(self) -> list[dict]:
        self.state.page_index = min(self.state.page_index, self.page_count - 1)
        start = self.state.page_index * self.state.page_size
        return self.sorted_rows()[start:start + self.state.page_size]

    @property
    def can_previous_page(self) -> bool:
        return self.state.page_index > 0

    @property
    def can_next_page(self) -> bool:
        return self.state.page_index + 1 < self.page_count

    def next_page(self) -> None:
        if self.can_next_page:
            self.state.page_index += 1

    def previous_page(self) -> None:
        if self.can_previous_page:
            self.state.page_index -= 1

    def facets(self, column_id: str) -> list[Any]:
        """Sorted unique values of ``column_id``.

        Rows are narrowed by the global filter and every other column filter,
        so a column's own selection never hides its remaining options.
        """

        values = {
            row.get(column_id)
            for row in self.rows
            if row.get(column_id) is not None
            and self._column_matches(row, skip=column_id)
            and global_filter_matches(row, self.state.global_filter)
        }
        return sorted(values, key=natural_key)

    # ------------------------------------------------------------------
    # Row access for editable cells
    # ------------------------------------------------------------------
    def find_row(self, record_id: str) -> Optional[dict]:
        target = str(record_id)
        for row in self.rows:
            if str(row.get("id")) == target:
                return row
        return None

    def apply(self, record_id: str, changes: Mapping[str, Any]) -> dict[str, Any]:
        """Merge ``changes`` into a row and return the values they replaced."""

        row = self.find_row(record_id)
        if row is None:
            raise KeyError(record_id)
        previous = {key: row.get(key) for key in changes}
        row.update(changes)
        return previous
