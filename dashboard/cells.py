"""Editable table cells with optimistic updates.

A cell keeps a draft next to the last committed value. Committing validates
the draft, writes the new value into the table row straight away, then calls
the update function. If that call fails for any reason the row and the cell
go back to the previous value and ``error`` explains what happened.

The update function has the signature ``update(record_id, patch)`` and may
return the record as stored by the server; when it does, the row is
reconciled with the server's values.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Mapping, Optional

from .models import ON_SALE_VALUES, format_price, round_price
from .table import RecordsTable

logger = logging.getLogger(__name__)

UpdateFn = Callable[[str, dict], Optional[Mapping[str, Any]]]

MAX_PRICE = 100000

MSG_NOT_A_NUMBER = "Enter a number."
MSG_NEGATIVE = "Price cannot be negative."
MSG_TOO_HIGH = "Price looks too high."
MSG_BAD_ON_SALE = "Choose SI or NO."
MSG_SAVE_FAILED = "Save failed."


def normalize_price_input(text: str) -> Optional[float]:
    """Parse ``"70"``, ``"70.5"`` or ``"70,5"``; ``None`` when not a number."""

    cleaned = str(text or "").strip().replace(",", ".", 1)
    if not cleaned:
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def validate_price(value: float) -> Optional[str]:
    """Return an error message for an out-of-range price, else ``None``."""

    if value < 0:
        return MSG_NEGATIVE
    if value > MAX_PRICE:
        return MSG_TOO_HIGH
    return None


class EditableCell:
    column_id = ""

    def __init__(self, table: RecordsTable, record_id: str, update: UpdateFn):
        row = table.find_row(record_id)
        if row is None:
            raise KeyError(record_id)
        self.table = table
        self.record_id = str(record_id)
        self.update = update
        self.value = row.get(self.column_id)
        self.draft = self.render(self.value)
        self.error: Optional[str] = None
        self.saving = False

    def render(self, value: Any) -> str:
        return "" if value is None else str(value)

    def edit(self, text: Any) -> None:
        self.draft = str(text if text is not None else "")

    def cancel(self) -> None:
        self.error = None
        self.draft = self.render(self.value)

    def parse(self, text: str) -> tuple[Any, Optional[str]]:
        raise NotImplementedError

    def commit(self) -> bool:
        """Validate the draft and save it; ``True`` when the value changed."""

        self.error = None
        next_value, problem = self.parse(self.draft)
        if problem:
            self.error = problem
            self.draft = self.render(self.value)
            return False
        if next_value == self.value:
            self.draft = self.render(self.value)
            return False
        return self._save(next_value)

    def _save(self, next_value: Any) -> bool:
        previous = self.value
        self.value = next_value
        self.draft = self.render(next_value)
        self.table.apply(self.record_id, {self.column_id: next_value})
        self.saving = True
        try:
            stored = self.update(self.record_id, {self.column_id: next_value})
        except Exception as exc:
            logger.warning("Rolling back %s on %s: %s", self.column_id, self.record_id, exc)
            self.value = previous
            self.draft = self.render(previous)
            self.table.apply(self.record_id, {self.column_id: previous})
            self.error = MSG_SAVE_FAILED
            return False
        finally:
            self.saving = False
        if stored and self.column_id in stored:
            self.value = stored[self.column_id]
            self.draft = self.render(self.value)
            self.table.apply(self.record_id, {self.column_id: self.value})
        return True


class PriceCell(EditableCell):
    column_id = "price"

    def render(self, value: Any) -> str:
        return "" if value is None else format_price(value)

    def parse(self, text: str) -> tuple[Any, Optional[str]]:
        parsed = normalize_price_input(text)
        if parsed is None:
            return None, MSG_NOT_A_NUMBER
        if parsed < 0:
            return None, MSG_NEGATIVE
        if parsed > MAX_PRICE:
            return None, MSG_TOO_HIGH
        rounded = round_price(parsed)
        return rounded, validate_price(rounded)


class OnSaleCell(EditableCell):
    column_id = "on_sale"

    def parse(self, text: str) -> tuple[Any, Optional[str]]:
        value = str(text or "").strip()
        if value not in ON_SALE_VALUES:
            return None, MSG_BAD_ON_SALE
        return value, None


CELL_TYPES = {cls.column_id: cls for cls in (PriceCell, OnSaleCell)}


def cell_for(table: RecordsTable, record_id: str, column_id: str, update: UpdateFn) -> EditableCell:
    try:
        cell_type = CELL_TYPES[column_id]
    except KeyError:
        raise KeyError(f"Column {column_id!r} is not editable") from None
    return cell_type(table, record_id, update)
