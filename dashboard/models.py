"""Record schemas and the price helpers shared by the API and the table cells."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import math
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ON_SALE_VALUES = ("SI", "NO")

_CENTS = Decimal("0.01")


def _to_decimal(value: Any) -> Decimal:
    """Parse ``value`` into a finite, non-negative ``Decimal``.

    Accepts ints, floats and numeric strings. ``bool`` and ``None`` are
    rejected even though Python would happily treat them as numbers.
    """

    if value is None or isinstance(value, bool):
        raise ValueError("price must be a number")
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError("price must be finite")
        # str() keeps the shortest repr, so 70.005 stays 70.005 here.
        text = str(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("price must be a number")
    else:
        raise ValueError("price must be a number")
    try:
        amount = Decimal(text)
    except InvalidOperation as exc:
        raise ValueError("price must be a number") from exc
    if not amount.is_finite():
        raise ValueError("price must be finite")
    if amount < 0:
        raise ValueError("price cannot be negative")
    return amount


def round_price(value: Any) -> float:
    """Validate ``value`` and round it half-up to two decimals."""

    try:
        quantized = _to_decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        # More digits than the decimal context can hold.
        raise ValueError("price is too large") from exc
    rounded = float(quantized)
    if not math.isfinite(rounded):
        raise ValueError("price must be finite")
    return rounded


def format_price(value: Any) -> str:
    """Render a price the way it is shown and searched in the table."""

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class RecordModel(BaseModel):
    """One priced service entry as stored on disk."""

    id: str = Field(..., min_length=1)
    on_sale: Literal["SI", "NO"]
    price: float = Field(..., ge=0)
    location: str = ""
    provider: str = ""
    service_name: str = ""
    company_code: str = ""
    company_service_name: str = ""


class RecordPatchModel(BaseModel):
    """Partial update accepted by ``PATCH /records/<id>``.

    Unknown keys are dropped. Fields left out of the payload stay unset, so
    ``model_dump(exclude_unset=True)`` yields exactly the changes to merge.
    """

    model_config = ConfigDict(extra="ignore")

    price: Optional[float] = None
    on_sale: Optional[Literal["SI", "NO"]] = None

    @field_validator("price", mode="before")
    @classmethod
    def validate_price(cls, value):
        return round_price(value)

    @field_validator("on_sale", mode="before")
    @classmethod
    def validate_on_sale(cls, value):
        if not isinstance(value, str) or value not in ON_SALE_VALUES:
            raise ValueError("on_sale must be exactly 'SI' or 'NO'")
        return value

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)
