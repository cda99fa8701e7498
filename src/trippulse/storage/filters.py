from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from trippulse.ingestion.schemas import TRIP_COLUMNS

FilterValue = Union[bool, int, float, str]


def _check_columns(value: dict[str, object]) -> dict[str, object]:
    unknown = sorted(set(value) - set(TRIP_COLUMNS))
    if unknown:
        raise ValueError(f"Unknown trip columns: {unknown}")
    return value


class TripFilter(BaseModel):
    """Filter/sort/paginate request over persisted trips.

    `equals` maps a column to an exact value; `min_values`/`max_values` are inclusive bounds.
    `start`/`end` bound `pickup_datetime` as [start, end) in local wall-clock time.
    """

    equals: dict[str, FilterValue] = Field(default_factory=dict)
    min_values: dict[str, float] = Field(default_factory=dict)
    max_values: dict[str, float] = Field(default_factory=dict)
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    sort_by: str = "pickup_datetime"
    sort_order: Literal["asc", "desc"] = "desc"
    limit: int = Field(default=100, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)

    @field_validator("equals", "min_values", "max_values")
    @classmethod
    def _known_columns(cls, value: dict) -> dict:
        return _check_columns(value)

    @field_validator("sort_by")
    @classmethod
    def _known_sort_column(cls, value: str) -> str:
        if value not in TRIP_COLUMNS:
            raise ValueError(f"Cannot sort by unknown column: {value}")
        return value
