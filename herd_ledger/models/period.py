"""
Accounting Period

A (year, month) pair. Journal entries, reconciliation rows and the
idempotency checks of the batch tools are all keyed by period.
"""

import calendar
from datetime import date
from functools import total_ordering

from pydantic import BaseModel, ConfigDict, Field


@total_ordering
class Period(BaseModel):
    """A calendar month."""

    model_config = ConfigDict(frozen=True)

    year: int = Field(..., ge=1900, le=9999)
    month: int = Field(..., ge=1, le=12)

    @classmethod
    def from_date(cls, value: date) -> "Period":
        return cls(year=value.year, month=value.month)

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, self.days_in_month)

    @property
    def days_in_month(self) -> int:
        return calendar.monthrange(self.year, self.month)[1]

    @property
    def index(self) -> int:
        """Months since year 0, for arithmetic between periods."""
        return self.year * 12 + (self.month - 1)

    def shift(self, months: int) -> "Period":
        index = self.index + months
        return Period(year=index // 12, month=index % 12 + 1)

    def next(self) -> "Period":
        return self.shift(1)

    def previous(self) -> "Period":
        return self.shift(-1)

    def months_until(self, other: "Period") -> int:
        return other.index - self.index

    def contains(self, value: date) -> bool:
        return value.year == self.year and value.month == self.month

    def __lt__(self, other: "Period") -> bool:
        if not isinstance(other, Period):
            return NotImplemented
        return self.index < other.index

    def __str__(self) -> str:
        return f"{self.year}-{self.month:02d}"


def iter_periods(start: Period, end: Period):
    """Yield every period from start through end, inclusive."""
    current = start
    while current <= end:
        yield current
        current = current.next()
