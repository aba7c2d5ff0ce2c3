from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def _normalize(year: int, month: int) -> tuple[int, int]:
    total_months = year * 12 + (month - 1)
    return total_months // 12, total_months % 12 + 1


def clamp_date(year: int, month: int, day: int) -> date:
    """Build a date, snapping `day` to the last day of the month when needed."""
    year, month = _normalize(year, month)
    return date(year, month, min(max(day, 1), days_in_month(year, month)))


def roll_date(year: int, month: int, day: int) -> date:
    """Build a date, letting an out-of-range day overflow into the next month.

    `roll_date(2024, 4, 31)` is 2024-05-01. Month values outside 1..12 wrap
    across year boundaries.
    """
    year, month = _normalize(year, month)
    return date(year, month, 1) + timedelta(days=day - 1)


def add_months(base: date, months: int, *, day: Optional[int] = None) -> date:
    desired_day = base.day if day is None else day
    return clamp_date(base.year, base.month + months, desired_day)


@dataclass(frozen=True, order=True)
class Month:
    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Invalid month: {self.month}")

    @classmethod
    def from_date(cls, value: date) -> "Month":
        return cls(value.year, value.month)

    @classmethod
    def parse(cls, value: str) -> "Month":
        try:
            year_raw, month_raw = value.strip().split("-")
            return cls(int(year_raw), int(month_raw))
        except ValueError as exc:
            raise ValueError(f"Invalid month '{value}', expected YYYY-MM") from exc

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, days_in_month(self.year, self.month))

    def shift(self, months: int) -> "Month":
        year, month = _normalize(self.year, self.month + months)
        return Month(year, month)

    def on_day(self, day: int) -> date:
        return clamp_date(self.year, self.month, day)

    def contains(self, value: date) -> bool:
        return value.year == self.year and value.month == self.month

    def __str__(self) -> str:
        return self.key


def month_range(start: Month, end: Month) -> list[Month]:
    months: list[Month] = []
    current = start
    while current <= end:
        months.append(current)
        current = current.shift(1)
    return months


def invoice_period(closing_day: int, year: int, month: int) -> Period:
    # No clamping: closing_day=31 in a 30-day month rolls to the 1st.
    end = roll_date(year, month, closing_day)
    start = roll_date(year, month - 1, closing_day + 1)
    return Period(f"invoice:{year:04d}-{month:02d}", start, end)


def resolve_month(value: Optional[str], *, today: date) -> Month:
    if not value or value == "this_month":
        return Month.from_date(today)
    if value == "last_month":
        return Month.from_date(today).shift(-1)
    if value == "next_month":
        return Month.from_date(today).shift(1)
    return Month.parse(value)
