from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Mapping

from .errors import ValidationError


@dataclass(frozen=True)
class Period:
    """Calendar filter for time-scoped listings.

    ``day`` wins over ``month``/``year``. ``year`` alone covers the whole
    year, ``month`` + ``year`` a single calendar month. Bounds are
    half-open: ``start <= value < end``.
    """

    day: date | None = None
    month: int | None = None
    year: int | None = None

    def __post_init__(self) -> None:
        if self.day is not None:
            return
        if self.month is not None and self.year is None:
            raise ValidationError("year is required when filtering by month")
        if self.month is not None and not 1 <= self.month <= 12:
            raise ValidationError(f"month must be 1-12, got {self.month}")
        if self.year is not None and not 1 <= self.year <= 9998:
            raise ValidationError(f"invalid year: {self.year}")

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> "Period":
        raw_date = (params.get("date") or "").strip()
        raw_month = (params.get("month") or "").strip()
        raw_year = (params.get("year") or "").strip()

        day = None
        if raw_date:
            try:
                day = date.fromisoformat(raw_date[:10])
            except ValueError as e:
                raise ValidationError(f"invalid date: {raw_date!r}") from e

        try:
            month = int(raw_month) if raw_month else None
            year = int(raw_year) if raw_year else None
        except ValueError as e:
            raise ValidationError("month and year must be numbers") from e

        return cls(day=day, month=month, year=year)

    @property
    def is_unbounded(self) -> bool:
        return self.day is None and self.year is None

    def bounds(self) -> tuple[date, date] | None:
        if self.day is not None:
            return self.day, self.day + timedelta(days=1)
        if self.year is None:
            return None
        if self.month is None:
            return date(self.year, 1, 1), date(self.year + 1, 1, 1)
        start = date(self.year, self.month, 1)
        if self.month == 12:
            return start, date(self.year + 1, 1, 1)
        return start, date(self.year, self.month + 1, 1)

    def contains(self, value: date | datetime | None) -> bool:
        b = self.bounds()
        if b is None:
            return True
        if value is None:
            return False
        if isinstance(value, datetime):
            value = value.date()
        start, end = b
        return start <= value < end

    def describe(self) -> str:
        if self.day is not None:
            return f"Date: {self.day.isoformat()}"
        if self.year is not None and self.month is not None:
            return f"Month: {self.month:02d}-{self.year}"
        if self.year is not None:
            return f"Year: {self.year}"
        return "All Time"
