"""ISO-8601 period parsing for window expirations and schedule durations."""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta

_PERIOD_RE = re.compile(
    r"^P(?:(?P<years>\d+)Y)?(?:(?P<months>\d+)M)?(?:(?P<weeks>\d+)W)?(?:(?P<days>\d+)D)?"
    r"(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$"
)


class InvalidPeriodError(ValueError):
    """Raised when a string is not a supported ISO-8601 period."""


@dataclass(frozen=True)
class Period:
    """A calendar period: months and years are calendar-aware, the rest are fixed."""

    years: int = 0
    months: int = 0
    weeks: int = 0
    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0

    def _fixed(self) -> timedelta:
        return timedelta(
            weeks=self.weeks,
            days=self.days,
            hours=self.hours,
            minutes=self.minutes,
            seconds=self.seconds,
        )

    def add_to(self, value: date | datetime) -> date | datetime:
        """Add this period to a date or datetime.

        Months and years are added first, clamping the day of month
        (Jan 31 + P1M is Feb 28/29). Aware datetimes use wall-clock arithmetic.
        """
        total_months = self.years * 12 + self.months
        if total_months:
            month_index = value.month - 1 + total_months
            year = value.year + month_index // 12
            month = month_index % 12 + 1
            day = min(value.day, calendar.monthrange(year, month)[1])
            value = value.replace(year=year, month=month, day=day)
        if isinstance(value, datetime):
            return value + self._fixed()
        return value + timedelta(days=self._fixed().days)

    def days_from(self, start: date) -> int:
        """Number of calendar days this period spans when counted from ``start``."""
        return (self.add_to(start) - start).days

    @property
    def is_zero(self) -> bool:
        return not any(
            (self.years, self.months, self.weeks, self.days, self.hours, self.minutes, self.seconds)
        )


def parse_period(text: str) -> Period:
    """Parse ``P[nY][nM][nW][nD][T[nH][nM][nS]]`` into a Period.

    Raises:
        InvalidPeriodError: the string is empty or not a supported period.
    """
    if not isinstance(text, str):
        raise InvalidPeriodError(f"Period must be a string, got {type(text).__name__}")
    candidate = text.strip().upper()
    match = _PERIOD_RE.match(candidate)
    if match is None or candidate in ("P", "PT") or candidate.endswith("T"):
        raise InvalidPeriodError(f"Invalid ISO-8601 period: {text!r}")
    parts = {name: int(value) for name, value in match.groupdict().items() if value}
    return Period(**parts)
