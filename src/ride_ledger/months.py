"""Calendar helpers: month keys, half-open month ranges and weekday listing."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta

ISO_DATE_FORMAT = "%Y-%m-%d"
MONTH_KEY_FORMAT = "%Y-%m"


@dataclass(frozen=True)
class MonthRange:
    """Half-open ``[start, end_exclusive)`` interval of ISO date strings."""

    start: str
    end_exclusive: str

    def contains(self, iso_date: str) -> bool:
        """Return True if the zero-padded ISO date falls inside the month."""
        return self.start <= iso_date < self.end_exclusive


def month_key(target_date: date) -> str:
    """Return the ``yyyy-MM`` key of the month containing ``target_date``."""
    return target_date.strftime(MONTH_KEY_FORMAT)


def start_of_month(target_date: date) -> date:
    return date(target_date.year, target_date.month, 1)


def next_month_start(target_date: date) -> date:
    if target_date.month == 12:
        return date(target_date.year + 1, 1, 1)
    return date(target_date.year, target_date.month + 1, 1)


def month_range(target_date: date) -> MonthRange:
    """Return the month containing ``target_date`` as a half-open range."""
    start = start_of_month(target_date)
    return MonthRange(
        start=start.strftime(ISO_DATE_FORMAT),
        end_exclusive=next_month_start(start).strftime(ISO_DATE_FORMAT),
    )


def parse_month(value: str) -> date:
    """Parse a ``yyyy-MM`` key into the first day of that month.

    Raises:
        ValueError: If the value is not a valid month key.
    """
    parts = value.strip().split("-")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise ValueError(f"Invalid month {value!r}, expected yyyy-MM")
    year, month = int(parts[0]), int(parts[1])
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month {value!r}, month out of range")
    return date(year, month, 1)


def parse_iso_date(value: str) -> date:
    """Parse a ``yyyy-MM-dd`` string.

    Raises:
        ValueError: If the value is not a valid ISO calendar date.
    """
    return date.fromisoformat(value.strip())


def current_month_key() -> str:
    return month_key(date.today())


def weekdays_in_month(target_date: date) -> list[str]:
    """List every Monday-Friday of the month containing ``target_date``."""
    first = start_of_month(target_date)
    _, days_in_month = calendar.monthrange(first.year, first.month)
    days = (first + timedelta(days=offset) for offset in range(days_in_month))
    # weekday(): Monday == 0 ... Saturday == 5, Sunday == 6
    return [day.strftime(ISO_DATE_FORMAT) for day in days if day.weekday() < 5]
