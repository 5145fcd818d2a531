from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

UPCOMING_WINDOW_DAYS = 7


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.start, time(0, 0, 0))

    @property
    def ends_at(self) -> datetime:
        return datetime.combine(self.end, time(23, 59, 59))


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        return 31
    return (date(year, month + 1, 1) - date(year, month, 1)).days


def month_end(year: int, month: int) -> date:
    return date(year, month, days_in_month(year, month))


def parse_year_month(value: str) -> tuple[int, int]:
    parts = (value or "").strip().split("-")
    if len(parts) != 2 or not all(p.isascii() and p.isdigit() for p in parts):
        raise ValueError("Invalid month parameter. Use the YYYY-MM format.")
    year, month = int(parts[0]), int(parts[1])
    if not 1 <= month <= 12 or not 1 <= year <= 9999:
        raise ValueError("Invalid month parameter. Use the YYYY-MM format.")
    return year, month


def month_period(year: int, month: int) -> Period:
    return Period(f"{year:04d}-{month:02d}", date(year, month, 1), month_end(year, month))


def resolve_month(value: Optional[str], *, today: Optional[date] = None) -> Period:
    """Period for ``YYYY-MM``, or the calendar month containing ``today``."""
    if value:
        return month_period(*parse_year_month(value))
    today = today or date.today()
    return month_period(today.year, today.month)


def upcoming_window(today: date, days: int = UPCOMING_WINDOW_DAYS) -> Period:
    return Period("upcoming", today, today + timedelta(days=days))
