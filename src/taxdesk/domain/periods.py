"""Accounting period date arithmetic.

All instants are naive local datetimes; a period is a local calendar month.
"""

import calendar
import re
from collections.abc import Iterable
from datetime import date, datetime, time

from .models import (
    AccountingPeriod,
    CurrentPeriodStatus,
    PeriodKey,
    PeriodRange,
    PeriodStatus,
)

END_OF_DAY = time(23, 59, 59, 999000)
TAX_DEADLINE_DAY = 20

PERIOD_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")

MONTH_NAMES = {
    "pl": [
        "styczeń",
        "luty",
        "marzec",
        "kwiecień",
        "maj",
        "czerwiec",
        "lipiec",
        "sierpień",
        "wrzesień",
        "październik",
        "listopad",
        "grudzień",
    ],
    "en": [
        "January",
        "February",
        "March",
        "April",
        "May",
        "June",
        "July",
        "August",
        "September",
        "October",
        "November",
        "December",
    ],
}


def last_day(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def end_of_day(value: date) -> datetime:
    return datetime.combine(value, END_OF_DAY)


def period_range(key: PeriodKey) -> PeriodRange:
    """First and last instant of the month."""
    start = datetime(key.year, key.month, 1)
    end = end_of_day(date(key.year, key.month, last_day(key.year, key.month)))
    return PeriodRange(start=start, end=end)


def label(key: PeriodKey, locale: str = "pl") -> str:
    """Month name and year, e.g. "czerwiec 2024"."""
    try:
        names = MONTH_NAMES[locale]
    except KeyError:
        raise ValueError(f"Unsupported locale: {locale}") from None
    return f"{names[key.month - 1]} {key.year}"


def next_period(key: PeriodKey) -> PeriodKey:
    if key.month == 12:
        return PeriodKey(key.year + 1, 1)
    return PeriodKey(key.year, key.month + 1)


def previous_period(key: PeriodKey) -> PeriodKey:
    if key.month == 1:
        return PeriodKey(key.year - 1, 12)
    return PeriodKey(key.year, key.month - 1)


def current_period(now: datetime) -> PeriodKey:
    return PeriodKey.from_date(now)


def quarter_of(key: PeriodKey) -> int:
    return (key.month - 1) // 3 + 1


def quarter_range(year: int, quarter: int) -> PeriodRange:
    if not 1 <= quarter <= 4:
        raise ValueError(f"Quarter must be 1-4, got {quarter}")
    first = PeriodKey(year, (quarter - 1) * 3 + 1)
    last = PeriodKey(year, quarter * 3)
    return PeriodRange(start=period_range(first).start, end=period_range(last).end)


def tax_deadline(key: PeriodKey) -> datetime:
    """Day after which the period is due for locking (20th of the next month)."""
    following = next_period(key)
    return end_of_day(date(following.year, following.month, TAX_DEADLINE_DAY))


def latest_period_status(
    periods: Iterable[AccountingPeriod],
) -> CurrentPeriodStatus:
    """open while any period is unlocked, locked once all are, none without periods."""
    statuses = [p.status for p in periods]
    if any(s != PeriodStatus.LOCKED for s in statuses):
        return CurrentPeriodStatus.OPEN
    if statuses:
        return CurrentPeriodStatus.LOCKED
    return CurrentPeriodStatus.NONE


def parse_period(value: str) -> PeriodKey:
    """Parse YYYY-MM into a PeriodKey."""
    match = PERIOD_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Period must be YYYY-MM, got {value!r}")
    return PeriodKey(int(match.group(1)), int(match.group(2)))
