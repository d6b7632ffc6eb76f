"""
Occurrence generation -- pure recurrence evaluation.

Contract:
    ``generate_occurrences()`` maps a recurrence rule to an ordered, bounded
    tuple of due dates.  PURE -- no I/O, no clock, no side effects.  The
    caller supplies the horizon (see ``horizon_from``).

Architecture: household_bills/domain.  ZERO I/O.

Guarantees:
    - Deterministic: identical input yields identical output.
    - Bounded: every loop stops at ``min(horizon, stop_date)``, so the result
      holds at most ``(min(horizon, stop_date) - start_date) / interval + 1``
      dates.
    - Total: well-formed input always returns (possibly ``()``); malformed
      CUSTOM input raises ``InvalidRecurrenceError`` instead of guessing.

Month arithmetic:
    MONTHLY, QUARTERLY and YEARLY occurrences are anchored to the start date:
    the k-th date is ``add_months(start, k * step)``, clamped to the last day
    of shorter months.  A bill starting on Jan 31 is due Feb 28 (or 29), then
    Mar 31 again; repeated month-by-month stepping would drift to the 28th.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterator
from datetime import date, datetime, timedelta
from enum import Enum

from household_bills.exceptions import InvalidRecurrenceError


class RecurrenceType(str, Enum):
    """How often a bill series falls due."""

    NONE = "NONE"  # One-time bill
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"
    CUSTOM = "CUSTOM"  # Every custom_interval_days days


# Calendar-month step per occurrence
_MONTH_STEPS: dict[RecurrenceType, int] = {
    RecurrenceType.MONTHLY: 1,
    RecurrenceType.QUARTERLY: 3,
    RecurrenceType.YEARLY: 12,
}

WEEK_DAYS = 7


def normalize_day(value: date | datetime) -> date:
    """Strip time-of-day; ``datetime`` is a subclass of ``date``."""
    if isinstance(value, datetime):
        return value.date()
    return value


def add_months(d: date, months: int) -> date:
    """Add ``months`` calendar months to ``d``, clamping to month end."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(d.day, last_day))


def horizon_from(today: date | datetime, months: int) -> date:
    """The last day occurrences may be generated for, ``months`` ahead."""
    return add_months(normalize_day(today), months)


def validate_recurrence(
    recurrence_type: RecurrenceType | str,
    custom_interval_days: int | None,
) -> RecurrenceType:
    """
    Check that the interval agrees with the recurrence type.

    Returns:
        The recurrence type as a ``RecurrenceType``.

    Raises:
        InvalidRecurrenceError: unknown type, CUSTOM without a positive
            integer interval, or any other type carrying an interval.
    """
    try:
        rtype = RecurrenceType(recurrence_type)
    except ValueError:
        raise InvalidRecurrenceError(
            str(recurrence_type), custom_interval_days, "unknown recurrence type"
        ) from None

    if rtype == RecurrenceType.CUSTOM:
        if custom_interval_days is None:
            raise InvalidRecurrenceError(
                rtype.value, custom_interval_days, "custom interval days required"
            )
        if isinstance(custom_interval_days, bool) or not isinstance(custom_interval_days, int):
            raise InvalidRecurrenceError(
                rtype.value, custom_interval_days, "custom interval days must be an integer"
            )
        if custom_interval_days <= 0:
            raise InvalidRecurrenceError(
                rtype.value, custom_interval_days, "custom interval days must be positive"
            )
    elif custom_interval_days is not None:
        raise InvalidRecurrenceError(
            rtype.value,
            custom_interval_days,
            "custom interval days only apply to CUSTOM recurrence",
        )
    return rtype


def _candidates(
    start: date, rtype: RecurrenceType, custom_interval_days: int | None
) -> Iterator[date]:
    """Unbounded, strictly increasing candidate dates (NONE yields one)."""
    if rtype == RecurrenceType.NONE:
        yield start
        return

    if rtype in _MONTH_STEPS:
        step = _MONTH_STEPS[rtype]
        k = 0
        while True:
            yield add_months(start, k * step)
            k += 1

    interval = timedelta(
        days=WEEK_DAYS if rtype == RecurrenceType.WEEKLY else custom_interval_days
    )
    current = start
    while True:
        yield current
        current += interval


def generate_occurrences(
    start_date: date | datetime,
    recurrence_type: RecurrenceType | str,
    custom_interval_days: int | None,
    horizon: date | datetime,
    stop_date: date | datetime | None = None,
) -> tuple[date, ...]:
    """
    Generate the due dates of a recurrence rule.

    Args:
        start_date: First due date.
        recurrence_type: How often the bill falls due.
        custom_interval_days: Interval for CUSTOM; must be None otherwise.
        horizon: Inclusive forward bound (always finite).
        stop_date: Optional inclusive cutoff (a series' last payment date).

    Returns:
        Strictly increasing tuple of calendar days, possibly empty.

    Raises:
        InvalidRecurrenceError: malformed recurrence (see validate_recurrence).
    """
    rtype = validate_recurrence(recurrence_type, custom_interval_days)

    start = normalize_day(start_date)
    limit = normalize_day(horizon)
    if stop_date is not None:
        stop = normalize_day(stop_date)
        if stop < start:
            return ()
        limit = min(limit, stop)

    dates: list[date] = []
    for current in _candidates(start, rtype, custom_interval_days):
        if current > limit:
            break
        dates.append(current)
    return tuple(dates)
