"""
Series patches and schedule-change detection.

Contract:
    A ``SeriesPatch`` lists the fields a caller wants to change.  Every field
    defaults to the ``UNSET`` sentinel, so "not provided" is distinct from
    every real value -- including ``None`` (clear the last payment date),
    ``0`` and ``False``.

    ``schedule_changes()`` compares each *set* schedule field with the stored
    value after normalization and reports only the fields whose value really
    differs.  A patch that repeats the stored schedule is not a schedule
    change, and a falsy new value is never skipped for being falsy.

Architecture: household_bills/domain.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Final
from uuid import UUID

from household_bills.domain.recurrence import RecurrenceType, normalize_day


class _Unset(Enum):
    """Marker for a patch field the caller did not provide."""

    UNSET = "UNSET"

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Final = _Unset.UNSET


SCHEDULE_FIELDS: tuple[str, ...] = (
    "start_date",
    "recurrence_type",
    "custom_interval_days",
    "last_payment_date",
    "estimated_amount",
)

DETAIL_FIELDS: tuple[str, ...] = (
    "name",
    "recipient",
    "account_id",
    "category_id",
    "category_name",
    "splits",
    "is_archived",
)


@dataclass(frozen=True)
class SeriesPatch:
    """Requested changes to a bill series; unset fields keep their value."""

    name: str | _Unset = UNSET
    recipient: str | _Unset = UNSET
    account_id: UUID | _Unset = UNSET
    category_id: UUID | None | _Unset = UNSET
    category_name: str | None | _Unset = UNSET
    splits: tuple | _Unset = UNSET  # tuple[SplitSpec, ...]
    is_archived: bool | _Unset = UNSET
    start_date: date | _Unset = UNSET
    recurrence_type: RecurrenceType | str | _Unset = UNSET
    custom_interval_days: int | None | _Unset = UNSET
    last_payment_date: date | None | _Unset = UNSET
    estimated_amount: Decimal | _Unset = UNSET

    def provided(self) -> dict[str, Any]:
        """Fields the caller set, with their raw values."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not UNSET
        }

    @property
    def is_empty(self) -> bool:
        return not self.provided()


def normalize_schedule_value(field_name: str, value: Any) -> Any:
    """Bring a schedule field to the form it is stored and compared in."""
    if value is None:
        return None
    if field_name in ("start_date", "last_payment_date"):
        return normalize_day(value)
    if field_name == "recurrence_type":
        return RecurrenceType(value)
    if field_name == "estimated_amount":
        return Decimal(str(value))
    return value


def schedule_changes(patch: SeriesPatch, stored: Any) -> dict[str, Any]:
    """
    Schedule fields whose new value differs from the stored one.

    Args:
        patch: The requested changes.
        stored: Anything exposing the schedule fields as attributes
            (the ORM series or a ``SeriesInfo``).

    Returns:
        ``{field_name: normalized_new_value}`` for changed fields only.
    """
    changed: dict[str, Any] = {}
    for name in SCHEDULE_FIELDS:
        raw = getattr(patch, name)
        if raw is UNSET:
            continue
        new_value = normalize_schedule_value(name, raw)
        old_value = normalize_schedule_value(name, getattr(stored, name))
        if new_value != old_value:
            changed[name] = new_value
    return changed


def is_schedule_affecting(patch: SeriesPatch, stored: Any) -> bool:
    """True iff applying ``patch`` changes the series' schedule."""
    return bool(schedule_changes(patch, stored))
