"""
Regeneration planning -- the pure diff behind reconciliation.

Contract:
    ``plan_regeneration(existing, generated)`` decides, as set operations
    over the instance index keyed by due date, which instances to delete and
    which dates to insert.  PURE -- the controller executes the plan.

Rules:
    - Every unpaid instance is deleted (full regeneration).
    - Paid instances are kept untouched.
    - A generated date already held by a paid instance is skipped, so the
      (series_id, due_date) key stays unique.

Architecture: household_bills/domain.  ZERO I/O.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from household_bills.domain.dtos import InstanceInfo


@dataclass(frozen=True)
class RegenerationPlan:
    """Deletions and insertions that bring a series in line with its rule."""

    delete_ids: tuple[UUID, ...]
    insert_dates: tuple[date, ...]
    kept_paid_dates: tuple[date, ...]
    skipped_paid_dates: tuple[date, ...]

    @property
    def is_noop(self) -> bool:
        return not self.delete_ids and not self.insert_dates


def plan_regeneration(
    existing: Iterable[InstanceInfo],
    generated: Sequence[date],
) -> RegenerationPlan:
    """
    Diff the stored instances of one series against freshly generated dates.

    Args:
        existing: Every stored instance of the series, with ``is_paid`` set.
        generated: Output of ``generate_occurrences`` for the new rule.
    """
    paid_by_date: dict[date, InstanceInfo] = {}
    unpaid: list[InstanceInfo] = []
    for instance in existing:
        if instance.is_paid:
            paid_by_date[instance.due_date] = instance
        else:
            unpaid.append(instance)

    paid_dates = paid_by_date.keys()
    insert_dates = tuple(d for d in generated if d not in paid_dates)
    skipped = tuple(d for d in generated if d in paid_dates)

    return RegenerationPlan(
        delete_ids=tuple(i.id for i in sorted(unpaid, key=lambda i: i.due_date)),
        insert_dates=insert_dates,
        kept_paid_dates=tuple(sorted(paid_dates)),
        skipped_paid_dates=skipped,
    )
