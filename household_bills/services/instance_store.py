"""
InstanceStore -- persistence of materialized bill occurrences.

Responsibility:
    Reads and writes ``BillInstance`` rows for one series at a time:
    the full instance index (with paid flags) that regeneration diffs
    against, bulk creation of new unpaid instances, and deletion of
    unpaid ones.

Architecture position:
    Services -- flush-only.  Deletions go through ``session.delete()`` one
    row at a time so the paid-instance listeners in ``db/immutability.py``
    see every one of them.

Failure modes:
    - IntegrityError at flush when a date already exists for the series
      (uq_bill_instance_series_due_date); the controller maps it to
      ConflictError.
    - ImmutabilityViolationError when asked to delete a paid instance.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from household_bills.domain.dtos import InstanceInfo
from household_bills.logging_config import get_logger
from household_bills.models.instance import BillInstance, is_paid_clause
from household_bills.services.base import BaseService

logger = get_logger("services.instance_store")


class InstanceStore(BaseService[BillInstance]):
    """Flush-only access to the instances of a series."""

    def list_for_series(self, series_id: UUID) -> tuple[InstanceInfo, ...]:
        """Every instance of the series, ordered by due date, with paid flags."""
        rows = self.session.execute(
            select(BillInstance, is_paid_clause().label("is_paid"))
            .where(BillInstance.series_id == series_id)
            .order_by(BillInstance.due_date)
        ).all()
        return tuple(instance.to_dto(is_paid=bool(paid)) for instance, paid in rows)

    def get(self, instance_id: UUID) -> BillInstance | None:
        return self.session.get(BillInstance, instance_id)

    def create(
        self,
        series_id: UUID,
        due_dates: Sequence[date],
        amount: Decimal,
    ) -> int:
        """Insert one unpaid instance per date; returns the number created."""
        if not due_dates:
            return 0
        self.session.add_all(
            BillInstance(series_id=series_id, due_date=d, amount=amount)
            for d in due_dates
        )
        self.session.flush()
        logger.info(
            "instances_generated",
            extra={
                "series_id": str(series_id),
                "count": len(due_dates),
                "first_due_date": due_dates[0],
                "last_due_date": due_dates[-1],
            },
        )
        return len(due_dates)

    def delete(self, series_id: UUID, instance_ids: Iterable[UUID]) -> int:
        """Delete the given instances of one series; returns the number deleted."""
        ids = list(instance_ids)
        if not ids:
            return 0
        rows = self.session.scalars(
            select(BillInstance).where(
                BillInstance.series_id == series_id,
                BillInstance.id.in_(ids),
            )
        ).all()
        for row in rows:
            self.session.delete(row)
        self.session.flush()
        logger.info(
            "unpaid_instances_deleted",
            extra={"series_id": str(series_id), "count": len(rows)},
        )
        return len(rows)
