"""
Module: household_bills.models.instance
Responsibility: ORM persistence for materialized bill occurrences.
Architecture position: Models.  May import from db/base.py only.

Invariants enforced:
    - At most one instance per (series_id, due_date)
      (uq_bill_instance_series_due_date).  A racing regeneration that tries
      to insert a second row for the same day fails with IntegrityError.
    - amount is a snapshot of the series' estimated amount at generation time.
    - Paid instances (>= 1 linked transaction) are guarded by
      db/immutability.py listeners.

Failure modes:
    - IntegrityError on duplicate (series_id, due_date).
    - ImmutabilityViolationError (from listeners) on changing a paid instance.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, UniqueConstraint, select
from sqlalchemy.orm import Mapped, mapped_column, relationship

from household_bills.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from household_bills.domain.dtos import InstanceInfo
    from household_bills.models.series import RecurringBillSeries
    from household_bills.models.transaction import BillTransaction


class BillInstance(TrackedBase):
    """One payable occurrence of a recurring bill."""

    __tablename__ = "bill_instances"

    __table_args__ = (
        UniqueConstraint(
            "series_id", "due_date", name="uq_bill_instance_series_due_date"
        ),
        CheckConstraint("amount > 0", name="ck_bill_instance_amount"),
        Index("idx_bill_instance_due_date", "due_date"),
    )

    series_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("bill_series.id", ondelete="CASCADE"),
        nullable=False,
    )
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    series: Mapped[RecurringBillSeries] = relationship(
        "RecurringBillSeries",
        back_populates="instances",
    )

    transactions: Mapped[list[BillTransaction]] = relationship(
        "BillTransaction",
        back_populates="bill_instance",
        passive_deletes=True,
    )

    def to_dto(self, is_paid: bool = False) -> InstanceInfo:
        from household_bills.domain.dtos import InstanceInfo

        return InstanceInfo(
            id=self.id,
            series_id=self.series_id,
            due_date=self.due_date,
            amount=self.amount,
            is_paid=is_paid,
        )

    def __repr__(self) -> str:
        return f"<BillInstance {self.due_date} {self.amount}>"


def is_paid_clause():
    """SQL expression that is true when a transaction links to the instance."""
    from household_bills.models.transaction import BillTransaction

    return (
        select(BillTransaction.id)
        .where(BillTransaction.bill_instance_id == BillInstance.id)
        .exists()
    )
