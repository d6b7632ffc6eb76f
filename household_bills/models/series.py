"""
Module: household_bills.models.series
Responsibility: ORM persistence for recurring bill series (templates) and their
    category split lines.
Architecture position: Models.  May import from db/base.py and domain/ only.

Invariants enforced:
    - custom_interval_days is positive when present (ck_bill_series_interval).
    - estimated_amount is positive (ck_bill_series_amount).
    - version is an optimistic counter: a stale concurrent UPDATE fails with
      StaleDataError instead of silently overwriting.
    - Split positions are unique per series (uq_bill_split_position).

Failure modes:
    - StaleDataError when two sessions update the same series row.
    - IntegrityError on check-constraint violations that bypass validation.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from household_bills.db.base import TrackedBase, UUIDString
from household_bills.domain.recurrence import RecurrenceType

if TYPE_CHECKING:
    from household_bills.domain.dtos import SeriesInfo, SplitInfo
    from household_bills.models.instance import BillInstance


class RecurringBillSeries(TrackedBase):
    """
    A recurring bill definition owning a schedule and a category breakdown.

    Contract:
        Mutated only through ``BillScheduleService``; deleting a series
        deletes every one of its instances.

    Guarantees:
        - Either ``category_id`` is set or ``splits`` is non-empty (enforced
          by the service layer, which validates every create and update).
    """

    __tablename__ = "bill_series"

    __table_args__ = (
        CheckConstraint(
            "custom_interval_days IS NULL OR custom_interval_days > 0",
            name="ck_bill_series_interval",
        ),
        CheckConstraint("estimated_amount > 0", name="ck_bill_series_amount"),
        Index("idx_bill_series_budget", "budget_id"),
        Index("idx_bill_series_archived", "is_archived"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    recipient: Mapped[str] = mapped_column(String(200), nullable=False)
    account_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    budget_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    household_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    category_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    recurrence_type: Mapped[RecurrenceType] = mapped_column(
        String(20),
        nullable=False,
        default=RecurrenceType.NONE,
    )
    custom_interval_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    estimated_amount: Mapped[Decimal] = mapped_column(nullable=False)
    last_payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    splits: Mapped[list[BillSplit]] = relationship(
        "BillSplit",
        back_populates="series",
        cascade="all, delete-orphan",
        order_by="BillSplit.position",
        lazy="selectin",
    )

    instances: Mapped[list[BillInstance]] = relationship(
        "BillInstance",
        back_populates="series",
        cascade="all, delete-orphan",
        order_by="BillInstance.due_date",
    )

    def to_dto(self) -> SeriesInfo:
        from household_bills.domain.dtos import SeriesInfo

        return SeriesInfo(
            id=self.id,
            name=self.name,
            recipient=self.recipient,
            account_id=self.account_id,
            budget_id=self.budget_id,
            start_date=self.start_date,
            recurrence_type=RecurrenceType(self.recurrence_type),
            estimated_amount=self.estimated_amount,
            custom_interval_days=self.custom_interval_days,
            last_payment_date=self.last_payment_date,
            category_id=self.category_id,
            splits=tuple(s.to_dto() for s in self.splits),
            is_archived=self.is_archived,
            household_id=self.household_id,
            version=self.version,
        )

    def __repr__(self) -> str:
        return f"<RecurringBillSeries {self.name} {self.recurrence_type} from {self.start_date}>"


class BillSplit(TrackedBase):
    """A named portion of a series' amount assigned to one category."""

    __tablename__ = "bill_splits"

    __table_args__ = (
        UniqueConstraint("series_id", "position", name="uq_bill_split_position"),
        CheckConstraint("amount > 0", name="ck_bill_split_amount"),
    )

    series_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("bill_series.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    subtitle: Mapped[str] = mapped_column(String(200), nullable=False)
    category_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    series: Mapped[RecurringBillSeries] = relationship(
        "RecurringBillSeries",
        back_populates="splits",
    )

    def to_dto(self) -> SplitInfo:
        from household_bills.domain.dtos import SplitInfo

        return SplitInfo(
            id=self.id,
            position=self.position,
            subtitle=self.subtitle,
            category_id=self.category_id,
            amount=self.amount,
        )

    def __repr__(self) -> str:
        return f"<BillSplit {self.subtitle} {self.amount}>"
