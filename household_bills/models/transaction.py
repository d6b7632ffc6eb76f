"""
Module: household_bills.models.transaction
Responsibility: Minimal persistence for payments made against bills.
Architecture position: Models.  May import from db/base.py only.

Transactions belong to the surrounding budgeting application; the engine
only needs the columns that decide whether an instance is paid and whether
a payment landed near a due date.  A row linked through ``bill_instance_id``
marks that instance paid.

Invariants enforced:
    - Deleting a series or an instance keeps the transaction row and clears
      the link (ON DELETE SET NULL).
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from household_bills.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from household_bills.models.instance import BillInstance


class BillTransaction(TrackedBase):
    """A payment, optionally tied to a bill series and one of its instances."""

    __tablename__ = "bill_transactions"

    __table_args__ = (
        Index("idx_bill_txn_series_date", "series_id", "date"),
        Index("idx_bill_txn_instance", "bill_instance_id"),
    )

    series_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("bill_series.id", ondelete="SET NULL"),
        nullable=True,
    )
    bill_instance_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("bill_instances.id", ondelete="SET NULL"),
        nullable=True,
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    bill_instance: Mapped[BillInstance | None] = relationship(
        "BillInstance",
        back_populates="transactions",
    )

    def __repr__(self) -> str:
        return f"<BillTransaction {self.date} {self.amount}>"
