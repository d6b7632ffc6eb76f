"""
Module: household_bills.models.category
Responsibility: Budget categories a bill (or a split of it) is booked to.

Only the columns needed to resolve a category by name are modelled; the
rest of category management lives outside the engine.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from household_bills.db.base import TrackedBase, UUIDString


class Category(TrackedBase):
    """A household's named budget category."""

    __tablename__ = "bill_categories"

    __table_args__ = (
        UniqueConstraint("household_id", "name", name="uq_bill_category_name"),
    )

    household_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    def __repr__(self) -> str:
        return f"<Category {self.name}>"
