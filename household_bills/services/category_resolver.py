"""
Category resolution for inline category names.

A template (or one of its splits) may name a category instead of
referencing one.  ``CategoryResolver.resolve_or_create`` turns the name into
an id, creating the category when the household has none by that name.
The operation is idempotent: resolving the same name twice yields the same
id and creates at most one row.

The controller accepts any object satisfying the protocol, so an
application that manages categories elsewhere can plug in its own.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from sqlalchemy import select

from household_bills.exceptions import InvalidCategoryAssignmentError
from household_bills.logging_config import get_logger
from household_bills.models.category import Category
from household_bills.services.base import BaseService

logger = get_logger("services.category_resolver")


class CategoryResolver(Protocol):
    """Idempotent name-to-id resolution for categories."""

    def resolve_or_create(self, household_id: UUID, name: str) -> UUID:
        ...


class OrmCategoryResolver(BaseService[Category]):
    """
    Resolves names against the ``bill_categories`` table.

    Flush-only.  Two writers creating the same name at once collide on
    ``uq_bill_category_name``; the IntegrityError propagates and the
    controller reports a retryable conflict.
    """

    def resolve_or_create(self, household_id: UUID, name: str) -> UUID:
        cleaned = name.strip() if isinstance(name, str) else ""
        if not cleaned:
            raise InvalidCategoryAssignmentError("category name must not be empty")

        existing = self.session.execute(
            select(Category.id).where(
                Category.household_id == household_id,
                Category.name == cleaned,
            )
        ).scalar_one_or_none()
        if existing is not None:
            return existing

        category = Category(household_id=household_id, name=cleaned)
        self.session.add(category)
        self.session.flush()
        logger.info(
            "category_created",
            extra={"household_id": str(household_id), "category_name": cleaned},
        )
        return category.id
