"""
Template validation -- pure checks on series input.

Every check raises a ``ConfigurationError`` subclass naming the offending
field.  Nothing here touches the database; category existence belongs to the
caller's collaborators.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from household_bills.domain.dtos import SplitSpec
from household_bills.domain.recurrence import RecurrenceType, validate_recurrence
from household_bills.exceptions import (
    InvalidCategoryAssignmentError,
    InvalidTemplateError,
)


def to_amount(value: Any, field: str = "estimated_amount") -> Decimal:
    """Convert to a positive Decimal amount."""
    if isinstance(value, bool):
        raise InvalidTemplateError(field, "amount must be a number")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidTemplateError(field, f"not a number: {value!r}") from None
    if not amount.is_finite() or amount <= 0:
        raise InvalidTemplateError(field, "amount must be positive")
    return amount


def require_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidTemplateError(field, "must not be empty")
    return value.strip()


def validate_schedule(
    recurrence_type: RecurrenceType | str,
    custom_interval_days: int | None,
    estimated_amount: Any,
) -> tuple[RecurrenceType, Decimal]:
    """Validate the schedule fields; returns the normalized type and amount."""
    rtype = validate_recurrence(recurrence_type, custom_interval_days)
    return rtype, to_amount(estimated_amount)


def validate_category_assignment(
    category_id: UUID | None,
    category_name: str | None,
    splits: Sequence[SplitSpec],
    estimated_amount: Decimal,
) -> None:
    """
    A series carries exactly one of: a category, or a non-empty split list.

    Splits must each name a category and a positive amount, and together
    add up to ``estimated_amount`` exactly.
    """
    has_category = category_id is not None or bool(category_name and category_name.strip())
    if splits and has_category:
        raise InvalidCategoryAssignmentError(
            "provide either a category or splits, not both"
        )
    if not splits:
        if not has_category:
            raise InvalidCategoryAssignmentError(
                "a category or at least one split is required"
            )
        return

    total = Decimal("0")
    for index, split in enumerate(splits):
        require_text(split.subtitle, f"splits[{index}].subtitle")
        if split.category_id is None and not (split.category_name and split.category_name.strip()):
            raise InvalidCategoryAssignmentError(
                f"split {index} has no category"
            )
        total += to_amount(split.amount, f"splits[{index}].amount")

    if total != estimated_amount:
        raise InvalidCategoryAssignmentError(
            f"split amounts sum to {total}, expected {estimated_amount}"
        )
