"""
Data Transfer Objects for the bill engine.

Frozen dataclasses crossing the service boundary.  Services and selectors
return these, never ORM entities, so callers cannot mutate persisted state
behind the engine's back.

Invariants enforced:
    - All DTOs are ``frozen=True``.
    - All monetary fields use ``Decimal``.
    - Collections are tuples.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from household_bills.domain.recurrence import RecurrenceType


# =============================================================================
# Inputs
# =============================================================================


@dataclass(frozen=True)
class SplitSpec:
    """
    One named portion of a bill, assigned to a category.

    Either ``category_id`` or ``category_name`` identifies the category;
    a name is resolved (or created) through the category resolver.
    """

    subtitle: str
    amount: Decimal
    category_id: UUID | None = None
    category_name: str | None = None


@dataclass(frozen=True)
class SeriesTemplate:
    """Everything needed to create a recurring bill series."""

    name: str
    recipient: str
    account_id: UUID
    budget_id: UUID
    start_date: date
    recurrence_type: RecurrenceType
    estimated_amount: Decimal
    custom_interval_days: int | None = None
    last_payment_date: date | None = None
    category_id: UUID | None = None
    category_name: str | None = None
    splits: tuple[SplitSpec, ...] = ()
    household_id: UUID | None = None
    is_archived: bool = False


# =============================================================================
# Outputs
# =============================================================================


@dataclass(frozen=True)
class SplitInfo:
    """A persisted split line of a series."""

    id: UUID
    position: int
    subtitle: str
    category_id: UUID
    amount: Decimal


@dataclass(frozen=True)
class SeriesInfo:
    """Immutable snapshot of a recurring bill series."""

    id: UUID
    name: str
    recipient: str
    account_id: UUID
    budget_id: UUID
    start_date: date
    recurrence_type: RecurrenceType
    estimated_amount: Decimal
    custom_interval_days: int | None
    last_payment_date: date | None
    category_id: UUID | None
    splits: tuple[SplitInfo, ...]
    is_archived: bool
    household_id: UUID | None = None
    version: int = 1


@dataclass(frozen=True)
class InstanceInfo:
    """Immutable snapshot of one bill occurrence."""

    id: UUID
    series_id: UUID
    due_date: date
    amount: Decimal
    is_paid: bool = False


@dataclass(frozen=True)
class InstanceView:
    """A bill occurrence annotated for listing."""

    instance: InstanceInfo
    series_name: str
    recipient: str
    is_archived: bool
    next_occurrence: date | None
    has_nearby_transaction: bool

    @property
    def is_paid(self) -> bool:
        return self.instance.is_paid


@dataclass(frozen=True)
class SeriesView:
    """A series with its payment status."""

    series: SeriesInfo
    next_occurrence: date | None
    has_nearby_transaction: bool
    unpaid_count: int
    paid_count: int


@dataclass(frozen=True)
class ReconciliationResult:
    """What a create/update did to a series' instance set."""

    series: SeriesInfo
    instances: tuple[InstanceInfo, ...]
    regenerated: bool
    deleted_count: int = 0
    created_count: int = 0
    skipped_paid_dates: tuple[date, ...] = ()
