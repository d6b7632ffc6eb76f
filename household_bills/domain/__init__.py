"""
Pure domain layer.

Recurrence evaluation, patch classification, regeneration planning and
DTOs with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from household_bills.domain.clock import Clock, DeterministicClock, SystemClock
from household_bills.domain.dtos import (
    InstanceInfo,
    InstanceView,
    ReconciliationResult,
    SeriesInfo,
    SeriesTemplate,
    SeriesView,
    SplitInfo,
    SplitSpec,
)
from household_bills.domain.patch import UNSET, SeriesPatch, schedule_changes
from household_bills.domain.recurrence import (
    RecurrenceType,
    add_months,
    generate_occurrences,
    horizon_from,
)
from household_bills.domain.regeneration import RegenerationPlan, plan_regeneration

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "InstanceInfo",
    "InstanceView",
    "ReconciliationResult",
    "SeriesInfo",
    "SeriesTemplate",
    "SeriesView",
    "SplitInfo",
    "SplitSpec",
    "UNSET",
    "SeriesPatch",
    "schedule_changes",
    "RecurrenceType",
    "add_months",
    "generate_occurrences",
    "horizon_from",
    "RegenerationPlan",
    "plan_regeneration",
]
