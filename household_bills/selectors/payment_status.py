"""
Module: household_bills.selectors.payment_status
Responsibility: Read-only answers about bill payment: whether an instance is
    paid, when a series next falls due, whether a payment landed near a due
    date, and the annotated instance listing of a budget.
Architecture position: Selectors.  Reads models; never writes, never locks.

Definitions:
    - Paid: at least one transaction links to the instance.
    - Next occurrence: the earliest due date among the series' unpaid
      instances, or None when there are none.
    - Nearby transaction: a transaction of the same series dated within
      +/- window days of the due date (window from ``EngineConfig``).

Query shape:
    - ``list_instances`` issues a fixed number of queries regardless of row
      count: the instance rows, the next occurrences, and the transaction
      dates of the listed series.  Windows are tested in Python.

Failure modes:
    - SeriesNotFoundError / InstanceNotFoundError for unknown ids in
      single-entity lookups.  Boolean queries on unknown instances raise
      InstanceNotFoundError rather than answering False.
    - InvalidWindowError for a negative ``window_days``.
"""

from __future__ import annotations

from bisect import bisect_left
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from household_bills.config import EngineConfig
from household_bills.domain.clock import Clock, SystemClock
from household_bills.domain.dtos import InstanceView, SeriesView
from household_bills.exceptions import (
    InstanceNotFoundError,
    InvalidWindowError,
    SeriesNotFoundError,
)
from household_bills.models.instance import BillInstance, is_paid_clause
from household_bills.models.series import RecurringBillSeries
from household_bills.models.transaction import BillTransaction
from household_bills.selectors.base import BaseSelector


class PaymentStatusSelector(BaseSelector[BillInstance]):
    """Payment status queries over bill instances."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: EngineConfig | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._config = config or EngineConfig.with_defaults()

    # -- single facts --------------------------------------------------------

    def is_paid(self, instance_id: UUID) -> bool:
        self._require_instance(instance_id)
        return self._linked_count(instance_id) > 0

    def next_occurrence(self, series_id: UUID) -> date | None:
        """Earliest unpaid due date of the series (None if all paid or none)."""
        return self._next_occurrences([series_id]).get(series_id)

    def has_nearby_transaction(
        self, instance_id: UUID, window_days: int | None = None
    ) -> bool:
        """True iff a transaction of the instance's series is within the window."""
        instance = self._require_instance(instance_id)
        window = self._window(window_days)
        return self._has_transaction_near(instance.series_id, instance.due_date, window)

    # -- views ---------------------------------------------------------------

    def get_instance(self, instance_id: UUID) -> InstanceView:
        row = self.session.execute(
            select(BillInstance, RecurringBillSeries, is_paid_clause().label("is_paid"))
            .join(RecurringBillSeries, RecurringBillSeries.id == BillInstance.series_id)
            .where(BillInstance.id == instance_id)
        ).one_or_none()
        if row is None:
            raise InstanceNotFoundError(str(instance_id))
        instance, series, paid = row
        nearby = self._has_transaction_near(
            series.id, instance.due_date, self._window(None)
        )
        return self._view(
            instance, series, bool(paid), self.next_occurrence(series.id), nearby
        )

    def get_series(self, series_id: UUID) -> SeriesView:
        """
        A series with its payment status.

        ``has_nearby_transaction`` refers to the series' next occurrence;
        it is False when nothing is left to pay.
        """
        series = self.session.get(RecurringBillSeries, series_id)
        if series is None:
            raise SeriesNotFoundError(str(series_id))

        flags = self.session.scalars(
            select(is_paid_clause())
            .select_from(BillInstance)
            .where(BillInstance.series_id == series_id)
        ).all()
        paid_count = sum(1 for paid in flags if paid)
        unpaid_count = len(flags) - paid_count

        next_due = self.next_occurrence(series_id)
        nearby = next_due is not None and self._has_transaction_near(
            series_id, next_due, self._window(None)
        )
        return SeriesView(
            series=series.to_dto(),
            next_occurrence=next_due,
            has_nearby_transaction=nearby,
            unpaid_count=unpaid_count,
            paid_count=paid_count,
        )

    def list_instances(
        self,
        budget_id: UUID,
        include_archived: bool = False,
        this_month_only: bool = False,
    ) -> tuple[InstanceView, ...]:
        """
        Every instance of the budget's series, ordered by (due_date, series name).

        Args:
            budget_id: Budget whose bills are listed.
            include_archived: Include instances of archived series.
            this_month_only: Keep only instances due in the clock's current month.
        """
        stmt = (
            select(BillInstance, RecurringBillSeries, is_paid_clause().label("is_paid"))
            .join(RecurringBillSeries, RecurringBillSeries.id == BillInstance.series_id)
            .where(RecurringBillSeries.budget_id == budget_id)
            .order_by(BillInstance.due_date, RecurringBillSeries.name, BillInstance.id)
        )
        if not include_archived:
            stmt = stmt.where(RecurringBillSeries.is_archived.is_(False))
        if this_month_only:
            first, last = _month_bounds(self._clock.today())
            stmt = stmt.where(BillInstance.due_date.between(first, last))

        rows = self.session.execute(stmt).all()
        series_ids = {series.id for _, series, _ in rows}
        next_by_series = self._next_occurrences(series_ids)
        paid_on_by_series = self._transaction_dates(series_ids)
        window = self._window(None)
        return tuple(
            self._view(
                instance,
                series,
                bool(paid),
                next_by_series.get(series.id),
                _within_window(paid_on_by_series.get(series.id, ()), instance.due_date, window),
            )
            for instance, series, paid in rows
        )

    # -- internals -----------------------------------------------------------

    def _view(
        self,
        instance: BillInstance,
        series: RecurringBillSeries,
        paid: bool,
        next_due: date | None,
        nearby: bool,
    ) -> InstanceView:
        return InstanceView(
            instance=instance.to_dto(is_paid=paid),
            series_name=series.name,
            recipient=series.recipient,
            is_archived=series.is_archived,
            next_occurrence=next_due,
            has_nearby_transaction=nearby,
        )

    def _window(self, window_days: int | None) -> int:
        if window_days is None:
            return self._config.nearby_window_days
        if window_days < 0:
            raise InvalidWindowError(window_days)
        return window_days

    def _require_instance(self, instance_id: UUID) -> BillInstance:
        instance = self.session.get(BillInstance, instance_id)
        if instance is None:
            raise InstanceNotFoundError(str(instance_id))
        return instance

    def _linked_count(self, instance_id: UUID) -> int:
        return self.session.execute(
            select(func.count())
            .select_from(BillTransaction)
            .where(BillTransaction.bill_instance_id == instance_id)
        ).scalar_one()

    def _has_transaction_near(self, series_id: UUID, due: date, window: int) -> bool:
        stmt = select(
            select(BillTransaction.id)
            .where(
                and_(
                    BillTransaction.series_id == series_id,
                    BillTransaction.date.between(
                        due - timedelta(days=window), due + timedelta(days=window)
                    ),
                )
            )
            .exists()
        )
        return bool(self.session.execute(stmt).scalar())

    def _transaction_dates(self, series_ids: Iterable[UUID]) -> dict[UUID, list[date]]:
        """Sorted transaction dates per series, one query for all of them."""
        ids = list(series_ids)
        if not ids:
            return {}
        rows = self.session.execute(
            select(BillTransaction.series_id, BillTransaction.date)
            .where(BillTransaction.series_id.in_(ids))
            .order_by(BillTransaction.date)
        ).all()
        dates: dict[UUID, list[date]] = defaultdict(list)
        for series_id, paid_on in rows:
            dates[series_id].append(paid_on)
        return dates

    def _next_occurrences(self, series_ids: Iterable[UUID]) -> dict[UUID, date]:
        ids = list(series_ids)
        if not ids:
            return {}
        rows = self.session.execute(
            select(BillInstance.series_id, func.min(BillInstance.due_date))
            .where(BillInstance.series_id.in_(ids), ~is_paid_clause())
            .group_by(BillInstance.series_id)
        ).all()
        return {series_id: due for series_id, due in rows}


def _within_window(sorted_dates: Sequence[date], due: date, window: int) -> bool:
    index = bisect_left(sorted_dates, due - timedelta(days=window))
    return index < len(sorted_dates) and sorted_dates[index] <= due + timedelta(days=window)


def _month_bounds(today: date) -> tuple[date, date]:
    first = today.replace(day=1)
    if first.month == 12:
        following = first.replace(year=first.year + 1, month=1)
    else:
        following = first.replace(month=first.month + 1)
    return first, following - timedelta(days=1)
