"""
Tests for household_bills.selectors.payment_status.PaymentStatusSelector.

Clock fixed at 2026-01-15; nearby-transaction window 7 days unless given.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import event

from household_bills.config import EngineConfig
from household_bills.domain.recurrence import RecurrenceType
from household_bills.exceptions import (
    ConfigurationError,
    InstanceNotFoundError,
    InvalidWindowError,
    SeriesNotFoundError,
)
from household_bills.selectors.payment_status import PaymentStatusSelector
from tests.conftest import BUDGET_ID


@pytest.fixture
def rent(service, make_template):
    return service.create_series(make_template(last_payment_date=date(2026, 3, 1)))


def _count_statements(engine, call):
    statements = []

    def _record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(engine, "before_cursor_execute", _record)
    try:
        call()
    finally:
        event.remove(engine, "before_cursor_execute", _record)
    return len(statements)


# =============================================================================
# Paid status
# =============================================================================


class TestIsPaid:
    def test_unpaid_until_linked(self, selector, rent, pay):
        jan = rent.instances[0]
        assert selector.is_paid(jan.id) is False
        pay(jan.id)
        assert selector.is_paid(jan.id) is True

    def test_unknown_instance(self, selector, engine):
        with pytest.raises(InstanceNotFoundError):
            selector.is_paid(uuid4())


# =============================================================================
# Next occurrence
# =============================================================================


class TestNextOccurrence:
    def test_earliest_unpaid(self, selector, rent, pay):
        assert selector.next_occurrence(rent.series.id) == date(2026, 1, 1)
        pay(rent.instances[0].id)
        assert selector.next_occurrence(rent.series.id) == date(2026, 2, 1)

    def test_skips_paid_gap(self, selector, rent, pay):
        pay(rent.instances[1].id)
        assert selector.next_occurrence(rent.series.id) == date(2026, 1, 1)

    def test_none_when_all_paid(self, selector, rent, pay):
        for instance in rent.instances:
            pay(instance.id)
        assert selector.next_occurrence(rent.series.id) is None

    def test_none_without_instances(self, selector, service, make_template):
        empty = service.create_series(make_template(last_payment_date=date(2025, 1, 1)))
        assert selector.next_occurrence(empty.series.id) is None


# =============================================================================
# Nearby transactions
# =============================================================================


class TestNearbyTransaction:
    def test_payment_within_window(self, selector, rent, pay):
        jan, feb, _ = rent.instances
        pay(jan.id, paid_on=date(2026, 1, 5))

        assert selector.has_nearby_transaction(jan.id)
        assert not selector.has_nearby_transaction(feb.id)

    def test_window_bounds_are_inclusive(self, selector, rent, pay):
        jan, feb, _ = rent.instances
        pay(jan.id, paid_on=date(2026, 1, 25))

        assert selector.has_nearby_transaction(feb.id)
        assert not selector.has_nearby_transaction(feb.id, window_days=6)

    def test_explicit_window(self, selector, rent, pay):
        jan = rent.instances[0]
        pay(jan.id, paid_on=date(2026, 1, 5))

        assert not selector.has_nearby_transaction(jan.id, window_days=3)
        assert selector.has_nearby_transaction(jan.id, window_days=4)

    def test_configured_window(self, session, clock, rent, pay):
        jan = rent.instances[0]
        pay(jan.id, paid_on=date(2026, 1, 5))

        narrow = PaymentStatusSelector(
            session, clock=clock, config=EngineConfig(nearby_window_days=2)
        )
        assert not narrow.has_nearby_transaction(jan.id)

    def test_other_series_not_counted(self, selector, service, make_template, rent, pay):
        water = service.create_series(
            make_template(name="Water", last_payment_date=date(2026, 3, 1))
        )
        pay(water.instances[0].id)

        assert not selector.has_nearby_transaction(rent.instances[0].id)

    def test_negative_window_rejected(self, selector, rent):
        with pytest.raises(InvalidWindowError) as exc_info:
            selector.has_nearby_transaction(rent.instances[0].id, window_days=-1)

        assert isinstance(exc_info.value, ConfigurationError)
        assert exc_info.value.code == "INVALID_WINDOW"
        assert exc_info.value.field == "window_days"


# =============================================================================
# Listing
# =============================================================================


class TestListInstances:
    def test_ordered_by_due_date_then_name(self, selector, service, make_template, rent):
        service.create_series(
            make_template(name="Internet", last_payment_date=date(2026, 2, 1))
        )

        views = selector.list_instances(BUDGET_ID)

        assert [(v.instance.due_date, v.series_name) for v in views] == [
            (date(2026, 1, 1), "Internet"),
            (date(2026, 1, 1), "Rent"),
            (date(2026, 2, 1), "Internet"),
            (date(2026, 2, 1), "Rent"),
            (date(2026, 3, 1), "Rent"),
        ]

    def test_annotations(self, selector, rent, pay):
        pay(rent.instances[0].id, paid_on=date(2026, 1, 2))

        views = selector.list_instances(BUDGET_ID)

        assert [v.is_paid for v in views] == [True, False, False]
        assert {v.next_occurrence for v in views} == {date(2026, 2, 1)}
        assert [v.has_nearby_transaction for v in views] == [True, False, False]
        assert views[0].recipient == "Landlord Ltd"

    def test_archived_excluded_by_default(self, selector, service, rent):
        service.archive_series(rent.series.id)

        assert selector.list_instances(BUDGET_ID) == ()
        included = selector.list_instances(BUDGET_ID, include_archived=True)
        assert len(included) == 3
        assert all(v.is_archived for v in included)

    def test_this_month_only(self, selector, rent):
        views = selector.list_instances(BUDGET_ID, this_month_only=True)
        assert [v.instance.due_date for v in views] == [date(2026, 1, 1)]

    def test_this_month_follows_clock(self, selector, clock, rent):
        clock.advance(days=31)
        views = selector.list_instances(BUDGET_ID, this_month_only=True)
        assert [v.instance.due_date for v in views] == [date(2026, 2, 1)]

    def test_other_budget_excluded(self, selector, service, make_template, rent):
        service.create_series(make_template(name="Elsewhere", budget_id=uuid4()))
        assert {v.series_name for v in selector.list_instances(BUDGET_ID)} == {"Rent"}

    def test_nearby_window_inclusive_in_listing(self, selector, rent, pay):
        pay(rent.instances[0].id, paid_on=date(2026, 1, 25))

        views = selector.list_instances(BUDGET_ID)

        assert [v.has_nearby_transaction for v in views] == [False, True, False]

    def test_query_count_independent_of_rows(
        self, engine, selector, service, make_template, pay
    ):
        weekly = service.create_series(
            make_template(
                name="Cleaner",
                recurrence_type=RecurrenceType.WEEKLY,
                estimated_amount=Decimal("40"),
            )
        )
        for instance in weekly.instances[:5]:
            pay(instance.id)
        selector.list_instances(BUDGET_ID)

        month = _count_statements(
            engine, lambda: selector.list_instances(BUDGET_ID, this_month_only=True)
        )
        year = _count_statements(engine, lambda: selector.list_instances(BUDGET_ID))

        assert len(selector.list_instances(BUDGET_ID)) > 50
        assert year == month <= 4


# =============================================================================
# Single views
# =============================================================================


class TestViews:
    def test_get_series(self, selector, rent, pay):
        pay(rent.instances[0].id)

        view = selector.get_series(rent.series.id)

        assert view.series.id == rent.series.id
        assert view.paid_count == 1
        assert view.unpaid_count == 2
        assert view.next_occurrence == date(2026, 2, 1)
        assert not view.has_nearby_transaction

    def test_get_series_nearby_payment(self, selector, rent, pay):
        pay(rent.instances[0].id, paid_on=date(2026, 1, 28))
        assert selector.get_series(rent.series.id).has_nearby_transaction

    def test_get_series_unknown(self, selector, engine):
        with pytest.raises(SeriesNotFoundError):
            selector.get_series(uuid4())

    def test_get_instance(self, selector, service, make_template):
        weekly = service.create_series(
            make_template(
                name="Cleaner",
                recurrence_type=RecurrenceType.WEEKLY,
                estimated_amount=Decimal("40"),
            )
        )
        target = weekly.instances[2]

        view = selector.get_instance(target.id)

        assert view.instance == target
        assert view.series_name == "Cleaner"
        assert view.next_occurrence == date(2026, 1, 1)
        assert not view.is_paid

    def test_get_instance_unknown(self, selector, engine):
        with pytest.raises(InstanceNotFoundError):
            selector.get_instance(uuid4())
