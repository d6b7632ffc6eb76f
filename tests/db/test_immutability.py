"""
Tests for household_bills.db.immutability.

Writes go straight through the ORM, bypassing the service layer, to prove
the listeners hold on their own.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from household_bills.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from household_bills.exceptions import ImmutabilityViolationError
from household_bills.models.instance import BillInstance


@pytest.fixture
def paid_and_unpaid(session, service, make_template, pay):
    result = service.create_series(make_template(last_payment_date=date(2026, 2, 1)))
    paid, unpaid = result.instances
    pay(paid.id)
    return session.get(BillInstance, paid.id), session.get(BillInstance, unpaid.id)


class TestPaidInstanceUpdate:
    def test_amount_change_blocked(self, session, paid_and_unpaid, captured_logs):
        paid, _ = paid_and_unpaid
        paid.amount = Decimal("1")

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        session.rollback()

        assert exc_info.value.entity_id == str(paid.id)
        assert "amount" in exc_info.value.reason
        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked[0]["operation"] == "UPDATE"

    def test_due_date_change_blocked(self, session, paid_and_unpaid):
        paid, _ = paid_and_unpaid
        paid.due_date = paid.due_date + timedelta(days=1)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_unpaid_instance_may_change(self, session, paid_and_unpaid):
        _, unpaid = paid_and_unpaid
        unpaid.amount = Decimal("1")
        unpaid.due_date = date(2026, 2, 3)
        session.commit()

        assert session.get(BillInstance, unpaid.id).amount == Decimal("1")


class TestPaidInstanceDelete:
    def test_delete_blocked(self, session, paid_and_unpaid):
        paid, _ = paid_and_unpaid
        session.delete(paid)

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        session.rollback()

        assert exc_info.value.code == "IMMUTABILITY_VIOLATION"
        assert session.get(BillInstance, paid.id) is not None

    def test_unpaid_delete_allowed(self, session, paid_and_unpaid):
        _, unpaid = paid_and_unpaid
        session.delete(unpaid)
        session.commit()

        assert session.get(BillInstance, unpaid.id) is None

    def test_deleted_with_series(self, session, paid_and_unpaid):
        paid, unpaid = paid_and_unpaid
        session.delete(paid.series)
        session.commit()

        assert session.get(BillInstance, paid.id) is None
        assert session.get(BillInstance, unpaid.id) is None

    def test_explicit_delete_alongside_series(self, session, paid_and_unpaid):
        paid, _ = paid_and_unpaid
        with session.no_autoflush:
            session.delete(paid)
            session.delete(paid.series)
        session.commit()

        assert session.get(BillInstance, paid.id) is None


class TestRegistration:
    def test_unregistered_listeners_allow_writes(self, session, paid_and_unpaid):
        paid, _ = paid_and_unpaid
        unregister_immutability_listeners()
        try:
            paid.amount = Decimal("2")
            session.commit()
        finally:
            register_immutability_listeners()

        assert session.get(BillInstance, paid.id).amount == Decimal("2")

    def test_register_twice_is_harmless(self, session, paid_and_unpaid):
        register_immutability_listeners()
        paid, _ = paid_and_unpaid
        paid.amount = Decimal("3")

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()
