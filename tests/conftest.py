"""
Shared fixtures for the bill engine test suite.

Every test gets a fresh in-memory SQLite database (StaticPool, foreign keys
on) with all tables created and the paid-instance listeners registered.
Sessions commit for real; nothing leaks between tests because the engine is
disposed afterwards.
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import UUID

import pytest

from household_bills.config import EngineConfig
from household_bills.db.engine import (
    create_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from household_bills.db.immutability import register_immutability_listeners
from household_bills.domain.clock import DeterministicClock
from household_bills.domain.dtos import SeriesTemplate
from household_bills.domain.recurrence import RecurrenceType
from household_bills.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from household_bills.models.instance import BillInstance
from household_bills.selectors.payment_status import PaymentStatusSelector
from household_bills.services.payment_service import PaymentService
from household_bills.services.reconciliation import BillScheduleService

HOUSEHOLD_ID = UUID("00000000-0000-4000-8000-000000000001")
BUDGET_ID = UUID("00000000-0000-4000-8000-000000000002")
ACCOUNT_ID = UUID("00000000-0000-4000-8000-000000000003")
CATEGORY_ID = UUID("00000000-0000-4000-8000-000000000004")


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(autouse=True)
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture household_bills logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.create_series(...)
            assert any(r["message"] == "series_created" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("household_bills")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    engine = init_engine_from_url("sqlite://")
    create_tables()
    register_immutability_listeners()
    yield engine
    reset_engine()


@pytest.fixture
def session(engine):
    session = get_session()
    yield session
    session.close()


# =============================================================================
# Engine collaborators
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def config():
    return EngineConfig.with_defaults()


@pytest.fixture
def service(session, clock, config):
    return BillScheduleService(session, clock=clock, config=config)


@pytest.fixture
def selector(session, clock, config):
    return PaymentStatusSelector(session, clock=clock, config=config)


@pytest.fixture
def payments(session):
    return PaymentService(session)


@pytest.fixture
def make_template():
    """Build a SeriesTemplate with sensible defaults; override any field."""

    def _make(**overrides) -> SeriesTemplate:
        fields = {
            "name": "Rent",
            "recipient": "Landlord Ltd",
            "account_id": ACCOUNT_ID,
            "budget_id": BUDGET_ID,
            "household_id": HOUSEHOLD_ID,
            "start_date": date(2026, 1, 1),
            "recurrence_type": RecurrenceType.MONTHLY,
            "estimated_amount": Decimal("1200.00"),
            "category_id": CATEGORY_ID,
        }
        fields.update(overrides)
        return SeriesTemplate(**fields)

    return _make


@pytest.fixture
def pay(session, payments):
    """Record and commit a payment against an instance."""

    def _pay(instance_id: UUID, paid_on: date | None = None, **kwargs) -> UUID:
        if paid_on is None:
            paid_on = session.get(BillInstance, instance_id).due_date
        txn_id = payments.record_payment(instance_id, paid_on, **kwargs)
        session.commit()
        return txn_id

    return _pay
