"""Tests for household_bills.services.category_resolver."""

from uuid import uuid4

import pytest
from sqlalchemy import func, select

from household_bills.exceptions import InvalidCategoryAssignmentError
from household_bills.models.category import Category
from household_bills.services.category_resolver import OrmCategoryResolver
from household_bills.services.reconciliation import BillScheduleService


class RecordingResolver:
    """Resolver double that hands out one id per name."""

    def __init__(self):
        self.calls: list[tuple] = []
        self._ids: dict[str, object] = {}

    def resolve_or_create(self, household_id, name):
        self.calls.append((household_id, name))
        return self._ids.setdefault(name, uuid4())


class TestOrmCategoryResolver:
    def test_creates_once(self, session):
        resolver = OrmCategoryResolver(session)
        household = uuid4()

        first = resolver.resolve_or_create(household, "Utilities")
        second = resolver.resolve_or_create(household, "  Utilities")

        assert first == second
        assert session.scalar(select(func.count()).select_from(Category)) == 1

    def test_households_are_separate(self, session):
        resolver = OrmCategoryResolver(session)
        assert resolver.resolve_or_create(uuid4(), "Rent") != resolver.resolve_or_create(
            uuid4(), "Rent"
        )

    def test_empty_name_rejected(self, session):
        with pytest.raises(InvalidCategoryAssignmentError):
            OrmCategoryResolver(session).resolve_or_create(uuid4(), " ")


class TestCustomResolver:
    def test_service_uses_injected_resolver(self, session, clock, config, make_template):
        resolver = RecordingResolver()
        service = BillScheduleService(
            session, clock=clock, config=config, category_resolver=resolver
        )

        series = service.create_series(
            make_template(category_id=None, category_name="Insurance")
        ).series

        assert resolver.calls == [(series.household_id, "Insurance")]
        assert series.category_id == resolver.resolve_or_create(None, "Insurance")
        assert session.scalar(select(func.count()).select_from(Category)) == 0
