"""
Property-based tests for occurrence generation and regeneration planning.

Hypothesis draws start dates, rules, and horizons across leap years and
month ends; the invariants below must hold for every draw.
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

from hypothesis import given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

from household_bills.domain.dtos import InstanceInfo
from household_bills.domain.recurrence import add_months, generate_occurrences
from household_bills.domain.regeneration import plan_regeneration

CALENDAR = st.dates(min_value=date(2020, 1, 1), max_value=date(2035, 12, 31))
FIXED_RULES = st.sampled_from(["NONE", "WEEKLY", "MONTHLY", "QUARTERLY", "YEARLY"])


@composite
def schedules(draw):
    """A (start, rule, interval, horizon) tuple with horizon within five years."""
    start = draw(CALENDAR)
    if draw(st.booleans()):
        rule, interval = "CUSTOM", draw(st.integers(min_value=1, max_value=400))
    else:
        rule, interval = draw(FIXED_RULES), None
    horizon = start + timedelta(days=draw(st.integers(min_value=-30, max_value=5 * 366)))
    return start, rule, interval, horizon


@composite
def stored_instances(draw):
    """Stored instances of one series, unique by due date, some paid."""
    series_id = uuid4()
    dates = draw(st.sets(CALENDAR, max_size=20))
    return [
        InstanceInfo(
            id=uuid4(),
            series_id=series_id,
            due_date=due,
            amount=Decimal("10"),
            is_paid=draw(st.booleans()),
        )
        for due in sorted(dates)
    ]


class TestOccurrenceProperties:
    @given(schedules())
    @settings(max_examples=200)
    def test_sorted_unique_and_bounded(self, schedule):
        start, rule, interval, horizon = schedule
        dates = generate_occurrences(start, rule, interval, horizon)

        assert list(dates) == sorted(set(dates))
        assert all(start <= d <= horizon for d in dates)
        if start <= horizon:
            assert dates[0] == start
        else:
            assert dates == ()

    @given(schedules(), CALENDAR)
    def test_stop_date_truncates(self, schedule, stop):
        start, rule, interval, horizon = schedule
        full = generate_occurrences(start, rule, interval, horizon)
        stopped = generate_occurrences(start, rule, interval, horizon, stop)

        assert stopped == tuple(d for d in full if d <= stop)

    @given(CALENDAR, st.integers(min_value=1, max_value=60))
    def test_monthly_never_drifts(self, start, months):
        dates = generate_occurrences(start, "MONTHLY", None, add_months(start, months))

        assert len(dates) == months + 1
        for offset, due in enumerate(dates):
            assert due == add_months(start, offset)
            assert due.day <= start.day

    @given(CALENDAR, st.integers(min_value=1, max_value=400))
    def test_custom_count(self, start, interval):
        horizon = start + timedelta(days=366)
        dates = generate_occurrences(start, "CUSTOM", interval, horizon)

        assert len(dates) == 366 // interval + 1


class TestRegenerationProperties:
    @given(stored_instances(), st.sets(CALENDAR, max_size=20))
    def test_paid_preserved_and_unpaid_replaced(self, existing, generated_set):
        generated = tuple(sorted(generated_set))
        plan = plan_regeneration(existing, generated)

        paid = {i.due_date for i in existing if i.is_paid}
        unpaid_ids = {i.id for i in existing if not i.is_paid}

        assert set(plan.delete_ids) == unpaid_ids
        assert set(plan.kept_paid_dates) == paid
        assert set(plan.insert_dates).isdisjoint(paid)
        assert set(plan.insert_dates) | set(plan.skipped_paid_dates) == set(generated)

        survivors = paid | set(plan.insert_dates)
        assert len(survivors) == len(paid) + len(plan.insert_dates)
