"""Tests for household_bills.domain.validation."""

from decimal import Decimal
from uuid import uuid4

import pytest

from household_bills.domain.dtos import SplitSpec
from household_bills.domain.recurrence import RecurrenceType
from household_bills.domain.validation import (
    require_text,
    to_amount,
    validate_category_assignment,
    validate_schedule,
)
from household_bills.exceptions import (
    InvalidCategoryAssignmentError,
    InvalidRecurrenceError,
    InvalidTemplateError,
)

CATEGORY = uuid4()


class TestAmounts:
    @pytest.mark.parametrize("value", ["12.50", 12, Decimal("0.01")])
    def test_positive_amounts_accepted(self, value):
        assert to_amount(value) == Decimal(str(value))

    @pytest.mark.parametrize("value", [0, "-1", "abc", True, Decimal("NaN"), "Infinity"])
    def test_bad_amounts_rejected(self, value):
        with pytest.raises(InvalidTemplateError) as exc_info:
            to_amount(value)
        assert exc_info.value.field == "estimated_amount"

    def test_float_goes_through_str(self):
        assert to_amount(0.1) == Decimal("0.1")


class TestText:
    def test_strips(self):
        assert require_text("  Rent ", "name") == "Rent"

    @pytest.mark.parametrize("value", ["", "   ", None, 5])
    def test_rejects_blank(self, value):
        with pytest.raises(InvalidTemplateError):
            require_text(value, "name")


class TestSchedule:
    def test_returns_normalized_values(self):
        rtype, amount = validate_schedule("CUSTOM", 14, "99.90")
        assert rtype is RecurrenceType.CUSTOM
        assert amount == Decimal("99.90")

    def test_recurrence_checked_first(self):
        with pytest.raises(InvalidRecurrenceError):
            validate_schedule("CUSTOM", None, "99.90")


class TestCategoryAssignment:
    def test_single_category(self):
        validate_category_assignment(CATEGORY, None, (), Decimal("10"))

    def test_category_name(self):
        validate_category_assignment(None, "Utilities", (), Decimal("10"))

    def test_neither_rejected(self):
        with pytest.raises(InvalidCategoryAssignmentError):
            validate_category_assignment(None, "  ", (), Decimal("10"))

    def test_both_rejected(self):
        splits = (SplitSpec("Power", Decimal("10"), category_id=CATEGORY),)
        with pytest.raises(InvalidCategoryAssignmentError):
            validate_category_assignment(CATEGORY, None, splits, Decimal("10"))

    def test_splits_must_sum_to_amount(self):
        splits = (
            SplitSpec("Power", Decimal("60"), category_id=CATEGORY),
            SplitSpec("Gas", Decimal("30"), category_name="Gas"),
        )
        validate_category_assignment(None, None, splits, Decimal("90"))
        with pytest.raises(InvalidCategoryAssignmentError, match="sum"):
            validate_category_assignment(None, None, splits, Decimal("100"))

    def test_split_without_category_rejected(self):
        splits = (SplitSpec("Power", Decimal("10")),)
        with pytest.raises(InvalidCategoryAssignmentError):
            validate_category_assignment(None, None, splits, Decimal("10"))

    def test_split_needs_subtitle(self):
        splits = (SplitSpec(" ", Decimal("10"), category_id=CATEGORY),)
        with pytest.raises(InvalidTemplateError) as exc_info:
            validate_category_assignment(None, None, splits, Decimal("10"))
        assert exc_info.value.field == "splits[0].subtitle"
