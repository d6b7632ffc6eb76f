"""
SQLAlchemy ORM models for the bill engine.

Importing this package registers every table on ``Base.metadata``.
"""

from household_bills.models.category import Category
from household_bills.models.instance import BillInstance, is_paid_clause
from household_bills.models.series import BillSplit, RecurringBillSeries
from household_bills.models.transaction import BillTransaction

__all__ = [
    "Category",
    "BillInstance",
    "is_paid_clause",
    "BillSplit",
    "RecurringBillSeries",
    "BillTransaction",
]
