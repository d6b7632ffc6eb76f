"""Services for the bill engine (write side)."""

from household_bills.services.category_resolver import (
    CategoryResolver,
    OrmCategoryResolver,
)
from household_bills.services.instance_store import InstanceStore
from household_bills.services.payment_service import PaymentService
from household_bills.services.reconciliation import BillScheduleService

__all__ = [
    "BillScheduleService",
    "CategoryResolver",
    "InstanceStore",
    "OrmCategoryResolver",
    "PaymentService",
]
