"""Selectors for the bill engine (read side)."""

from household_bills.selectors.payment_status import PaymentStatusSelector

__all__ = [
    "PaymentStatusSelector",
]
