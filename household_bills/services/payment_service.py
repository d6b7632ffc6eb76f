"""
PaymentService -- the Unpaid -> Paid transition.

An instance becomes paid when a transaction links to it.  Transactions are
owned by the surrounding budgeting application; this service gives it (and
the tests) the two writes the engine depends on.  Flush-only: the caller
commits.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from household_bills.domain.recurrence import normalize_day
from household_bills.domain.validation import to_amount
from household_bills.exceptions import (
    ImmutabilityViolationError,
    InstanceNotFoundError,
    TransactionNotFoundError,
)
from household_bills.logging_config import get_logger
from household_bills.models.instance import BillInstance
from household_bills.models.transaction import BillTransaction
from household_bills.services.base import BaseService

logger = get_logger("services.payment")


class PaymentService(BaseService[BillTransaction]):
    """Creates and links payments against bill instances."""

    def record_payment(
        self,
        instance_id: UUID,
        paid_on: date | datetime,
        amount: Decimal | None = None,
        description: str = "",
    ) -> UUID:
        """
        Create a transaction that settles ``instance_id``.

        Args:
            instance_id: The occurrence being paid.
            paid_on: Payment date.
            amount: Amount paid; defaults to the instance amount.
            description: Free text stored on the transaction.

        Returns:
            The new transaction's id.

        Raises:
            InstanceNotFoundError: Unknown instance.
        """
        instance = self.session.get(BillInstance, instance_id)
        if instance is None:
            raise InstanceNotFoundError(str(instance_id))

        paid_amount = instance.amount if amount is None else to_amount(amount, "amount")
        txn = BillTransaction(
            series_id=instance.series_id,
            bill_instance_id=instance.id,
            date=normalize_day(paid_on),
            amount=paid_amount,
            description=description,
        )
        self.session.add(txn)
        self.session.flush()

        logger.info(
            "payment_recorded",
            extra={
                "instance_id": str(instance.id),
                "series_id": str(instance.series_id),
                "transaction_id": str(txn.id),
                "amount": paid_amount,
            },
        )
        return txn.id

    def link_transaction(self, transaction_id: UUID, instance_id: UUID) -> None:
        """
        Attach an existing transaction to an instance (and its series).

        Paid is terminal: a transaction that already settles another instance
        is never moved.  Linking it again to the same instance is a no-op.

        Raises:
            TransactionNotFoundError / InstanceNotFoundError: Unknown ids.
            ImmutabilityViolationError: The transaction settles another instance.
        """
        txn = self.session.get(BillTransaction, transaction_id)
        if txn is None:
            raise TransactionNotFoundError(str(transaction_id))
        instance = self.session.get(BillInstance, instance_id)
        if instance is None:
            raise InstanceNotFoundError(str(instance_id))

        current = txn.bill_instance_id
        if current is not None and current != instance.id:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "BillInstance",
                    "entity_id": str(current),
                    "operation": "UNLINK",
                    "transaction_id": str(txn.id),
                    "reason": "transaction_settles_other_instance",
                },
            )
            raise ImmutabilityViolationError(
                entity_type="BillInstance",
                entity_id=str(current),
                reason=f"Transaction {txn.id} already settles this instance",
            )

        txn.bill_instance_id = instance.id
        txn.series_id = instance.series_id
        self.session.flush()

        logger.info(
            "transaction_linked",
            extra={
                "instance_id": str(instance.id),
                "transaction_id": str(txn.id),
            },
        )
