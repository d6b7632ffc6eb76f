"""
ORM-Level Protection of Paid Bill Instances.

===============================================================================
WHAT IS PROTECTED
===============================================================================

An instance with at least one linked transaction is PAID.  A paid instance is
history: the payment was made against that due date and that amount, and
nothing the engine does later may rewrite it.

Entity         | When Immutable              | Frozen fields
---------------|-----------------------------|------------------------------
BillInstance   | >= 1 linked transaction     | due_date, series_id, amount
BillInstance   | >= 1 linked transaction     | DELETE, unless the owning
               |                             | series is deleted in the
               |                             | same flush

The reconciliation controller never schedules such writes.  These listeners
catch the ones a future caller might.

===============================================================================
HOW IT WORKS
===============================================================================

    session.flush()
         |
         v
    [before_flush]  --> _check_paid_instance_deletion() --> ImmutabilityViolationError
         |
         v
    [before_update] --> _check_paid_instance_update()   --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Deletions are checked in ``before_flush`` because mapper-level
``before_delete`` fires after the flush plan is fixed, and by then the
owning series' deletion cannot be told apart from a stray instance delete.

Bulk ``delete()``/``update()`` statements bypass ORM events; the engine
does not issue them against instances.

===============================================================================
USAGE
===============================================================================

    from household_bills.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, func, select
from sqlalchemy.orm import Session, attributes

from household_bills.exceptions import ImmutabilityViolationError
from household_bills.logging_config import get_logger

logger = get_logger("db.immutability")

_FROZEN_FIELDS = ("due_date", "series_id", "amount")


def _count_links(executor, instance_id) -> int:
    from household_bills.models.transaction import BillTransaction

    stmt = (
        select(func.count())
        .select_from(BillTransaction)
        .where(BillTransaction.bill_instance_id == instance_id)
    )
    return executor.execute(stmt).scalar_one()


def _block(instance_id, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "BillInstance",
            "entity_id": str(instance_id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(
        entity_type="BillInstance",
        entity_id=str(instance_id),
        reason=reason,
    )


def _check_paid_instance_deletion(session, flush_context, instances):
    """Block deleting a paid instance outside its series' own deletion."""
    from household_bills.models.instance import BillInstance
    from household_bills.models.series import RecurringBillSeries

    deleted = list(session.deleted)
    deleted_series = {
        obj.id for obj in deleted if isinstance(obj, RecurringBillSeries)
    }

    for obj in deleted:
        if not isinstance(obj, BillInstance):
            continue
        if obj.series_id in deleted_series:
            continue
        with session.no_autoflush:
            linked = _count_links(session, obj.id)
        if linked:
            _block(obj.id, "DELETE", "Paid bill instances cannot be deleted")


def _check_paid_instance_update(mapper, connection, target):
    """Block changing the due date, series or amount of a paid instance."""
    changed = [
        name for name in _FROZEN_FIELDS
        if attributes.get_history(target, name).has_changes()
    ]
    if not changed:
        return
    if _count_links(connection, target.id):
        _block(
            target.id,
            "UPDATE",
            f"Paid bill instance fields cannot change: {', '.join(changed)}",
        )


def register_immutability_listeners():
    """
    Register the paid-instance listeners.

    Call after the models are importable and before any flush that should
    be guarded.  Registering twice is a no-op.
    """
    from household_bills.models.instance import BillInstance

    if not event.contains(Session, "before_flush", _check_paid_instance_deletion):
        event.listen(Session, "before_flush", _check_paid_instance_deletion)
    if not event.contains(BillInstance, "before_update", _check_paid_instance_update):
        event.listen(BillInstance, "before_update", _check_paid_instance_update)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the paid-instance listeners.

    WARNING: Only use this in tests that need to write forbidden rows.
    """
    from household_bills.models.instance import BillInstance

    _safe_remove_listener(Session, "before_flush", _check_paid_instance_deletion)
    _safe_remove_listener(BillInstance, "before_update", _check_paid_instance_update)
