"""
BaseService -- abstract base for flush-only services.

Responsibility:
    Provides the common constructor and session-handling contract for the
    write-side services.  Concrete services receive a SQLAlchemy ``Session``
    and persist with ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Services -- imperative shell.  ``BillScheduleService`` is the only
    class in this package that owns a transaction boundary; everything
    that extends BaseService runs inside the caller's transaction.

Failure modes:
    - A subclass that commits on its own breaks the all-or-nothing
      guarantee of reconciliation (template change, deletions and
      insertions must land together).
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from household_bills.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for flush-only services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Does NOT provide read-only queries -- those belong in
          ``household_bills/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
