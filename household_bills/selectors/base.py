"""
Module: household_bills.selectors.base
Responsibility: Abstract base class for read-only query selectors.
Architecture position: Selectors.  May import from db/, models/ and domain/.
    MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(),
      session.delete(), session.commit(), or session.flush().
    - DTO return convention: selectors return frozen dataclasses, NOT ORM
      instances.
    - Selectors never take row locks.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from household_bills.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs or computed results.
    """

    def __init__(self, session: Session):
        self.session = session
