"""Database layer - engine, base classes, and paid-instance guards."""

from household_bills.db.base import UUID, Base, TrackedBase, UUIDString
from household_bills.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_config,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "init_engine_from_config",
    "init_engine_from_url",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
