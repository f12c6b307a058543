"""Database layer - engine, base classes and types."""

from expense_workflow.db.base import UUID, Base, UTCDateTime, UUIDString
from expense_workflow.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_config,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "init_engine_from_config",
    "session_scope",
    "create_tables",
    "drop_tables",
    "Base",
    "UTCDateTime",
    "UUIDString",
    "UUID",
]
