"""Database layer - engine, base classes and session management."""

from catalog_kernel.db.base import Base, TimestampedBase, UUIDString
from catalog_kernel.db.engine import (
    build_engine,
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_settings,
    init_engine_from_url,
)

__all__ = [
    "build_engine",
    "create_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_settings",
    "init_engine_from_url",
    "Base",
    "TimestampedBase",
    "UUIDString",
]
