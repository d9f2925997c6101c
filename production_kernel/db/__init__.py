"""Database layer - engine, base classes, and append-only listeners."""

from production_kernel.db.base import Base, TrackedBase, UUIDString
from production_kernel.db.engine import (
    build_engine,
    create_tables,
    drop_tables,
    session_factory,
    session_scope,
)

__all__ = [
    "Base",
    "TrackedBase",
    "UUIDString",
    "build_engine",
    "create_tables",
    "drop_tables",
    "session_factory",
    "session_scope",
]
