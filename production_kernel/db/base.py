"""
Module: production_kernel.db.base
Responsibility: Declarative base shared by every production table, the
    portable UUID column type, and the TrackedBase mixin recording who
    created and last touched a row.
Architecture position: Kernel > DB.  Imports nothing from models/,
    services/, selectors/ or domain/.

Column conventions:
    - Primary keys are client-generated uuid4 values, stored as 36-char
      strings so one schema serves PostgreSQL and SQLite.
    - Piece counts are Integer; garments are counted, never weighed.
    - Progress figures are Numeric(9, 4).
    - Every timestamp is timezone-aware.
    - Constraint names follow a fixed convention so migrations and error
      messages name the same objects on every backend.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Integer, MetaData, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class UUIDString(TypeDecorator):
    """UUID kept as text; read back as ``uuid.UUID``."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        int: Integer,
        Decimal: Numeric(9, 4),
        datetime: DateTime(timezone=True),
    }

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)


class TrackedBase(Base):
    """Rows whose creator and last editor are floor users."""

    __abstract__ = True

    created_by_id: Mapped[UUID] = mapped_column(nullable=False)
    updated_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(),
    )
