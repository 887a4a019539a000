import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, JSONType, utcnow


class Set(Base):
    """
    Named collection of string values used to make external workflows
    idempotent ("have I already processed order 1234?").

    allow_duplicates / strict_checking describe the duplicate policy. Writes
    are only rejected when strict_checking is on and allow_duplicates is off;
    see app.services.set_service.
    """
    __tablename__ = "sets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    allow_duplicates: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    strict_checking: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False)


class SetValue(Base):
    __tablename__ = "set_values"
    __table_args__ = (
        Index("ix_set_values_set_id_value", "set_id", "value"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    set_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("sets.id", ondelete="CASCADE"), nullable=False)
    value: Mapped[str] = mapped_column(String(255), nullable=False)
    # Column is named "metadata"; the attribute name is reserved by DeclarativeBase.
    value_metadata: Mapped[Optional[Any]] = mapped_column("metadata", JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False)
