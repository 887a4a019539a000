import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, JSONType, utcnow


class Lookup(Base):
    """
    Bidirectional mapping table between identifiers of two systems
    (left_system <-> right_system).

    The allow_*_dups flags are enforced at write time only when strict_checking
    is on. Otherwise duplicates are accepted and reported later as warnings by
    app.services.warning_detection.
    """
    __tablename__ = "lookups"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    left_system: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    right_system: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    allow_left_dups: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allow_right_dups: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allow_left_right_dups: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    strict_checking: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False)


class LookupValue(Base):
    """One left <-> right mapping. Several rows may share a side, or both."""
    __tablename__ = "lookup_values"
    __table_args__ = (
        Index("ix_lookup_values_lookup_id_left", "lookup_id", "left"),
        Index("ix_lookup_values_lookup_id_right", "lookup_id", "right"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    lookup_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("lookups.id", ondelete="CASCADE"), nullable=False)
    left: Mapped[str] = mapped_column(String(255), nullable=False)
    right: Mapped[str] = mapped_column(String(255), nullable=False)
    left_metadata: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
    right_metadata: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False)
