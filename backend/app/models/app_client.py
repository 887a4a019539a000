import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, utcnow


class AppPermission(str, enum.Enum):
    READ = "READ"
    WRITE = "WRITE"
    NONE = "NONE"


class App(Base):
    """
    API client (tenant) record. Automation tools authenticate with `secret`
    sent as the X-API-Key header.

    An app is usable while is_active is true and active_until (if set) lies in
    the future. permission: READ | WRITE | NONE.
    """
    __tablename__ = "apps"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    secret: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    active_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    permission: Mapped[str] = mapped_column(String(10), nullable=False, default=AppPermission.WRITE.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False)
