import enum
import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, JSONType, utcnow


class WarningSeverity(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# Sort rank used by the ledger: higher ranks are listed first.
SEVERITY_RANK = {
    WarningSeverity.CRITICAL.value: 4,
    WarningSeverity.HIGH.value: 3,
    WarningSeverity.MEDIUM.value: 2,
    WarningSeverity.LOW.value: 1,
}


class DataWarning(Base):
    """
    A materialised data-quality finding, e.g. a duplicated lookup mapping.

    Rows of a given `type` are owned by the detector that produces them and are
    replaced wholesale on every run; resolving a warning does not survive a
    rescan if the underlying duplicate is still there.

    type_name / type_id identify the scanned container (lookup name and id);
    item_id is the offending lookup value.
    """
    __tablename__ = "warnings"
    __table_args__ = (
        Index("ix_warnings_type", "type"),
        Index("ix_warnings_is_resolved_severity", "is_resolved", "severity"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    type_name: Mapped[str] = mapped_column(String(100), nullable=False)
    type_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    item_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    left_duplicate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    right_duplicate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    left_right_duplicate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # LOW | MEDIUM | HIGH | CRITICAL
    severity: Mapped[str] = mapped_column(String(20), nullable=False, default=WarningSeverity.MEDIUM.value)
    details: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
    is_resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
