"""Warning ledger operations with typed failures on top of WarningRepo."""
import logging
import uuid
from collections.abc import Sequence
from typing import Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import AlreadyResolved, NotFound, ValidationError
from app.models.data_warning import DataWarning, WarningSeverity
from app.repositories.warning_repo import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, WarningRepo
from app.utils.validation import parse_uuid

logger = logging.getLogger(__name__)


async def _require_warning(
    db: AsyncSession, warning_id: Union[str, uuid.UUID]
) -> DataWarning:
    wid = parse_uuid(warning_id)
    warning = await WarningRepo.get_by_id(db, wid) if wid else None
    if warning is None:
        raise NotFound("Warning not found", code="WARNING_NOT_FOUND")
    return warning


async def list_warnings(
    db: AsyncSession,
    type_: Optional[str] = None,
    severity: Optional[str] = None,
    resolved: Optional[bool] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> dict:
    if severity is not None and severity not in WarningSeverity.__members__:
        raise ValidationError(
            f"Unknown severity: {severity}",
            details=[{"field": "severity", "message": "Must be one of LOW, MEDIUM, HIGH, CRITICAL"}],
        )
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    offset = max(0, offset)
    warnings, total = await WarningRepo.list_page(
        db, type_=type_, severity=severity, resolved=resolved, limit=limit, offset=offset
    )
    return {
        "warnings": warnings,
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + limit < total,
        },
    }


async def get_warning(db: AsyncSession, warning_id: Union[str, uuid.UUID]) -> DataWarning:
    return await _require_warning(db, warning_id)


async def warning_stats(db: AsyncSession) -> dict:
    return await WarningRepo.stats(db)


async def resolve_warning(
    db: AsyncSession, warning_id: Union[str, uuid.UUID], resolved_by: Optional[str]
) -> DataWarning:
    warning = await _require_warning(db, warning_id)
    if warning.is_resolved:
        raise AlreadyResolved("Warning is already resolved")
    warning = await WarningRepo.mark_resolved(db, warning, resolved_by)
    logger.info("Warning resolved: %s by %s", warning.id, resolved_by)
    return warning


async def resolve_warnings_bulk(
    db: AsyncSession,
    warning_ids: Sequence[Union[str, uuid.UUID]],
    resolved_by: Optional[str],
) -> int:
    ids = [wid for wid in (parse_uuid(w) for w in warning_ids) if wid is not None]
    count = await WarningRepo.resolve_many(db, ids, resolved_by)
    logger.info("Bulk warnings resolved: %d of %d by %s", count, len(warning_ids), resolved_by)
    return count


async def delete_warning(db: AsyncSession, warning_id: Union[str, uuid.UUID]) -> None:
    warning = await _require_warning(db, warning_id)
    await WarningRepo.delete(db, warning)
    logger.info("Warning deleted: %s", warning_id)


async def clear_resolved(db: AsyncSession) -> int:
    count = await WarningRepo.clear_resolved(db)
    logger.info("Cleared %d resolved warnings", count)
    return count
