"""Warning ledger: listing, statistics, resolution and cleanup of warnings.

The ledger does not care which detector produced a row. Detectors replace
their own rows through replace_type(), which deletes and inserts inside a
single transaction so readers never observe an empty ledger mid-run.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.data_warning import SEVERITY_RANK, DataWarning

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50

_severity_rank = case(SEVERITY_RANK, value=DataWarning.severity, else_=0)


def _filters(
    type_: Optional[str], severity: Optional[str], resolved: Optional[bool]
) -> list:
    clauses = []
    if type_:
        clauses.append(DataWarning.type == type_)
    if severity:
        clauses.append(DataWarning.severity == severity)
    if resolved is not None:
        clauses.append(DataWarning.is_resolved == resolved)
    return clauses


class WarningRepo:
    @staticmethod
    async def list_page(
        db: AsyncSession,
        type_: Optional[str] = None,
        severity: Optional[str] = None,
        resolved: Optional[bool] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> tuple[list[DataWarning], int]:
        """
        One page of warnings plus the total match count.

        Order: unresolved first, then CRITICAL → LOW, then newest first.
        limit is clamped to 1..100.
        """
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        offset = max(0, offset)
        clauses = _filters(type_, severity, resolved)

        rows = await db.execute(
            select(DataWarning)
            .where(*clauses)
            .order_by(
                DataWarning.is_resolved.asc(),
                _severity_rank.desc(),
                DataWarning.created_at.desc(),
            )
            .limit(limit)
            .offset(offset)
        )
        total = await db.execute(
            select(func.count()).select_from(DataWarning).where(*clauses)
        )
        return list(rows.scalars().all()), total.scalar_one()

    @staticmethod
    async def get_by_id(db: AsyncSession, warning_id: uuid.UUID) -> Optional[DataWarning]:
        result = await db.execute(select(DataWarning).where(DataWarning.id == warning_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def stats(db: AsyncSession) -> dict:
        total = (await db.execute(select(func.count()).select_from(DataWarning))).scalar_one()
        unresolved = (
            await db.execute(
                select(func.count()).select_from(DataWarning).where(
                    DataWarning.is_resolved == False  # noqa: E712
                )
            )
        ).scalar_one()

        by_severity = await db.execute(
            select(DataWarning.severity, func.count())
            .where(DataWarning.is_resolved == False)  # noqa: E712
            .group_by(DataWarning.severity)
        )
        by_type = await db.execute(
            select(DataWarning.type, func.count())
            .where(DataWarning.is_resolved == False)  # noqa: E712
            .group_by(DataWarning.type)
        )
        return {
            "total": total,
            "unresolved": unresolved,
            "resolved": total - unresolved,
            "by_severity": {sev.lower(): n for sev, n in by_severity.all()},
            "by_type": {t: n for t, n in by_type.all()},
        }

    @staticmethod
    async def mark_resolved(
        db: AsyncSession, warning: DataWarning, resolved_by: Optional[str]
    ) -> DataWarning:
        warning.is_resolved = True
        warning.resolved_at = datetime.now(timezone.utc)
        warning.resolved_by = resolved_by
        await db.commit()
        await db.refresh(warning)
        return warning

    @staticmethod
    async def resolve_many(
        db: AsyncSession, warning_ids: list[uuid.UUID], resolved_by: Optional[str]
    ) -> int:
        """Resolve the listed warnings that are still open. Unknown ids are ignored."""
        if not warning_ids:
            return 0
        result = await db.execute(
            update(DataWarning)
            .where(
                DataWarning.id.in_(warning_ids),
                DataWarning.is_resolved == False,  # noqa: E712
            )
            .values(
                is_resolved=True,
                resolved_at=datetime.now(timezone.utc),
                resolved_by=resolved_by,
            )
        )
        await db.commit()
        return result.rowcount

    @staticmethod
    async def delete(db: AsyncSession, warning: DataWarning) -> None:
        await db.delete(warning)
        await db.commit()

    @staticmethod
    async def clear_resolved(db: AsyncSession) -> int:
        result = await db.execute(
            delete(DataWarning).where(DataWarning.is_resolved == True)  # noqa: E712
        )
        await db.commit()
        return result.rowcount

    @staticmethod
    async def replace_type(
        db: AsyncSession, type_: str, warnings: list[DataWarning]
    ) -> int:
        """
        Replace every warning of `type_` with `warnings` atomically.

        Returns the number of rows deleted. On any failure the transaction is
        rolled back and the previous rows remain in place.
        """
        try:
            result = await db.execute(delete(DataWarning).where(DataWarning.type == type_))
            deleted = result.rowcount
            if warnings:
                db.add_all(warnings)
                await db.flush()
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return deleted
