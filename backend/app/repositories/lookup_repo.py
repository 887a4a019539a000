"""Repository for lookups and lookup_values."""
import uuid
from typing import Any, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.lookup import Lookup, LookupValue


class LookupRepo:
    @staticmethod
    async def create(db: AsyncSession, **fields) -> Lookup:
        lookup = Lookup(**fields)
        db.add(lookup)
        await db.commit()
        await db.refresh(lookup)
        return lookup

    @staticmethod
    async def get_by_name(db: AsyncSession, name: str) -> Optional[Lookup]:
        result = await db.execute(select(Lookup).where(Lookup.name == name))
        return result.scalar_one_or_none()

    @staticmethod
    async def list_all(db: AsyncSession) -> list[Lookup]:
        result = await db.execute(select(Lookup).order_by(Lookup.created_at.asc()))
        return list(result.scalars().all())

    @staticmethod
    async def list_with_counts(db: AsyncSession) -> list[tuple[Lookup, int]]:
        counts = (
            select(LookupValue.lookup_id, func.count().label("value_count"))
            .group_by(LookupValue.lookup_id)
            .subquery()
        )
        result = await db.execute(
            select(Lookup, func.coalesce(counts.c.value_count, 0))
            .outerjoin(counts, counts.c.lookup_id == Lookup.id)
            .order_by(Lookup.created_at.desc())
        )
        return [(row[0], row[1]) for row in result.all()]

    @staticmethod
    async def count_values(db: AsyncSession, lookup_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count()).select_from(LookupValue).where(LookupValue.lookup_id == lookup_id)
        )
        return result.scalar_one()

    @staticmethod
    async def add_value(
        db: AsyncSession,
        lookup_id: uuid.UUID,
        left: str,
        right: str,
        left_metadata: Any = None,
        right_metadata: Any = None,
    ) -> LookupValue:
        row = LookupValue(
            lookup_id=lookup_id,
            left=left,
            right=right,
            left_metadata=left_metadata,
            right_metadata=right_metadata,
        )
        db.add(row)
        await db.commit()
        await db.refresh(row)
        return row

    @staticmethod
    async def get_value(
        db: AsyncSession, lookup_id: uuid.UUID, value_id: uuid.UUID
    ) -> Optional[LookupValue]:
        result = await db.execute(
            select(LookupValue).where(
                LookupValue.id == value_id,
                LookupValue.lookup_id == lookup_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def find_value(
        db: AsyncSession,
        lookup_id: uuid.UUID,
        left: Optional[str] = None,
        right: Optional[str] = None,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> Optional[LookupValue]:
        """Newest row matching the given side(s) exactly."""
        stmt = select(LookupValue).where(LookupValue.lookup_id == lookup_id)
        if left is not None:
            stmt = stmt.where(LookupValue.left == left)
        if right is not None:
            stmt = stmt.where(LookupValue.right == right)
        if exclude_id is not None:
            stmt = stmt.where(LookupValue.id != exclude_id)
        result = await db.execute(stmt.order_by(LookupValue.created_at.desc()).limit(1))
        return result.scalar_one_or_none()

    @staticmethod
    async def search(
        db: AsyncSession,
        lookup_id: uuid.UUID,
        left: Optional[str] = None,
        right: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
    ) -> list[LookupValue]:
        stmt = select(LookupValue).where(LookupValue.lookup_id == lookup_id)
        if left:
            stmt = stmt.where(LookupValue.left == left)
        if right:
            stmt = stmt.where(LookupValue.right == right)
        if search:
            stmt = stmt.where(
                or_(
                    LookupValue.left.icontains(search, autoescape=True),
                    LookupValue.right.icontains(search, autoescape=True),
                )
            )
        result = await db.execute(
            stmt.order_by(LookupValue.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def values_by_lookup(db: AsyncSession) -> dict[uuid.UUID, list]:
        """All lookup values as (id, left, right) rows, grouped by lookup id."""
        result = await db.execute(
            select(
                LookupValue.lookup_id,
                LookupValue.id,
                LookupValue.left,
                LookupValue.right,
            ).order_by(LookupValue.lookup_id, LookupValue.created_at)
        )
        grouped: dict[uuid.UUID, list] = {}
        for row in result.all():
            grouped.setdefault(row.lookup_id, []).append(row)
        return grouped

    @staticmethod
    async def update_value(
        db: AsyncSession,
        row: LookupValue,
        left: str,
        right: str,
        left_metadata: Any = None,
        right_metadata: Any = None,
    ) -> LookupValue:
        row.left = left
        row.right = right
        row.left_metadata = left_metadata
        row.right_metadata = right_metadata
        await db.commit()
        await db.refresh(row)
        return row

    @staticmethod
    async def delete_value(db: AsyncSession, row: LookupValue) -> None:
        await db.delete(row)
        await db.commit()

    @staticmethod
    async def delete_values(
        db: AsyncSession, lookup_id: uuid.UUID, value_ids: Optional[list[uuid.UUID]] = None
    ) -> int:
        stmt = delete(LookupValue).where(LookupValue.lookup_id == lookup_id)
        if value_ids is not None:
            stmt = stmt.where(LookupValue.id.in_(value_ids))
        result = await db.execute(stmt)
        await db.commit()
        return result.rowcount

    @staticmethod
    async def delete_cascade(db: AsyncSession, lookup_id: uuid.UUID) -> None:
        """Delete the values, then the lookup row, in one transaction."""
        await db.execute(delete(LookupValue).where(LookupValue.lookup_id == lookup_id))
        await db.execute(delete(Lookup).where(Lookup.id == lookup_id))
        await db.commit()
