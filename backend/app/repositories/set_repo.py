"""Repository for sets and set_values.

Plain queries only; existence checks, duplicate policy and bulk pacing live
in app.services.set_service. Write helpers commit, matching the other repos.
"""
import uuid
from typing import Any, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.set import Set, SetValue


class SetRepo:
    @staticmethod
    async def create(
        db: AsyncSession,
        name: str,
        description: Optional[str],
        allow_duplicates: bool,
        strict_checking: bool,
    ) -> Set:
        s = Set(
            name=name,
            description=description,
            allow_duplicates=allow_duplicates,
            strict_checking=strict_checking,
        )
        db.add(s)
        await db.commit()
        await db.refresh(s)
        return s

    @staticmethod
    async def get_by_name(db: AsyncSession, name: str) -> Optional[Set]:
        result = await db.execute(select(Set).where(Set.name == name))
        return result.scalar_one_or_none()

    @staticmethod
    async def list_with_counts(db: AsyncSession) -> list[tuple[Set, int]]:
        counts = (
            select(SetValue.set_id, func.count().label("value_count"))
            .group_by(SetValue.set_id)
            .subquery()
        )
        result = await db.execute(
            select(Set, func.coalesce(counts.c.value_count, 0))
            .outerjoin(counts, counts.c.set_id == Set.id)
            .order_by(Set.created_at.desc())
        )
        return [(row[0], row[1]) for row in result.all()]

    @staticmethod
    async def count_values(db: AsyncSession, set_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count()).select_from(SetValue).where(SetValue.set_id == set_id)
        )
        return result.scalar_one()

    @staticmethod
    async def add_value(
        db: AsyncSession, set_id: uuid.UUID, value: str, metadata: Any = None
    ) -> SetValue:
        row = SetValue(set_id=set_id, value=value, value_metadata=metadata)
        db.add(row)
        await db.commit()
        await db.refresh(row)
        return row

    @staticmethod
    async def find_value(
        db: AsyncSession,
        set_id: uuid.UUID,
        value: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> Optional[SetValue]:
        """First (oldest) row holding `value`; duplicates may exist."""
        stmt = select(SetValue).where(SetValue.set_id == set_id, SetValue.value == value)
        if exclude_id is not None:
            stmt = stmt.where(SetValue.id != exclude_id)
        result = await db.execute(stmt.order_by(SetValue.created_at.asc()).limit(1))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_value(
        db: AsyncSession, set_id: uuid.UUID, value_id: uuid.UUID
    ) -> Optional[SetValue]:
        result = await db.execute(
            select(SetValue).where(SetValue.id == value_id, SetValue.set_id == set_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def update_value(
        db: AsyncSession, row: SetValue, value: str, metadata: Any = None
    ) -> SetValue:
        row.value = value
        row.value_metadata = metadata
        await db.commit()
        await db.refresh(row)
        return row

    @staticmethod
    async def delete_matching(
        db: AsyncSession,
        set_id: uuid.UUID,
        value: str,
        value_id: Optional[uuid.UUID] = None,
    ) -> int:
        """Delete rows of the set whose id equals `value_id` or whose value equals `value`."""
        match = SetValue.value == value
        if value_id is not None:
            match = or_(SetValue.id == value_id, match)
        result = await db.execute(
            delete(SetValue).where(SetValue.set_id == set_id, match)
        )
        await db.commit()
        return result.rowcount

    @staticmethod
    async def delete_values(
        db: AsyncSession, set_id: uuid.UUID, value_ids: Optional[list[uuid.UUID]] = None
    ) -> int:
        """Delete the listed values, or every value of the set when value_ids is None."""
        stmt = delete(SetValue).where(SetValue.set_id == set_id)
        if value_ids is not None:
            stmt = stmt.where(SetValue.id.in_(value_ids))
        result = await db.execute(stmt)
        await db.commit()
        return result.rowcount

    @staticmethod
    async def delete_cascade(db: AsyncSession, set_id: uuid.UUID) -> None:
        """Delete the values, then the set row, in one transaction."""
        await db.execute(delete(SetValue).where(SetValue.set_id == set_id))
        await db.execute(delete(Set).where(Set.id == set_id))
        await db.commit()
