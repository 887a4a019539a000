"""
Set engine: named collections of string values with optional metadata.

Existence of the owning set is checked before every write. Duplicate policy:
a set with strict_checking on and allow_duplicates off rejects a value it
already holds (DuplicateValue). Any other combination accepts duplicates.

Bulk operations
---------------
Input is paced in chunks of settings.bulk_batch_size. Every item is validated
and committed on its own; a failing item becomes an ItemError in the
BulkResult and the remaining items are still processed.
"""
import logging
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Optional, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.errors import DuplicateName, DuplicateValue, NotFound, RegistryError, ValidationError
from app.models.set import Set, SetValue
from app.repositories.set_repo import SetRepo
from app.utils.bulk import BulkResult, chunked
from app.utils.validation import parse_uuid, validate_description, validate_name, validate_value

logger = logging.getLogger(__name__)


@dataclass
class ValueCheck:
    value: str
    exists: bool
    set_value: Optional[SetValue] = None


async def _require_set(db: AsyncSession, name: str) -> Set:
    s = await SetRepo.get_by_name(db, name)
    if s is None:
        raise NotFound(f"Set '{name}' not found", code="SET_NOT_FOUND")
    return s


def _rejects_duplicates(s: Set) -> bool:
    return s.strict_checking and not s.allow_duplicates


async def _check_duplicate(
    db: AsyncSession,
    set_id: uuid.UUID,
    value: str,
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    if await SetRepo.find_value(db, set_id, value, exclude_id=exclude_id) is not None:
        raise DuplicateValue(
            f"Value '{value}' already exists in this set",
            details=[{"field": "value", "message": "Duplicate value"}],
        )


def _check_bulk_size(items: Sequence) -> None:
    if not items:
        raise ValidationError(
            "At least one value is required",
            details=[{"field": "values", "message": "At least one value is required"}],
        )
    if len(items) > settings.bulk_max_items:
        raise ValidationError(
            f"Maximum {settings.bulk_max_items} values per request",
            details=[{"field": "values", "message": f"Maximum {settings.bulk_max_items} values per request"}],
        )


# ---------------------------------------------------------------------------
# Sets
# ---------------------------------------------------------------------------

async def create_set(
    db: AsyncSession,
    name: str,
    description: Optional[str] = None,
    allow_duplicates: bool = True,
    strict_checking: bool = False,
) -> Set:
    validate_name(name)
    description = validate_description(description)
    if await SetRepo.get_by_name(db, name) is not None:
        raise DuplicateName("Set with this name already exists", code="DUPLICATE_SET")
    try:
        s = await SetRepo.create(db, name, description, allow_duplicates, strict_checking)
    except IntegrityError:
        # Lost a race with a concurrent create of the same name
        await db.rollback()
        raise DuplicateName("Set with this name already exists", code="DUPLICATE_SET")
    logger.info("Set created: %s (%s)", s.name, s.id)
    return s


async def list_sets(db: AsyncSession) -> list[tuple[Set, int]]:
    return await SetRepo.list_with_counts(db)


async def get_set(db: AsyncSession, name: str) -> tuple[Set, int]:
    """Return the set and its value count."""
    s = await _require_set(db, name)
    return s, await SetRepo.count_values(db, s.id)


async def delete_set(db: AsyncSession, name: str) -> None:
    s = await _require_set(db, name)
    await SetRepo.delete_cascade(db, s.id)
    logger.info("Set deleted: %s", name)


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------

async def add_value(
    db: AsyncSession, set_name: str, value: str, metadata: Any = None
) -> SetValue:
    validate_value(value)
    s = await _require_set(db, set_name)
    if _rejects_duplicates(s):
        await _check_duplicate(db, s.id, value)
    row = await SetRepo.add_value(db, s.id, value, metadata)
    logger.info("Set value added: set=%s value_id=%s", s.id, row.id)
    return row


async def check_value(db: AsyncSession, set_name: str, value: str) -> ValueCheck:
    validate_value(value)
    s = await _require_set(db, set_name)
    row = await SetRepo.find_value(db, s.id, value)
    return ValueCheck(value=value, exists=row is not None, set_value=row)


async def add_values_bulk(
    db: AsyncSession, set_name: str, items: Sequence[Mapping[str, Any]]
) -> BulkResult[SetValue]:
    """
    Insert many values. Each item is a mapping with "value" and optional
    "metadata". Outcome labels: "created".
    """
    _check_bulk_size(items)
    s = await _require_set(db, set_name)
    # A rollback expires every instance still in the session, so the loop
    # works on plain copies and detaches each row it reports.
    set_id, reject_dups = s.id, _rejects_duplicates(s)

    result: BulkResult[SetValue] = BulkResult()
    for offset, batch in chunked(items, settings.bulk_batch_size):
        for j, item in enumerate(batch):
            index = offset + j
            if not isinstance(item, Mapping):
                result.fail(index, "VALIDATION_ERROR", "Invalid value data")
                continue
            try:
                value = validate_value(item.get("value"))
                if reject_dups:
                    await _check_duplicate(db, set_id, value)
                row = await SetRepo.add_value(db, set_id, value, item.get("metadata"))
                db.expunge(row)
                result.ok(index, row)
            except RegistryError as exc:
                result.fail(index, exc.code, exc.message)
            except SQLAlchemyError as exc:
                await db.rollback()
                logger.warning("Bulk set insert failed at index %d: %s", index, exc)
                result.fail(index, "INTERNAL_ERROR", "Failed to store value")

    logger.info(
        "Bulk set values processed: set=%s total=%d created=%d errors=%d",
        set_id, len(items), result.count("created"), len(result.failures),
    )
    return result


async def check_values_bulk(
    db: AsyncSession, set_name: str, values: Sequence[str]
) -> BulkResult[ValueCheck]:
    """Existence probe for many values. Outcome labels: "found", "not_found"."""
    _check_bulk_size(values)
    s = await _require_set(db, set_name)
    set_id = s.id

    result: BulkResult[ValueCheck] = BulkResult()
    for offset, batch in chunked(values, settings.bulk_batch_size):
        for j, raw in enumerate(batch):
            index = offset + j
            try:
                value = validate_value(raw)
                row = await SetRepo.find_value(db, set_id, value)
            except RegistryError as exc:
                result.fail(index, exc.code, exc.message)
                continue
            except SQLAlchemyError as exc:
                await db.rollback()
                logger.warning("Bulk set check failed at index %d: %s", index, exc)
                result.fail(index, "INTERNAL_ERROR", "Failed to check value")
                continue
            if row is None:
                result.ok(index, ValueCheck(value=value, exists=False), outcome="not_found")
            else:
                db.expunge(row)
                result.ok(index, ValueCheck(value=value, exists=True, set_value=row), outcome="found")

    logger.info(
        "Bulk set value checks processed: set=%s total=%d found=%d not_found=%d errors=%d",
        set_id, len(values), result.count("found"), result.count("not_found"), len(result.failures),
    )
    return result


async def remove_value(
    db: AsyncSession, set_name: str, value_id_or_value: Union[str, uuid.UUID]
) -> int:
    """
    Remove by value id or by literal value. A literal value removes every
    row holding it. Returns the number of rows removed.
    """
    s = await _require_set(db, set_name)
    value_id = parse_uuid(value_id_or_value)
    deleted = await SetRepo.delete_matching(db, s.id, str(value_id_or_value), value_id=value_id)
    if deleted == 0:
        raise NotFound("Value not found", code="VALUE_NOT_FOUND")
    logger.info("Set value removed: set=%s key=%s count=%d", s.id, value_id_or_value, deleted)
    return deleted


async def update_value(
    db: AsyncSession,
    set_name: str,
    value_id: Union[str, uuid.UUID],
    value: str,
    metadata: Any = None,
) -> SetValue:
    validate_value(value)
    s = await _require_set(db, set_name)
    vid = parse_uuid(value_id)
    row = await SetRepo.get_value(db, s.id, vid) if vid else None
    if row is None:
        raise NotFound("Value not found", code="VALUE_NOT_FOUND")
    if _rejects_duplicates(s):
        await _check_duplicate(db, s.id, value, exclude_id=row.id)
    return await SetRepo.update_value(db, row, value, metadata)


async def clear_values(db: AsyncSession, set_name: str) -> int:
    s = await _require_set(db, set_name)
    deleted = await SetRepo.delete_values(db, s.id)
    logger.info("Set cleared: %s (%d values)", set_name, deleted)
    return deleted


async def delete_values_list(
    db: AsyncSession, set_name: str, value_ids: Sequence[Union[str, uuid.UUID]]
) -> int:
    """Delete the listed value ids of this set; ids that do not parse or match are ignored."""
    s = await _require_set(db, set_name)
    ids = [vid for vid in (parse_uuid(v) for v in value_ids) if vid is not None]
    if not ids:
        return 0
    return await SetRepo.delete_values(db, s.id, ids)
