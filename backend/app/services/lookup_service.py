"""
Lookup engine: bidirectional left <-> right mapping tables.

Duplicate policy
----------------
A lookup with strict_checking on rejects a write (DuplicateValue) that would
create a duplicate its flags disallow:

  allow_left_right_dups = False → the exact (left, right) pair exists
  allow_left_dups       = False → another row has the same left
  allow_right_dups      = False → another row has the same right

Non-strict lookups accept everything; duplicates are reported afterwards by
the warning detection job.

Bulk insert modes
-----------------
  update_existing → an item whose left already exists updates the newest row
                    with that left (outcome "updated")
  skip_duplicates → an item whose exact pair already exists is not inserted
                    (outcome "skipped")
  otherwise       → insert (outcome "created")
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
from app.models.lookup import Lookup, LookupValue
from app.repositories.lookup_repo import LookupRepo
from app.utils.bulk import BulkResult, chunked
from app.utils.validation import parse_uuid, validate_description, validate_name, validate_value

logger = logging.getLogger(__name__)

SEARCH_DEFAULT_LIMIT = 50
SEARCH_MAX_LIMIT = 100


@dataclass(frozen=True)
class _Policy:
    lookup_id: uuid.UUID
    strict: bool
    allow_left: bool
    allow_right: bool
    allow_pair: bool

    @classmethod
    def of(cls, lookup: Lookup) -> "_Policy":
        return cls(
            lookup_id=lookup.id,
            strict=lookup.strict_checking,
            allow_left=lookup.allow_left_dups,
            allow_right=lookup.allow_right_dups,
            allow_pair=lookup.allow_left_right_dups,
        )


async def _require_lookup(db: AsyncSession, name: str) -> Lookup:
    lookup = await LookupRepo.get_by_name(db, name)
    if lookup is None:
        raise NotFound(f"Lookup '{name}' not found", code="LOOKUP_NOT_FOUND")
    return lookup


async def _enforce_policy(
    db: AsyncSession,
    policy: _Policy,
    left: str,
    right: str,
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    if not policy.strict:
        return
    lid = policy.lookup_id
    if not policy.allow_pair and await LookupRepo.find_value(
        db, lid, left=left, right=right, exclude_id=exclude_id
    ):
        raise DuplicateValue(
            f"Mapping '{left}' -> '{right}' already exists in this lookup",
            details=[
                {"field": "left", "message": "Duplicate left-right pair"},
                {"field": "right", "message": "Duplicate left-right pair"},
            ],
        )
    if not policy.allow_left and await LookupRepo.find_value(
        db, lid, left=left, exclude_id=exclude_id
    ):
        raise DuplicateValue(
            f"Left value '{left}' already exists in this lookup",
            details=[{"field": "left", "message": "Duplicate left value"}],
        )
    if not policy.allow_right and await LookupRepo.find_value(
        db, lid, right=right, exclude_id=exclude_id
    ):
        raise DuplicateValue(
            f"Right value '{right}' already exists in this lookup",
            details=[{"field": "right", "message": "Duplicate right value"}],
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


async def _require_value(
    db: AsyncSession, lookup_id: uuid.UUID, value_id: Union[str, uuid.UUID]
) -> LookupValue:
    vid = parse_uuid(value_id)
    row = await LookupRepo.get_value(db, lookup_id, vid) if vid else None
    if row is None:
        raise NotFound("Value not found", code="VALUE_NOT_FOUND")
    return row


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def create_lookup(
    db: AsyncSession,
    name: str,
    description: Optional[str] = None,
    left_system: Optional[str] = None,
    right_system: Optional[str] = None,
    allow_left_dups: bool = True,
    allow_right_dups: bool = True,
    allow_left_right_dups: bool = True,
    strict_checking: bool = False,
) -> Lookup:
    validate_name(name)
    description = validate_description(description)
    if await LookupRepo.get_by_name(db, name) is not None:
        raise DuplicateName("Lookup with this name already exists", code="DUPLICATE_LOOKUP")
    try:
        lookup = await LookupRepo.create(
            db,
            name=name,
            description=description,
            left_system=left_system or None,
            right_system=right_system or None,
            allow_left_dups=allow_left_dups,
            allow_right_dups=allow_right_dups,
            allow_left_right_dups=allow_left_right_dups,
            strict_checking=strict_checking,
        )
    except IntegrityError:
        await db.rollback()
        raise DuplicateName("Lookup with this name already exists", code="DUPLICATE_LOOKUP")
    logger.info("Lookup created: %s (%s)", lookup.name, lookup.id)
    return lookup


async def list_lookups(db: AsyncSession) -> list[tuple[Lookup, int]]:
    return await LookupRepo.list_with_counts(db)


async def get_lookup(db: AsyncSession, name: str) -> tuple[Lookup, int]:
    lookup = await _require_lookup(db, name)
    return lookup, await LookupRepo.count_values(db, lookup.id)


async def delete_lookup(db: AsyncSession, name: str) -> None:
    lookup = await _require_lookup(db, name)
    await LookupRepo.delete_cascade(db, lookup.id)
    logger.info("Lookup deleted: %s", name)


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------

async def add_value(
    db: AsyncSession,
    lookup_name: str,
    left: str,
    right: str,
    left_metadata: Any = None,
    right_metadata: Any = None,
) -> LookupValue:
    validate_value(left, "left")
    validate_value(right, "right")
    lookup = await _require_lookup(db, lookup_name)
    await _enforce_policy(db, _Policy.of(lookup), left, right)
    row = await LookupRepo.add_value(db, lookup.id, left, right, left_metadata, right_metadata)
    logger.info("Lookup value added: lookup=%s value_id=%s", lookup.id, row.id)
    return row


async def add_values_bulk(
    db: AsyncSession,
    lookup_name: str,
    items: Sequence[Mapping[str, Any]],
    skip_duplicates: bool = False,
    update_existing: bool = False,
) -> BulkResult[LookupValue]:
    """
    Insert many mappings. Each item is a mapping with "left", "right" and
    optional "left_metadata" / "right_metadata". Outcome labels: "created",
    "updated", "skipped".
    """
    _check_bulk_size(items)
    lookup = await _require_lookup(db, lookup_name)
    # Rows are detached once reported so a later rollback cannot expire them.
    policy = _Policy.of(lookup)
    lookup_id = policy.lookup_id

    result: BulkResult[LookupValue] = BulkResult()
    for offset, batch in chunked(items, settings.bulk_batch_size):
        for j, item in enumerate(batch):
            index = offset + j
            if not isinstance(item, Mapping):
                result.fail(index, "VALIDATION_ERROR", "Invalid value data")
                continue
            try:
                left = validate_value(item.get("left"), "left")
                right = validate_value(item.get("right"), "right")
                left_meta = item.get("left_metadata")
                right_meta = item.get("right_metadata")

                if update_existing:
                    existing = await LookupRepo.find_value(db, lookup_id, left=left)
                    if existing is not None:
                        await _enforce_policy(db, policy, left, right, exclude_id=existing.id)
                        row = await LookupRepo.update_value(db, existing, left, right, left_meta, right_meta)
                        db.expunge(row)
                        result.ok(index, row, outcome="updated")
                        continue

                if skip_duplicates:
                    existing = await LookupRepo.find_value(db, lookup_id, left=left, right=right)
                    if existing is not None:
                        db.expunge(existing)
                        result.ok(index, existing, outcome="skipped")
                        continue

                await _enforce_policy(db, policy, left, right)
                row = await LookupRepo.add_value(db, lookup_id, left, right, left_meta, right_meta)
                db.expunge(row)
                result.ok(index, row, outcome="created")
            except RegistryError as exc:
                result.fail(index, exc.code, exc.message)
            except SQLAlchemyError as exc:
                await db.rollback()
                logger.warning("Bulk lookup insert failed at index %d: %s", index, exc)
                result.fail(index, "INTERNAL_ERROR", "Failed to store value")

    logger.info(
        "Bulk lookup values processed: lookup=%s total=%d created=%d updated=%d skipped=%d errors=%d",
        lookup_id,
        len(items),
        result.count("created"),
        result.count("updated"),
        result.count("skipped"),
        len(result.failures),
    )
    return result


async def search_values(
    db: AsyncSession,
    lookup_name: str,
    left: Optional[str] = None,
    right: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = SEARCH_DEFAULT_LIMIT,
) -> list[LookupValue]:
    """
    Exact match on left / right when given; case-insensitive substring match
    across both sides for `search`. Newest first.
    """
    if limit < 1 or limit > SEARCH_MAX_LIMIT:
        raise ValidationError(
            f"limit must be between 1 and {SEARCH_MAX_LIMIT}",
            details=[{"field": "limit", "message": f"Must be between 1 and {SEARCH_MAX_LIMIT}"}],
        )
    lookup = await _require_lookup(db, lookup_name)
    return await LookupRepo.search(db, lookup.id, left=left, right=right, search=search, limit=limit)


async def remove_value(
    db: AsyncSession, lookup_name: str, value_id: Union[str, uuid.UUID]
) -> None:
    lookup = await _require_lookup(db, lookup_name)
    row = await _require_value(db, lookup.id, value_id)
    await LookupRepo.delete_value(db, row)
    logger.info("Lookup value removed: lookup=%s value_id=%s", lookup.id, value_id)


async def update_value(
    db: AsyncSession,
    lookup_name: str,
    value_id: Union[str, uuid.UUID],
    left: str,
    right: str,
    left_metadata: Any = None,
    right_metadata: Any = None,
) -> LookupValue:
    validate_value(left, "left")
    validate_value(right, "right")
    lookup = await _require_lookup(db, lookup_name)
    row = await _require_value(db, lookup.id, value_id)
    await _enforce_policy(db, _Policy.of(lookup), left, right, exclude_id=row.id)
    return await LookupRepo.update_value(db, row, left, right, left_metadata, right_metadata)


async def clear_values(db: AsyncSession, lookup_name: str) -> int:
    lookup = await _require_lookup(db, lookup_name)
    deleted = await LookupRepo.delete_values(db, lookup.id)
    logger.info("Lookup cleared: %s (%d values)", lookup_name, deleted)
    return deleted


async def delete_values_list(
    db: AsyncSession, lookup_name: str, value_ids: Sequence[Union[str, uuid.UUID]]
) -> int:
    lookup = await _require_lookup(db, lookup_name)
    ids = [vid for vid in (parse_uuid(v) for v in value_ids) if vid is not None]
    if not ids:
        return 0
    return await LookupRepo.delete_values(db, lookup.id, ids)
