"""
Integration tests for the lookup engine (app.services.lookup_service).

Tests verify:
- Create / get / list / delete, with name validation and uniqueness.
- Non-strict lookups accept every kind of duplicate mapping.
- Strict lookups reject left, right and pair duplicates per their flags.
- Bulk insert modes: plain insert, skip_duplicates and update_existing,
  with per-item error capture.
- A store error mid-bulk leaves created, updated and skipped rows usable.
- Search: exact left / right, case-insensitive substring, limit bounds.
- remove_value only removes values that belong to the named lookup.
"""
import uuid

import pytest
from sqlalchemy import text

from app.errors import DuplicateName, DuplicateValue, InvalidName, NotFound, ValidationError
from app.repositories.lookup_repo import LookupRepo
from app.services import lookup_service


# ── helpers ───────────────────────────────────────────────────────────────────

async def _mapping_pairs(db, name) -> list[tuple[str, str]]:
    rows = await lookup_service.search_values(db, name, limit=100)
    return sorted((r.left, r.right) for r in rows)


def _fail_store_for(monkeypatch, marker: str) -> None:
    """Make LookupRepo.add_value hit a database error for a `marker` left value."""
    original = LookupRepo.add_value

    async def add_value(db, lookup_id, left, *args):
        if left == marker:
            await db.execute(text("SELECT * FROM no_such_table"))
        return await original(db, lookup_id, left, *args)

    monkeypatch.setattr(LookupRepo, "add_value", staticmethod(add_value))


# ── lookups ───────────────────────────────────────────────────────────────────

async def test_create_lookup_defaults(db):
    lookup = await lookup_service.create_lookup(
        db, "crm-to-erp", left_system="crm", right_system="erp"
    )
    assert lookup.left_system == "crm"
    assert lookup.right_system == "erp"
    assert lookup.allow_left_dups is True
    assert lookup.allow_right_dups is True
    assert lookup.allow_left_right_dups is True
    assert lookup.strict_checking is False


async def test_create_lookup_invalid_name(db):
    with pytest.raises(InvalidName):
        await lookup_service.create_lookup(db, "bad name!")


async def test_create_lookup_duplicate_name(db):
    await lookup_service.create_lookup(db, "ids")
    with pytest.raises(DuplicateName) as exc_info:
        await lookup_service.create_lookup(db, "ids")
    assert exc_info.value.code == "DUPLICATE_LOOKUP"


async def test_get_and_list_lookups(db):
    await lookup_service.create_lookup(db, "a")
    await lookup_service.create_lookup(db, "b")
    await lookup_service.add_value(db, "a", "1", "x")

    lookup, count = await lookup_service.get_lookup(db, "a")
    assert lookup.name == "a" and count == 1
    assert {lk.name: n for lk, n in await lookup_service.list_lookups(db)} == {"a": 1, "b": 0}


async def test_missing_lookup(db):
    with pytest.raises(NotFound) as exc_info:
        await lookup_service.add_value(db, "ghost", "1", "x")
    assert exc_info.value.code == "LOOKUP_NOT_FOUND"


async def test_delete_lookup(db):
    await lookup_service.create_lookup(db, "ids")
    await lookup_service.add_value(db, "ids", "1", "x")
    await lookup_service.delete_lookup(db, "ids")
    with pytest.raises(NotFound):
        await lookup_service.get_lookup(db, "ids")


# ── single values and duplicate policy ────────────────────────────────────────

async def test_add_value_keeps_both_metadata_sides(db):
    await lookup_service.create_lookup(db, "ids")
    row = await lookup_service.add_value(db, "ids", "C-1", "E-9", {"crm": True}, ["erp"])
    assert (row.left, row.right) == ("C-1", "E-9")
    assert row.left_metadata == {"crm": True}
    assert row.right_metadata == ["erp"]


async def test_non_strict_accepts_all_duplicates(db):
    await lookup_service.create_lookup(
        db, "ids", allow_left_dups=False, allow_right_dups=False, allow_left_right_dups=False
    )
    await lookup_service.add_value(db, "ids", "A", "X")
    await lookup_service.add_value(db, "ids", "A", "X")
    await lookup_service.add_value(db, "ids", "A", "Y")
    await lookup_service.add_value(db, "ids", "B", "X")
    _, count = await lookup_service.get_lookup(db, "ids")
    assert count == 4


async def test_strict_left_duplicate_rejected(db):
    await lookup_service.create_lookup(db, "ids", strict_checking=True, allow_left_dups=False)
    await lookup_service.add_value(db, "ids", "A", "X")
    with pytest.raises(DuplicateValue) as exc_info:
        await lookup_service.add_value(db, "ids", "A", "Y")
    assert exc_info.value.details == [{"field": "left", "message": "Duplicate left value"}]
    # right duplicates are still allowed
    await lookup_service.add_value(db, "ids", "B", "X")


async def test_strict_right_duplicate_rejected(db):
    await lookup_service.create_lookup(db, "ids", strict_checking=True, allow_right_dups=False)
    await lookup_service.add_value(db, "ids", "A", "X")
    with pytest.raises(DuplicateValue):
        await lookup_service.add_value(db, "ids", "B", "X")
    await lookup_service.add_value(db, "ids", "A", "Y")


async def test_strict_pair_duplicate_rejected(db):
    await lookup_service.create_lookup(db, "ids", strict_checking=True, allow_left_right_dups=False)
    await lookup_service.add_value(db, "ids", "A", "X")
    with pytest.raises(DuplicateValue):
        await lookup_service.add_value(db, "ids", "A", "X")
    # same left or same right alone is fine
    await lookup_service.add_value(db, "ids", "A", "Y")
    await lookup_service.add_value(db, "ids", "B", "X")


async def test_update_value(db):
    await lookup_service.create_lookup(db, "ids")
    row = await lookup_service.add_value(db, "ids", "A", "X")
    updated = await lookup_service.update_value(db, "ids", row.id, "A", "Z", right_metadata={"v": 2})
    assert updated.id == row.id
    assert updated.right == "Z"
    assert updated.right_metadata == {"v": 2}


async def test_strict_update_excludes_own_row(db):
    await lookup_service.create_lookup(db, "ids", strict_checking=True, allow_left_dups=False)
    row = await lookup_service.add_value(db, "ids", "A", "X")
    await lookup_service.add_value(db, "ids", "B", "Y")

    await lookup_service.update_value(db, "ids", row.id, "A", "X2")
    with pytest.raises(DuplicateValue):
        await lookup_service.update_value(db, "ids", row.id, "B", "X2")


async def test_remove_value_must_belong_to_lookup(db):
    await lookup_service.create_lookup(db, "a")
    await lookup_service.create_lookup(db, "b")
    row = await lookup_service.add_value(db, "a", "1", "x")

    with pytest.raises(NotFound) as exc_info:
        await lookup_service.remove_value(db, "b", row.id)
    assert exc_info.value.code == "VALUE_NOT_FOUND"

    await lookup_service.remove_value(db, "a", str(row.id))
    assert await _mapping_pairs(db, "a") == []


async def test_remove_value_unknown_id(db):
    await lookup_service.create_lookup(db, "a")
    with pytest.raises(NotFound):
        await lookup_service.remove_value(db, "a", str(uuid.uuid4()))
    with pytest.raises(NotFound):
        await lookup_service.remove_value(db, "a", "not-a-uuid")


async def test_clear_and_delete_list(db):
    await lookup_service.create_lookup(db, "ids")
    r1 = await lookup_service.add_value(db, "ids", "1", "x")
    r2 = await lookup_service.add_value(db, "ids", "2", "y")
    await lookup_service.add_value(db, "ids", "3", "z")

    assert await lookup_service.delete_values_list(db, "ids", [str(r1.id), str(r2.id)]) == 2
    assert await _mapping_pairs(db, "ids") == [("3", "z")]
    assert await lookup_service.clear_values(db, "ids") == 1
    assert await _mapping_pairs(db, "ids") == []


# ── bulk ──────────────────────────────────────────────────────────────────────

async def test_bulk_insert_partial_success(db):
    await lookup_service.create_lookup(db, "ids")
    items = [
        {"left": "1", "right": "a"},
        {"left": "", "right": "b"},
        {"left": "3", "right": "c", "left_metadata": {"k": 1}},
        {"right": "d"},
    ]

    result = await lookup_service.add_values_bulk(db, "ids", items)

    assert result.count("created") == 2
    assert result.count("updated") == 0
    assert result.count("skipped") == 0
    assert [e["index"] for e in result.error_list()] == [1, 3]
    assert await _mapping_pairs(db, "ids") == [("1", "a"), ("3", "c")]


async def test_bulk_skip_duplicates(db):
    await lookup_service.create_lookup(db, "ids")
    await lookup_service.add_value(db, "ids", "1", "a")

    result = await lookup_service.add_values_bulk(
        db,
        "ids",
        [{"left": "1", "right": "a"}, {"left": "1", "right": "b"}, {"left": "2", "right": "a"}],
        skip_duplicates=True,
    )

    assert result.count("skipped") == 1
    assert result.count("created") == 2
    assert await _mapping_pairs(db, "ids") == [("1", "a"), ("1", "b"), ("2", "a")]


async def test_bulk_update_existing(db):
    await lookup_service.create_lookup(db, "ids")
    original = await lookup_service.add_value(db, "ids", "1", "a")

    result = await lookup_service.add_values_bulk(
        db,
        "ids",
        [{"left": "1", "right": "z", "right_metadata": {"v": 2}}, {"left": "2", "right": "b"}],
        update_existing=True,
    )

    assert result.count("updated") == 1
    assert result.count("created") == 1
    updated = result.values("updated")[0]
    assert updated.id == original.id
    assert updated.right == "z"
    assert updated.right_metadata == {"v": 2}
    assert await _mapping_pairs(db, "ids") == [("1", "z"), ("2", "b")]


async def test_bulk_strict_reports_duplicates_per_item(db):
    await lookup_service.create_lookup(
        db, "ids", strict_checking=True, allow_left_right_dups=False
    )
    result = await lookup_service.add_values_bulk(
        db, "ids", [{"left": "1", "right": "a"}, {"left": "1", "right": "a"}, {"left": "2", "right": "b"}]
    )
    assert result.count("created") == 2
    assert result.error_list() == [
        {"index": 1, "code": "DUPLICATE_VALUE", "error": "Mapping '1' -> 'a' already exists in this lookup"}
    ]


async def test_bulk_store_error_keeps_updated_rows_readable(db, monkeypatch):
    await lookup_service.create_lookup(db, "ids")
    original_id = (await lookup_service.add_value(db, "ids", "1", "a")).id
    _fail_store_for(monkeypatch, "bad")

    result = await lookup_service.add_values_bulk(
        db,
        "ids",
        [{"left": "1", "right": "z"}, {"left": "bad", "right": "x"}, {"left": "2", "right": "b"}],
        update_existing=True,
    )

    assert result.count("updated") == 1
    assert result.count("created") == 1
    assert result.error_list() == [{"index": 1, "code": "INTERNAL_ERROR", "error": "Failed to store value"}]
    updated = result.values("updated")[0]
    assert (updated.id, updated.right) == (original_id, "z")
    assert updated.updated_at is not None
    assert [(v.left, v.right) for v in result.values("created")] == [("2", "b")]
    assert await _mapping_pairs(db, "ids") == [("1", "z"), ("2", "b")]


async def test_bulk_store_error_keeps_skipped_rows_readable(db, monkeypatch):
    await lookup_service.create_lookup(db, "ids")
    await lookup_service.add_value(db, "ids", "1", "a")
    _fail_store_for(monkeypatch, "bad")

    result = await lookup_service.add_values_bulk(
        db,
        "ids",
        [{"left": "1", "right": "a"}, {"left": "bad", "right": "x"}, {"left": "2", "right": "b"}],
        skip_duplicates=True,
    )

    assert result.count("skipped") == 1
    assert result.count("created") == 1
    assert [e["index"] for e in result.error_list()] == [1]
    assert [(v.left, v.right) for v in result.values("skipped", "created")] == [("1", "a"), ("2", "b")]
    assert all(v.created_at is not None for v in result.values("skipped", "created"))


async def test_bulk_rejects_empty_request(db):
    await lookup_service.create_lookup(db, "ids")
    with pytest.raises(ValidationError):
        await lookup_service.add_values_bulk(db, "ids", [])


# ── search ────────────────────────────────────────────────────────────────────

async def test_search_exact_sides(db):
    await lookup_service.create_lookup(db, "ids")
    await lookup_service.add_value(db, "ids", "C-1", "E-1")
    await lookup_service.add_value(db, "ids", "C-1", "E-2")
    await lookup_service.add_value(db, "ids", "C-2", "E-2")

    by_left = await lookup_service.search_values(db, "ids", left="C-1")
    by_right = await lookup_service.search_values(db, "ids", right="E-2")
    both = await lookup_service.search_values(db, "ids", left="C-1", right="E-2")

    assert sorted(r.right for r in by_left) == ["E-1", "E-2"]
    assert sorted(r.left for r in by_right) == ["C-1", "C-2"]
    assert [(r.left, r.right) for r in both] == [("C-1", "E-2")]


async def test_search_substring_is_case_insensitive(db):
    await lookup_service.create_lookup(db, "ids")
    await lookup_service.add_value(db, "ids", "Customer-Alpha", "1")
    await lookup_service.add_value(db, "ids", "2", "ALPHA-erp")
    await lookup_service.add_value(db, "ids", "beta", "3")

    rows = await lookup_service.search_values(db, "ids", search="alpha")
    assert sorted(r.left for r in rows) == ["2", "Customer-Alpha"]


async def test_search_treats_wildcards_literally(db):
    await lookup_service.create_lookup(db, "ids")
    await lookup_service.add_value(db, "ids", "100%", "a")
    await lookup_service.add_value(db, "ids", "1000", "b")

    rows = await lookup_service.search_values(db, "ids", search="0%")
    assert [r.left for r in rows] == ["100%"]


async def test_search_limit(db):
    await lookup_service.create_lookup(db, "ids")
    for i in range(5):
        await lookup_service.add_value(db, "ids", str(i), "x")

    assert len(await lookup_service.search_values(db, "ids", limit=3)) == 3
    with pytest.raises(ValidationError):
        await lookup_service.search_values(db, "ids", limit=0)
    with pytest.raises(ValidationError):
        await lookup_service.search_values(db, "ids", limit=101)
