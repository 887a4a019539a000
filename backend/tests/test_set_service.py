"""
Integration tests for the set engine (app.services.set_service).

Tests verify:
- Name validation and uniqueness on create.
- Writes against a missing set fail with NotFound.
- Duplicate policy: only strict_checking + !allow_duplicates rejects.
- Bulk add commits each item on its own and reports per-item errors by index.
- A store error on one bulk item leaves the rows already reported usable.
- Bulk check splits values into found / not_found.
- remove_value accepts a value id or a literal value.
- delete_set removes the values together with the set.
"""
import uuid

import pytest
from sqlalchemy import func, select, text

from app.errors import DuplicateName, DuplicateValue, InvalidName, NotFound, ValidationError
from app.models.set import SetValue
from app.repositories.set_repo import SetRepo
from app.services import set_service


# ── helpers ───────────────────────────────────────────────────────────────────

async def _value_count(db, set_id) -> int:
    result = await db.execute(
        select(func.count()).select_from(SetValue).where(SetValue.set_id == set_id)
    )
    return result.scalar_one()


def _fail_store_for(monkeypatch, marker: str) -> None:
    """Make SetRepo.add_value hit a database error when asked to store `marker`."""
    original = SetRepo.add_value

    async def add_value(db, set_id, value, *args):
        if value == marker:
            await db.execute(text("SELECT * FROM no_such_table"))
        return await original(db, set_id, value, *args)

    monkeypatch.setattr(SetRepo, "add_value", staticmethod(add_value))


# ── sets ──────────────────────────────────────────────────────────────────────

async def test_create_set_defaults(db):
    s = await set_service.create_set(db, "processed-orders")
    assert s.allow_duplicates is True
    assert s.strict_checking is False
    assert s.description is None


@pytest.mark.parametrize("name", ["", "has space", "semi;colon", "x" * 101])
async def test_create_set_rejects_invalid_names(db, name):
    with pytest.raises(InvalidName) as exc_info:
        await set_service.create_set(db, name)
    assert exc_info.value.code == "INVALID_NAME"
    assert exc_info.value.details[0]["field"] == "name"


async def test_create_set_duplicate_name(db):
    await set_service.create_set(db, "orders")
    with pytest.raises(DuplicateName):
        await set_service.create_set(db, "orders")


async def test_get_set_returns_value_count(db):
    await set_service.create_set(db, "orders")
    await set_service.add_value(db, "orders", "1")
    await set_service.add_value(db, "orders", "2")

    s, count = await set_service.get_set(db, "orders")
    assert s.name == "orders"
    assert count == 2


async def test_get_missing_set(db):
    with pytest.raises(NotFound) as exc_info:
        await set_service.get_set(db, "nope")
    assert exc_info.value.code == "SET_NOT_FOUND"


async def test_list_sets_with_counts(db):
    await set_service.create_set(db, "a")
    await set_service.create_set(db, "b")
    await set_service.add_value(db, "b", "v")

    counts = {s.name: n for s, n in await set_service.list_sets(db)}
    assert counts == {"a": 0, "b": 1}


async def test_delete_set_removes_values(db):
    s = await set_service.create_set(db, "orders")
    set_id = s.id
    await set_service.add_value(db, "orders", "1")

    await set_service.delete_set(db, "orders")

    assert await _value_count(db, set_id) == 0
    with pytest.raises(NotFound):
        await set_service.get_set(db, "orders")


# ── single values ─────────────────────────────────────────────────────────────

async def test_add_value_to_missing_set(db):
    with pytest.raises(NotFound):
        await set_service.add_value(db, "ghost", "x")


async def test_add_value_keeps_metadata(db):
    await set_service.create_set(db, "orders")
    row = await set_service.add_value(db, "orders", "1234", {"source": "shop", "n": [1, 2]})
    assert row.value == "1234"
    assert row.value_metadata == {"source": "shop", "n": [1, 2]}


@pytest.mark.parametrize("value", ["", "x" * 256])
async def test_add_value_validates_length(db, value):
    await set_service.create_set(db, "orders")
    with pytest.raises(ValidationError):
        await set_service.add_value(db, "orders", value)


async def test_duplicates_allowed_by_default(db):
    await set_service.create_set(db, "orders")
    await set_service.add_value(db, "orders", "1")
    await set_service.add_value(db, "orders", "1")
    _, count = await set_service.get_set(db, "orders")
    assert count == 2


async def test_non_strict_set_ignores_allow_duplicates(db):
    await set_service.create_set(db, "orders", allow_duplicates=False, strict_checking=False)
    await set_service.add_value(db, "orders", "1")
    await set_service.add_value(db, "orders", "1")
    _, count = await set_service.get_set(db, "orders")
    assert count == 2


async def test_strict_set_rejects_duplicate(db):
    await set_service.create_set(db, "orders", allow_duplicates=False, strict_checking=True)
    await set_service.add_value(db, "orders", "1")
    with pytest.raises(DuplicateValue):
        await set_service.add_value(db, "orders", "1")


async def test_check_value(db):
    await set_service.create_set(db, "orders")
    row = await set_service.add_value(db, "orders", "1")

    hit = await set_service.check_value(db, "orders", "1")
    miss = await set_service.check_value(db, "orders", "2")

    assert hit.exists is True and hit.set_value.id == row.id
    assert miss.exists is False and miss.set_value is None


async def test_update_value(db):
    await set_service.create_set(db, "orders")
    row = await set_service.add_value(db, "orders", "1")
    updated = await set_service.update_value(db, "orders", row.id, "2", {"k": "v"})
    assert updated.id == row.id
    assert updated.value == "2"
    assert updated.value_metadata == {"k": "v"}


async def test_update_value_of_other_set_is_not_found(db):
    await set_service.create_set(db, "a")
    await set_service.create_set(db, "b")
    row = await set_service.add_value(db, "a", "1")
    with pytest.raises(NotFound):
        await set_service.update_value(db, "b", row.id, "2")


async def test_strict_update_cannot_create_duplicate(db):
    await set_service.create_set(db, "orders", allow_duplicates=False, strict_checking=True)
    await set_service.add_value(db, "orders", "1")
    row = await set_service.add_value(db, "orders", "2")

    # updating a row to its own value is fine
    await set_service.update_value(db, "orders", row.id, "2")
    with pytest.raises(DuplicateValue):
        await set_service.update_value(db, "orders", row.id, "1")


async def test_remove_value_by_id(db):
    await set_service.create_set(db, "orders")
    row = await set_service.add_value(db, "orders", "1")
    await set_service.add_value(db, "orders", "2")

    assert await set_service.remove_value(db, "orders", str(row.id)) == 1
    assert (await set_service.check_value(db, "orders", "1")).exists is False
    assert (await set_service.check_value(db, "orders", "2")).exists is True


async def test_remove_value_by_literal(db):
    await set_service.create_set(db, "orders")
    await set_service.add_value(db, "orders", "1")
    await set_service.add_value(db, "orders", "1")
    assert await set_service.remove_value(db, "orders", "1") == 2


async def test_remove_value_not_found(db):
    await set_service.create_set(db, "orders")
    with pytest.raises(NotFound) as exc_info:
        await set_service.remove_value(db, "orders", str(uuid.uuid4()))
    assert exc_info.value.code == "VALUE_NOT_FOUND"


async def test_clear_values(db):
    s = await set_service.create_set(db, "orders")
    for v in ("1", "2", "3"):
        await set_service.add_value(db, "orders", v)
    assert await set_service.clear_values(db, "orders") == 3
    assert await _value_count(db, s.id) == 0


async def test_delete_values_list_ignores_foreign_ids(db):
    await set_service.create_set(db, "a")
    await set_service.create_set(db, "b")
    a1 = await set_service.add_value(db, "a", "1")
    a2 = await set_service.add_value(db, "a", "2")
    b1 = await set_service.add_value(db, "b", "1")

    deleted = await set_service.delete_values_list(db, "a", [str(a1.id), str(b1.id), "not-a-uuid"])

    assert deleted == 1
    _, count_a = await set_service.get_set(db, "a")
    _, count_b = await set_service.get_set(db, "b")
    assert count_a == 1 and count_b == 1
    assert (await set_service.check_value(db, "a", "2")).set_value.id == a2.id


# ── bulk ──────────────────────────────────────────────────────────────────────

async def test_bulk_add_partial_success(db):
    """One bad item does not block its siblings; errors carry the item index."""
    await set_service.create_set(db, "orders")
    items = [{"value": "1"}, {"value": ""}, {"value": "3", "metadata": {"k": 1}}, "not-a-mapping"]

    result = await set_service.add_values_bulk(db, "orders", items)

    assert result.count("created") == 2
    assert [e["index"] for e in result.error_list()] == [1, 3]
    assert [v.value for v in result.values()] == ["1", "3"]
    _, count = await set_service.get_set(db, "orders")
    assert count == 2


async def test_bulk_add_strict_reports_duplicates(db):
    await set_service.create_set(db, "orders", allow_duplicates=False, strict_checking=True)
    await set_service.add_value(db, "orders", "1")

    result = await set_service.add_values_bulk(
        db, "orders", [{"value": "1"}, {"value": "2"}, {"value": "2"}]
    )

    assert result.count("created") == 1
    errors = result.error_list()
    assert [e["index"] for e in errors] == [0, 2]
    assert {e["code"] for e in errors} == {"DUPLICATE_VALUE"}


async def test_bulk_add_spans_several_batches(db):
    await set_service.create_set(db, "orders")
    items = [{"value": str(i)} for i in range(230)]

    result = await set_service.add_values_bulk(db, "orders", items)

    assert result.count("created") == 230
    assert result.failures == []

    checked = await set_service.check_values_bulk(db, "orders", [str(i) for i in range(230)])
    assert checked.count("found") == 230
    assert checked.count("not_found") == 0


async def test_bulk_add_store_error_keeps_earlier_rows_readable(db, monkeypatch):
    await set_service.create_set(db, "orders")
    _fail_store_for(monkeypatch, "bad")

    result = await set_service.add_values_bulk(
        db, "orders", [{"value": "1"}, {"value": "bad"}, {"value": "3"}]
    )

    assert result.count("created") == 2
    assert result.error_list() == [{"index": 1, "code": "INTERNAL_ERROR", "error": "Failed to store value"}]
    rows = result.values()
    assert [v.value for v in rows] == ["1", "3"]
    assert all(v.id is not None and v.created_at is not None for v in rows)
    _, count = await set_service.get_set(db, "orders")
    assert count == 2


async def test_bulk_add_rejects_empty_and_oversized(db):
    await set_service.create_set(db, "orders")
    with pytest.raises(ValidationError):
        await set_service.add_values_bulk(db, "orders", [])
    with pytest.raises(ValidationError):
        await set_service.add_values_bulk(db, "orders", [{"value": "x"}] * 1001)


async def test_bulk_add_missing_set(db):
    with pytest.raises(NotFound):
        await set_service.add_values_bulk(db, "ghost", [{"value": "1"}])


async def test_bulk_check(db):
    await set_service.create_set(db, "orders")
    await set_service.add_value(db, "orders", "1")
    await set_service.add_value(db, "orders", "3")

    result = await set_service.check_values_bulk(db, "orders", ["1", "2", "3", ""])

    assert result.count("found") == 2
    assert result.count("not_found") == 1
    assert [e["index"] for e in result.error_list()] == [3]
    assert [(c.value, c.exists) for c in result.values()] == [("1", True), ("2", False), ("3", True)]
