from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_app, require_write_app
from app.models.app_client import App
from app.models.set import Set, SetValue
from app.services import set_service

router = APIRouter(prefix="/sets", tags=["sets"])

ReadApp = Annotated[App, Depends(get_current_app)]
WriteApp = Annotated[App, Depends(require_write_app)]
DB = Annotated[AsyncSession, Depends(get_db)]


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class CreateSetRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_-]+$")
    description: Optional[str] = Field(default=None, max_length=500)
    allow_duplicates: bool = True
    strict_checking: bool = False


class SetResponse(BaseModel):
    id: str
    name: str
    description: Optional[str]
    allow_duplicates: bool
    strict_checking: bool
    value_count: int = 0
    created_at: str
    updated_at: str

    @classmethod
    def from_orm(cls, s: Set, value_count: int = 0):
        return cls(
            id=str(s.id),
            name=s.name,
            description=s.description,
            allow_duplicates=s.allow_duplicates,
            strict_checking=s.strict_checking,
            value_count=value_count,
            created_at=s.created_at.isoformat(),
            updated_at=s.updated_at.isoformat(),
        )


class ValueRequest(BaseModel):
    value: str = Field(min_length=1, max_length=255)
    metadata: Optional[Any] = None


class BulkValuesRequest(BaseModel):
    # Items are validated one by one in the engine so a bad item does not
    # reject the whole request.
    values: list[Any] = Field(min_length=1)


class ValueIdsRequest(BaseModel):
    ids: list[str] = Field(min_length=1)


class CheckBulkRequest(BaseModel):
    values: list[Any] = Field(min_length=1)


class SetValueResponse(BaseModel):
    id: str
    set_id: str
    value: str
    metadata: Optional[Any]
    created_at: str
    updated_at: str

    @classmethod
    def from_orm(cls, v: SetValue):
        return cls(
            id=str(v.id),
            set_id=str(v.set_id),
            value=v.value,
            metadata=v.value_metadata,
            created_at=v.created_at.isoformat(),
            updated_at=v.updated_at.isoformat(),
        )


class BulkError(BaseModel):
    index: int
    code: str
    error: str


class BulkAddResponse(BaseModel):
    created: int
    errors: list[BulkError]
    values: list[SetValueResponse]


class ContainsResponse(BaseModel):
    value: str
    exists: bool
    set_value: Optional[SetValueResponse] = None


class ContainsBulkResponse(BaseModel):
    found: int
    not_found: int
    errors: list[BulkError]
    checks: list[ContainsResponse]


class DeletedResponse(BaseModel):
    deleted_count: int


def _bulk_items(raw: list[Any]) -> list[Any]:
    """Bare strings are accepted as shorthand for {"value": ...}."""
    return [{"value": item} if isinstance(item, str) else item for item in raw]


def _check_response(check: set_service.ValueCheck) -> ContainsResponse:
    return ContainsResponse(
        value=check.value,
        exists=check.exists,
        set_value=SetValueResponse.from_orm(check.set_value) if check.set_value else None,
    )


# ---------------------------------------------------------------------------
# Sets
# ---------------------------------------------------------------------------

@router.get("", response_model=list[SetResponse])
async def list_sets(app: ReadApp, db: DB):
    return [SetResponse.from_orm(s, count) for s, count in await set_service.list_sets(db)]


@router.post("", response_model=SetResponse, status_code=status.HTTP_201_CREATED)
async def create_set(body: CreateSetRequest, app: WriteApp, db: DB):
    s = await set_service.create_set(
        db,
        name=body.name,
        description=body.description,
        allow_duplicates=body.allow_duplicates,
        strict_checking=body.strict_checking,
    )
    return SetResponse.from_orm(s)


@router.get("/{set_name}", response_model=SetResponse)
async def get_set(set_name: str, app: ReadApp, db: DB):
    s, count = await set_service.get_set(db, set_name)
    return SetResponse.from_orm(s, count)


@router.delete("/{set_name}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_set(set_name: str, app: WriteApp, db: DB):
    await set_service.delete_set(db, set_name)


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------

@router.post("/{set_name}/values", response_model=SetValueResponse, status_code=status.HTTP_201_CREATED)
async def add_value(set_name: str, body: ValueRequest, app: WriteApp, db: DB):
    row = await set_service.add_value(db, set_name, body.value, body.metadata)
    return SetValueResponse.from_orm(row)


@router.delete("/{set_name}/values", response_model=DeletedResponse)
async def clear_values(set_name: str, app: WriteApp, db: DB):
    deleted = await set_service.clear_values(db, set_name)
    return DeletedResponse(deleted_count=deleted)


@router.post("/{set_name}/values/bulk", response_model=BulkAddResponse)
async def add_values_bulk(set_name: str, body: BulkValuesRequest, app: WriteApp, db: DB):
    result = await set_service.add_values_bulk(db, set_name, _bulk_items(body.values))
    return BulkAddResponse(
        created=result.count("created"),
        errors=result.error_list(),
        values=[SetValueResponse.from_orm(v) for v in result.values()],
    )


@router.post("/{set_name}/values/delete", response_model=DeletedResponse)
async def delete_values_list(set_name: str, body: ValueIdsRequest, app: WriteApp, db: DB):
    deleted = await set_service.delete_values_list(db, set_name, body.ids)
    return DeletedResponse(deleted_count=deleted)


@router.put("/{set_name}/values/{value_id}", response_model=SetValueResponse)
async def update_value(set_name: str, value_id: str, body: ValueRequest, app: WriteApp, db: DB):
    row = await set_service.update_value(db, set_name, value_id, body.value, body.metadata)
    return SetValueResponse.from_orm(row)


@router.delete("/{set_name}/values/{value_id_or_value}", response_model=DeletedResponse)
async def remove_value(set_name: str, value_id_or_value: str, app: WriteApp, db: DB):
    """Remove by value id, or every row holding the literal value."""
    deleted = await set_service.remove_value(db, set_name, value_id_or_value)
    return DeletedResponse(deleted_count=deleted)


@router.get("/{set_name}/contains", response_model=ContainsResponse)
async def contains(set_name: str, app: ReadApp, db: DB, value: str = Query(..., min_length=1, max_length=255)):
    check = await set_service.check_value(db, set_name, value)
    return _check_response(check)


@router.post("/{set_name}/contains/bulk", response_model=ContainsBulkResponse)
async def contains_bulk(set_name: str, body: CheckBulkRequest, app: ReadApp, db: DB):
    result = await set_service.check_values_bulk(db, set_name, body.values)
    return ContainsBulkResponse(
        found=result.count("found"),
        not_found=result.count("not_found"),
        errors=result.error_list(),
        checks=[_check_response(c) for c in result.values()],
    )
