from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_app, require_write_app
from app.models.app_client import App
from app.models.lookup import Lookup, LookupValue
from app.services import lookup_service

router = APIRouter(prefix="/lookups", tags=["lookups"])

ReadApp = Annotated[App, Depends(get_current_app)]
WriteApp = Annotated[App, Depends(require_write_app)]
DB = Annotated[AsyncSession, Depends(get_db)]


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class CreateLookupRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_-]+$")
    description: Optional[str] = Field(default=None, max_length=500)
    left_system: Optional[str] = Field(default=None, max_length=100)
    right_system: Optional[str] = Field(default=None, max_length=100)
    allow_left_dups: bool = True
    allow_right_dups: bool = True
    allow_left_right_dups: bool = True
    strict_checking: bool = False


class LookupResponse(BaseModel):
    id: str
    name: str
    description: Optional[str]
    left_system: Optional[str]
    right_system: Optional[str]
    allow_left_dups: bool
    allow_right_dups: bool
    allow_left_right_dups: bool
    strict_checking: bool
    value_count: int = 0
    created_at: str
    updated_at: str

    @classmethod
    def from_orm(cls, lk: Lookup, value_count: int = 0):
        return cls(
            id=str(lk.id),
            name=lk.name,
            description=lk.description,
            left_system=lk.left_system,
            right_system=lk.right_system,
            allow_left_dups=lk.allow_left_dups,
            allow_right_dups=lk.allow_right_dups,
            allow_left_right_dups=lk.allow_left_right_dups,
            strict_checking=lk.strict_checking,
            value_count=value_count,
            created_at=lk.created_at.isoformat(),
            updated_at=lk.updated_at.isoformat(),
        )


class MappingRequest(BaseModel):
    left: str = Field(min_length=1, max_length=255)
    right: str = Field(min_length=1, max_length=255)
    left_metadata: Optional[Any] = None
    right_metadata: Optional[Any] = None


class BulkMappingsRequest(BaseModel):
    values: list[Any] = Field(min_length=1)
    skip_duplicates: bool = False
    update_existing: bool = False


class ValueIdsRequest(BaseModel):
    ids: list[str] = Field(min_length=1)


class LookupValueResponse(BaseModel):
    id: str
    lookup_id: str
    left: str
    right: str
    left_metadata: Optional[Any]
    right_metadata: Optional[Any]
    created_at: str
    updated_at: str

    @classmethod
    def from_orm(cls, v: LookupValue):
        return cls(
            id=str(v.id),
            lookup_id=str(v.lookup_id),
            left=v.left,
            right=v.right,
            left_metadata=v.left_metadata,
            right_metadata=v.right_metadata,
            created_at=v.created_at.isoformat(),
            updated_at=v.updated_at.isoformat(),
        )


class BulkError(BaseModel):
    index: int
    code: str
    error: str


class BulkMappingsResponse(BaseModel):
    created: int
    updated: int
    skipped: int
    errors: list[BulkError]
    values: list[LookupValueResponse]


class DeletedResponse(BaseModel):
    deleted_count: int


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

@router.get("", response_model=list[LookupResponse])
async def list_lookups(app: ReadApp, db: DB):
    return [LookupResponse.from_orm(lk, count) for lk, count in await lookup_service.list_lookups(db)]


@router.post("", response_model=LookupResponse, status_code=status.HTTP_201_CREATED)
async def create_lookup(body: CreateLookupRequest, app: WriteApp, db: DB):
    lookup = await lookup_service.create_lookup(db, **body.model_dump())
    return LookupResponse.from_orm(lookup)


@router.get("/{lookup_name}", response_model=LookupResponse)
async def get_lookup(lookup_name: str, app: ReadApp, db: DB):
    lookup, count = await lookup_service.get_lookup(db, lookup_name)
    return LookupResponse.from_orm(lookup, count)


@router.delete("/{lookup_name}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lookup(lookup_name: str, app: WriteApp, db: DB):
    await lookup_service.delete_lookup(db, lookup_name)


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------

@router.post("/{lookup_name}/values", response_model=LookupValueResponse, status_code=status.HTTP_201_CREATED)
async def add_value(lookup_name: str, body: MappingRequest, app: WriteApp, db: DB):
    row = await lookup_service.add_value(
        db, lookup_name, body.left, body.right, body.left_metadata, body.right_metadata
    )
    return LookupValueResponse.from_orm(row)


@router.delete("/{lookup_name}/values", response_model=DeletedResponse)
async def clear_values(lookup_name: str, app: WriteApp, db: DB):
    deleted = await lookup_service.clear_values(db, lookup_name)
    return DeletedResponse(deleted_count=deleted)


@router.post("/{lookup_name}/values/bulk", response_model=BulkMappingsResponse)
async def add_values_bulk(lookup_name: str, body: BulkMappingsRequest, app: WriteApp, db: DB):
    result = await lookup_service.add_values_bulk(
        db,
        lookup_name,
        body.values,
        skip_duplicates=body.skip_duplicates,
        update_existing=body.update_existing,
    )
    return BulkMappingsResponse(
        created=result.count("created"),
        updated=result.count("updated"),
        skipped=result.count("skipped"),
        errors=result.error_list(),
        values=[LookupValueResponse.from_orm(v) for v in result.values("created", "updated")],
    )


@router.post("/{lookup_name}/values/delete", response_model=DeletedResponse)
async def delete_values_list(lookup_name: str, body: ValueIdsRequest, app: WriteApp, db: DB):
    deleted = await lookup_service.delete_values_list(db, lookup_name, body.ids)
    return DeletedResponse(deleted_count=deleted)


@router.put("/{lookup_name}/values/{value_id}", response_model=LookupValueResponse)
async def update_value(lookup_name: str, value_id: str, body: MappingRequest, app: WriteApp, db: DB):
    row = await lookup_service.update_value(
        db, lookup_name, value_id, body.left, body.right, body.left_metadata, body.right_metadata
    )
    return LookupValueResponse.from_orm(row)


@router.delete("/{lookup_name}/values/{value_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_value(lookup_name: str, value_id: str, app: WriteApp, db: DB):
    await lookup_service.remove_value(db, lookup_name, value_id)


@router.get("/{lookup_name}/search", response_model=list[LookupValueResponse])
async def search_values(
    lookup_name: str,
    app: ReadApp,
    db: DB,
    left: Optional[str] = Query(None),
    right: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Case-insensitive substring over left and right"),
    limit: int = Query(50, ge=1, le=100),
):
    rows = await lookup_service.search_values(
        db, lookup_name, left=left, right=right, search=search, limit=limit
    )
    return [LookupValueResponse.from_orm(v) for v in rows]
