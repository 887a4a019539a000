from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user
from app.models.data_warning import DataWarning
from app.models.user import User
from app.services import warning_service

router = APIRouter(prefix="/warnings", tags=["warnings"])

CurrentUser = Annotated[User, Depends(get_current_user)]
DB = Annotated[AsyncSession, Depends(get_db)]


class WarningResponse(BaseModel):
    id: str
    type: str
    type_name: str
    type_id: str
    item_id: str
    left_duplicate: bool
    right_duplicate: bool
    left_right_duplicate: bool
    severity: str
    details: Optional[Any]
    is_resolved: bool
    resolved_at: Optional[str]
    resolved_by: Optional[str]
    created_at: str

    @classmethod
    def from_orm(cls, w: DataWarning):
        return cls(
            id=str(w.id),
            type=w.type,
            type_name=w.type_name,
            type_id=str(w.type_id),
            item_id=str(w.item_id),
            left_duplicate=w.left_duplicate,
            right_duplicate=w.right_duplicate,
            left_right_duplicate=w.left_right_duplicate,
            severity=w.severity,
            details=w.details,
            is_resolved=w.is_resolved,
            resolved_at=w.resolved_at.isoformat() if w.resolved_at else None,
            resolved_by=w.resolved_by,
            created_at=w.created_at.isoformat(),
        )


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class WarningListResponse(BaseModel):
    warnings: list[WarningResponse]
    pagination: Pagination


class WarningStatsResponse(BaseModel):
    total: int
    unresolved: int
    resolved: int
    by_severity: dict[str, int]
    by_type: dict[str, int]


class ResolveBulkRequest(BaseModel):
    ids: list[str] = Field(min_length=1)


class ResolveBulkResponse(BaseModel):
    resolved_count: int


class DeletedResponse(BaseModel):
    deleted_count: int


@router.get("", response_model=WarningListResponse)
async def list_warnings(
    current_user: CurrentUser,
    db: DB,
    type: Optional[str] = Query(None, description="Warning type, e.g. 'lookup'"),
    severity: Optional[str] = Query(None, description="LOW | MEDIUM | HIGH | CRITICAL"),
    resolved: Optional[bool] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    page = await warning_service.list_warnings(
        db,
        type_=type,
        severity=severity.upper() if severity else None,
        resolved=resolved,
        limit=limit,
        offset=offset,
    )
    return WarningListResponse(
        warnings=[WarningResponse.from_orm(w) for w in page["warnings"]],
        pagination=Pagination(**page["pagination"]),
    )


@router.get("/stats", response_model=WarningStatsResponse)
async def warning_stats(current_user: CurrentUser, db: DB):
    return WarningStatsResponse(**await warning_service.warning_stats(db))


@router.post("/resolve-bulk", response_model=ResolveBulkResponse)
async def resolve_bulk(body: ResolveBulkRequest, current_user: CurrentUser, db: DB):
    count = await warning_service.resolve_warnings_bulk(db, body.ids, str(current_user.id))
    return ResolveBulkResponse(resolved_count=count)


@router.delete("/resolved", response_model=DeletedResponse)
async def clear_resolved(current_user: CurrentUser, db: DB):
    return DeletedResponse(deleted_count=await warning_service.clear_resolved(db))


@router.get("/{warning_id}", response_model=WarningResponse)
async def get_warning(warning_id: str, current_user: CurrentUser, db: DB):
    return WarningResponse.from_orm(await warning_service.get_warning(db, warning_id))


@router.post("/{warning_id}/resolve", response_model=WarningResponse)
async def resolve_warning(warning_id: str, current_user: CurrentUser, db: DB):
    warning = await warning_service.resolve_warning(db, warning_id, str(current_user.id))
    return WarningResponse.from_orm(warning)


@router.delete("/{warning_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_warning(warning_id: str, current_user: CurrentUser, db: DB):
    await warning_service.delete_warning(db, warning_id)
