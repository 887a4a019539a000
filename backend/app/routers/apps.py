import logging
import uuid
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user
from app.errors import DuplicateName, NotFound
from app.models.app_client import App, AppPermission
from app.models.user import User
from app.repositories.app_repo import AppRepo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/apps", tags=["apps"])

CurrentUser = Annotated[User, Depends(get_current_user)]
DB = Annotated[AsyncSession, Depends(get_db)]

_NAME_PATTERN = r"^[A-Za-z0-9_-]+$"


class CreateAppRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100, pattern=_NAME_PATTERN)
    description: Optional[str] = Field(default=None, max_length=500)
    permission: AppPermission = AppPermission.WRITE
    is_active: bool = True
    active_until: Optional[datetime] = None


class UpdateAppRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100, pattern=_NAME_PATTERN)
    description: Optional[str] = Field(default=None, max_length=500)
    permission: Optional[AppPermission] = None
    is_active: Optional[bool] = None
    active_until: Optional[datetime] = None


class AppResponse(BaseModel):
    id: str
    name: str
    description: Optional[str]
    permission: str
    is_active: bool
    active_until: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_orm(cls, a: App):
        return cls(
            id=str(a.id),
            name=a.name,
            description=a.description,
            permission=a.permission,
            is_active=a.is_active,
            active_until=a.active_until.isoformat() if a.active_until else None,
            created_at=a.created_at.isoformat(),
            updated_at=a.updated_at.isoformat(),
        )


class AppSecretResponse(AppResponse):
    """Only returned on create and key regeneration."""
    secret: str

    @classmethod
    def from_orm(cls, a: App):
        return cls(**AppResponse.from_orm(a).model_dump(), secret=a.secret)


async def _require_app(db: AsyncSession, app_id: uuid.UUID) -> App:
    app = await AppRepo.get_by_id(db, app_id)
    if app is None:
        raise NotFound("App not found", code="APP_NOT_FOUND")
    return app


@router.get("", response_model=list[AppResponse])
async def list_apps(current_user: CurrentUser, db: DB):
    return [AppResponse.from_orm(a) for a in await AppRepo.list_all(db)]


@router.post("", response_model=AppSecretResponse, status_code=status.HTTP_201_CREATED)
async def create_app(body: CreateAppRequest, current_user: CurrentUser, db: DB):
    if await AppRepo.get_by_name(db, body.name) is not None:
        raise DuplicateName("App with this name already exists", code="DUPLICATE_APP")
    try:
        app = await AppRepo.create(
            db,
            name=body.name,
            description=body.description,
            permission=body.permission.value,
            is_active=body.is_active,
            active_until=body.active_until,
        )
    except IntegrityError:
        await db.rollback()
        raise DuplicateName("App with this name already exists", code="DUPLICATE_APP")
    logger.info("App created: %s (%s) by %s", app.name, app.id, current_user.id)
    return AppSecretResponse.from_orm(app)


@router.get("/{app_id}", response_model=AppResponse)
async def get_app(app_id: uuid.UUID, current_user: CurrentUser, db: DB):
    return AppResponse.from_orm(await _require_app(db, app_id))


@router.patch("/{app_id}", response_model=AppResponse)
async def update_app(app_id: uuid.UUID, body: UpdateAppRequest, current_user: CurrentUser, db: DB):
    app = await _require_app(db, app_id)
    fields = body.model_dump(exclude_unset=True)
    if "permission" in fields and fields["permission"] is not None:
        fields["permission"] = fields["permission"].value
    if fields.get("name") and fields["name"] != app.name:
        if await AppRepo.get_by_name(db, fields["name"]) is not None:
            raise DuplicateName("App with this name already exists", code="DUPLICATE_APP")
    try:
        app = await AppRepo.update(db, app, **fields)
    except IntegrityError:
        await db.rollback()
        raise DuplicateName("App with this name already exists", code="DUPLICATE_APP")
    return AppResponse.from_orm(app)


@router.post("/{app_id}/regenerate-key", response_model=AppSecretResponse)
async def regenerate_key(app_id: uuid.UUID, current_user: CurrentUser, db: DB):
    app = await AppRepo.regenerate_secret(db, await _require_app(db, app_id))
    logger.info("App key regenerated: %s by %s", app.id, current_user.id)
    return AppSecretResponse.from_orm(app)


@router.delete("/{app_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_app(app_id: uuid.UUID, current_user: CurrentUser, db: DB):
    app = await _require_app(db, app_id)
    await AppRepo.delete(db, app)
    logger.info("App deleted: %s by %s", app_id, current_user.id)
