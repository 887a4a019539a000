"""Operator accounts. Tokens issued here guard the warning, app and job routes."""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user
from app.errors import AuthenticationError
from app.models.user import User
from app.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class OperatorCredentials(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)


class OperatorSignup(OperatorCredentials):
    name: str = Field(min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name cannot be blank")
        return v.strip()


class OperatorResponse(BaseModel):
    id: str
    email: str
    name: str
    created_at: str

    @classmethod
    def from_orm(cls, u: User):
        return cls(id=str(u.id), email=u.email, name=u.name, created_at=u.created_at.isoformat())


class SessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    operator: OperatorResponse

    @classmethod
    def for_user(cls, u: User):
        return cls(
            access_token=AuthService.create_access_token(str(u.id)),
            operator=OperatorResponse.from_orm(u),
        )


@router.post("/register", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def register(body: OperatorSignup, db: Annotated[AsyncSession, Depends(get_db)]):
    user = await AuthService.register(db, email=body.email, password=body.password, name=body.name)
    logger.info("Operator registered: %s", user.id)
    return SessionResponse.for_user(user)


@router.post("/login", response_model=SessionResponse)
async def login(body: OperatorCredentials, db: Annotated[AsyncSession, Depends(get_db)]):
    user = await AuthService.login(db, email=body.email, password=body.password)
    if user is None:
        raise AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS")
    return SessionResponse.for_user(user)


@router.get("/me", response_model=OperatorResponse)
async def me(current_user: Annotated[User, Depends(get_current_user)]):
    return OperatorResponse.from_orm(current_user)
