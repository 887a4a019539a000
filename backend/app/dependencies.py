from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.errors import PermissionDenied
from app.models.app_client import App, AppPermission
from app.models.user import User
from app.services.auth_service import AuthService
from app.services.scheduler import JobScheduler

_bearer = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Operator auth. Injected into warning, app and job routes."""
    user = await AuthService.verify_token(db, credentials.credentials)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return user


async def get_current_app(
    db: Annotated[AsyncSession, Depends(get_db)],
    x_api_key: Annotated[Optional[str], Header()] = None,
) -> App:
    """API-key auth for set and lookup routes. READ or WRITE apps pass."""
    app = await AuthService.authenticate_app(db, x_api_key)
    if app.permission == AppPermission.NONE.value:
        raise PermissionDenied("This API key has no access")
    return app


async def require_write_app(app: Annotated[App, Depends(get_current_app)]) -> App:
    if app.permission != AppPermission.WRITE.value:
        raise PermissionDenied("Write permission required")
    return app


def get_scheduler(request: Request) -> JobScheduler:
    return request.app.state.scheduler
