import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.errors import AuthenticationError, DuplicateName
from app.models.app_client import App
from app.models.user import User
from app.repositories.app_repo import AppRepo
from app.repositories.user_repo import UserRepo

logger = logging.getLogger(__name__)

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
_ALGORITHM = "HS256"


class AuthService:
    @staticmethod
    def hash_password(password: str) -> str:
        return _pwd_context.hash(password)

    @staticmethod
    def verify_password(plain: str, hashed: str) -> bool:
        return _pwd_context.verify(plain, hashed)

    @staticmethod
    def create_access_token(user_id: str) -> str:
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.access_token_expire_hours)
        payload = {"sub": user_id, "exp": expire}
        return jwt.encode(payload, settings.secret_key, algorithm=_ALGORITHM)

    @staticmethod
    async def verify_token(db: AsyncSession, token: str) -> Optional[User]:
        try:
            payload = jwt.decode(token, settings.secret_key, algorithms=[_ALGORITHM])
            user_id = uuid.UUID(payload.get("sub") or "")
        except (JWTError, ValueError):
            return None
        return await UserRepo.get_by_id(db, user_id)

    @staticmethod
    async def register(db: AsyncSession, email: str, password: str, name: str) -> User:
        if await UserRepo.get_by_email(db, email) is not None:
            raise DuplicateName("Email already registered", code="EMAIL_TAKEN")
        password_hash = AuthService.hash_password(password)
        try:
            return await UserRepo.create(db, email=email, password_hash=password_hash, name=name)
        except IntegrityError:
            await db.rollback()
            raise DuplicateName("Email already registered", code="EMAIL_TAKEN")

    @staticmethod
    async def login(db: AsyncSession, email: str, password: str) -> Optional[User]:
        user = await UserRepo.get_by_email(db, email)
        if user is None or not AuthService.verify_password(password, user.password_hash):
            return None
        return user

    @staticmethod
    async def authenticate_app(db: AsyncSession, api_key: Optional[str]) -> App:
        """Resolve an X-API-Key value to a usable App or raise AuthenticationError."""
        if not api_key:
            raise AuthenticationError("API key is required", code="MISSING_API_KEY")
        app = await AppRepo.get_by_secret(db, api_key)
        if app is None:
            raise AuthenticationError("Invalid API key", code="INVALID_API_KEY")
        if not app.is_active:
            raise AuthenticationError("API key is inactive", code="INACTIVE_API_KEY")
        if app.active_until is not None:
            active_until = app.active_until
            # SQLite hands back naive datetimes
            if active_until.tzinfo is None:
                active_until = active_until.replace(tzinfo=timezone.utc)
            if active_until <= datetime.now(timezone.utc):
                raise AuthenticationError("API key has expired", code="EXPIRED_API_KEY")
        logger.debug("API key accepted for app %s", app.name)
        return app
