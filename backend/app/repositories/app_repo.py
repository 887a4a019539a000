"""Repository for API client apps and their secrets."""
import secrets
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.app_client import App

_SECRET_PREFIX = "sk_"


def generate_secret() -> str:
    return _SECRET_PREFIX + secrets.token_urlsafe(32)


class AppRepo:
    @staticmethod
    async def create(db: AsyncSession, **fields) -> App:
        app = App(secret=generate_secret(), **fields)
        db.add(app)
        await db.commit()
        await db.refresh(app)
        return app

    @staticmethod
    async def list_all(db: AsyncSession) -> list[App]:
        result = await db.execute(select(App).order_by(App.created_at.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def get_by_id(db: AsyncSession, app_id: uuid.UUID) -> Optional[App]:
        result = await db.execute(select(App).where(App.id == app_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_name(db: AsyncSession, name: str) -> Optional[App]:
        result = await db.execute(select(App).where(App.name == name))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_secret(db: AsyncSession, secret: str) -> Optional[App]:
        result = await db.execute(select(App).where(App.secret == secret))
        return result.scalar_one_or_none()

    @staticmethod
    async def update(db: AsyncSession, app: App, **fields) -> App:
        for key, value in fields.items():
            setattr(app, key, value)
        await db.commit()
        await db.refresh(app)
        return app

    @staticmethod
    async def regenerate_secret(db: AsyncSession, app: App) -> App:
        app.secret = generate_secret()
        await db.commit()
        await db.refresh(app)
        return app

    @staticmethod
    async def delete(db: AsyncSession, app: App) -> None:
        await db.delete(app)
        await db.commit()
