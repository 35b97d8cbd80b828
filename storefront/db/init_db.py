# storefront/db/init_db.py
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from storefront.db import models  # noqa: F401  регистрирует таблицы в Base.metadata
from storefront.db.database import Base
from storefront.db.functions import prune_expired_sessions
from storefront.db.models import utcnow


async def init_db(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        # Создание всех таблиц
        await conn.run_sync(Base.metadata.create_all)


async def cleanup_sessions(db: AsyncSession) -> int:
    """Drop session records whose cookie lifetime has passed."""
    pruned = await prune_expired_sessions(db, utcnow())
    await db.commit()
    return pruned
