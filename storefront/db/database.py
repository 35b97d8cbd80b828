# storefront/db/database.py
from typing import AsyncGenerator, Tuple

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

# Базовый класс для моделей
Base = declarative_base()


def create_session_factory(database_url: str, echo: bool = False) -> Tuple[AsyncEngine, sessionmaker]:
    # Настройка асинхронного движка
    engine = create_async_engine(database_url, echo=echo)

    # Асинхронная фабрика сессий
    SessionLocal = sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False
    )
    return engine, SessionLocal


# Генератор сессий
async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with request.app.state.session_factory() as session:
        yield session
