# storefront/db/repositories.py
"""SQLAlchemy-backed stores used by the cart and checkout.

All three stores share one ``AsyncSession``, so a single ``commit`` covers
the order insert and the session write of a checkout.
"""

from datetime import timedelta
from typing import Dict, Iterable, List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db import functions
from storefront.db.models import utcnow
from storefront.db.schemas import AdminOrder, NewOrder, OrderSummary, ProductOut, SessionData
from storefront.errors import StorageError

logger = structlog.get_logger(__name__)


class SqlProductLookup:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def fetch_by_ids(self, product_ids: Iterable[int]) -> Dict[int, ProductOut]:
        try:
            return await functions.get_products_by_ids(self.db, product_ids)
        except SQLAlchemyError as exc:
            logger.error("Product lookup failed", error=str(exc))
            raise StorageError() from exc


class SqlOrderStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(self, order: NewOrder) -> None:
        try:
            await functions.insert_order(self.db, order)
        except SQLAlchemyError as exc:
            logger.error("Order insert failed", order_id=order.order_id, error=str(exc))
            raise StorageError() from exc

    async def list_by_user(self, user_id: int) -> List[OrderSummary]:
        return await functions.get_user_orders(self.db, user_id)

    async def list_all(self) -> List[AdminOrder]:
        return await functions.get_all_orders(self.db)


class SqlSessionRepository:
    def __init__(self, db: AsyncSession, ttl: timedelta):
        self.db = db
        self.ttl = ttl

    async def load(self, sid: str) -> Optional[SessionData]:
        record = await functions.get_session_record(self.db, sid, utcnow())
        if record is None:
            return None
        return SessionData(sid=record.sid, **record.data)

    async def save(self, session: SessionData) -> None:
        try:
            await functions.upsert_session_record(self.db, session.sid, session.to_record(), utcnow() + self.ttl)
        except SQLAlchemyError as exc:
            raise StorageError() from exc
        session.is_new = False

    async def destroy(self, sid: str) -> None:
        await functions.delete_session_record(self.db, sid)


class SqlUnitOfWork:
    def __init__(self, db: AsyncSession, session_ttl: timedelta):
        self.db = db
        self.products = SqlProductLookup(db)
        self.orders = SqlOrderStore(db)
        self.sessions = SqlSessionRepository(db, session_ttl)

    async def commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise StorageError() from exc

    async def rollback(self) -> None:
        await self.db.rollback()
