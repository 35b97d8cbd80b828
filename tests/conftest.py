from decimal import Decimal
from typing import Dict, Iterable, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import update

from storefront.config import Settings
from storefront.db.models import Product, User
from storefront.db.schemas import CartLine, NewOrder, ProductOut, SessionData
from storefront.errors import StorageError
from storefront.main import create_app
from storefront.sessions import SessionLocks

SESSION_SECRET = "test-session-secret-0123456789abcdef"


# ---------------------------------------------------------------------------
# In-memory stores for checkout tests
# ---------------------------------------------------------------------------
class FakeProductLookup:
    def __init__(self, products: Iterable[ProductOut]):
        self.products = {product.id: product for product in products}
        self.calls: List[set] = []

    async def fetch_by_ids(self, product_ids):
        ids = set(product_ids)
        self.calls.append(ids)
        return {pid: self.products[pid] for pid in ids if pid in self.products}


class FakeOrderStore:
    def __init__(self, uow: "FakeUnitOfWork"):
        self.uow = uow
        self.saved: List[NewOrder] = []
        self.fail = False

    async def insert(self, order: NewOrder) -> None:
        if self.fail:
            raise StorageError()
        self.uow.staged_orders.append(order)


class FakeSessionRepository:
    def __init__(self, uow: "FakeUnitOfWork"):
        self.uow = uow
        self.records: Dict[str, dict] = {}

    async def load(self, sid: str) -> Optional[SessionData]:
        data = self.uow.staged_sessions.get(sid, self.records.get(sid))
        return SessionData(sid=sid, **data) if data is not None else None

    async def save(self, session: SessionData) -> None:
        self.uow.staged_sessions[session.sid] = session.to_record()
        session.is_new = False

    async def destroy(self, sid: str) -> None:
        self.records.pop(sid, None)


class FakeUnitOfWork:
    def __init__(self, products: Iterable[ProductOut]):
        self.products = FakeProductLookup(products)
        self.orders = FakeOrderStore(self)
        self.sessions = FakeSessionRepository(self)
        self.staged_orders: List[NewOrder] = []
        self.staged_sessions: Dict[str, dict] = {}
        self.commits = 0
        self.rollbacks = 0

    async def commit(self) -> None:
        self.orders.saved.extend(self.staged_orders)
        self.sessions.records.update(self.staged_sessions)
        self.staged_orders = []
        self.staged_sessions = {}
        self.commits += 1

    async def rollback(self) -> None:
        self.staged_orders = []
        self.staged_sessions = {}
        self.rollbacks += 1

    def store_session(self, sid: str = "sid-1", cart=(), user_id: Optional[int] = None) -> SessionData:
        """Put a committed session record in place and return the request's copy of it."""
        session = SessionData(
            sid=sid,
            user_id=user_id,
            cart=[CartLine(product_id=pid, qty=qty) for pid, qty in cart],
        )
        self.sessions.records[sid] = session.to_record()
        return session.model_copy(deep=True)

    def stored_cart(self, sid: str = "sid-1"):
        return self.sessions.records.get(sid, {}).get("cart")


@pytest.fixture()
def catalog():
    return [
        ProductOut(id=1, name="Ceramic Mug", price=Decimal("25.00"), description="350 ml"),
        ProductOut(id=2, name="Tea Towel", price=Decimal("4.99")),
        ProductOut(id=7, name="Notebook", price=Decimal("10.00")),
    ]


@pytest.fixture()
def uow(catalog):
    return FakeUnitOfWork(catalog)


@pytest.fixture()
def locks():
    return SessionLocks()


# ---------------------------------------------------------------------------
# HTTP application against a temporary SQLite database
# ---------------------------------------------------------------------------
@pytest.fixture()
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}",
        session_secret=SESSION_SECRET,
        environment="test",
        static_dir=None,
    )


@pytest.fixture()
def app(settings):
    return create_app(settings)


@pytest.fixture()
def client(app):
    with TestClient(app) as client:
        yield client


async def _insert_products(session_factory, rows):
    async with session_factory() as db:
        db.add_all([Product(**row) for row in rows])
        await db.commit()


async def _grant_admin(session_factory, email):
    async with session_factory() as db:
        await db.execute(update(User).where(User.email == email).values(is_admin=True))
        await db.commit()


@pytest.fixture()
def seed_products(client, app):
    def seed(*rows):
        client.portal.call(_insert_products, app.state.session_factory, list(rows))

    return seed


@pytest.fixture()
def grant_admin(client, app):
    def grant(email):
        client.portal.call(_grant_admin, app.state.session_factory, email)

    return grant
