# storefront/checkout.py
"""Checkout: turn the session cart into a persisted order.

The order is priced from one bulk catalog read, written together with the
cleared session cart in one transaction, and only then is the in-request
session emptied. Any failure leaves the stored cart as it was so the client
can retry.
"""

import secrets
import time
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Protocol

import structlog

from storefront.cart import cart_payload, clear_cart, get_cart
from storefront.db.models import utcnow
from storefront.db.schemas import (
    CartLine,
    DeliveryInfo,
    NewOrder,
    OrderLine,
    OrderResult,
    ProductOut,
    SessionData,
    to_cents,
)
from storefront.errors import EmptyCart, MissingDeliveryInfo, ProductNotFound
from storefront.sessions import SessionLocks, SessionRepository, refresh_session

logger = structlog.get_logger(__name__)


class ProductLookup(Protocol):
    async def fetch_by_ids(self, product_ids: Iterable[int]) -> Dict[int, ProductOut]: ...


class OrderStore(Protocol):
    async def insert(self, order: NewOrder) -> None: ...


class UnitOfWork(Protocol):
    products: ProductLookup
    orders: OrderStore
    sessions: SessionRepository

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


def generate_order_id() -> str:
    """``ORD-<epoch millis>-<4 hex>``: sortable for display, unique enough per millisecond."""
    return f"ORD-{time.time_ns() // 1_000_000}-{secrets.token_hex(2)}"


class CheckoutService:
    def __init__(
        self,
        uow: UnitOfWork,
        locks: SessionLocks,
        clock: Callable = utcnow,
        order_ids: Callable[[], str] = generate_order_id,
    ):
        self.uow = uow
        self.locks = locks
        self.clock = clock
        self.order_ids = order_ids

    async def checkout(self, session: SessionData, delivery: DeliveryInfo) -> OrderResult:
        log = logger.bind(session_id=session.sid, user_id=session.user_id)

        async with self.locks.hold(session.sid):
            await refresh_session(session, self.uow.sessions)
            cart = get_cart(session)
            log = log.bind(cart=cart_payload(cart))

            if not cart:
                log.info("Checkout rejected", reason="empty_cart")
                raise EmptyCart()
            if not delivery.is_complete():
                log.info("Checkout rejected", reason="missing_delivery_info")
                raise MissingDeliveryInfo()

            order = await self._price_order(session, cart, delivery, log)

            cleared = session.model_copy(update={"cart": []})
            try:
                await self.uow.orders.insert(order)
                await self.uow.sessions.save(cleared)
                await self.uow.commit()
            except Exception:
                await self.uow.rollback()
                log.exception("Checkout failed, cart kept for retry", order_id=order.order_id)
                raise

            clear_cart(session)
            session.is_new = False

        log.info("Order placed", order_id=order.order_id, total=str(order.total), lines=len(order.lines))
        return OrderResult(order_id=order.order_id)

    async def _price_order(self, session: SessionData, cart: List[CartLine], delivery: DeliveryInfo, log) -> NewOrder:
        product_ids = {line.product_id for line in cart}
        # Один запрос на все товары: цены берутся из одного снимка каталога
        catalog = await self.uow.products.fetch_by_ids(product_ids)

        missing = product_ids - catalog.keys()
        if missing:
            log.warning("Checkout rejected", reason="product_not_found", missing=sorted(missing))
            raise ProductNotFound(missing)

        lines = [OrderLine.price_line(catalog[line.product_id], line.qty) for line in cart]
        total = to_cents(sum((line.subtotal for line in lines), Decimal("0")))

        return NewOrder(
            order_id=self.order_ids(),
            user_id=session.user_id,
            lines=lines,
            total=total,
            payment_method=delivery.payment_method,
            delivery_name=delivery.name.strip(),
            delivery_phone=delivery.phone.strip(),
            delivery_address=delivery.address.strip(),
            placed_at=self.clock(),
        )
