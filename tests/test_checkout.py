import asyncio
import re
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from storefront.checkout import CheckoutService, generate_order_id
from storefront.db.repositories import SqlProductLookup
from storefront.db.schemas import DeliveryInfo, OrderStatus
from storefront.errors import EmptyCart, MissingDeliveryInfo, ProductNotFound, StorageError

DELIVERY = DeliveryInfo(name="A", phone="555", address="X")


@pytest.fixture()
def service(uow, locks):
    return CheckoutService(uow, locks, clock=lambda: datetime(2026, 1, 2, 3, 4, 5))


class TestSuccessfulCheckout:
    @pytest.mark.asyncio
    async def test_prices_order_and_clears_cart(self, uow, service):
        session = uow.store_session(cart=[(1, 2)])

        result = await service.checkout(session, DELIVERY)

        assert result.ok is True
        [order] = uow.orders.saved
        assert order.order_id == result.order_id
        assert order.total == Decimal("50.00")
        assert [line.subtotal for line in order.lines] == [Decimal("50.00")]
        assert order.status == OrderStatus.placed
        assert order.placed_at == datetime(2026, 1, 2, 3, 4, 5)
        assert session.cart == []
        assert uow.stored_cart() == []

    @pytest.mark.asyncio
    async def test_lines_follow_cart_order_with_catalog_names(self, uow, service):
        session = uow.store_session(cart=[(7, 3), (2, 2), (1, 1)])

        await service.checkout(session, DELIVERY)

        [order] = uow.orders.saved
        assert [(line.product_id, line.name, line.qty) for line in order.lines] == [
            (7, "Notebook", 3),
            (2, "Tea Towel", 2),
            (1, "Ceramic Mug", 1),
        ]
        assert order.total == Decimal("30.00") + Decimal("9.98") + Decimal("25.00")

    @pytest.mark.asyncio
    async def test_catalog_is_read_once_for_distinct_ids(self, uow, service):
        session = uow.store_session(cart=[(1, 1), (2, 1), (7, 1)])

        await service.checkout(session, DELIVERY)

        assert uow.products.calls == [{1, 2, 7}]

    @pytest.mark.asyncio
    async def test_delivery_details_and_user_are_recorded(self, uow, service):
        session = uow.store_session(cart=[(1, 1)], user_id=42)
        delivery = DeliveryInfo(name="  Ann ", phone="555-0100", address="1 Main St", paymentMethod="card")

        await service.checkout(session, delivery)

        [order] = uow.orders.saved
        assert order.user_id == 42
        assert order.delivery_name == "Ann"
        assert order.delivery_phone == "555-0100"
        assert order.delivery_address == "1 Main St"
        assert order.payment_method == "card"

    @pytest.mark.asyncio
    async def test_payment_method_defaults_to_cash_on_delivery(self, uow, service):
        session = uow.store_session(cart=[(1, 1)])

        await service.checkout(session, DeliveryInfo(name="A", phone="555", address="X", paymentMethod=None))

        assert uow.orders.saved[0].payment_method == "cod"

    @pytest.mark.asyncio
    async def test_each_checkout_gets_a_new_order_id(self, uow, service):
        first = await service.checkout(uow.store_session(sid="s1", cart=[(1, 1)]), DELIVERY)
        second = await service.checkout(uow.store_session(sid="s2", cart=[(1, 1)]), DELIVERY)

        assert first.order_id != second.order_id
        assert len(uow.orders.saved) == 2


class TestRejectedCheckout:
    @pytest.mark.asyncio
    async def test_empty_cart(self, uow, service):
        session = uow.store_session(cart=[])

        with pytest.raises(EmptyCart):
            await service.checkout(session, DELIVERY)

        assert uow.orders.saved == []
        assert uow.commits == 0

    @pytest.mark.asyncio
    async def test_unsaved_session_has_empty_cart(self, uow, service):
        from storefront.sessions import new_session

        with pytest.raises(EmptyCart):
            await service.checkout(new_session(), DELIVERY)

    @pytest.mark.asyncio
    async def test_empty_cart_is_reported_before_missing_delivery(self, uow, service):
        session = uow.store_session(cart=[])

        with pytest.raises(EmptyCart):
            await service.checkout(session, DeliveryInfo())

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "delivery",
        [
            DeliveryInfo(phone="555", address="X"),
            DeliveryInfo(name="A", address="X"),
            DeliveryInfo(name="A", phone="555"),
            DeliveryInfo(name="   ", phone="555", address="X"),
            DeliveryInfo(name="A", phone="555", address=""),
        ],
    )
    async def test_missing_delivery_details(self, uow, service, delivery):
        session = uow.store_session(cart=[(1, 2)])

        with pytest.raises(MissingDeliveryInfo):
            await service.checkout(session, delivery)

        assert uow.orders.saved == []
        assert uow.stored_cart() == [{"id": 1, "qty": 2}]
        assert uow.products.calls == []

    @pytest.mark.asyncio
    async def test_vanished_product_aborts_whole_order(self, uow, service):
        session = uow.store_session(cart=[(1, 2), (99, 1)])

        with pytest.raises(ProductNotFound) as excinfo:
            await service.checkout(session, DELIVERY)

        assert excinfo.value.product_ids == (99,)
        assert uow.orders.saved == []
        assert uow.staged_orders == []
        assert [line.product_id for line in session.cart] == [1, 99]
        assert uow.stored_cart() == [{"id": 1, "qty": 2}, {"id": 99, "qty": 1}]

    @pytest.mark.asyncio
    async def test_storage_failure_keeps_cart_for_retry(self, uow, service):
        session = uow.store_session(cart=[(1, 2)])
        uow.orders.fail = True

        with pytest.raises(StorageError):
            await service.checkout(session, DELIVERY)

        assert uow.rollbacks == 1
        assert uow.orders.saved == []
        assert [(line.product_id, line.qty) for line in session.cart] == [(1, 2)]
        assert uow.stored_cart() == [{"id": 1, "qty": 2}]

        uow.orders.fail = False
        result = await service.checkout(session, DELIVERY)
        assert uow.orders.saved[0].order_id == result.order_id
        assert session.cart == []


class TestConcurrentCheckout:
    @pytest.mark.asyncio
    async def test_double_submit_from_same_session_places_one_order(self, uow, service):
        first_tab = uow.store_session(cart=[(1, 2)])
        second_tab = first_tab.model_copy(deep=True)

        results = await asyncio.gather(
            service.checkout(first_tab, DELIVERY),
            service.checkout(second_tab, DELIVERY),
            return_exceptions=True,
        )

        assert len(uow.orders.saved) == 1
        assert sum(isinstance(r, EmptyCart) for r in results) == 1
        assert len(service.locks) == 0


def test_order_id_format():
    assert re.fullmatch(r"ORD-\d{13}-[0-9a-f]{4}", generate_order_id())


class BrokenConnection:
    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection lost"))


class TestCatalogReadFailure:
    @pytest.mark.asyncio
    async def test_lookup_error_becomes_storage_error(self):
        with pytest.raises(StorageError):
            await SqlProductLookup(BrokenConnection()).fetch_by_ids([1, 2])

    @pytest.mark.asyncio
    async def test_checkout_keeps_cart_when_catalog_is_unreachable(self, uow, service):
        session = uow.store_session(cart=[(1, 2)])
        uow.products = SqlProductLookup(BrokenConnection())

        with pytest.raises(StorageError):
            await service.checkout(session, DELIVERY)

        assert uow.orders.saved == []
        assert uow.stored_cart() == [{"id": 1, "qty": 2}]
