import pytest

from storefront.cart import MAX_LINE_QTY, add_item, cart_payload, get_cart, remove_item, update_item
from storefront.db.schemas import SessionData
from storefront.errors import InvalidQuantity, NotFoundError, ValidationError


@pytest.fixture()
def session():
    return SessionData(sid="sid-cart")


class TestGetCart:
    def test_new_session_has_empty_cart(self, session):
        assert get_cart(session) == []

    def test_get_does_not_expose_internal_list(self, session):
        add_item(session, 1)
        get_cart(session).clear()
        assert len(session.cart) == 1


class TestAddItem:
    def test_default_quantity_is_one(self, session):
        cart = add_item(session, 3)
        assert cart_payload(cart) == [{"id": 3, "qty": 1}]

    def test_same_product_is_merged_into_one_line(self, session):
        add_item(session, 5, 2)
        cart = add_item(session, 5, 3)

        assert len(cart) == 1
        assert cart[0].product_id == 5
        assert cart[0].qty == 5

    def test_new_products_are_appended_in_order(self, session):
        add_item(session, 2)
        add_item(session, 1, 4)
        add_item(session, 2)

        assert cart_payload(get_cart(session)) == [{"id": 2, "qty": 2}, {"id": 1, "qty": 4}]

    @pytest.mark.parametrize("qty", [0, -1, MAX_LINE_QTY + 1])
    def test_out_of_range_quantity_is_rejected(self, session, qty):
        with pytest.raises(InvalidQuantity):
            add_item(session, 1, qty)
        assert get_cart(session) == []

    def test_merged_quantity_cannot_exceed_limit(self, session):
        add_item(session, 1, MAX_LINE_QTY)
        with pytest.raises(InvalidQuantity):
            add_item(session, 1, 1)
        assert session.cart[0].qty == MAX_LINE_QTY

    @pytest.mark.parametrize("product_id", [0, -4])
    def test_non_positive_product_id_is_rejected(self, session, product_id):
        with pytest.raises(ValidationError):
            add_item(session, product_id)

    def test_unknown_product_is_accepted(self, session):
        # existence is checked at checkout
        assert cart_payload(add_item(session, 123456)) == [{"id": 123456, "qty": 1}]


class TestUpdateAndRemove:
    def test_update_sets_quantity(self, session):
        add_item(session, 1, 2)
        cart = update_item(session, 1, 7)
        assert cart[0].qty == 7

    def test_update_missing_line(self, session):
        with pytest.raises(NotFoundError):
            update_item(session, 9, 1)

    def test_update_rejects_zero(self, session):
        add_item(session, 1, 2)
        with pytest.raises(InvalidQuantity):
            update_item(session, 1, 0)
        assert session.cart[0].qty == 2

    def test_remove_drops_only_that_line(self, session):
        add_item(session, 1)
        add_item(session, 2)
        cart = remove_item(session, 1)
        assert cart_payload(cart) == [{"id": 2, "qty": 1}]

    def test_remove_missing_line(self, session):
        with pytest.raises(NotFoundError):
            remove_item(session, 1)
