# storefront/cart.py
"""Session cart: ``{product_id, qty}`` lines, at most one line per product.

Prices are never stored in the cart; existence of the product is only
checked at checkout.
"""

from typing import List, Optional

from storefront.db.schemas import CartLine, SessionData
from storefront.errors import InvalidQuantity, NotFoundError, ValidationError

MAX_LINE_QTY = 99


def _check_product_id(product_id: int) -> None:
    if product_id < 1:
        raise ValidationError("Invalid product id")


def _check_qty(qty: int) -> None:
    if qty < 1 or qty > MAX_LINE_QTY:
        raise InvalidQuantity()


def _find_line(session: SessionData, product_id: int) -> Optional[CartLine]:
    return next((line for line in session.cart if line.product_id == product_id), None)


def get_cart(session: SessionData) -> List[CartLine]:
    return list(session.cart or [])


def add_item(session: SessionData, product_id: int, qty: int = 1) -> List[CartLine]:
    """Add ``qty`` units, merging into the existing line for the product."""
    _check_product_id(product_id)
    _check_qty(qty)

    existing = _find_line(session, product_id)
    if existing:
        # Если товар уже есть в корзине, обновим его количество
        _check_qty(existing.qty + qty)
        existing.qty += qty
    else:
        session.cart.append(CartLine(product_id=product_id, qty=qty))
    return get_cart(session)


def update_item(session: SessionData, product_id: int, qty: int) -> List[CartLine]:
    _check_product_id(product_id)
    _check_qty(qty)

    line = _find_line(session, product_id)
    if line is None:
        raise NotFoundError("Product not found in the cart")
    line.qty = qty
    return get_cart(session)


def remove_item(session: SessionData, product_id: int) -> List[CartLine]:
    line = _find_line(session, product_id)
    if line is None:
        raise NotFoundError("Product not found in the cart")
    session.cart = [other for other in session.cart if other.product_id != product_id]
    return get_cart(session)


def clear_cart(session: SessionData) -> None:
    session.cart = []


def cart_payload(cart: List[CartLine]) -> List[dict]:
    return [line.model_dump(by_alias=True) for line in cart]
