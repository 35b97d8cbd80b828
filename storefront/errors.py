# storefront/errors.py
"""Error taxonomy shared by the cart, checkout and the HTTP layer.

Every error carries the HTTP status it maps to and a short message that is
safe to show to a client. Anything internal (SQL errors, missing ids) goes to
the log, never to the response body.
"""

from typing import Iterable, Optional, Tuple


class StorefrontError(Exception):
    status_code = 500
    message = "Server error"

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(StorefrontError):
    status_code = 400
    message = "Invalid request"


class EmptyCart(ValidationError):
    message = "Cart is empty"


class MissingDeliveryInfo(ValidationError):
    message = "Missing delivery details"


class InvalidQuantity(ValidationError):
    message = "Quantity must be between 1 and 99"


class AuthError(StorefrontError):
    status_code = 401
    message = "Not authenticated"


class Forbidden(StorefrontError):
    status_code = 403
    message = "Admin access required"


class NotFoundError(StorefrontError):
    status_code = 404
    message = "Not found"


class ProductNotFound(NotFoundError):
    # Товар пропал из каталога между добавлением в корзину и оформлением заказа
    status_code = 409
    message = "Product not found"

    def __init__(self, product_ids: Iterable[int] = ()):
        self.product_ids: Tuple[int, ...] = tuple(sorted(product_ids))
        super().__init__()


class Conflict(StorefrontError):
    status_code = 409
    message = "Conflict"


class StorageError(StorefrontError):
    status_code = 500
    message = "Server error"
