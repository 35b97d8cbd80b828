# storefront/db/schemas.py
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator

CENTS = Decimal("0.01")


def to_cents(value) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Сессия и корзина
# ---------------------------------------------------------------------------
class CartLine(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(alias="id")
    qty: int


class SessionData(BaseModel):
    sid: str
    user_id: Optional[int] = None
    email: Optional[str] = None
    cart: List[CartLine] = []
    # True until the session has been written to the store at least once
    is_new: bool = Field(default=False, exclude=True)

    def to_record(self) -> dict:
        return self.model_dump(include={"user_id", "email", "cart"}, by_alias=True)


# ---------------------------------------------------------------------------
# Тела запросов
# ---------------------------------------------------------------------------
class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = Field(default=None, alias="pass")
    phone: Optional[str] = None
    address: Optional[str] = None


class LoginRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    password: Optional[str] = Field(default=None, alias="pass")


class CartAddRequest(BaseModel):
    id: StrictInt
    qty: StrictInt = 1


class CartUpdateRequest(BaseModel):
    id: StrictInt
    qty: StrictInt


class CartRemoveRequest(BaseModel):
    id: StrictInt


class DeliveryInfo(BaseModel):
    """Checkout body. Prices and totals are never read from the client."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[StrictStr] = None
    phone: Optional[StrictStr] = None
    address: Optional[StrictStr] = None
    payment_method: Optional[StrictStr] = Field(default="cod", alias="paymentMethod")

    @field_validator("payment_method")
    @classmethod
    def default_payment_method(cls, value: Optional[str]) -> str:
        return value.strip() if value and value.strip() else "cod"

    def is_complete(self) -> bool:
        return all(value and value.strip() for value in (self.name, self.phone, self.address))


class ProductCreate(BaseModel):
    name: str
    price: Decimal
    description: Optional[str] = None
    image: Optional[str] = None


# ---------------------------------------------------------------------------
# Ответы
# ---------------------------------------------------------------------------
class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    price: Decimal
    description: Optional[str] = None
    image: Optional[str] = None


class ProductPage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    products: List[ProductOut]
    total: int
    page: int
    page_size: int = Field(alias="pageSize")


class UserProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    is_admin: bool = False


class AdminUser(UserProfile):
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Заказы
# ---------------------------------------------------------------------------
class OrderStatus(str, Enum):
    placed = "placed"


class OrderLine(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    product_id: int = Field(alias="id")
    name: str
    price: Decimal
    qty: int
    subtotal: Decimal

    @classmethod
    def price_line(cls, product: ProductOut, qty: int) -> "OrderLine":
        """Price ``qty`` units of ``product`` at its current catalog price."""
        price = to_cents(product.price)
        return cls(
            product_id=product.id,
            name=product.name,
            price=price,
            qty=qty,
            subtotal=to_cents(price * qty),
        )


class NewOrder(BaseModel):
    order_id: str
    user_id: Optional[int] = None
    lines: List[OrderLine]
    total: Decimal
    payment_method: str
    delivery_name: str
    delivery_phone: str
    delivery_address: str
    status: OrderStatus = OrderStatus.placed
    placed_at: datetime


class OrderResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    order_id: str = Field(alias="orderId")


class OrderSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    order_id: str
    items: List[OrderLine]
    total: Decimal
    status: str
    created_at: datetime = Field(alias="createdAt")


class AdminOrder(BaseModel):
    id: int
    order_id: str
    user_id: Optional[int] = None
    items: List[OrderLine]
    total: Decimal
    status: str
    placed_at: datetime
    email: Optional[str] = None
    name: Optional[str] = None
