# storefront/db/models.py
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from storefront.db.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp; all DateTime columns store UTC without tz info."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Модель пользователя
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    uid = Column(String, unique=True, nullable=False)  # Внешний идентификатор вида UID-xxxxxxx
    email = Column(String, unique=True, index=True, nullable=False)
    pass_hash = Column(String, nullable=False)
    name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    address = Column(String, nullable=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    last_login_at = Column(DateTime, default=utcnow)

    orders = relationship("Order", back_populates="user")


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    description = Column(String, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image = Column(String, nullable=True)


# Заказ хранится одной строкой: позиции лежат в JSON, чтобы запись была атомарной
class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String, unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    items = Column(JSON, nullable=False)
    total = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String, nullable=False, default="cod")
    delivery_name = Column(String, nullable=False)
    delivery_phone = Column(String, nullable=False)
    delivery_address = Column(String, nullable=False)
    status = Column(String, nullable=False, default="placed")
    placed_at = Column(DateTime, default=utcnow, index=True)

    user = relationship("User", back_populates="orders")


class SessionRecord(Base):
    __tablename__ = "sessions"

    sid = Column(String(64), primary_key=True)
    data = Column(JSON, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
