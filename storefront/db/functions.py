# storefront/db/functions.py
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import delete, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.db.models import Order, Product, SessionRecord, User, utcnow
from storefront.db.schemas import AdminOrder, NewOrder, OrderSummary, ProductCreate, ProductOut
from storefront.errors import Conflict, ValidationError


# ---------------------------------------------------------------------------
# Пользователи
# ---------------------------------------------------------------------------
async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    result = await db.execute(select(User).filter(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).filter(User.email == email))
    return result.scalar_one_or_none()


async def get_all_users(db: AsyncSession) -> List[User]:
    result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
    return list(result.scalars().all())


async def create_user(db: AsyncSession, user_data: dict) -> User:
    """Insert a user and flush it so the generated id is available; the caller commits."""
    db_user = User(**user_data)
    db.add(db_user)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise Conflict("Email already exists")
    await db.refresh(db_user)
    return db_user


async def touch_last_login(db: AsyncSession, user: User) -> None:
    user.last_login_at = utcnow()
    await db.flush()


# ---------------------------------------------------------------------------
# Каталог
# ---------------------------------------------------------------------------
async def get_products_by_ids(db: AsyncSession, product_ids: Iterable[int]) -> Dict[int, ProductOut]:
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    result = await db.execute(select(Product).filter(Product.id.in_(ids)))
    return {product.id: ProductOut.model_validate(product) for product in result.scalars().all()}


async def get_product_by_id(db: AsyncSession, product_id: int) -> Optional[ProductOut]:
    result = await db.execute(select(Product).filter(Product.id == product_id))
    product = result.scalar_one_or_none()
    return ProductOut.model_validate(product) if product else None


async def search_products(db: AsyncSession, search: str = "", page: int = 1, page_size: int = 12) -> Tuple[List[ProductOut], int]:
    query = select(Product)
    count_query = select(func.count()).select_from(Product)

    if search.strip():
        pattern = f"%{search.strip()}%"
        condition = or_(Product.name.ilike(pattern), Product.description.ilike(pattern))
        query = query.filter(condition)
        count_query = count_query.filter(condition)

    offset = (page - 1) * page_size
    result = await db.execute(query.order_by(Product.id).offset(offset).limit(page_size))
    products = [ProductOut.model_validate(product) for product in result.scalars().all()]

    total = (await db.execute(count_query)).scalar_one()
    return products, total


async def create_product(db: AsyncSession, product: ProductCreate) -> ProductOut:
    if product.price < 0:
        raise ValidationError("Price must be non-negative.")
    if not product.name.strip():
        raise ValidationError("Product name is required")

    new_product = Product(
        name=product.name.strip(),
        description=product.description,
        price=product.price,
        image=product.image,
    )
    db.add(new_product)
    await db.commit()
    await db.refresh(new_product)
    return ProductOut.model_validate(new_product)


# ---------------------------------------------------------------------------
# Заказы
# ---------------------------------------------------------------------------
async def insert_order(db: AsyncSession, order: NewOrder) -> Order:
    db_order = Order(
        order_id=order.order_id,
        user_id=order.user_id,
        items=[line.model_dump(mode="json", by_alias=True) for line in order.lines],
        total=order.total,
        payment_method=order.payment_method,
        delivery_name=order.delivery_name,
        delivery_phone=order.delivery_phone,
        delivery_address=order.delivery_address,
        status=order.status.value,
        placed_at=order.placed_at,
    )
    db.add(db_order)
    await db.flush()
    return db_order


async def get_user_orders(db: AsyncSession, user_id: int) -> List[OrderSummary]:
    result = await db.execute(
        select(Order)
        .filter(Order.user_id == user_id)
        .order_by(Order.placed_at.desc(), Order.id.desc())
    )
    return [
        OrderSummary(
            id=order.id,
            order_id=order.order_id,
            items=order.items,
            total=order.total,
            status=order.status,
            created_at=order.placed_at,
        )
        for order in result.scalars().all()
    ]


async def get_all_orders(db: AsyncSession) -> List[AdminOrder]:
    result = await db.execute(
        select(Order, User.email, User.name)
        .outerjoin(User, Order.user_id == User.id)
        .order_by(Order.placed_at.desc(), Order.id.desc())
    )
    return [
        AdminOrder(
            id=order.id,
            order_id=order.order_id,
            user_id=order.user_id,
            items=order.items,
            total=order.total,
            status=order.status,
            placed_at=order.placed_at,
            email=email,
            name=name,
        )
        for order, email, name in result.all()
    ]


# ---------------------------------------------------------------------------
# Сессии
# ---------------------------------------------------------------------------
async def get_session_record(db: AsyncSession, sid: str, now: datetime) -> Optional[SessionRecord]:
    result = await db.execute(
        select(SessionRecord)
        .filter(SessionRecord.sid == sid, SessionRecord.expires_at > now)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def upsert_session_record(db: AsyncSession, sid: str, data: dict, expires_at: datetime) -> None:
    result = await db.execute(select(SessionRecord).filter(SessionRecord.sid == sid))
    record = result.scalar_one_or_none()
    if record is None:
        db.add(SessionRecord(sid=sid, data=data, expires_at=expires_at))
    else:
        record.data = data
        record.expires_at = expires_at
    await db.flush()


async def delete_session_record(db: AsyncSession, sid: str) -> None:
    await db.execute(delete(SessionRecord).filter(SessionRecord.sid == sid))


async def prune_expired_sessions(db: AsyncSession, now: datetime) -> int:
    result = await db.execute(delete(SessionRecord).filter(SessionRecord.expires_at <= now))
    return result.rowcount or 0
