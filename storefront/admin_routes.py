# storefront/admin_routes.py
import structlog
from fastapi import APIRouter, Depends

from storefront.db.functions import create_product, get_all_users
from storefront.db.models import User
from storefront.db.repositories import SqlUnitOfWork
from storefront.db.schemas import AdminUser, ProductCreate
from storefront.dependencies import get_uow, require_admin

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/users")
async def read_users(admin: User = Depends(require_admin), uow: SqlUnitOfWork = Depends(get_uow)):
    users = await get_all_users(uow.db)
    return {"users": [AdminUser.model_validate(user).model_dump(mode="json") for user in users]}


@router.get("/orders")
async def read_all_orders(admin: User = Depends(require_admin), uow: SqlUnitOfWork = Depends(get_uow)):
    orders = await uow.orders.list_all()
    return {"orders": [order.model_dump(mode="json", by_alias=True) for order in orders]}


@router.post("/products", status_code=201)
async def create_new_product(
    product: ProductCreate,
    admin: User = Depends(require_admin),
    uow: SqlUnitOfWork = Depends(get_uow),
):
    new_product = await create_product(uow.db, product)
    logger.info("Product created", product_id=new_product.id, admin_id=admin.id)
    return new_product.model_dump(mode="json")
