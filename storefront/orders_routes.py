# storefront/orders_routes.py
from fastapi import APIRouter, Depends

from storefront.db.repositories import SqlUnitOfWork
from storefront.db.schemas import SessionData
from storefront.dependencies import get_session, get_uow

router = APIRouter(prefix="/api", tags=["orders"])


@router.get("/orders")
async def read_orders(session: SessionData = Depends(get_session), uow: SqlUnitOfWork = Depends(get_uow)):
    if not session.user_id:
        return {"orders": []}

    orders = await uow.orders.list_by_user(session.user_id)
    return {"orders": [order.model_dump(mode="json", by_alias=True) for order in orders]}
