# storefront/cart_routes.py
from fastapi import APIRouter, Depends, Response

from storefront.cart import add_item, cart_payload, get_cart, remove_item, update_item
from storefront.checkout import CheckoutService
from storefront.config import Settings
from storefront.db.repositories import SqlUnitOfWork
from storefront.db.schemas import CartAddRequest, CartRemoveRequest, CartUpdateRequest, DeliveryInfo, SessionData
from storefront.dependencies import (
    get_checkout_service,
    get_session,
    get_session_locks,
    get_settings,
    get_uow,
    set_session_cookie,
)
from storefront.sessions import SessionLocks, refresh_session

router = APIRouter(prefix="/api", tags=["cart"])


async def _mutate_cart(session, uow, locks, response, settings, mutation):
    # Изменения корзины одной сессии выполняются по очереди
    async with locks.hold(session.sid):
        await refresh_session(session, uow.sessions)
        cart = mutation(session)
        await uow.sessions.save(session)
        await uow.commit()
    set_session_cookie(response, session, settings)
    return {"ok": True, "cart": cart_payload(cart)}


@router.get("/cart")
async def read_cart(session: SessionData = Depends(get_session)):
    return {"cart": cart_payload(get_cart(session))}


@router.post("/cart/add")
async def add_to_cart(
    payload: CartAddRequest,
    response: Response,
    session: SessionData = Depends(get_session),
    uow: SqlUnitOfWork = Depends(get_uow),
    locks: SessionLocks = Depends(get_session_locks),
    settings: Settings = Depends(get_settings),
):
    return await _mutate_cart(
        session, uow, locks, response, settings,
        lambda s: add_item(s, payload.id, payload.qty),
    )


@router.post("/cart/update")
async def update_cart_item_quantity(
    payload: CartUpdateRequest,
    response: Response,
    session: SessionData = Depends(get_session),
    uow: SqlUnitOfWork = Depends(get_uow),
    locks: SessionLocks = Depends(get_session_locks),
    settings: Settings = Depends(get_settings),
):
    return await _mutate_cart(
        session, uow, locks, response, settings,
        lambda s: update_item(s, payload.id, payload.qty),
    )


@router.post("/cart/remove")
async def remove_from_cart(
    payload: CartRemoveRequest,
    response: Response,
    session: SessionData = Depends(get_session),
    uow: SqlUnitOfWork = Depends(get_uow),
    locks: SessionLocks = Depends(get_session_locks),
    settings: Settings = Depends(get_settings),
):
    return await _mutate_cart(
        session, uow, locks, response, settings,
        lambda s: remove_item(s, payload.id),
    )


@router.post("/checkout", status_code=201)
async def checkout(
    payload: DeliveryInfo,
    response: Response,
    session: SessionData = Depends(get_session),
    service: CheckoutService = Depends(get_checkout_service),
    settings: Settings = Depends(get_settings),
):
    result = await service.checkout(session, payload)
    set_session_cookie(response, session, settings)
    return result.model_dump(by_alias=True)
