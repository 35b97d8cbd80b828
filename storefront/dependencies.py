# storefront/dependencies.py
from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth_utils import create_session_token, decode_session_token
from storefront.cart import cart_payload
from storefront.checkout import CheckoutService
from storefront.config import Settings
from storefront.db.database import get_db
from storefront.db.functions import get_user_by_id
from storefront.db.models import User
from storefront.db.repositories import SqlUnitOfWork
from storefront.db.schemas import SessionData
from storefront.errors import AuthError, Forbidden
from storefront.logging_config import add_context
from storefront.sessions import SessionLocks, new_session


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_locks(request: Request) -> SessionLocks:
    return request.app.state.session_locks


def get_uow(db: AsyncSession = Depends(get_db), settings: Settings = Depends(get_settings)) -> SqlUnitOfWork:
    return SqlUnitOfWork(db, settings.session_ttl)


async def get_session(
    request: Request,
    uow: SqlUnitOfWork = Depends(get_uow),
    settings: Settings = Depends(get_settings),
) -> SessionData:
    """Load the session named by the cookie, or start a fresh unsaved one."""
    session = None
    token = request.cookies.get(settings.cookie_name)
    if token:
        sid = decode_session_token(token, settings.session_secret)
        if sid:
            session = await uow.sessions.load(sid)
    if session is None:
        session = new_session()

    add_context(session_id=session.sid[:8], user_id=session.user_id, cart=cart_payload(session.cart))
    return session


def get_checkout_service(
    uow: SqlUnitOfWork = Depends(get_uow),
    locks: SessionLocks = Depends(get_session_locks),
) -> CheckoutService:
    return CheckoutService(uow, locks)


async def require_admin(
    session: SessionData = Depends(get_session),
    db: AsyncSession = Depends(get_db),
) -> User:
    if not session.user_id:
        raise AuthError()
    user = await get_user_by_id(db, session.user_id)
    if user is None:
        raise AuthError()
    if not user.is_admin:
        raise Forbidden()
    return user


def set_session_cookie(response: Response, session: SessionData, settings: Settings) -> None:
    if session.is_new:
        # Несохранённую сессию клиенту не отдаём
        return
    response.set_cookie(
        key=settings.cookie_name,
        value=create_session_token(session.sid, settings.session_secret, settings.session_ttl),
        max_age=int(settings.session_ttl.total_seconds()),
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(settings.cookie_name, httponly=True, secure=settings.cookie_secure, samesite="lax")
