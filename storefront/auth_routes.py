# storefront/auth_routes.py
import structlog
from fastapi import APIRouter, Depends, Response
from starlette.concurrency import run_in_threadpool

from storefront.auth_utils import generate_uid, hash_password, normalize_email, verify_password
from storefront.config import Settings
from storefront.db.functions import create_user, get_user_by_email, get_user_by_id, touch_last_login
from storefront.db.repositories import SqlUnitOfWork
from storefront.db.schemas import LoginRequest, RegisterRequest, SessionData, UserProfile
from storefront.dependencies import clear_session_cookie, get_session, get_settings, get_uow, set_session_cookie
from storefront.errors import AuthError, Conflict, ValidationError
from storefront.sessions import rotate_session

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/register", status_code=201)
async def register(
    payload: RegisterRequest,
    response: Response,
    session: SessionData = Depends(get_session),
    uow: SqlUnitOfWork = Depends(get_uow),
    settings: Settings = Depends(get_settings),
):
    if not payload.email or not payload.email.strip() or not payload.password:
        raise ValidationError("Missing email or password")

    email = normalize_email(payload.email)
    if await get_user_by_email(uow.db, email):
        raise Conflict("Email already exists")

    pass_hash = await run_in_threadpool(hash_password, payload.password)
    user = await create_user(uow.db, {
        "uid": generate_uid(),
        "email": email,
        "pass_hash": pass_hash,
        "name": payload.name or None,
        "phone": payload.phone or None,
        "address": payload.address or None,
    })

    session = await rotate_session(session, uow.sessions)
    session.user_id = user.id
    session.email = user.email
    session.cart = []
    await uow.sessions.save(session)
    await uow.commit()
    set_session_cookie(response, session, settings)

    logger.info("User registered", user_id=user.id)
    return {"ok": True, "user": {"id": user.id, "email": user.email, "name": user.name}}


@router.post("/login")
async def login(
    payload: LoginRequest,
    response: Response,
    session: SessionData = Depends(get_session),
    uow: SqlUnitOfWork = Depends(get_uow),
    settings: Settings = Depends(get_settings),
):
    if not payload.email or not payload.password:
        raise ValidationError("Missing email or password")

    email = normalize_email(payload.email)
    user = await get_user_by_email(uow.db, email)
    if user is None:
        raise AuthError("Invalid credentials")

    ok = await run_in_threadpool(verify_password, payload.password, user.pass_hash)
    if not ok:
        logger.info("Login failed", user_id=user.id)
        raise AuthError("Invalid credentials")

    await touch_last_login(uow.db, user)
    # Корзина гостя сохраняется после входа, идентификатор сессии меняется
    session = await rotate_session(session, uow.sessions)
    session.user_id = user.id
    session.email = email
    await uow.sessions.save(session)
    await uow.commit()
    set_session_cookie(response, session, settings)

    return {"ok": True, "user": {"email": email, "name": user.name}}


@router.post("/logout")
async def logout(
    response: Response,
    session: SessionData = Depends(get_session),
    uow: SqlUnitOfWork = Depends(get_uow),
    settings: Settings = Depends(get_settings),
):
    await uow.sessions.destroy(session.sid)
    await uow.commit()
    clear_session_cookie(response, settings)
    return {"ok": True}


@router.get("/me")
async def me(session: SessionData = Depends(get_session), uow: SqlUnitOfWork = Depends(get_uow)):
    if not session.user_id:
        return {"user": None}

    user = await get_user_by_id(uow.db, session.user_id)
    if user is None:
        return {"user": None}
    return {"user": UserProfile.model_validate(user).model_dump()}
