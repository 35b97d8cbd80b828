# storefront/main.py
import os
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront import admin_routes, auth_routes, cart_routes, catalog_routes, orders_routes
from storefront.config import Settings
from storefront.db.database import create_session_factory
from storefront.db.init_db import cleanup_sessions, init_db
from storefront.errors import StorefrontError
from storefront.logging_config import add_context, clear_context, configure_logging
from storefront.sessions import SessionLocks

logger = structlog.get_logger(__name__)


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed", error=type(exc).__name__)
    else:
        logger.info("Request rejected", error=type(exc).__name__, status=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    location = errors[0].get("loc", ()) if errors else ()
    field = ".".join(str(part) for part in location[1:] if isinstance(part, str))
    message = f"Invalid {field}" if field else "Invalid request body"
    logger.info("Request rejected", error="RequestValidationError", field=field or None)
    return JSONResponse(status_code=400, content={"error": message})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error")
    return JSONResponse(status_code=500, content={"error": "Server error"})


async def request_context_middleware(request: Request, call_next):
    clear_context()
    add_context(request_id=uuid.uuid4().hex[:12], method=request.method, path=request.url.path)
    try:
        return await call_next(request)
    finally:
        clear_context()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.environment, settings.log_level)

    engine, session_factory = create_session_factory(settings.database_url, echo=settings.sql_echo)

    # Инициализация базы данных
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        await init_db(engine)
        async with session_factory() as db:
            pruned = await cleanup_sessions(db)
        logger.info("Storefront started", pruned_sessions=pruned)
        yield
        await engine.dispose()

    app = FastAPI(title="Storefront API", lifespan=lifespan)
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.session_locks = SessionLocks()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(request_context_middleware)

    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(auth_routes.router)
    app.include_router(catalog_routes.router)
    app.include_router(cart_routes.router)
    app.include_router(orders_routes.router)
    app.include_router(admin_routes.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "storefront running"}

    if settings.static_dir and os.path.isdir(settings.static_dir):
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app


def main() -> None:
    settings = Settings.from_env()
    uvicorn.run("storefront.main:create_app", factory=True, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
