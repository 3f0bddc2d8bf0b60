# bms/main.py
import sys
import asyncio
import datetime as dt
import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

import bms
from bms.api import ROUTERS
from bms.auth import SessionTokens, seed_users_if_missing
from bms.core.db import build_engine, build_sessionmaker
from bms.core.scheduler import start_scheduler
from bms.core.settings import Settings, get_settings
from bms.domain.models import Base
from bms.errors import BMSError, RequestTimeout, StoreError, ValidationError
from bms.storage import DocumentStorage

# -------------------------------------------------------------------
# Windows event-loop quirk
# -------------------------------------------------------------------
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

logger = logging.getLogger("bms")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def create_app(settings: Settings | None = None, engine: AsyncEngine | None = None) -> FastAPI:
    """Build the application; the engine and session factory live on ``app.state``."""
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    engine = engine or build_engine(settings.DB_URL)
    storage = DocumentStorage(settings)

    app = FastAPI(title="BMS", version=bms.__version__)
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = build_sessionmaker(engine)
    app.state.tokens = SessionTokens(settings.SECRET_KEY, settings.ACCESS_TOKEN_EXPIRES_MIN)
    app.state.storage = storage
    app.state.scheduler = None

    # -------------------------------------------------------------------
    # Per-request timeout (innermost, so the log line sees the 504)
    # -------------------------------------------------------------------
    @app.middleware("http")
    async def enforce_timeout(request: Request, call_next):
        try:
            return await asyncio.wait_for(call_next(request), timeout=settings.REQUEST_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("request timed out: %s %s", request.method, request.url.path)
            err = RequestTimeout()
            return JSONResponse(err.to_dict(), status_code=err.status_code)

    # -------------------------------------------------------------------
    # Log every request
    # -------------------------------------------------------------------
    @app.middleware("http")
    async def log_every_request(request: Request, call_next):
        logger.info("[REQ] %s %s", request.method, request.url.path)
        response = await call_next(request)
        logger.info("[RES] %s for %s", response.status_code, request.url.path)
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        allow_credentials="*" not in settings.cors_origins,
    )

    # -------------------------------------------------------------------
    # Error mapping
    # -------------------------------------------------------------------
    @app.exception_handler(BMSError)
    async def handle_bms_error(request: Request, exc: BMSError):
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        details = [
            {"field": ".".join(str(p) for p in e.get("loc", ()) if p != "body"), "message": e.get("msg", "")}
            for e in exc.errors()
        ]
        err = ValidationError(details=details)
        return JSONResponse(err.to_dict(), status_code=err.status_code)

    @app.exception_handler(SQLAlchemyError)
    async def handle_store_error(request: Request, exc: SQLAlchemyError):
        logger.exception("store error on %s %s", request.method, request.url.path)
        err = StoreError()
        return JSONResponse(err.to_dict(), status_code=err.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exceptions(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            code, message = "NOT_FOUND", "API endpoint not found"
        else:
            code, message = "HTTP_ERROR", str(exc.detail)
        return JSONResponse({"success": False, "error": code, "message": message}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            {"success": False, "error": "INTERNAL_ERROR", "message": "Internal server error"},
            status_code=500,
        )

    # -------------------------------------------------------------------
    # Routers
    # -------------------------------------------------------------------
    for router in ROUTERS:
        app.include_router(router)

    @app.get("/api/health")
    async def health():
        return {"status": "OK", "timestamp": dt.datetime.now(dt.timezone.utc).isoformat()}

    # -------------------------------------------------------------------
    # Local uploads are served as static files
    # -------------------------------------------------------------------
    if not storage.use_s3:
        app.mount("/uploads", StaticFiles(directory=storage.local_dir, check_dir=False), name="uploads")

    # -------------------------------------------------------------------
    # Startup / shutdown
    # -------------------------------------------------------------------
    @app.on_event("startup")
    async def on_startup():
        if not storage.use_s3:
            os.makedirs(storage.local_dir, exist_ok=True)
        # Only run DDL in environments that allow it (local/dev)
        if settings.RUN_DDL_ON_START:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        if settings.SEED_DEMO_USERS:
            async with app.state.sessionmaker() as db:
                await seed_users_if_missing(db)
        if settings.START_SCHEDULER_WEB:
            app.state.scheduler = start_scheduler(app.state.sessionmaker, settings.MISSED_SWEEP_MINUTES)

    @app.on_event("shutdown")
    async def on_shutdown():
        if app.state.scheduler is not None:
            app.state.scheduler.shutdown(wait=False)
        await engine.dispose()

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run(
        "bms.main:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "5000")),
    )
