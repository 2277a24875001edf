from __future__ import annotations
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Optional

import orjson
import redis.asyncio as redis
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.ext.asyncio import AsyncSession

from . import booking, lessons
from .config import Settings
from .errors import BookingError, InvalidInput
from .infra import timings
from .infra.gate import make_gate
from .infra.logs import setup_logging
from .infra.sql import make_async_engine
from .model.catalog import CatalogStore, clamp_order_limit, create_schema
from .model.seats import SeatLedger, new_ledger
from .seed import prime_seats, reset_lessons

log = logging.getLogger(__name__)


# ----------------------------
# Dependencies: storage handles come from app.state, one session per request
# ----------------------------
async def get_db(request: Request) -> AsyncSession:
    async with request.app.state.sessions() as session:
        yield session


def get_catalog(
    request: Request, db: AsyncSession = Depends(get_db)
) -> CatalogStore:
    return CatalogStore(db=db, gated=request.app.state.gated)


def get_seats(
    request: Request, db: AsyncSession = Depends(get_db)
) -> SeatLedger:
    state = request.app.state
    return new_ledger(
        state.settings.seats_backend, gated=state.gated, db=db, r=state.redis
    )


async def _json_body(request: Request) -> Any:
    raw = await request.body()
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError:
        raise InvalidInput("request body must be JSON")


# ----------------------------
# API
# ----------------------------
router = APIRouter(prefix="/api")


@router.get("/lessons")
async def api_list_lessons(
    catalog: CatalogStore = Depends(get_catalog),
    seats: SeatLedger = Depends(get_seats),
):
    return await lessons.list_lessons(catalog, seats)


@router.get("/search")
async def api_search(
    q: Optional[str] = None,
    catalog: CatalogStore = Depends(get_catalog),
    seats: SeatLedger = Depends(get_seats),
):
    return await lessons.search_lessons(catalog, seats, q)


@router.put("/lessons/{lesson_id}")
async def api_update_lesson(
    lesson_id: str,
    request: Request,
    catalog: CatalogStore = Depends(get_catalog),
    seats: SeatLedger = Depends(get_seats),
):
    payload = await _json_body(request)
    await lessons.update_lesson_spaces(catalog, seats, lesson_id, payload)
    return {"message": "Lesson updated"}


@router.post("/orders")
async def api_place_order(
    request: Request,
    catalog: CatalogStore = Depends(get_catalog),
    seats: SeatLedger = Depends(get_seats),
):
    payload = await _json_body(request)
    order = await booking.place_order(catalog, seats, payload)
    return {"message": "Order placed successfully", "order_id": order["id"]}


@router.get("/orders")
async def api_list_orders(
    limit: int = 200,
    catalog: CatalogStore = Depends(get_catalog),
):
    limit = clamp_order_limit(limit)
    items = await catalog.list_orders(limit=limit)
    return {"items": items, "limit": limit}


@router.get("/orders/{order_id}")
async def api_get_order(
    order_id: str,
    catalog: CatalogStore = Depends(get_catalog),
):
    return await booking.get_order(catalog, order_id)


@router.get("/timings")
async def api_timings():
    return {"items": timings.aggregates()}


# ----------------------------
# Error mapping
# ----------------------------
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path,
                  exc.message)
    return ORJSONResponse(
        status_code=exc.status_code, content={"error": exc.message}
    )


async def validation_error_handler(request: Request,
                                   exc: RequestValidationError):
    # malformed path or query parameters
    log.info("%s %s rejected: %s", request.method, request.url.path,
             exc.errors())
    return ORJSONResponse(
        status_code=InvalidInput.status_code,
        content={"error": InvalidInput.message},
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    log.exception("unhandled error on %s %s", request.method,
                  request.url.path)
    return ORJSONResponse(
        status_code=500, content={"error": "Internal server error"}
    )


# ----------------------------
# startup / shutdown
# ----------------------------
async def _storage_start(app: FastAPI) -> None:
    settings: Settings = app.state.settings
    engine, SessionAsync, pool_size = make_async_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
    )
    app.state.engine = engine
    app.state.sessions = SessionAsync
    gate_limit = settings.db_gate_limit or pool_size or 10
    app.state.gated = make_gate(gate_limit, settings.storage_timeout)

    app.state.redis = None
    if settings.seats_backend == "redis":
        app.state.redis = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=2.0,
            socket_connect_timeout=2.0,
            retry_on_timeout=True,
        )

    async with engine.begin() as conn:
        await create_schema(conn)

    async with SessionAsync() as session:
        catalog = CatalogStore(db=session, gated=app.state.gated)
        seats = new_ledger(settings.seats_backend, gated=app.state.gated,
                           db=session, r=app.state.redis)
        if settings.reset_on_start:
            log.warning("RESET_ON_START is set: restoring demo lessons and "
                        "seat counts")
            await reset_lessons(catalog, seats)
        else:
            await prime_seats(catalog, seats)


async def _storage_stop(app: FastAPI) -> None:
    r = getattr(app.state, "redis", None)
    if r is not None:
        await r.aclose()
        app.state.redis = None
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        await engine.dispose()
        app.state.engine = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    log.info("Afterschool lessons service starting up "
             "(seats backend: %s)", settings.seats_backend)
    await _storage_start(app)
    log.info("storage ready")
    try:
        yield
    finally:
        timings.log_aggregates()
        await _storage_stop(app)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application. Reads the environment unless ``settings``
    is given; raises ``ConfigError`` when required values are missing.

        uvicorn --factory afterschool.server:create_app
    """
    if settings is None:
        settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_file)

    app = FastAPI(
        title="Afterschool Lessons",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(BookingError, booking_error_handler)
    app.add_exception_handler(RequestValidationError,
                              validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(router)
    # static mounts last: "/" swallows every path the API does not claim
    _mount_static(app, "/images", settings.images_dir, "images")
    _mount_static(app, "/", settings.static_dir, "static", html=True)
    return app


def _mount_static(app: FastAPI, path: str, directory: str, name: str,
                  html: bool = False) -> None:
    if not os.path.isdir(directory):
        log.warning("static directory %s not found, %s is not served",
                    directory, path)
        return
    app.mount(path, StaticFiles(directory=directory, html=html), name=name)
