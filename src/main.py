"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import settings
from src.ms_account.api.router import router as account_router
from src.ms_broadcast.api.router import router as broadcast_router
from src.ms_broadcast.hub import BroadcastHub
from src.ms_common.errors import AppError, InternalError
from src.ms_common.response import error_response
from src.ms_engine.api.router import router as engine_router
from src.ms_engine.application.service import build_engine
from src.ms_gateway.middleware.request_log import RequestLogMiddleware
from src.ms_market.api.router import router as market_router
from src.ms_order.api.router import router as order_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: load (or repair) snapshots and wire the hub. Shutdown: detach."""
    engine = build_engine(settings)
    hub = BroadcastHub()
    engine.add_listener(hub.publish)
    app.state.engine = engine
    app.state.hub = hub
    yield
    engine.remove_listener(hub.publish)
    logger.info("Market engine stopped")


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
    debug=settings.DEBUG,
)


app.add_middleware(RequestLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    detail = f"{where}: {first.get('msg', 'invalid')}" if where else first.get("msg", "invalid")
    resp = error_response(1001, f"Invalid input: {detail}")
    return JSONResponse(status_code=400, content=resp.model_dump())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    err = InternalError()
    resp = error_response(err.code, err.message)
    return JSONResponse(status_code=err.http_status, content=resp.model_dump())


app.include_router(market_router, prefix="/api")
app.include_router(account_router, prefix="/api")
app.include_router(order_router, prefix="/api")
app.include_router(engine_router, prefix="/api")
app.include_router(broadcast_router)
