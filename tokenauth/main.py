# tokenauth/main.py
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.requests import Request

from tokenauth.api.deps import AuthHTTPException
from tokenauth.api.v1.router import api_router
from tokenauth.core.clock import Clock, utcnow
from tokenauth.core.config import Settings, get_settings
from tokenauth.core.logging import setup_logging
from tokenauth.core.ratelimit import RedisCounterStore
from tokenauth.core.tokens import ClaimCodec
from tokenauth.db.init_db import init_db
from tokenauth.db.session import make_engine, make_session_factory
from tokenauth.services.cleanup import refresh_cleanup_loop

logger = logging.getLogger("tokenauth.main")


def create_app(settings: Optional[Settings] = None, clock: Clock = utcnow) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    engine = make_engine(settings.DATABASE_URL)
    session_factory = make_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # segredo fraco/ausente: ConfigurationError aborta o startup
        settings.ensure_valid()
        init_db(engine)
        app.state.codec = ClaimCodec.from_settings(settings, clock=clock)
        if settings.REDIS_URL:
            app.state.counter_store = RedisCounterStore.from_url(settings.REDIS_URL)

        cleanup = None
        if settings.REFRESH_CLEANUP_INTERVAL_SECONDS > 0:
            cleanup = asyncio.create_task(
                refresh_cleanup_loop(session_factory, settings.REFRESH_CLEANUP_INTERVAL_SECONDS, clock)
            )
        yield
        if cleanup is not None:
            cleanup.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await cleanup
        if app.state.counter_store is not None:
            app.state.counter_store.close()
        engine.dispose()

    api = FastAPI(
        title="tokenauth",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    api.state.settings = settings
    api.state.clock = clock
    api.state.session_factory = session_factory
    api.state.counter_store = None

    # métricas /metrics (Prometheus)
    if settings.METRICS_ENABLED:
        Instrumentator().instrument(api).expose(api, include_in_schema=False, should_gzip=True)

    api.include_router(api_router, prefix="/api/v1")

    @api.get("/healthz", tags=["health"])
    def healthz():
        return {"status": "ok"}

    @api.exception_handler(AuthHTTPException)
    def handle_auth_failure(request: Request, exc: AuthHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.public_code, "message": exc.failure.message},
            headers=exc.headers,
        )

    @api.exception_handler(Exception)
    def handle_unexpected(request: Request, exc: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        # nunca devolvemos detalhes internos ao cliente
        return JSONResponse(status_code=500, content={"code": "INTERNAL_ERROR", "message": "Internal error."})

    return api


api = create_app()
