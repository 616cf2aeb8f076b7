"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

import requests
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from basednews.api.routes import router
from basednews.config import AppConfig
from basednews.services.ingestion import run_ingestion
from basednews.services.scheduler import SchedulerHandle, start_scheduler
from basednews.services.sources import build_scheduled_sources
from basednews.storage import Storage

logger = logging.getLogger(__name__)

SchedulerFactory = Callable[..., SchedulerHandle]


def create_app(
    config: AppConfig | None = None,
    storage: Storage | None = None,
    *,
    http_session: requests.Session | None = None,
    scheduler_factory: SchedulerFactory = start_scheduler,
) -> FastAPI:
    """Build the API.

    ``config`` defaults to :meth:`AppConfig.from_env`; ``storage`` to a
    :class:`Storage` on ``config.database_url``. The hourly scheduler is
    started by the application lifespan when ``config.scheduler_enabled``.
    """

    config = config or AppConfig.from_env()
    owns_storage = storage is None
    storage = storage or Storage.from_url(config.database_url)
    owns_session = http_session is None
    http_session = http_session or requests.Session()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        handle: SchedulerHandle | None = None
        # The scheduler thread never shares a session with request handlers.
        scheduler_session = requests.Session()

        def _ingest() -> None:
            run_ingestion(storage, build_scheduled_sources(config, scheduler_session))

        if config.scheduler_enabled:
            handle = scheduler_factory(_ingest, startup_delay=config.scheduler_startup_delay)
        else:
            logger.info("News scheduler disabled")
        app.state.scheduler = handle
        app.state.scheduler_session = scheduler_session
        try:
            yield
        finally:
            if handle is not None:
                handle.stop()
            scheduler_session.close()
            if owns_session:
                http_session.close()
            if owns_storage:
                storage.dispose()

    app = FastAPI(
        title="BasedNews",
        description="Crypto news aggregation API",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.storage = storage
    app.state.http_session = http_session
    app.state.scheduler = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"message": "Invalid request parameters", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"message": "Internal server error"})

    app.include_router(router, prefix="/api")
    return app
