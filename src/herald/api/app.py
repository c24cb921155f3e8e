"""FastAPI application for Herald.

Serves the outbound webhook API and the inbound HubSpot receiver. The
heartbeat monitor can optionally run in the same process.

Run with: uvicorn herald.api:app
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from herald import __version__
from herald.config import Settings
from herald.exceptions import (
    AuthenticationError,
    HeraldError,
    NotFoundError,
    ValidationError,
)
from herald.logging import configure_logging, get_logger
from herald.service import HeraldService

from .router import router, set_service

logger = get_logger(__name__)

API_PREFIX = "/api/v1"


async def _client_error(request: Request, exc: ValidationError) -> JSONResponse:
    logger.warning("Rejected request", field=exc.field, error=exc.message, path=request.url.path)
    return JSONResponse(exc.to_dict(), status_code=400)


async def _auth_error(request: Request, exc: AuthenticationError) -> JSONResponse:
    logger.warning("Signature check failed", error=exc.message, path=request.url.path)
    return JSONResponse(exc.to_dict(), status_code=401)


async def _missing(request: Request, exc: NotFoundError) -> JSONResponse:
    logger.info(
        "Lookup missed",
        resource=exc.resource_type,
        resource_id=exc.resource_id,
        path=request.url.path,
    )
    return JSONResponse(exc.to_dict(), status_code=404)


async def _server_error(request: Request, exc: HeraldError) -> JSONResponse:
    logger.error("Request failed", code=exc.code, error=exc.message, path=request.url.path)
    return JSONResponse(exc.to_dict(), status_code=500)


def create_app(
    settings: Settings | None = None,
    service: HeraldService | None = None,
    run_monitor: bool = False,
) -> FastAPI:
    """Build the Herald API.

    Args:
        settings: Settings to run with. Taken from the service, or loaded
            from the environment, when omitted.
        service: A ready-made HeraldService. Tests pass one wired to
            in-memory stores; otherwise one is created at startup.
        run_monitor: Also run the heartbeat monitor loop as a background task.
    """
    if settings is None:
        settings = service.settings if service is not None else Settings()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        configure_logging(level=settings.log_level, format=settings.log_format)
        herald = service or HeraldService.create(settings)
        await herald.initialize()
        set_service(herald)
        logger.info(
            "Herald API ready",
            storage_backend=settings.storage_backend,
            run_monitor=run_monitor,
        )

        monitor_task = asyncio.create_task(herald.monitor.run()) if run_monitor else None
        try:
            yield
        finally:
            if monitor_task is not None:
                herald.monitor.stop()
                with contextlib.suppress(asyncio.CancelledError):
                    await monitor_task
            await herald.close()
            set_service(None)

    app = FastAPI(
        title="Herald",
        description="Signed webhook delivery and inbound webhook heartbeat monitoring.",
        version=__version__,
        lifespan=lifespan,
    )

    if settings.cors_enabled:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    app.add_exception_handler(ValidationError, _client_error)  # type: ignore[arg-type]
    app.add_exception_handler(AuthenticationError, _auth_error)  # type: ignore[arg-type]
    app.add_exception_handler(NotFoundError, _missing)  # type: ignore[arg-type]
    app.add_exception_handler(HeraldError, _server_error)  # type: ignore[arg-type]

    app.include_router(router, prefix=API_PREFIX)
    return app


app = create_app()
