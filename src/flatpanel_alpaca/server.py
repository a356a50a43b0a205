from __future__ import annotations

import logging
import time
from contextlib import AsyncExitStack
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from .calibrator.controller import CalibratorController, create_controller
from .config.settings import Settings
from .config.store import KEY_DEBUG_ENABLED, ConfigStore, create_config_store
from .console import CalibratorConsole, apply_debug_level, start_console_thread
from .devices.covercalibrator import router as covercalibrator_router
from .discovery import DiscoveryService
from .errors import RequestRejected
from .identity import NetworkIdentity
from .logconfig import configure_logging
from .management.router import router as management_router
from .setup.router import router as setup_router

logger = structlog.get_logger(__name__)

DEVICE_PREFIX = "/api/v1/covercalibrator/0"


class AccessLogMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: FastAPI) -> None:
        super().__init__(app)
        self._logger = logging.getLogger("http.access")

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000.0
            self._logger.error(
                "http.request.error",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "query": request.url.query or None,
                    "duration_ms": duration_ms,
                },
                exc_info=True,
            )
            raise

        status = response.status_code
        if status != 200:
            duration_ms = (time.perf_counter() - start) * 1000.0
            extra = {
                "method": request.method,
                "path": request.url.path,
                "query": request.url.query or None,
                "status_code": status,
                "duration_ms": duration_ms,
            }
            if status >= 500:
                self._logger.error("http.request", extra=extra)
            elif status >= 400:
                self._logger.warning("http.request", extra=extra)
            else:
                self._logger.info("http.request", extra=extra)
        return response


async def _request_rejected(request: Request, exc: RequestRejected) -> PlainTextResponse:
    logger.info("http.rejected", method=request.method, path=request.url.path, detail=exc.detail)
    return PlainTextResponse(exc.detail, status_code=exc.status_code)


async def _http_exception(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
    if exc.status_code in (404, 405):
        return PlainTextResponse(
            f"Unsupported request: {request.method} {request.url.path}",
            status_code=400,
        )
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)


def build_app(
    settings: Settings,
    *,
    controller: Optional[CalibratorController] = None,
    store: Optional[ConfigStore] = None,
    identity: Optional[NetworkIdentity] = None,
) -> FastAPI:
    """Create the FastAPI application with the Alpaca CoverCalibrator API mounted."""
    app = FastAPI(title=f"{settings.server_name} Alpaca Server", version=settings.manufacturer_version)

    store = store or create_config_store(settings.state_directory)
    app.state.settings = settings
    app.state.store = store
    app.state.controller = controller or create_controller(settings, store=store)
    app.state.identity = identity or NetworkIdentity(configured_host=settings.http_advertise_host or settings.http_host)

    app.include_router(management_router, prefix="/management")
    app.include_router(covercalibrator_router, prefix=DEVICE_PREFIX)
    app.include_router(setup_router)
    app.add_exception_handler(RequestRejected, _request_rejected)
    app.add_exception_handler(StarletteHTTPException, _http_exception)
    app.add_middleware(AccessLogMiddleware)
    return app


async def run_server(settings: Settings, *, console: bool = False) -> None:
    """Launch the Alpaca server, discovery responder and optional text console."""
    configure_logging(settings.log_level)

    store = create_config_store(settings.state_directory)
    apply_debug_level(store.get_bool(KEY_DEBUG_ENABLED, False))
    app = build_app(settings, store=store)

    async with AsyncExitStack() as stack:
        if settings.discovery_enabled:
            discovery = DiscoveryService(settings)
            await stack.enter_async_context(discovery)

        if console:
            text_console = CalibratorConsole(
                app.state.controller,
                store=store,
                driver_version=settings.driver_version,
            )
            start_console_thread(text_console)

        config = uvicorn.Config(
            app=app,
            host=settings.http_host,
            port=settings.http_port,
            log_level="info",
            access_log=False,
        )
        server = uvicorn.Server(config)
        logger.info(
            "server.starting",
            host=settings.http_host,
            port=settings.http_port,
            advertised=app.state.identity.local_address(),
            unique_id=app.state.identity.unique_id(),
        )
        await server.serve()

    logger.info("server.stopped")
