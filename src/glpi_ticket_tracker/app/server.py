from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from starlette.responses import JSONResponse

from glpi_ticket_tracker._version import __version__
from glpi_ticket_tracker.adapters.glpi.errors import (
    ConfigurationError,
    GlpiError,
    GlpiRequestError,
    SearchError,
    SessionError,
)
from glpi_ticket_tracker.app.middleware.request_id import RequestIdMiddleware
from glpi_ticket_tracker.app.responses import api_error
from glpi_ticket_tracker.app.routes.glpi import router as glpi_router
from glpi_ticket_tracker.app.routes.healthz import router as healthz_router
from glpi_ticket_tracker.app.service import GlpiService
from glpi_ticket_tracker.config.settings import Settings

log = structlog.get_logger(__name__)

# Most specific first; the handler walks the list in order.
_GLPI_ERROR_RESPONSES: tuple[tuple[type[GlpiError], int, str], ...] = (
    (ConfigurationError, 409, "glpi_not_configured"),
    (SessionError, 502, "glpi_session_failed"),
    (SearchError, 502, "glpi_search_failed"),
    (GlpiRequestError, 502, "glpi_request_failed"),
)


async def _glpi_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.warning("glpi.error", error_type=type(exc).__name__, error=str(exc))
    for error_type, status_code, code in _GLPI_ERROR_RESPONSES:
        if isinstance(exc, error_type):
            return api_error(status_code, str(exc), code=code, request=request)
    return api_error(502, str(exc), code="glpi_error", request=request)


async def _global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return api_error(
        500, "An internal server error occurred.", code="internal_error", request=request
    )


def _wire_app(app: FastAPI, *, settings: Settings | None, service: GlpiService | None) -> None:
    app.state.settings = settings
    if service is None and settings is not None:
        service = GlpiService.from_settings(settings)
    app.state.service = service

    app.add_middleware(RequestIdMiddleware)
    app.add_exception_handler(GlpiError, _glpi_error_handler)
    app.add_exception_handler(Exception, _global_exception_handler)

    app.include_router(healthz_router)
    app.include_router(glpi_router)
    if settings is not None and settings.observability.metrics_enabled:
        from glpi_ticket_tracker.app.routes.metrics import router as metrics_router

        app.include_router(metrics_router)


def create_app(
    settings: Settings | None = None, *, service: GlpiService | None = None
) -> FastAPI:
    app = FastAPI(title="glpi-ticket-tracker", version=__version__)
    _wire_app(app, settings=settings, service=service)
    return app
