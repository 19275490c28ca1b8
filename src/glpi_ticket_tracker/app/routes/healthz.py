from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Request

from glpi_ticket_tracker._version import __version__

router = APIRouter()


@router.get("/healthz")
def healthz(request: Request) -> dict[str, str | bool]:
    service = getattr(request.app.state, "service", None)
    return {
        "status": "ok",
        "time": datetime.now(UTC).isoformat(),
        "service": "glpi-ticket-tracker",
        "version": __version__,
        "glpi_configured": bool(service is not None and service.store.load() is not None),
    }
