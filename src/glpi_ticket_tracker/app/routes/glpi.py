"""HTTP surface for the GLPI operations and the stored credentials."""
from __future__ import annotations

from datetime import date
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError

from glpi_ticket_tracker.adapters.glpi.models import GlpiConfig
from glpi_ticket_tracker.app.config_store import config_to_dict
from glpi_ticket_tracker.app.responses import api_error
from glpi_ticket_tracker.app.service import GlpiService
from glpi_ticket_tracker.config.redact import redact_settings_dict

router = APIRouter(prefix="/api")
log = structlog.get_logger(__name__)


class ConnectionTestRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    base_url: str = Field(min_length=1)
    app_token: SecretStr
    user_token: SecretStr
    ticket_id: str | None = None

    def to_config(self) -> GlpiConfig:
        return GlpiConfig(
            base_url=self.base_url, app_token=self.app_token, user_token=self.user_token
        )


def _service_or_503(request: Request) -> GlpiService:
    service: GlpiService | None = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="service_not_configured")
    return service


@router.get("/glpi-config")
def get_glpi_config(request: Request) -> dict[str, Any]:
    config = _service_or_503(request).store.load()
    if config is None:
        return {"configured": False}
    return {"configured": True, **redact_settings_dict(config_to_dict(config))}


@router.put("/glpi-config")
async def put_glpi_config(request: Request) -> Any:
    service = _service_or_503(request)
    try:
        config = GlpiConfig.model_validate(await request.json())
    except (ValueError, ValidationError):
        return api_error(
            422,
            "Expected a JSON object with base_url, app_token and user_token.",
            code="invalid_config",
            request=request,
        )
    service.store.save(config)
    log.info("glpi.config_saved")
    return {"status": "ok"}


@router.delete("/glpi-config")
def delete_glpi_config(request: Request) -> dict[str, str]:
    _service_or_503(request).store.clear()
    log.info("glpi.config_cleared")
    return {"status": "ok"}


@router.get("/glpi/tickets/{ticket_id}")
async def get_ticket(request: Request, ticket_id: str) -> Any:
    ticket = await _service_or_503(request).fetch_ticket(ticket_id)
    if ticket is None:
        return api_error(
            404, f"Ticket {ticket_id} not found.", code="ticket_not_found", request=request
        )
    return ticket.model_dump(mode="json")


@router.get("/glpi/search")
async def search_tickets(
    request: Request,
    date_from: date,
    date_to: date,
    group_id: int | None = None,
) -> Any:
    if date_from > date_to:
        return api_error(
            422, "date_from must not be after date_to.", code="invalid_range", request=request
        )
    rows = await _service_or_503(request).search_tickets(group_id, date_from, date_to)
    return {"count": len(rows), "items": [row.model_dump(mode="json") for row in rows]}


@router.get("/glpi/groups")
async def list_groups(request: Request) -> Any:
    groups = await _service_or_503(request).list_groups()
    return {"count": len(groups), "items": [group.model_dump(mode="json") for group in groups]}


@router.post("/glpi/test-connection")
async def test_connection(request: Request, body: ConnectionTestRequest) -> Any:
    result = await _service_or_503(request).test_connection(body.to_config(), body.ticket_id)
    return result.model_dump(mode="json")
