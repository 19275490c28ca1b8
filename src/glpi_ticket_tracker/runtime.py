"""``glpi-ticket-tracker-server`` entry point: load settings, then serve the API with uvicorn."""
from __future__ import annotations

import structlog
import uvicorn

from glpi_ticket_tracker._version import __version__
from glpi_ticket_tracker.app.server import create_app
from glpi_ticket_tracker.config.load import load_settings
from glpi_ticket_tracker.observability.logger import configure_logging

log = structlog.get_logger(__name__)


def main() -> int:
    settings = load_settings()
    observability = settings.observability
    configure_logging(
        log_level=observability.log_level,
        log_format=observability.log_format,
        json_logs=observability.json_logs,
    )
    log.info(
        "server.starting",
        version=__version__,
        host=settings.server.host,
        port=settings.server.port,
        metrics_enabled=observability.metrics_enabled,
    )

    # log_config=None keeps uvicorn on the handlers configure_logging installed.
    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,
    )
    return 0
