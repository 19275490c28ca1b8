from __future__ import annotations

from glpi_ticket_tracker.app.server import create_app
from glpi_ticket_tracker.config.load import load_settings
from glpi_ticket_tracker.observability.logger import configure_logging

settings = load_settings()
configure_logging(
    log_level=settings.observability.log_level,
    log_format=settings.observability.log_format,
    json_logs=settings.observability.json_logs,
)

app = create_app(settings)
