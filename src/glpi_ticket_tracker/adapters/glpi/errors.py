from __future__ import annotations


class GlpiError(Exception):
    """Base class for GLPI integration errors."""


class ConfigurationError(GlpiError):
    """No GLPI credentials are stored for the current user."""


class SessionError(GlpiError):
    """Opening a GLPI API session failed."""


class GlpiRequestError(GlpiError):
    """A GLPI request whose failure cannot be degraded (e.g. the ticket itself)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SearchError(GlpiRequestError):
    """A search or listing query failed; partial pages are never returned."""
