from __future__ import annotations

import re
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from glpi_ticket_tracker.adapters.glpi.errors import SessionError
from glpi_ticket_tracker.adapters.glpi.models import GlpiConfig, SessionResponse
from glpi_ticket_tracker.adapters.http_util import timeouts_for
from glpi_ticket_tracker.observability import metrics

log = structlog.get_logger(__name__)

QueryParams = Mapping[str, str] | Sequence[tuple[str, str]]

_API_SUFFIX_RE = re.compile(r"/apirest\.php$", re.IGNORECASE)


def normalize_base_url(url: str) -> str:
    """Strip trailing slashes and a trailing ``/apirest.php`` segment."""
    return _API_SUFFIX_RE.sub("", url.strip().rstrip("/"))


def parse_glpi_error(data: Any) -> str:
    """
    Extract a readable message from a GLPI error body.

    GLPI answers errors with ``["ERROR_CODE", "message"]``; some proxies turn that into
    ``{"0": "ERROR_CODE", "1": "message"}``, and a few endpoints use ``{"message": ...}``
    or ``{"error": ...}``. Returns an empty string when nothing usable is present.
    """
    if isinstance(data, list):
        if not data:
            return ""
        code = data[0]
        message = data[1] if len(data) > 1 else None
        return f"{code}: {message}" if message else str(code)
    if isinstance(data, Mapping):
        if "0" in data:
            message = data.get("1")
            return f"{data['0']}: {message}" if message else str(data["0"])
        if "message" in data:
            return str(data["message"])
        if "error" in data:
            return str(data["error"])
    return ""


def response_json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def error_detail(response: httpx.Response, fallback: str) -> str:
    detail = parse_glpi_error(response_json_or_none(response))
    return detail or f"{fallback} (HTTP {response.status_code})"


def _endpoint_label(path: str) -> str:
    head = path.lstrip("/").split("/", 1)[0]
    return head.split("?", 1)[0] or "root"


class AsyncGlpiClient:
    """
    Thin async wrapper around the GLPI REST API (``apirest.php``).

    Sessions are transient: open one per logical operation with :meth:`session` and let the
    context manager kill it, even when the operation fails.
    """

    def __init__(
        self,
        config: GlpiConfig,
        *,
        timeout_seconds: float | None = None,
        verify_tls: bool = True,
        trust_env: bool = False,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        base = normalize_base_url(config.base_url)
        url = httpx.URL(base)
        if not url.scheme or not url.host:
            raise ValueError("base_url must include scheme and host, e.g. https://glpi.example")

        self._api_url = f"{base}/apirest.php"
        self._app_token = config.app_token.get_secret_value()
        self._user_token = config.user_token.get_secret_value()

        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            headers={"Accept": "application/json"},
            timeout=timeouts_for(timeout_seconds),
            verify=verify_tls,
            trust_env=trust_env,
            follow_redirects=False,
        )

    @property
    def api_url(self) -> str:
        return self._api_url

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def __aenter__(self) -> AsyncGlpiClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: Any,
    ) -> None:
        await self.aclose()

    async def open_session(self) -> str:
        headers = {
            "App-Token": self._app_token,
            "Authorization": f"user_token {self._user_token}",
        }
        try:
            response = await self._http.get(f"{self._api_url}/initSession", headers=headers)
        except httpx.HTTPError as exc:
            metrics.glpi_requests_total.labels(endpoint="initSession", outcome="error").inc()
            raise SessionError(f"Failed to open session: {exc.__class__.__name__}") from exc

        if not response.is_success:
            metrics.glpi_requests_total.labels(endpoint="initSession", outcome="failure").inc()
            raise SessionError(error_detail(response, "Failed to open session"))

        try:
            payload = SessionResponse.model_validate(response_json_or_none(response))
        except ValidationError as exc:
            metrics.glpi_requests_total.labels(endpoint="initSession", outcome="failure").inc()
            raise SessionError("GLPI did not return a session token") from exc

        metrics.glpi_requests_total.labels(endpoint="initSession", outcome="ok").inc()
        return payload.session_token

    async def close_session(self, session_token: str) -> None:
        # Best-effort: a failed kill must never mask the outcome of the guarded operation.
        try:
            response = await self._http.get(
                f"{self._api_url}/killSession",
                headers=self._session_headers(session_token),
            )
        except httpx.HTTPError as exc:
            log.debug("glpi.kill_session_failed", error=exc.__class__.__name__)
            return
        if not response.is_success:
            log.debug("glpi.kill_session_failed", status=response.status_code)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[str]:
        token = await self.open_session()
        try:
            yield token
        finally:
            await self.close_session(token)

    async def get(
        self,
        path: str,
        *,
        session_token: str,
        params: QueryParams | None = None,
    ) -> httpx.Response:
        """GET an API path; transport errors propagate, HTTP statuses do not raise."""
        endpoint = _endpoint_label(path)
        try:
            response = await self._http.get(
                f"{self._api_url}/{path.lstrip('/')}",
                params=params,
                headers=self._session_headers(session_token),
            )
        except httpx.HTTPError:
            metrics.glpi_requests_total.labels(endpoint=endpoint, outcome="error").inc()
            raise
        outcome = "ok" if response.is_success else "failure"
        metrics.glpi_requests_total.labels(endpoint=endpoint, outcome=outcome).inc()
        return response

    async def get_json_or_none(
        self,
        path: str,
        *,
        session_token: str,
        params: QueryParams | None = None,
    ) -> Any:
        """GET an API path and return its JSON body, or ``None`` on any failure."""
        try:
            response = await self.get(path, session_token=session_token, params=params)
        except httpx.HTTPError as exc:
            log.info("glpi.request_failed", path=path, error=exc.__class__.__name__)
            return None
        if not response.is_success:
            log.info("glpi.request_failed", path=path, status=response.status_code)
            return None
        return response_json_or_none(response)

    def _session_headers(self, session_token: str) -> dict[str, str]:
        return {"App-Token": self._app_token, "Session-Token": session_token}
