"""JSON error bodies shared by the route handlers and the exception handlers."""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse

REQUEST_ID_HEADER = "X-Request-Id"


def api_error(
    status_code: int,
    detail: str,
    *,
    code: str | None = None,
    request: Request | None = None,
) -> JSONResponse:
    """Return ``{"detail", "code"?, "request_id"?}``; the request id is echoed as a header."""
    content: dict[str, str] = {"detail": detail}
    if code is not None:
        content["code"] = code

    headers: dict[str, str] | None = None
    request_id = getattr(request.state, "request_id", None) if request is not None else None
    if request_id:
        content["request_id"] = request_id
        headers = {REQUEST_ID_HEADER: request_id}
    return JSONResponse(status_code=status_code, content=content, headers=headers)
