"""HTTP middleware for the validation API."""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

_MB = 1024 * 1024
# Documents are submitted inline, so /validate gets the larger allowance
_DOCUMENT_LIMIT = 5 * _MB
_DEFAULT_LIMIT = 1 * _MB
_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


def body_limit_for(path: str) -> int:
    return _DOCUMENT_LIMIT if path.rstrip("/").endswith("/validate") else _DEFAULT_LIMIT


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Report how long the request took in ``X-Request-Duration-Ms``."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-Duration-Ms"] = f"{elapsed_ms:.1f}"
        return response


class RequestBodyLimitMiddleware(BaseHTTPMiddleware):
    """Answer 413 when a request body is larger than its route allows.

    A declared Content-Length over the limit is refused before reading. An
    undeclared or understated length is caught while the body streams in.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        limit = body_limit_for(request.url.path)

        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > limit:
            return _too_large(limit)

        if request.method in _BODY_METHODS:
            body = bytearray()
            async for chunk in request.stream():
                body.extend(chunk)
                if len(body) > limit:
                    return _too_large(limit)
            # Downstream handlers read the buffered body via request.body()
            request._body = bytes(body)  # noqa: SLF001

        return await call_next(request)


def _too_large(limit: int) -> JSONResponse:
    return JSONResponse(
        status_code=413,
        content={"detail": f"Request body too large (max {limit // _MB} MB)"},
    )
