from __future__ import annotations

from typing import Callable, Iterable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

DEFAULT_ALLOW_HEADERS = (
    "authorization",
    "x-client-info",
    "apikey",
    "content-type",
    "idempotency-key",
    "x-user-id",
)
DEFAULT_ALLOW_METHODS = ("GET", "POST", "PUT", "PATCH", "OPTIONS")


def cors_headers(allow_origin: str = "*", allow_headers: Iterable[str] = DEFAULT_ALLOW_HEADERS) -> dict:
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Headers": ", ".join(allow_headers),
    }


class EdgeCORSMiddleware(BaseHTTPMiddleware):
    """Permissive CORS for browser callers.

    Any OPTIONS request is answered here with an empty 200, before routing.
    Every other response gets the allow-origin and allow-headers headers.
    Responses built by the catch-all 500 handler never pass through here,
    so error_response sets the same headers itself.
    """

    def __init__(
        self,
        app: Callable,
        allow_origin: str = "*",
        allow_headers: Iterable[str] = DEFAULT_ALLOW_HEADERS,
        allow_methods: Iterable[str] = DEFAULT_ALLOW_METHODS,
    ) -> None:
        super().__init__(app)
        self.headers = cors_headers(allow_origin, allow_headers)
        self.allow_methods = ", ".join(allow_methods)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:  # type: ignore[override]
        if request.method == "OPTIONS":
            headers = dict(self.headers)
            headers["Access-Control-Allow-Methods"] = self.allow_methods
            return Response(status_code=200, headers=headers)

        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        return response
