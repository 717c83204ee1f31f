import logging
import re
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from galley.core.logging import LOGGER_NAME, latency_bucket_ms, request_id_ctx_var
from galley.core.metrics import normalize_path

# callers may supply their own id (edge gateways do); anything odd is replaced
_CLIENT_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the duration of the request and echo it back."""

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    def _request_id(self, request) -> str:
        supplied = request.headers.get(self.header_name, "")
        return supplied if _CLIENT_ID.match(supplied) else uuid4().hex

    async def dispatch(self, request, call_next):
        rid = self._request_id(request)
        request.state.request_id = rid
        token = request_id_ctx_var.set(rid)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_ctx_var.reset(token)

        response.headers[self.header_name] = rid
        logging.getLogger(LOGGER_NAME).info(
            f"{request.method} {normalize_path(request.url.path)} -> {response.status_code}",
            extra={
                "request_id": rid,
                "event_type": "request.complete",
                "status": response.status_code,
                "latency_bucket": latency_bucket_ms((time.perf_counter() - started) * 1000),
            },
        )
        return response
