import logging
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from mathstreak.core.logging import latency_bucket_ms, request_id_ctx_var


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request id (incoming header or fresh uuid) for every request."""

    def __init__(self, app, header_name: str = "x-request-id", profile: str = "production"):
        super().__init__(app)
        self.header_name = header_name
        self.profile = profile

    async def dispatch(self, request, call_next):
        rid = request.headers.get(self.header_name) or str(uuid4())
        request.state.request_id = rid
        token = request_id_ctx_var.set(rid)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_ctx_var.reset(token)

        response.headers[self.header_name] = rid
        logging.getLogger("mathstreak").info(
            "request.complete",
            extra={
                "request_id": rid,
                "profile": self.profile,
                "event_type": "http.request",
                "path": request.url.path,
                "method": request.method,
                "status": response.status_code,
                "latency_bucket": latency_bucket_ms((time.perf_counter() - start) * 1000),
            },
        )
        return response
