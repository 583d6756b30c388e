import logging
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from shopledger.core.admin_auth import ADMIN_HEADER, SHOP_HEADER
from shopledger.core.logging import request_id_ctx_var, latency_bucket_ms


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Attach a request_id to each request and log completion.

    The completion log also carries the shop and admin the request acted
    for, as forwarded by the auth gateway, so admin traffic can be traced
    per shop even when the request failed before reaching a handler.
    """

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        rid = request.headers.get(self.header_name) or str(uuid4())
        request.state.request_id = rid
        token = request_id_ctx_var.set(rid)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_ctx_var.reset(token)
        duration_ms = (time.perf_counter() - start) * 1000

        response.headers[self.header_name] = rid

        logging.getLogger("shopledger").info(
            "request.complete",
            extra={
                "request_id": rid,
                "shop_id": request.headers.get(SHOP_HEADER) or None,
                "admin_id": request.headers.get(ADMIN_HEADER) or None,
                "path": request.url.path,
                "method": request.method,
                "status": getattr(response, "status_code", None),
                "latency_bucket": latency_bucket_ms(duration_ms),
            },
        )
        return response
