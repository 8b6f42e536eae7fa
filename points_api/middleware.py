"""
Request logging middleware.

One log line per request with method, path, status, latency and a request
id. When the response carries an Idempotency-Key (a created transfer) the
key is logged too, so a request line can be matched to the transfer
record and its ledger entries. The request id is returned to the client in
the X-Request-ID header and kept on request.state.

Server errors (5xx) are logged at WARNING, everything else at INFO.

Log format:
    [POST] /transfers -> 201 (12ms) req_a1b2c3d4e5f6 idem=0f1e2d3c-...
"""

import logging
import secrets
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("points_api.request")

REQUEST_ID_HEADER = "X-Request-ID"
IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = f"req_{secrets.token_hex(6)}"
        request.state.request_id = request_id

        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        response.headers[REQUEST_ID_HEADER] = request_id

        message = "[%s] %s -> %d (%.0fms) %s"
        args = [request.method, request.url.path, response.status_code, elapsed_ms, request_id]
        idem_key = response.headers.get(IDEMPOTENCY_KEY_HEADER)
        if idem_key:
            message += " idem=%s"
            args.append(idem_key)

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(level, message, *args)
        return response
