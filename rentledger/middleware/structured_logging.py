from __future__ import annotations

import json
import logging
import time
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

log = logging.getLogger("rentledger.request")


def _json_log(payload: dict) -> None:
    # one JSON line per request
    log.info(json.dumps(payload, default=str))


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Emits one structured log line per request with:
      request_id, method, path, status_code, latency_ms

    Must sit inside RequestIDMiddleware so request.state.request_id is set.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        t0 = time.time()
        request_id: Optional[str] = getattr(request.state, "request_id", None)

        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            latency_ms = int((time.time() - t0) * 1000)

            _json_log(
                {
                    "event": "http_request",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "query": str(request.url.query) if request.url.query else "",
                    "status_code": status_code,
                    "latency_ms": latency_ms,
                }
            )
