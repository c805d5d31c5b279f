from __future__ import annotations

import re
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Iterator, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

HEADER = "X-Request-ID"
_SAFE_ID = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")


def get_request_id() -> str | None:
    return request_id_ctx.get()


def clean_request_id(raw: Optional[str]) -> str:
    """Caller-supplied ids end up in every log line; anything odd is replaced."""
    rid = (raw or "").strip()
    return rid if _SAFE_ID.match(rid) else str(uuid.uuid4())


@contextmanager
def bind_request_id(rid: Optional[str]) -> Iterator[str]:
    """Correlation id outside HTTP, e.g. a Celery task id for a beat run."""
    value = clean_request_id(rid)
    token = request_id_ctx.set(value)
    try:
        yield value
    finally:
        request_id_ctx.reset(token)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Tags each request with an id, echoed back in X-Request-ID.

    An incoming X-Request-ID is reused when it looks like an id, so a
    payment retried by a client can be traced across attempts.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        with bind_request_id(request.headers.get(HEADER)) as rid:
            request.state.request_id = rid
            resp = await call_next(request)
            resp.headers[HEADER] = rid
            return resp
