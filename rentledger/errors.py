from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .domain.errors import InvariantViolation, InvoicingError

log = logging.getLogger("rentledger.errors")


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(InvoicingError)
    async def invoicing_error(request: Request, exc: InvoicingError) -> JSONResponse:
        return JSONResponse(status_code=exc.http_status, content={"error": exc.as_dict()})

    @app.exception_handler(InvariantViolation)
    async def invariant_violation(request: Request, exc: InvariantViolation) -> JSONResponse:
        log.error("invariant violation on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"error": {"code": "InvariantViolation", "message": "internal inconsistency; logged for investigation"}},
        )
