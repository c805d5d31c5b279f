from __future__ import annotations

from typing import Any, Optional


class InvoicingError(Exception):
    """
    Base for every classified invoicing failure.

    `code` is the machine-readable kind surfaced at the HTTP boundary;
    `http_status` is what the exception handler answers with.
    """

    code = "InvoicingError"
    http_status = 400

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            out["details"] = self.details
        return out


class UnknownCurrency(InvoicingError):
    code = "UnknownCurrency"
    http_status = 422


class CurrencyMismatch(InvoicingError):
    code = "CurrencyMismatch"
    http_status = 422


class InvalidAmount(InvoicingError):
    code = "InvalidAmount"
    http_status = 422


class Overpayment(InvoicingError):
    code = "Overpayment"
    http_status = 422


class DuplicateInvoice(InvoicingError):
    code = "DuplicateInvoice"
    http_status = 409


class NotFound(InvoicingError):
    code = "NotFound"
    http_status = 404


class InvariantViolation(Exception):
    """
    Internal inconsistency (e.g. a rate table whose base rate isn't 1).
    Not bad input: answered with 500 and logged with a traceback.
    """
