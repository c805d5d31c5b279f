from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..config import settings
from ..db import SessionLocal
from ..domain.types import BillingPeriod
from ..logging_config import log_context
from ..middleware.request_id import bind_request_id
from ..services import invoice_lifecycle as lifecycle
from .celery_app import celery_app

log = logging.getLogger("rentledger.workers")


@celery_app.task(bind=True, name="rentledger.workers.invoice_tasks.recheck_overdue")
def recheck_overdue(self) -> dict:
    with bind_request_id(getattr(self.request, "id", None)), log_context(task="recheck_overdue"):
        db = SessionLocal()
        try:
            sweep = lifecycle.recheck_overdue_all(db)
            return {"checked": sweep.checked, "marked_overdue": sweep.marked_overdue}
        finally:
            db.close()


@celery_app.task(bind=True, name="rentledger.workers.invoice_tasks.generate_current_month")
def generate_current_month(self, year: Optional[int] = None, month: Optional[int] = None) -> dict:
    """
    Idempotent, so beat retries or a manual re-run for the same month only
    report skips. Does nothing while auto_generate_invoices is off.
    """
    today = datetime.utcnow().date()
    period = BillingPeriod(year or today.year, month or today.month)

    with bind_request_id(getattr(self.request, "id", None)), log_context(task="generate_current_month", period=str(period)):
        if not settings.auto_generate_invoices:
            log.info("auto invoice generation is disabled")
            return {"period": str(period), "disabled": True}

        db = SessionLocal()
        try:
            res = lifecycle.generate_monthly(db, period=period)
            return {
                "period": str(period),
                "disabled": False,
                "created": len(res.created),
                "skipped": len(res.skipped),
                "failed": [{"tenancy_id": f.tenancy_id, "code": f.code} for f in res.failures],
            }
        finally:
            db.close()
