from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..config import settings
from ..models import AuditEvent
from ..workers.celery_app import BEAT_JOBS


def _last_run(db: Session, action: str) -> Optional[datetime]:
    return db.scalar(select(func.max(AuditEvent.created_at)).where(AuditEvent.action == action))


def schedule_status(db: Session) -> list[dict[str, Any]]:
    """
    Beat jobs with their cron fields and the last time each one left an audit
    row. Beat itself keeps no history we can read, so the audit log stands in;
    manual runs through the API or CLI count as runs too.
    """
    out: list[dict[str, Any]] = []
    for name, (task, fields, action) in BEAT_JOBS.items():
        enabled = True
        if action == "invoice.generate_monthly":
            enabled = settings.auto_generate_invoices
        out.append(
            {
                "name": name,
                "task": task,
                "schedule": dict(fields),
                "enabled": enabled,
                "last_run": _last_run(db, action),
            }
        )
    return out
