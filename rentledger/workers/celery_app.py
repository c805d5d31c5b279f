from __future__ import annotations

from celery import Celery
from celery.schedules import crontab

from ..config import settings

BROKER = settings.celery_broker_url or "redis://localhost:6379/0"
BACKEND = settings.celery_result_backend or "redis://localhost:6379/1"

celery_app = Celery(
    "rentledger",
    broker=BROKER,
    backend=BACKEND,
    include=["rentledger.workers.invoice_tasks"],
)

celery_app.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_reject_on_worker_lost=True,
    task_track_started=True,
    timezone="UTC",
)

celery_app.conf.task_routes = {
    "rentledger.workers.invoice_tasks.*": {"queue": "invoicing"},
}

# name -> (task, crontab fields, audit action the task leaves behind)
BEAT_JOBS: dict[str, tuple[str, dict[str, int], str]] = {
    "recheck-overdue-daily": (
        "rentledger.workers.invoice_tasks.recheck_overdue",
        {"hour": settings.overdue_recheck_hour, "minute": 0},
        "invoice.overdue_sweep",
    ),
    "generate-monthly-invoices": (
        "rentledger.workers.invoice_tasks.generate_current_month",
        {"day_of_month": 1, "hour": 0, "minute": 15},
        "invoice.generate_monthly",
    ),
}

# The invoicing core never schedules itself; beat is the external clock.
celery_app.conf.beat_schedule = {
    name: {"task": task, "schedule": crontab(**fields)} for name, (task, fields, _) in BEAT_JOBS.items()
}
