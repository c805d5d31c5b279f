from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas import ScheduledJobOut
from ..services.schedule_report import schedule_status

router = APIRouter(prefix="/scheduler", tags=["scheduler"])


@router.get("/status", response_model=list[ScheduledJobOut])
def get_schedule_status(db: Session = Depends(get_db)):
    return schedule_status(db)
