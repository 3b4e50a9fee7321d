"""Operational endpoint to run reminder scans on demand."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.concurrency import run_in_threadpool

from app.application.use_cases.notifications import ReminderScheduler
from app.interfaces.api.dependencies import get_reminder_scheduler
from app.interfaces.api.schemas import ReminderTriggerRead

router = APIRouter(prefix="/reminders", tags=["reminders"])

TRIGGER_CHECKS = "checks"


@router.post("/trigger", response_model=ReminderTriggerRead)
async def trigger_reminders(
    job: str = Query(TRIGGER_CHECKS, description="Job name, or 'checks' for due + reminder scans"),
    reminders: ReminderScheduler = Depends(get_reminder_scheduler),
) -> ReminderTriggerRead:
    """Run one reminder job synchronously and report what it created."""

    if job == TRIGGER_CHECKS:
        created = await run_in_threadpool(reminders.trigger_checks)
        return ReminderTriggerRead(job=job, created=created)

    if job not in reminders.jobs:
        allowed = ", ".join([TRIGGER_CHECKS, *sorted(reminders.jobs)])
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown job '{job}'. Expected one of: {allowed}",
        )
    count = await run_in_threadpool(reminders.run_job, job)
    return ReminderTriggerRead(job=job, created={job: count})
