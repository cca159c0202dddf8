"""Celery tasks for the appointments app."""

import logging
from datetime import timedelta
from typing import Optional

from celery import shared_task

from appointments.services import dispatch_due_reminders, dispatch_upcoming_reminders

logger = logging.getLogger("celery")


@shared_task(name="appointments.tasks.dispatch_due_reminders_task")
def dispatch_due_reminders_task():
    """Send every scheduled reminder that has come due."""

    summary = dispatch_due_reminders()
    logger.info("dispatch_due_reminders_task: %s sent, %s failed", summary["sent"], summary["failed"])
    return {
        "processed": summary["processed"],
        "sent": summary["sent"],
        "failed": summary["failed"],
        "errors": len(summary["errors"]),
    }


@shared_task(name="appointments.tasks.send_appointment_reminders_task")
def send_appointment_reminders_task(window_minutes: Optional[float] = None):
    """Schedule-friendly wrapper around ``dispatch_upcoming_reminders``."""

    window = None
    if window_minutes is not None:
        window = timedelta(minutes=float(window_minutes))
    summary = dispatch_upcoming_reminders(window=window)
    return {"processed": summary["processed"], "errors": len(summary["errors"])}


__all__ = [
    "dispatch_due_reminders_task",
    "send_appointment_reminders_task",
]
