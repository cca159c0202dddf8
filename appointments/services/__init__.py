"""Utility services for the appointments app."""

from .reminders import dispatch_due_reminders, dispatch_upcoming_reminders, send_reminder_to_user

__all__ = [
    "dispatch_due_reminders",
    "dispatch_upcoming_reminders",
    "send_reminder_to_user",
]
