"""Service helpers for sending appointment reminders."""

import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Iterable, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from appointments.models import Appointment
from common.choices import AppointmentStatus, ReminderStatus
from common.dateutils import format_datetime
from notifications.models import Notification, Reminder
from notifications.sms_utils import really_send_sms
from notifications.utils import send_email_notification

logger = logging.getLogger(__name__)

UPCOMING_STATUSES = (
    AppointmentStatus.PENDING,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.RESCHEDULED,
)


@dataclass
class ReminderDispatchResult:
    """Represents the channels that were used to notify a user."""

    push_attempted: bool = False
    push_sent: bool = False
    push_error: Optional[Exception] = None
    sms_attempted: bool = False
    sms_sent: bool = False
    sms_error: Optional[Exception] = None
    email_attempted: bool = False
    email_sent: bool = False
    email_error: Optional[Exception] = None


def resolve_user_channel_preferences(user) -> Dict[str, bool]:
    """Return a mapping of enabled notification channels for ``user``."""

    preferences = {"push": True, "sms": True, "email": True}
    profile = getattr(user, "client_profile", None)
    if profile is not None:
        preferences["push"] = profile.receive_push_notifications
        preferences["sms"] = profile.receive_sms_notifications
        preferences["email"] = profile.receive_email_notifications
    return preferences


def send_reminder_to_user(
    *,
    user,
    title: str,
    message: str,
    sms_message: Optional[str] = None,
    channels: Iterable[str] = ("push", "sms"),
) -> ReminderDispatchResult:
    """Send a reminder message to ``user`` on ``channels`` honouring their preferences."""

    preferences = resolve_user_channel_preferences(user)
    result = ReminderDispatchResult()
    channels = set(channels)

    if "push" in channels and preferences.get("push", True):
        result.push_attempted = True
        try:
            Notification.send(
                user=user,
                title=title,
                message=message,
                type_=Notification.Type.APPOINTMENT_REMINDER,
            )
            result.push_sent = True
        except Exception as exc:
            result.push_error = exc

    if "sms" in channels and preferences.get("sms", True) and user.phone_number:
        result.sms_attempted = True
        try:
            really_send_sms(user.phone_number, sms_message or message)
            result.sms_sent = True
        except Exception as exc:
            result.sms_error = exc

    if "email" in channels and preferences.get("email", True) and user.email:
        result.email_attempted = True
        try:
            send_email_notification(user, title, message)
            result.email_sent = True
        except Exception as exc:
            result.email_error = exc

    return result


def _resolve_default_window() -> timedelta:
    """Determine the default reminder window from settings or the environment."""

    configured = getattr(settings, "APPOINTMENT_REMINDER_WINDOW", None)
    if isinstance(configured, timedelta):
        return configured
    if configured not in (None, ""):
        try:
            return timedelta(minutes=float(configured))
        except (TypeError, ValueError):
            logger.warning(
                "Invalid APPOINTMENT_REMINDER_WINDOW %r in settings; using fallback.",
                configured,
            )

    env_value = os.getenv("APPOINTMENT_REMINDER_WINDOW")
    if env_value not in (None, ""):
        try:
            return timedelta(minutes=float(env_value))
        except (TypeError, ValueError):
            logger.warning(
                "Invalid APPOINTMENT_REMINDER_WINDOW %r in environment; using fallback.",
                env_value,
            )

    return timedelta(hours=1)


def _reminder_text(appointment: Appointment) -> Dict[str, str]:
    when = format_datetime(appointment.scheduled_at)
    order = appointment.order
    return {
        "title": "Appointment reminder",
        "message": (
            f"Session {appointment.session_number}/{order.number_of_sessions} of "
            f"{order.service.name} with {order.doctor.full_name} is at {when}."
        ),
        "sms_message": f"Reminder: {order.service.name} session at {when}.",
    }


def _record(summary: Dict[str, Any], channel: str, sent: bool, error, **context) -> None:
    bucket = summary["notifications"][channel]
    if sent:
        bucket["sent"] += 1
        logger.info("Sent %s reminder %s", channel, context)
        return
    bucket["failed"] += 1
    summary["errors"].append({**context, "channel": channel, "error": str(error)})
    if error is not None:
        logger.error(
            "Failed to send %s reminder %s: %s",
            channel,
            context,
            error,
            exc_info=(type(error), error, error.__traceback__),
        )


def _empty_summary(**extra) -> Dict[str, Any]:
    return {
        "processed": 0,
        "notifications": {
            "push": {"sent": 0, "failed": 0},
            "sms": {"sent": 0, "failed": 0},
            "email": {"sent": 0, "failed": 0},
        },
        "errors": [],
        **extra,
    }


# -----------------------------
# Scheduled Reminder records
# -----------------------------
def _get_due_reminders(now) -> Iterable[Reminder]:
    return (
        Reminder.objects.filter(status=ReminderStatus.PENDING, scheduled_send__lte=now)
        .select_related(
            "client__user",
            "appointment__order__service",
            "appointment__order__doctor",
        )
        .order_by("scheduled_send")
    )


def dispatch_due_reminders(*, now=None) -> Dict[str, Any]:
    """Send every pending reminder whose ``scheduled_send`` has passed."""

    now = now or timezone.now()
    summary = _empty_summary(sent=0, failed=0)

    for reminder in list(_get_due_reminders(now)):
        user = reminder.client.user
        text = _reminder_text(reminder.appointment)
        result = send_reminder_to_user(user=user, channels=(reminder.type,), **text)

        attempted = getattr(result, f"{reminder.type}_attempted")
        sent = getattr(result, f"{reminder.type}_sent")
        error = getattr(result, f"{reminder.type}_error")
        if not attempted:
            error = RuntimeError(f"{reminder.type} channel is disabled or unavailable for user {user.pk}")
        _record(summary, reminder.type, sent, error, reminder_id=reminder.pk, user_id=user.pk)

        with transaction.atomic():
            if sent:
                reminder.status = ReminderStatus.SENT
                reminder.sent_at = now
                summary["sent"] += 1
            else:
                reminder.status = ReminderStatus.FAILED
                summary["failed"] += 1
            reminder.save(update_fields=["status", "sent_at", "updated_at"])

        summary["processed"] += 1

    logger.info(
        "Reminder dispatch finished: %s processed, %s sent, %s failed",
        summary["processed"],
        summary["sent"],
        summary["failed"],
    )
    return summary


# -----------------------------
# Upcoming appointment sweep
# -----------------------------
def _get_upcoming_appointments(*, window: timedelta) -> Iterable[Appointment]:
    now = timezone.now()
    return (
        Appointment.objects.filter(
            status__in=UPCOMING_STATUSES,
            scheduled_at__gte=now,
            scheduled_at__lte=now + window,
            is_reminder_sent=False,
        )
        .select_related("order__client__user", "order__doctor", "order__service")
        .order_by("scheduled_at")
    )


def dispatch_upcoming_reminders(*, window: Optional[timedelta] = None) -> Dict[str, Any]:
    """Remind clients of appointments starting within ``window``."""

    if window is None:
        window = _resolve_default_window()

    summary = _empty_summary(window=window)

    for appointment in list(_get_upcoming_appointments(window=window)):
        client_user = appointment.order.client.user
        result = send_reminder_to_user(user=client_user, **_reminder_text(appointment))

        context = {"appointment_id": appointment.pk, "user_id": client_user.pk}
        if result.push_attempted:
            _record(summary, "push", result.push_sent, result.push_error, **context)
        if result.sms_attempted:
            _record(summary, "sms", result.sms_sent, result.sms_error, **context)

        with transaction.atomic():
            appointment.is_reminder_sent = True
            appointment.save(update_fields=["is_reminder_sent"])

        summary["processed"] += 1

    return summary


__all__ = [
    "ReminderDispatchResult",
    "dispatch_due_reminders",
    "dispatch_upcoming_reminders",
    "resolve_user_channel_preferences",
    "send_reminder_to_user",
]
