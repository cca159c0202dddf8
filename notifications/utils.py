"""Utility helpers for working with notifications."""

import logging

from django.conf import settings
from django.core.mail import send_mail

from users.models import User

from .models import Notification

logger = logging.getLogger(__name__)


def notify_user(user, title, message, type_=Notification.Type.GENERAL, link=None):
    """
    Store an in-app notification; failures are logged and never interrupt the caller.
    """
    try:
        return Notification.send(user=user, title=title, message=message, type_=type_, link=link)
    except Exception as exc:
        logger.error("Failed to create notification for user %s: %s", user.pk, exc)
        return None


def notify_staff(title, message, type_=Notification.Type.GENERAL):
    sent = 0
    for staff_user in User.objects.filter(is_staff=True, is_active=True):
        if notify_user(staff_user, title, message, type_=type_) is not None:
            sent += 1
    return sent


def send_email_notification(user, title, message):
    """Send ``message`` to the user's email address; raises on transport errors."""
    if not user.email:
        raise ValueError(f"User {user.pk} has no email address.")
    send_mail(
        subject=title,
        message=message,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[user.email],
        fail_silently=False,
    )
