import logging

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction

from common.utils import generate_password
from users.models import User

from .models import ClientProfile

logger = logging.getLogger(__name__)


def create_client(*, email=None, full_name="", password=None, phone_number="", **profile_fields):
    """Create a client user and its profile.

    The username is the email, or ``google-<google_id>`` for accounts that
    only come from Google sign-in. When ``password`` is omitted a random one
    is generated. Returns ``(profile, password)``.
    """
    password = password or generate_password()
    username = email or f"google-{profile_fields.get('google_id')}"

    with transaction.atomic():
        user = User.objects.create_user(
            username=username,
            password=password,
            email=email,
            full_name=full_name or "",
            phone_number=phone_number or "",
        )
        profile = ClientProfile.objects.create(user=user, **profile_fields)

    logger.info("Created client profile %s for user %s", profile.pk, user.pk)
    return profile, password


def send_generated_password(user, password):
    """Email a back-office generated password to the client."""
    try:
        send_mail(
            subject="Your MindBridge account",
            message=(
                f"Hello {user.get_full_name()},\n\n"
                f"An account has been created for you.\n"
                f"Email: {user.email}\nPassword: {password}\n\n"
                "Please change your password after your first login."
            ),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[user.email],
            fail_silently=False,
        )
    except Exception as exc:
        logger.warning("Failed to email generated password to %s: %s", user.email, exc)
        return False
    return True
