import logging
import secrets
import string

from rest_framework.exceptions import NotFound, ValidationError

from notifications.tasks import send_sms_task

logger = logging.getLogger("common")


def send_sms(phone_number: str, message: str):
    """
    Queue an SMS through Celery. Gateway errors are logged, never raised to the caller.
    """
    if not phone_number:
        logger.info("No phone number provided, skip SMS.")
        return
    try:
        send_sms_task.delay(phone_number, message)
    except Exception as e:
        logger.warning("SMS sending failed for %s: %s", phone_number, e)


def generate_password(length: int = 12) -> str:
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def get_search_term(request, param: str = "searchTerm") -> str:
    term = (request.query_params.get(param) or "").strip()
    if not term:
        raise ValidationError({param: "Search term is required."})
    return term


def ensure_found(queryset, message: str = "No results found."):
    """Raise 404 for an empty search result, otherwise return the queryset."""
    if not queryset.exists():
        raise NotFound(message)
    return queryset
