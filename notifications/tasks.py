from celery import shared_task

from .sms_utils import really_send_sms


@shared_task(bind=True, default_retry_delay=60, max_retries=3)
def send_sms_task(self, phone_number, message):
    """
    Send one SMS through the configured provider, retrying on failure.
    """
    try:
        really_send_sms(phone_number, message)
    except Exception as exc:
        raise self.retry(exc=exc)
