import logging

from celery import shared_task

from common.dateutils import format_datetime
from notifications.models import Notification
from notifications.utils import notify_staff

from .models import Review

logger = logging.getLogger("celery")


@shared_task
def notify_staff_of_new_review_task(review_id):
    """
    Tell every active staff member that a client rated a session.
    """
    try:
        review = Review.objects.select_related(
            'client__user', 'appointment__order__doctor', 'appointment__order__service'
        ).get(pk=review_id)
    except Review.DoesNotExist:
        logger.error(f"Review {review_id} not found for staff notification.")
        return 0

    order = review.appointment.order
    title = "New review"
    message = (
        f"{review.client.full_name} rated {order.service.name} with {order.doctor.full_name} "
        f"{review.rating}/5 (session {review.appointment.session_number}, "
        f"{format_datetime(review.appointment.scheduled_at)})."
    )
    sent = notify_staff(title, message, type_=Notification.Type.NEW_REVIEW)
    logger.info(f"Review {review_id} notification sent to {sent} staff users.")
    return sent
