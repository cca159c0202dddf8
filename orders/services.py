import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from appointments.models import Appointment, DoctorAvailability
from common.choices import AppointmentStatus, OrderStatus
from common.dateutils import format_datetime
from notifications.models import Notification
from notifications.utils import notify_user

from .models import Order

logger = logging.getLogger(__name__)


def _lock_slots(doctor, availability_ids):
    """Return the requested slots in request order, locked for update."""
    slots = DoctorAvailability.objects.select_for_update().filter(pk__in=availability_ids, doctor=doctor)
    by_id = {slot.pk: slot for slot in slots}

    ordered = []
    for slot_id in availability_ids:
        slot = by_id.get(slot_id)
        if slot is None:
            raise ValidationError({'availability_ids': f"Slot {slot_id} does not belong to this doctor."})
        if not slot.is_bookable:
            raise ValidationError({'availability_ids': f"Slot {slot_id} is not available."})
        ordered.append(slot)
    return ordered


def create_order(*, client, doctor, service, number_of_sessions, amount, availability_ids=None, **extra):
    """
    Create an order and, when slots are given, one pending appointment per slot.
    """
    if number_of_sessions > service.number_of_sessions:
        raise ValidationError(
            {'number_of_sessions': f"The service only includes {service.number_of_sessions} sessions."}
        )

    availability_ids = list(availability_ids or [])
    if availability_ids and len(availability_ids) != number_of_sessions:
        raise ValidationError({'availability_ids': "Provide exactly one slot per session."})
    if len(set(availability_ids)) != len(availability_ids):
        raise ValidationError({'availability_ids': "Slots must not repeat."})

    with transaction.atomic():
        slots = _lock_slots(doctor, availability_ids) if availability_ids else []
        order = Order.objects.create(
            client=client,
            doctor=doctor,
            service=service,
            number_of_sessions=number_of_sessions,
            amount=amount,
            availability_ids=availability_ids,
            **extra,
        )
        for index, slot in enumerate(slots, start=1):
            Appointment.objects.create(
                order=order,
                availability=slot,
                session_number=index,
                scheduled_at=slot.starts_at,
                status=AppointmentStatus.PENDING,
            )

    logger.info("Created order %s for client %s with %s booked slots", order.pk, client.pk, len(slots))
    return order


def change_order_status(order, new_status):
    """Change the order status and tell the client when their package is confirmed."""
    created = order.change_status(new_status)

    if order.previous_status == OrderStatus.PENDING and new_status == OrderStatus.CONFIRMED:
        first = order.appointments.order_by('session_number').first()
        when = f" Your first session is at {format_datetime(first.scheduled_at)}." if first else ""
        notify_user(
            order.client.user,
            title="Order confirmed",
            message=f"Your {order.service.name} package with {order.doctor.full_name} is confirmed.{when}",
            type_=Notification.Type.ORDER_CONFIRMED,
        )
    return created
