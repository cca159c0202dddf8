import logging
from datetime import datetime

from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver
from django.utils import timezone

from common.choices import AppointmentStatus, AvailabilityStatus
from common.dateutils import format_datetime
from common.models import BaseModel
from common.utils import send_sms
from common.validators import validate_slot_time
from doctors.models import Doctor
from notifications.models import Notification
from notifications.utils import notify_user
from orders.models import Order

logger = logging.getLogger(__name__)


class DoctorAvailability(BaseModel):
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='availabilities')
    available_date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    status = models.CharField(max_length=10, choices=AvailabilityStatus.choices, default=AvailabilityStatus.AVAILABLE)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ['available_date', 'start_time']
        verbose_name_plural = 'doctor availabilities'
        constraints = [
            models.UniqueConstraint(
                fields=['doctor', 'available_date', 'start_time', 'end_time'],
                name='unique_doctor_availability_slot',
            ),
        ]

    def clean(self):
        validate_slot_time(self.start_time, self.end_time)

    def __str__(self):
        return f"{self.doctor} | {self.available_date} {self.start_time}-{self.end_time} | {self.status}"

    @property
    def starts_at(self):
        naive = datetime.combine(self.available_date, self.start_time)
        return timezone.make_aware(naive) if timezone.is_naive(naive) else naive

    @property
    def is_bookable(self):
        return self.is_active and self.status == AvailabilityStatus.AVAILABLE


class Appointment(BaseModel):
    """
    One session of an order. ``session_number`` runs from 1 to the order's
    ``number_of_sessions``.
    """
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='appointments')
    availability = models.ForeignKey(
        DoctorAvailability,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='appointments',
    )
    session_number = models.PositiveIntegerField()
    scheduled_at = models.DateTimeField()
    status = models.CharField(max_length=15, choices=AppointmentStatus.choices, default=AppointmentStatus.PENDING)
    notes = models.TextField(blank=True)
    completion_notes = models.TextField(blank=True)
    is_reminder_sent = models.BooleanField(default=False)

    class Meta:
        ordering = ['order', 'session_number']
        constraints = [
            models.UniqueConstraint(fields=['order', 'session_number'], name='unique_order_session_number'),
        ]
        indexes = [
            models.Index(fields=['scheduled_at']),
            models.Index(fields=['status']),
        ]

    def __str__(self):
        return f"Order #{self.order_id} session {self.session_number} | {self.scheduled_at} | {self.status}"

    @property
    def client(self):
        return self.order.client

    @property
    def doctor(self):
        return self.order.doctor

    @property
    def service(self):
        return self.order.service

    @property
    def is_closed(self):
        return self.status in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED)

    # -----------------------------
    # State transitions
    # -----------------------------
    def complete(self, completion_notes=None):
        if self.status == AppointmentStatus.COMPLETED:
            raise ValidationError("Appointment is already completed.")
        if self.status == AppointmentStatus.CANCELLED:
            raise ValidationError("A cancelled appointment cannot be completed.")

        with transaction.atomic():
            self.status = AppointmentStatus.COMPLETED
            update_fields = ['status', 'updated_at']
            if completion_notes is not None:
                self.completion_notes = completion_notes
                update_fields.append('completion_notes')
            self.save(update_fields=update_fields)
            self.order.recompute_progress()
        return self

    def cancel(self):
        if self.status == AppointmentStatus.CANCELLED:
            raise ValidationError("Appointment is already cancelled.")
        if self.status == AppointmentStatus.COMPLETED:
            raise ValidationError("A completed appointment cannot be cancelled.")

        with transaction.atomic():
            self.status = AppointmentStatus.CANCELLED
            self.save(update_fields=['status', 'updated_at'])
            self.order.recompute_progress()

        self._send_cancellation_notification()
        return self

    def update_status(self, new_status, notes=None, completion_notes=None):
        if new_status not in AppointmentStatus.values:
            raise ValidationError({'status': f"Invalid status '{new_status}'."})

        previous = self.status
        with transaction.atomic():
            self.status = new_status
            update_fields = ['status', 'updated_at']
            if notes is not None:
                self.notes = notes
                update_fields.append('notes')
            if completion_notes is not None:
                self.completion_notes = completion_notes
                update_fields.append('completion_notes')
            self.save(update_fields=update_fields)

            touches_completion = AppointmentStatus.COMPLETED in (previous, new_status)
            touches_cancellation = AppointmentStatus.CANCELLED in (previous, new_status)
            if previous != new_status and (touches_completion or touches_cancellation):
                self.order.recompute_progress()
        return self

    def reschedule(self, new_scheduled_at):
        if new_scheduled_at is None:
            raise ValidationError({'new_scheduled_at': "new_scheduled_at is required."})

        previous = self.status
        with transaction.atomic():
            self.scheduled_at = new_scheduled_at
            self.status = AppointmentStatus.RESCHEDULED
            self.is_reminder_sent = False
            self.save(update_fields=['scheduled_at', 'status', 'is_reminder_sent', 'updated_at'])
            if previous in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED):
                self.order.recompute_progress()

        notify_user(
            self.order.client.user,
            title="Appointment rescheduled",
            message=(
                f"Session {self.session_number} of {self.order.service.name} with "
                f"{self.order.doctor.full_name} is now at {format_datetime(self.scheduled_at)}."
            ),
            type_=Notification.Type.APPOINTMENT_RESCHEDULED,
        )
        return self

    def _send_cancellation_notification(self):
        client = self.order.client
        message = (
            f"Session {self.session_number} of {self.order.service.name} "
            f"on {format_datetime(self.scheduled_at)} was cancelled."
        )
        notify_user(
            client.user,
            title="Appointment cancelled",
            message=message,
            type_=Notification.Type.APPOINTMENT_CANCELLED,
        )
        if client.receive_sms_notifications:
            send_sms(client.phone, message)


# -----------------------------
# Availability slot bookkeeping
# -----------------------------
def _sync_availability_state(availability_id):
    """Mark a slot booked while it has active appointments; blocked slots are left alone."""

    if not availability_id:
        return

    slot = DoctorAvailability.objects.filter(pk=availability_id).first()
    if slot is None or slot.status == AvailabilityStatus.BLOCKED:
        return

    has_active = slot.appointments.exclude(status=AppointmentStatus.CANCELLED).exists()
    target = AvailabilityStatus.BOOKED if has_active else AvailabilityStatus.AVAILABLE
    if slot.status != target:
        slot.status = target
        slot.save(update_fields=['status', 'updated_at'])


@receiver(pre_save, sender=Appointment)
def remember_previous_availability(sender, instance, **kwargs):
    instance._previous_availability_id = None
    if instance.pk:
        instance._previous_availability_id = (
            Appointment.objects.filter(pk=instance.pk).values_list('availability_id', flat=True).first()
        )


@receiver(post_save, sender=Appointment)
def sync_availability_on_save(sender, instance, **kwargs):
    previous = getattr(instance, '_previous_availability_id', None)
    if previous and previous != instance.availability_id:
        _sync_availability_state(previous)
    _sync_availability_state(instance.availability_id)


@receiver(post_delete, sender=Appointment)
def release_availability_on_delete(sender, instance, **kwargs):
    _sync_availability_state(instance.availability_id)
