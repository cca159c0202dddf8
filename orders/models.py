import logging
from datetime import timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models, transaction
from django.utils import timezone

from client_profile.models import ClientProfile
from common.choices import AppointmentStatus, OrderStatus, PaymentMethod, PaymentStatus
from common.models import BaseModel
from doctors.models import Doctor
from medical_services.models import Service

logger = logging.getLogger(__name__)

SESSION_INTERVAL = timedelta(weeks=1)


def first_session_time(now=None):
    """Tomorrow at the current time of day, truncated to the minute."""
    now = now or timezone.now()
    return (now + timedelta(days=1)).replace(second=0, microsecond=0)


class Order(BaseModel):
    """
    A service package bought by a client; tracks completed vs. total sessions.
    """
    client = models.ForeignKey(ClientProfile, on_delete=models.PROTECT, related_name='orders')
    doctor = models.ForeignKey(Doctor, on_delete=models.PROTECT, related_name='orders')
    service = models.ForeignKey(Service, on_delete=models.PROTECT, related_name='orders')
    number_of_sessions = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    completed_sessions = models.PositiveIntegerField(default=0)
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0'))])
    payment_method = models.CharField(max_length=10, choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    payment_status = models.CharField(max_length=10, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    paid_at = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=15, choices=OrderStatus.choices, default=OrderStatus.PENDING)
    notes = models.TextField(blank=True)
    availability_ids = models.JSONField(default=list, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status']),
            models.Index(fields=['payment_status']),
        ]

    def __str__(self):
        return f"Order #{self.pk} | {self.client} | {self.service.name} | {self.status}"

    @property
    def remaining_sessions(self):
        return max(self.number_of_sessions - self.completed_sessions, 0)

    # -----------------------------
    # Appointment generation
    # -----------------------------
    def generate_appointments(self, now=None):
        """
        Create ``number_of_sessions`` weekly appointments starting tomorrow.

        Does nothing when the order already has appointments.
        """
        if self.appointments.exists():
            return []

        Appointment = self.appointments.model
        start = first_session_time(now)
        created = [
            Appointment.objects.create(
                order=self,
                session_number=index,
                scheduled_at=start + (index - 1) * SESSION_INTERVAL,
                status=AppointmentStatus.PENDING,
            )
            for index in range(1, self.number_of_sessions + 1)
        ]
        logger.info("Generated %s appointments for order %s", len(created), self.pk)
        return created

    def change_status(self, new_status, now=None):
        """
        Move the order to ``new_status`` with the row locked.

        Confirming a pending order that has no appointments yet generates them.
        Returns the list of appointments created; the status read under the lock
        is kept on ``previous_status``.
        """
        if new_status not in OrderStatus.values:
            raise ValidationError({'status': f"Invalid status '{new_status}'."})

        now = now or timezone.now()
        created = []
        with transaction.atomic():
            order = Order.objects.select_for_update().get(pk=self.pk)
            previous = order.status
            order.status = new_status
            update_fields = ['status', 'updated_at']

            if previous == OrderStatus.PENDING and new_status == OrderStatus.CONFIRMED:
                created = order.generate_appointments(now=now)
                if order.started_at is None:
                    order.started_at = now
                    update_fields.append('started_at')

            if new_status == OrderStatus.COMPLETED and order.completed_at is None:
                order.completed_at = now
                update_fields.append('completed_at')

            order.save(update_fields=update_fields)

        self.refresh_from_db()
        self.previous_status = previous
        return created

    # -----------------------------
    # Progress rollup
    # -----------------------------
    def recompute_progress(self, now=None):
        """
        Recount completed appointments and derive the order status from them.
        """
        now = now or timezone.now()
        with transaction.atomic():
            order = Order.objects.select_for_update().get(pk=self.pk)
            completed = order.appointments.filter(status=AppointmentStatus.COMPLETED).count()
            cancelled = order.appointments.filter(status=AppointmentStatus.CANCELLED).count()

            order.completed_sessions = completed
            update_fields = ['completed_sessions', 'updated_at']

            if order.status != OrderStatus.CANCELLED:
                if completed >= order.number_of_sessions:
                    order.status = OrderStatus.COMPLETED
                    if order.completed_at is None:
                        order.completed_at = now
                elif completed > 0:
                    order.status = OrderStatus.IN_PROGRESS
                    order.completed_at = None
                elif cancelled >= order.number_of_sessions:
                    order.status = OrderStatus.CANCELLED
                elif order.status in (OrderStatus.COMPLETED, OrderStatus.IN_PROGRESS):
                    # every completion was undone
                    order.status = OrderStatus.CONFIRMED
                    order.completed_at = None
                update_fields += ['status', 'completed_at']

            order.save(update_fields=update_fields)

        logger.info(
            "Order %s progress: %s/%s completed, status %s",
            order.pk,
            order.completed_sessions,
            order.number_of_sessions,
            order.status,
        )
        self.refresh_from_db()
        return self

    def mark_paid(self, now=None):
        self.payment_status = PaymentStatus.PAID
        if self.paid_at is None:
            self.paid_at = now or timezone.now()
        self.save(update_fields=['payment_status', 'paid_at', 'updated_at'])
