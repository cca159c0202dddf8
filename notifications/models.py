from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from common.choices import ReminderStatus, ReminderType
from common.models import BaseModel


class Notification(models.Model):
    """
    In-app notification shown to a user.
    """

    class Type(models.TextChoices):
        GENERAL = "general", "General"
        APPOINTMENT_REMINDER = "appointment_reminder", "Appointment Reminder"
        APPOINTMENT_CANCELLED = "appointment_cancelled", "Appointment Cancelled"
        APPOINTMENT_RESCHEDULED = "appointment_rescheduled", "Appointment Rescheduled"
        ORDER_CONFIRMED = "order_confirmed", "Order Confirmed"
        NEW_REVIEW = "new_review", "New Review"

    class Status(models.TextChoices):
        UNREAD = "unread", "Unread"
        READ = "read", "Read"

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notifications")
    title = models.CharField(max_length=200)
    message = models.TextField()
    type = models.CharField(max_length=50, choices=Type.choices, default=Type.GENERAL)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.UNREAD)
    link = models.URLField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.user.get_full_name()} - {self.title}"

    @staticmethod
    def send(user, title, message, type_=Type.GENERAL, *, link=None):
        return Notification.objects.create(
            user=user,
            title=title,
            message=message,
            type=type_,
            link=link,
        )


class Reminder(BaseModel):
    """
    A reminder to send to a client about one of their appointments.
    """
    client = models.ForeignKey("client_profile.ClientProfile", on_delete=models.CASCADE, related_name="reminders")
    appointment = models.ForeignKey("appointments.Appointment", on_delete=models.CASCADE, related_name="reminders")
    type = models.CharField(max_length=10, choices=ReminderType.choices)
    scheduled_send = models.DateTimeField()
    sent_at = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=10, choices=ReminderStatus.choices, default=ReminderStatus.PENDING)

    class Meta:
        ordering = ["scheduled_send"]
        indexes = [models.Index(fields=["status", "scheduled_send"])]

    def __str__(self):
        return f"{self.type} reminder for {self.client} at {self.scheduled_send} ({self.status})"

    def clean(self):
        if self.appointment_id and self.client_id and self.appointment.order.client_id != self.client_id:
            raise ValidationError({"client": "The client does not own this appointment."})
