from django.utils.translation import gettext_lazy as _
from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = 'pending', _('Pending')
    CONFIRMED = 'confirmed', _('Confirmed')
    IN_PROGRESS = 'in_progress', _('In progress')
    COMPLETED = 'completed', _('Completed')
    CANCELLED = 'cancelled', _('Cancelled')


class AppointmentStatus(models.TextChoices):
    PENDING = 'pending', _('Pending')
    CONFIRMED = 'confirmed', _('Confirmed')
    COMPLETED = 'completed', _('Completed')
    CANCELLED = 'cancelled', _('Cancelled')
    RESCHEDULED = 'rescheduled', _('Rescheduled')


class PaymentMethod(models.TextChoices):
    CASH = 'cash', _('Cash')
    CARD = 'card', _('Card')
    PAYPAL = 'paypal', _('PayPal')


class PaymentStatus(models.TextChoices):
    PENDING = 'pending', _('Pending')
    PAID = 'paid', _('Paid')
    FAILED = 'failed', _('Failed')
    REFUNDED = 'refunded', _('Refunded')


class AvailabilityStatus(models.TextChoices):
    AVAILABLE = 'available', _('Available')
    BLOCKED = 'blocked', _('Blocked')
    BOOKED = 'booked', _('Booked')


class ActiveStatus(models.TextChoices):
    ACTIVE = 'active', _('Active')
    INACTIVE = 'inactive', _('Inactive')


class Gender(models.TextChoices):
    MALE = 'male', _('Male')
    FEMALE = 'female', _('Female')
    OTHER = 'other', _('Other')


class ReminderType(models.TextChoices):
    EMAIL = 'email', _('Email')
    SMS = 'sms', _('SMS')
    PUSH = 'push', _('Push')


class ReminderStatus(models.TextChoices):
    PENDING = 'pending', _('Pending')
    SENT = 'sent', _('Sent')
    FAILED = 'failed', _('Failed')
