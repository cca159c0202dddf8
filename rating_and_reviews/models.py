from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from appointments.models import Appointment
from client_profile.models import ClientProfile
from common.models import BaseModel


class Review(BaseModel):
    appointment = models.ForeignKey(Appointment, on_delete=models.CASCADE, related_name='reviews')
    client = models.ForeignKey(ClientProfile, on_delete=models.PROTECT, related_name='reviews')
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    comment = models.TextField(blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['appointment', 'client'], name='unique_review_per_appointment_client')
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.client} - {self.appointment_id} - {self.rating}"
