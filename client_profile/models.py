from datetime import date

from django.db import models

from common.choices import ActiveStatus, Gender
from common.models import BaseModel
from users.models import User


class ClientProfile(BaseModel):
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='client_profile')
    google_id = models.CharField(max_length=255, unique=True, blank=True, null=True)
    avatar_url = models.URLField(max_length=500, blank=True)
    gender = models.CharField(max_length=10, choices=Gender.choices, blank=True)
    birth_date = models.DateField(blank=True, null=True)
    status = models.CharField(max_length=10, choices=ActiveStatus.choices, default=ActiveStatus.ACTIVE)

    # === Notification preferences ===
    receive_email_notifications = models.BooleanField(default=True)
    receive_push_notifications = models.BooleanField(default=True)
    receive_sms_notifications = models.BooleanField(default=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.full_name} <{self.email}>"

    @property
    def email(self):
        return self.user.email

    @property
    def full_name(self):
        return self.user.get_full_name()

    @property
    def phone(self):
        return self.user.phone_number

    @property
    def is_active(self):
        return self.status == ActiveStatus.ACTIVE

    def age(self, today=None):
        if not self.birth_date:
            return None
        today = today or date.today()
        years = today.year - self.birth_date.year
        if (today.month, today.day) < (self.birth_date.month, self.birth_date.day):
            years -= 1
        return years
