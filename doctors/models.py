from django.core.exceptions import ValidationError
from django.db import models

from common.choices import ActiveStatus
from common.models import BaseModel
from common.validators import validate_date_range
from departments.models import Department


class Doctor(BaseModel):
    """
    A practitioner (shown to clients as an "expert").
    """
    full_name = models.CharField(max_length=255)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=20, blank=True)
    specialty = models.CharField(max_length=150, blank=True)
    bio = models.TextField(blank=True)
    profile_picture = models.CharField(max_length=500, blank=True)
    status = models.CharField(max_length=10, choices=ActiveStatus.choices, default=ActiveStatus.ACTIVE)
    department = models.ForeignKey(
        Department,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='doctors',
    )
    address = models.CharField(max_length=255, blank=True)

    class Meta:
        ordering = ['full_name']

    def __str__(self):
        return self.full_name

    @property
    def is_active(self):
        return self.status == ActiveStatus.ACTIVE


class Qualification(BaseModel):
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='qualifications')
    degree = models.CharField(max_length=150)
    major = models.CharField(max_length=150)
    completion_year = models.PositiveIntegerField()
    institution = models.CharField(max_length=255)

    class Meta:
        ordering = ['-completion_year']

    def __str__(self):
        return f"{self.degree} in {self.major} ({self.completion_year})"


class Experience(BaseModel):
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='experiences')
    position = models.CharField(max_length=150)
    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)
    workplace = models.CharField(max_length=255)
    description = models.TextField(blank=True)

    class Meta:
        ordering = ['-start_date']

    def clean(self):
        try:
            validate_date_range(self.start_date, self.end_date)
        except ValidationError as exc:
            raise ValidationError({'end_date': exc.messages})

    def __str__(self):
        return f"{self.position} at {self.workplace}"
