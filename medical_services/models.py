from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from common.models import BaseModel
from doctors.models import Doctor


class Service(BaseModel):
    """
    A purchasable treatment package with a fixed number of sessions.
    """
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0'))])
    number_of_sessions = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    article_content = models.TextField(blank=True)
    image = models.CharField(max_length=500, blank=True)
    doctors = models.ManyToManyField(Doctor, related_name='services', blank=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.number_of_sessions} sessions)"
