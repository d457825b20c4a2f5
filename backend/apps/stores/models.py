# apps/stores/models.py
from django.db import models
from django.utils import timezone


class Store(models.Model):
    """
    Pickup point for orders. Owned by the store-management collaborator;
    dispatch only reads its name and coordinates.
    """
    name = models.CharField(max_length=100)
    phone = models.CharField(max_length=20, blank=True)

    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(default=timezone.now)

    @property
    def has_location(self):
        # Unset means NULL; 0.0 is a real coordinate
        return self.latitude is not None and self.longitude is not None

    def __str__(self):
        return self.name
