# apps/drivers/models.py
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

User = settings.AUTH_USER_MODEL

class DriverProfile(models.Model):
    """
    Delivery driver account. Approval is owned by the driver-account
    collaborator; dispatch reads status/is_working and writes position.
    """
    STATUS_PENDING = "Pending"
    STATUS_APPROVED = "Approved"
    STATUS_REJECTED = "Rejected"
    STATUS_BANNED = "banned"

    STATUS_CHOICES = (
        (STATUS_PENDING, "Pending"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_REJECTED, "Rejected"),
        (STATUS_BANNED, "Banned"),
    )

    user = models.OneToOneField(
        User, on_delete=models.CASCADE, related_name="driver_profile"
    )
    # External identity issued by the auth provider; orders reference drivers by it
    uid = models.CharField(max_length=128, unique=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    is_working = models.BooleanField(default=False)

    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    location_updated_at = models.DateTimeField(null=True, blank=True)

    total_deliveries = models.PositiveIntegerField(default=0)
    total_earnings = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            # Critical Index for the Driver Locator
            models.Index(fields=["status", "is_working"], name="driver_locator_idx"),
        ]

    @property
    def is_approved(self):
        return self.status == self.STATUS_APPROVED

    def __str__(self):
        return f"Driver {self.uid} ({self.status})"


class DriverEarning(models.Model):
    """
    Granular earning log, one row per delivered order.
    Settlement happens elsewhere; this is the record it reads.
    """
    driver = models.ForeignKey(
        DriverProfile,
        on_delete=models.CASCADE,
        related_name="earnings",
    )
    order = models.OneToOneField(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="driver_earning",
    )

    amount = models.DecimalField(max_digits=10, decimal_places=2)
    reference = models.CharField(max_length=100)  # e.g. "Order #123"

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [
            models.Index(fields=["driver", "-created_at"], name="driver_earning_ledger_idx"),
        ]

    def __str__(self):
        return f"{self.driver} +{self.amount}"
