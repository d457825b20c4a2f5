from django.conf import settings
from django.db import models
from django.utils import timezone

User = settings.AUTH_USER_MODEL

class Order(models.Model):
    STATUS_PENDING = "pending"
    STATUS_CONFIRMED = "confirmed"
    STATUS_SHIPPED = "shipped"
    STATUS_DELIVERED = "delivered"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = (
        (STATUS_PENDING, "Pending"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_SHIPPED, "Shipped"),
        (STATUS_DELIVERED, "Delivered"),
        (STATUS_CANCELLED, "Cancelled"),
    )

    # An assigned driver works at most one of these at a time
    ACTIVE_STATUSES = (STATUS_CONFIRMED, STATUS_SHIPPED)

    DELIVERY_STANDARD = "standard"
    DELIVERY_EXPRESS = "express"

    DELIVERY_OPTION_CHOICES = (
        (DELIVERY_STANDARD, "Standard"),
        (DELIVERY_EXPRESS, "Express"),
    )

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="orders")
    store = models.ForeignKey("stores.Store", on_delete=models.PROTECT, related_name="orders")

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    # Express orders are fulfilled outside driver dispatch; blank means standard
    delivery_option = models.CharField(
        max_length=20, choices=DELIVERY_OPTION_CHOICES,
        default=DELIVERY_STANDARD, blank=True, null=True,
    )

    total_price = models.DecimalField(max_digits=10, decimal_places=2)
    shipping_address = models.TextField(blank=True)

    # Write-once by the assignment arbiter; cleared only by cancellation
    driver = models.ForeignKey(
        "drivers.DriverProfile",
        to_field="uid",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="assigned_orders",
    )

    # Single live offer: both set or both null
    current_offer_driver = models.ForeignKey(
        "drivers.DriverProfile",
        to_field="uid",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="offered_orders",
    )
    offer_expires_at = models.DateTimeField(null=True, blank=True)

    # Driver uids who declined since the last starvation reset, in skip order
    skipped_driver_ids = models.JSONField(default=list, blank=True)

    picked_up_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    # Last position reported by the assigned driver while delivering
    driver_location = models.JSONField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            # Dispatch queue scan
            models.Index(fields=["status", "driver", "created_at"], name="order_dispatch_queue_idx"),
            # Driver history
            models.Index(fields=["driver", "-delivered_at"], name="order_driver_history_idx"),
        ]

    def __str__(self):
        return f"Order #{self.id} ({self.status})"
