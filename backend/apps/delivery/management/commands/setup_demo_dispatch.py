from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from apps.drivers.models import DriverProfile
from apps.orders.models import Order
from apps.orders.services import OrderService
from apps.stores.models import Store

User = get_user_model()

# Bengaluru, same centre the driver app defaults to
CENTER = (Decimal("12.971600"), Decimal("77.594600"))

# (uid, phone, latitude offset from the store)
DEMO_DRIVERS = (
    ("demo-driver-1", "+919800000001", Decimal("0.001000")),
    ("demo-driver-2", "+919800000002", Decimal("0.010000")),
    ("demo-driver-3", "+919800000003", Decimal("0.030000")),
)


class Command(BaseCommand):
    help = "Creates a demo store, approved working drivers around it and confirmed orders to dispatch"

    def add_arguments(self, parser):
        parser.add_argument("--orders", type=int, default=3, help="Confirmed orders to create")

    def handle(self, *args, **options):
        lat, lng = CENTER

        with transaction.atomic():
            store, created = Store.objects.get_or_create(
                name="Bengaluru Demo Store",
                defaults={"latitude": lat, "longitude": lng, "phone": "+918000000000"},
            )
            self.stdout.write(f"{'Created' if created else 'Using existing'} store: {store.name}")

            for uid, phone, offset in DEMO_DRIVERS:
                user, _ = User.objects.get_or_create(phone=phone, defaults={"first_name": uid})
                DriverProfile.objects.update_or_create(
                    uid=uid,
                    defaults={
                        "user": user,
                        "status": DriverProfile.STATUS_APPROVED,
                        "is_working": True,
                        "latitude": lat + offset,
                        "longitude": lng,
                    },
                )
            self.stdout.write(f"{len(DEMO_DRIVERS)} drivers online")

            customer, _ = User.objects.get_or_create(
                phone="+919800000100",
                defaults={
                    "first_name": "Demo",
                    "last_name": "Customer",
                    "address": "MG Road, Bengaluru",
                    "latitude": lat - Decimal("0.005"),
                    "longitude": lng + Decimal("0.005"),
                },
            )

            for i in range(options["orders"]):
                OrderService.create_order(
                    customer, store, Decimal("150.00") + 50 * i, status=Order.STATUS_CONFIRMED
                )

        self.stdout.write(self.style.SUCCESS(f"{options['orders']} confirmed orders waiting for a driver"))
