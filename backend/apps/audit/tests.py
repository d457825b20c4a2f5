from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from apps.audit.models import AuditLog
from apps.audit.services import AuditService
from apps.drivers.models import DriverProfile
from apps.orders.models import Order
from apps.stores.models import Store

User = get_user_model()


class AuditLogTestCase(TestCase):
    def test_immutability(self):
        user = User.objects.create_user(phone="+919999999999")
        log = AuditLog.objects.create(
            user=user, action="order_assigned", reference_id="REF123"
        )

        log.action = "tampered"
        with self.assertRaises(RuntimeError):
            log.save()

        with self.assertRaises(RuntimeError):
            log.delete()

        with self.assertRaises(RuntimeError):
            AuditLog.objects.filter(pk=log.pk).update(action="tampered")


class AuditServiceTestCase(TestCase):
    def setUp(self):
        self.customer = User.objects.create_user(phone="+919999999998")
        self.driver = DriverProfile.objects.create(
            user=User.objects.create_user(phone="+919999999997"),
            uid="drv-audit", status=DriverProfile.STATUS_APPROVED,
        )
        store = Store.objects.create(name="S", latitude=0, longitude=0)
        self.order = Order.objects.create(user=self.customer, store=store, total_price=Decimal("200.00"))

    def test_assignment_actions(self):
        AuditService.order_assigned(self.order, self.driver)
        AuditService.order_assigned(self.order, self.driver, reclaimed=True)

        actions = set(AuditLog.objects.filter(reference_id=str(self.order.id)).values_list("action", flat=True))
        self.assertEqual(actions, {"order_assigned", "order_reclaimed"})

    def test_delivery_completed_records_amounts(self):
        AuditService.delivery_completed(self.order, self.driver, Decimal("20.00"))

        log = AuditLog.objects.get(action="delivery_completed")
        self.assertEqual(log.user, self.driver.user)
        self.assertEqual(log.metadata, {"driver_uid": "drv-audit", "amount": "200.00", "earnings": "20.00"})

    def test_skip_list_reset(self):
        AuditService.skip_list_reset(self.order, ["a", "b"])
        log = AuditLog.objects.get(action="skip_list_reset")
        self.assertIsNone(log.user)
        self.assertEqual(log.metadata["cleared_driver_uids"], ["a", "b"])


class AuditLogAPITestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin = User.objects.create_superuser(phone="+919999999990", password="x")
        AuditLog.objects.create(action="order_assigned", reference_id="1")
        AuditLog.objects.create(action="order_cancelled", reference_id="1")
        AuditLog.objects.create(action="order_assigned", reference_id="2")

    def test_requires_staff(self):
        self.client.force_authenticate(user=User.objects.create_user(phone="+919999999991"))
        response = self.client.get("/api/v1/audit/logs/")
        self.assertEqual(response.status_code, 403)

    def test_filters(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.get("/api/v1/audit/logs/?reference_id=1")
        self.assertEqual(response.data["count"], 2)

        response = self.client.get("/api/v1/audit/logs/?reference_id=1&action=order_assigned")
        self.assertEqual(response.data["count"], 1)
