from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone

from apps.audit.models import AuditLog
from apps.drivers.models import DriverProfile
from apps.orders.models import Order
from apps.orders.services import OrderQueueService, OrderService
from apps.stores.models import Store
from apps.utils.exceptions import ConflictException, InvalidInputException

User = get_user_model()


class OrderQueueTestCase(TestCase):
    def setUp(self):
        self.customer = User.objects.create_user(phone="+911111111111", address="12 MG Road")
        self.store = Store.objects.create(name="Central", latitude=Decimal("0"), longitude=Decimal("0"))
        self.driver_user = User.objects.create_user(phone="+912222222222")
        self.driver = DriverProfile.objects.create(
            user=self.driver_user, uid="drv-1", status=DriverProfile.STATUS_APPROVED, is_working=True,
        )

    def _order(self, **kwargs):
        kwargs.setdefault("status", Order.STATUS_CONFIRMED)
        return OrderService.create_order(self.customer, self.store, Decimal("100.00"), **kwargs)

    def test_pending_excludes_non_dispatchable(self):
        eligible = self._order()
        blank_option = self._order(delivery_option="")
        self._order(delivery_option=Order.DELIVERY_EXPRESS)
        self._order(status=Order.STATUS_PENDING)
        assigned = self._order()
        Order.objects.filter(pk=assigned.pk).update(driver=self.driver)

        pending = list(OrderQueueService.pending_for_assignment())
        self.assertEqual(pending, [eligible, blank_option])

    def test_pending_includes_null_delivery_option(self):
        order = self._order()
        Order.objects.filter(pk=order.pk).update(delivery_option=None)
        self.assertEqual(list(OrderQueueService.pending_for_assignment()), [order])

    def test_pending_oldest_first(self):
        newer = self._order()
        older = self._order()
        Order.objects.filter(pk=older.pk).update(created_at=timezone.now() - timedelta(minutes=5))

        self.assertEqual(list(OrderQueueService.pending_for_assignment()), [older, newer])

    def test_active_for_driver(self):
        self.assertIsNone(OrderQueueService.active_for_driver("drv-1"))

        order = self._order()
        Order.objects.filter(pk=order.pk).update(driver=self.driver, status=Order.STATUS_SHIPPED)
        self.assertEqual(OrderQueueService.active_for_driver("drv-1"), order)

        Order.objects.filter(pk=order.pk).update(status=Order.STATUS_DELIVERED)
        self.assertIsNone(OrderQueueService.active_for_driver("drv-1"))

    def test_nearby(self):
        far_store = Store.objects.create(name="Far", latitude=Decimal("1"), longitude=Decimal("0"))
        nowhere = Store.objects.create(name="Nowhere")
        near = self._order()
        OrderService.create_order(self.customer, far_store, Decimal("10"), status=Order.STATUS_CONFIRMED)
        OrderService.create_order(self.customer, nowhere, Decimal("10"), status=Order.STATUS_CONFIRMED)

        results = OrderQueueService.nearby(0.001, 0, radius_m=5000)
        self.assertEqual([order for order, _ in results], [near])
        self.assertAlmostEqual(results[0][1], 111.19, delta=1)

    def test_nearby_creates_no_offer(self):
        order = self._order()
        OrderQueueService.nearby(0, 0)
        order.refresh_from_db()
        self.assertIsNone(order.current_offer_driver_id)

    def test_nearby_limit(self):
        for _ in range(3):
            self._order()
        self.assertEqual(len(OrderQueueService.nearby(0, 0, limit=2)), 2)


class OrderServiceTestCase(TestCase):
    def setUp(self):
        self.customer = User.objects.create_user(phone="+913333333333", address="Flat 4")
        self.store = Store.objects.create(name="Central", latitude=Decimal("0"), longitude=Decimal("0"))
        self.driver = DriverProfile.objects.create(
            user=User.objects.create_user(phone="+914444444444"),
            uid="drv-2", status=DriverProfile.STATUS_APPROVED, is_working=True,
        )

    def test_create_defaults_address_from_customer(self):
        order = OrderService.create_order(self.customer, self.store, "99.50")
        self.assertEqual(order.status, Order.STATUS_PENDING)
        self.assertEqual(order.shipping_address, "Flat 4")
        self.assertEqual(order.total_price, Decimal("99.50"))
        self.assertEqual(order.skipped_driver_ids, [])

    def test_create_rejects_negative_total(self):
        with self.assertRaises(InvalidInputException):
            OrderService.create_order(self.customer, self.store, "-1")

    def test_confirm(self):
        order = OrderService.create_order(self.customer, self.store, "10")
        OrderService.confirm_order(order)
        self.assertEqual(order.status, Order.STATUS_CONFIRMED)

        with self.assertRaises(ConflictException):
            OrderService.confirm_order(order)

    def test_cancel_clears_driver_and_offer(self):
        order = OrderService.create_order(self.customer, self.store, "10", status=Order.STATUS_CONFIRMED)
        Order.objects.filter(pk=order.pk).update(
            driver=self.driver,
            current_offer_driver=self.driver,
            offer_expires_at=timezone.now() + timedelta(seconds=60),
        )

        order = OrderService.cancel_order(order)

        self.assertEqual(order.status, Order.STATUS_CANCELLED)
        self.assertIsNotNone(order.cancelled_at)
        self.assertIsNone(order.driver_id)
        self.assertIsNone(order.current_offer_driver_id)
        self.assertIsNone(order.offer_expires_at)

        log = AuditLog.objects.get(action="order_cancelled", reference_id=str(order.id))
        self.assertEqual(log.metadata["previous_driver_uid"], "drv-2")

    def test_cannot_cancel_delivered(self):
        order = OrderService.create_order(self.customer, self.store, "10", status=Order.STATUS_DELIVERED)
        with self.assertRaises(ConflictException) as ctx:
            OrderService.cancel_order(order)
        self.assertEqual(ctx.exception.code, "invalid_order_state")
