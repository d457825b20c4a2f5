# apps/delivery/tests.py
from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import DatabaseError
from django.test import TestCase, override_settings
from django.utils import timezone
from prometheus_client import REGISTRY
from rest_framework import status
from rest_framework.test import APIClient

from apps.audit.models import AuditLog
from apps.delivery.assignment import AssignmentService
from apps.delivery.matcher import DispatchMatcher
from apps.delivery.offers import OfferManager
from apps.delivery.services import DeliveryService
from apps.delivery.tasks import monitor_unassigned_orders
from apps.drivers.models import DriverProfile, DriverEarning
from apps.orders.models import Order
from apps.orders.services import OrderService
from apps.stores.models import Store
from apps.utils.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
)

User = get_user_model()

A_POS = (0.001, 0.0)
B_POS = (0.01, 0.0)


class DispatchTestCase(TestCase):
    """
    Store at the origin, driver A ~111m away, driver B ~1.1km away.
    """

    def setUp(self):
        self.customer = User.objects.create_user(
            phone="+919000000000", address="221B Baker St",
            latitude=Decimal("0.002"), longitude=Decimal("0"),
        )
        self.store = Store.objects.create(name="Origin", latitude=Decimal("0"), longitude=Decimal("0"))
        self.a = self._driver("drv-a", "+919111111111", A_POS)
        self.b = self._driver("drv-b", "+919222222222", B_POS)
        self.order = self._order()

    def _driver(self, uid, phone, pos, **kwargs):
        kwargs.setdefault("status", DriverProfile.STATUS_APPROVED)
        kwargs.setdefault("is_working", True)
        return DriverProfile.objects.create(
            user=User.objects.create_user(phone=phone),
            uid=uid,
            latitude=Decimal(str(pos[0])),
            longitude=Decimal(str(pos[1])),
            **kwargs
        )

    def _order(self, total="200.00", **kwargs):
        kwargs.setdefault("status", Order.STATUS_CONFIRMED)
        return OrderService.create_order(self.customer, self.store, total, **kwargs)

    def _poll(self, driver, pos):
        return DispatchMatcher.poll(driver, *pos)

    def _expire(self, order):
        Order.objects.filter(pk=order.pk).update(offer_expires_at=timezone.now() - timedelta(seconds=1))


class MatcherTestCase(DispatchTestCase):

    def test_closest_driver_gets_offer(self):
        self.assertIsNone(self._poll(self.b, B_POS))

        offer = self._poll(self.a, A_POS)
        self.assertEqual(offer.order_id, self.order.id)
        self.assertEqual(offer.estimated_earnings, Decimal("20.00"))
        self.assertEqual(offer.customer_address, "221B Baker St")
        self.assertAlmostEqual(offer.distance_to_store, 111.19, delta=1)
        self.assertLessEqual(offer.remaining_seconds, 120)

        self.order.refresh_from_db()
        self.assertEqual(self.order.current_offer_driver_id, "drv-a")
        self.assertIsNotNone(self.order.offer_expires_at)

    def test_repoll_returns_same_offer(self):
        first = self._poll(self.a, A_POS)
        expires_at = Order.objects.get(pk=self.order.pk).offer_expires_at

        second = self._poll(self.a, A_POS)
        self.assertEqual(second.order_id, first.order_id)
        self.assertEqual(Order.objects.get(pk=self.order.pk).offer_expires_at, expires_at)

    def test_live_offer_hidden_from_others(self):
        self._poll(self.a, A_POS)
        # Even standing on the store, B never sees A's offer
        self.assertIsNone(self._poll(self.b, (0.0, 0.0)))

    def test_poll_records_position(self):
        self._poll(self.b, (0.02, 0.01))
        self.b.refresh_from_db()
        self.assertEqual(self.b.latitude, Decimal("0.020000"))
        self.assertIsNotNone(self.b.location_updated_at)

    def test_expired_offer_can_be_reoffered(self):
        self._poll(self.a, A_POS)
        self._expire(self.order)

        with self.assertRaises(ConflictException) as ctx:
            AssignmentService.accept(self.order.id, self.a)
        self.assertEqual(ctx.exception.code, "offer_expired")

        offer = self._poll(self.a, A_POS)
        self.assertEqual(offer.order_id, self.order.id)
        self.assertGreater(offer.remaining_seconds, 0)

    @override_settings(DISPATCH_OFFER_TTL_SECONDS=5)
    def test_ttl_from_settings(self):
        offer = self._poll(self.a, A_POS)
        self.assertLessEqual(offer.remaining_seconds, 5)

    def test_skip_passes_order_to_next_driver(self):
        self._poll(self.a, A_POS)
        AssignmentService.skip(self.order.id, self.a)

        offer = self._poll(self.b, B_POS)
        self.assertEqual(offer.order_id, self.order.id)
        self.assertIsNone(self._poll(self.a, A_POS))

    def test_skip_is_idempotent(self):
        AssignmentService.skip(self.order.id, self.a)
        AssignmentService.skip(self.order.id, self.a)

        self.order.refresh_from_db()
        self.assertEqual(self.order.skipped_driver_ids, ["drv-a"])

    def test_skip_leaves_foreign_offer(self):
        self._poll(self.a, A_POS)
        AssignmentService.skip(self.order.id, self.b)

        self.order.refresh_from_db()
        self.assertEqual(self.order.current_offer_driver_id, "drv-a")
        self.assertEqual(self.order.skipped_driver_ids, ["drv-b"])

    def test_skip_missing_order(self):
        with self.assertRaises(NotFoundException):
            AssignmentService.skip(999999, self.a)

    def test_starvation_reset(self):
        AssignmentService.skip(self.order.id, self.a)
        AssignmentService.skip(self.order.id, self.b)
        resets_before = REGISTRY.get_sample_value("dispatch_skip_list_resets_total") or 0

        offer = self._poll(self.b, B_POS)

        self.assertEqual(offer.order_id, self.order.id)
        self.order.refresh_from_db()
        self.assertEqual(self.order.skipped_driver_ids, [])
        self.assertEqual(self.order.current_offer_driver_id, "drv-b")

        log = AuditLog.objects.get(action="skip_list_reset", reference_id=str(self.order.id))
        self.assertEqual(log.metadata["cleared_driver_uids"], ["drv-a", "drv-b"])
        self.assertEqual(REGISTRY.get_sample_value("dispatch_skip_list_resets_total"), resets_before + 1)

    def test_no_reset_for_driver_out_of_range(self):
        AssignmentService.skip(self.order.id, self.a)
        AssignmentService.skip(self.order.id, self.b)
        # Too far from the store to count as nearby
        c = self._driver("drv-c", "+919333333333", (0.2, 0.0))

        self.assertIsNone(self._poll(c, (0.2, 0.0)))
        self.order.refresh_from_db()
        self.assertEqual(self.order.skipped_driver_ids, ["drv-a", "drv-b"])

    def test_malformed_skip_list_treated_as_empty(self):
        Order.objects.filter(pk=self.order.pk).update(skipped_driver_ids="not-json{")

        with self.assertLogs("apps.delivery.offers", "WARNING"):
            offer = self._poll(self.a, A_POS)
        self.assertEqual(offer.order_id, self.order.id)

    def test_parse_skip_list(self):
        self.assertEqual(OfferManager.parse_skip_list('["a", "b", "a"]'), ["a", "b"])
        self.assertEqual(OfferManager.parse_skip_list(None), [])
        with self.assertLogs("apps.delivery.offers", "WARNING"):
            self.assertEqual(OfferManager.parse_skip_list('{"a": 1}'), [])

    def test_driver_with_active_order_gets_nothing(self):
        AssignmentService.accept(self.order.id, self.a)
        self._order()

        self.assertIsNone(self._poll(self.a, A_POS))

    def test_one_live_offer_per_driver(self):
        self._poll(self.a, A_POS)
        second_order = self._order()

        OfferManager.set_offer(second_order, "drv-a")

        self.order.refresh_from_db()
        self.assertIsNone(self.order.current_offer_driver_id)
        self.assertEqual(Order.objects.get(pk=second_order.pk).current_offer_driver_id, "drv-a")

    def test_unapproved_driver_cannot_poll(self):
        pending = self._driver("drv-p", "+919444444444", A_POS, status=DriverProfile.STATUS_PENDING)
        with self.assertRaises(ForbiddenException):
            self._poll(pending, A_POS)

    def test_driver_beyond_max_radius(self):
        far = self._driver("drv-far", "+919555555555", (1.0, 0.0))
        self.assertIsNone(self._poll(far, (1.0, 0.0)))

    def test_express_orders_not_dispatched(self):
        Order.objects.filter(pk=self.order.pk).update(delivery_option=Order.DELIVERY_EXPRESS)
        self.assertIsNone(self._poll(self.a, A_POS))

    def test_store_without_location_skipped(self):
        Store.objects.filter(pk=self.store.pk).update(latitude=None, longitude=None)
        self.assertIsNone(self._poll(self.a, A_POS))

    def test_repoll_after_store_location_cleared(self):
        self._poll(self.a, A_POS)
        Store.objects.filter(pk=self.store.pk).update(latitude=None, longitude=None)

        offer = self._poll(self.a, A_POS)
        self.assertEqual(offer.order_id, self.order.id)
        self.assertIsNone(offer.distance_to_store)
        self.assertEqual(offer.store_latitude, 0.0)

    def test_clear_offer_keeps_fresh_offer(self):
        self._poll(self.a, A_POS)
        self._expire(self.order)
        stale = Order.objects.get(pk=self.order.pk)

        # B is offered the order after `stale` was read
        OfferManager.set_offer(Order.objects.get(pk=self.order.pk), "drv-b")

        self.assertFalse(OfferManager.clear_offer(stale))
        self.assertEqual(stale.current_offer_driver_id, "drv-b")
        self.order.refresh_from_db()
        self.assertEqual(self.order.current_offer_driver_id, "drv-b")
        self.assertTrue(OfferManager.is_live(self.order))

    def test_stale_expired_read_does_not_steal_offer(self):
        self._poll(self.a, A_POS)
        self._expire(self.order)
        stale = Order.objects.select_related("store", "user").get(pk=self.order.pk)
        OfferManager.set_offer(Order.objects.get(pk=self.order.pk), "drv-b")

        with patch(
            "apps.delivery.matcher.OrderQueueService.pending_for_assignment", return_value=[stale]
        ):
            self.assertIsNone(self._poll(self.a, A_POS))

        self.order.refresh_from_db()
        self.assertEqual(self.order.current_offer_driver_id, "drv-b")

    def test_oldest_order_offered_first(self):
        newer = self._order()
        Order.objects.filter(pk=newer.pk).update(created_at=timezone.now() + timedelta(minutes=1))

        self.assertEqual(self._poll(self.a, A_POS).order_id, self.order.id)


class AssignmentTestCase(DispatchTestCase):

    def test_accept(self):
        self._poll(self.a, A_POS)
        order = AssignmentService.accept(self.order.id, self.a)

        self.assertEqual(order.driver_id, "drv-a")
        self.assertEqual(order.status, Order.STATUS_CONFIRMED)
        self.assertIsNone(order.current_offer_driver_id)
        self.assertIsNone(order.offer_expires_at)
        self.assertTrue(AuditLog.objects.filter(action="order_assigned", reference_id=str(order.id)).exists())

    def test_accept_is_idempotent_for_winner(self):
        AssignmentService.accept(self.order.id, self.a)
        order = AssignmentService.accept(self.order.id, self.a)
        self.assertEqual(order.driver_id, "drv-a")
        self.assertEqual(AuditLog.objects.filter(action="order_assigned").count(), 1)

    def test_accept_already_assigned(self):
        AssignmentService.accept(self.order.id, self.a)
        with self.assertRaises(ConflictException) as ctx:
            AssignmentService.accept(self.order.id, self.b)
        self.assertEqual(ctx.exception.code, "already_assigned")

    def test_accept_foreign_offer(self):
        self._poll(self.a, A_POS)
        with self.assertRaises(ConflictException) as ctx:
            AssignmentService.accept(self.order.id, self.b)
        self.assertEqual(ctx.exception.code, "offer_taken")

    def test_accept_wrong_state(self):
        pending = self._order(status=Order.STATUS_PENDING)
        with self.assertRaises(ConflictException) as ctx:
            AssignmentService.accept(pending.id, self.a)
        self.assertEqual(ctx.exception.code, "invalid_order_state")

    def test_accept_missing_order(self):
        with self.assertRaises(NotFoundException):
            AssignmentService.accept(999999, self.a)

    def test_busy_driver_cannot_accept(self):
        AssignmentService.accept(self.order.id, self.a)
        other = self._order()
        with self.assertRaises(ConflictException) as ctx:
            AssignmentService.accept(other.id, self.a)
        self.assertEqual(ctx.exception.code, "driver_busy")

    def test_concurrent_accept_single_winner(self):
        # B read the order before A's write landed
        stale = Order.objects.select_related("store", "user").get(pk=self.order.pk)
        AssignmentService.accept(self.order.id, self.a)

        with patch("apps.delivery.assignment._get_order", return_value=stale):
            with self.assertRaises(ConflictException) as ctx:
                AssignmentService.accept(self.order.id, self.b)
        self.assertEqual(ctx.exception.code, "race_lost")

        self.order.refresh_from_db()
        self.assertEqual(self.order.driver_id, "drv-a")

    def test_claim_succeeds_once(self):
        self.assertTrue(AssignmentService._claim(self.order.id, "drv-a"))
        self.assertFalse(AssignmentService._claim(self.order.id, "drv-b"))
        self.assertEqual(Order.objects.get(pk=self.order.pk).driver_id, "drv-a")

    def test_reclaim(self):
        AssignmentService.skip(self.order.id, self.a)

        rows = AssignmentService.list_reclaimable(self.a, *A_POS)
        self.assertEqual([r["order_id"] for r in rows], [self.order.id])
        self.assertEqual(rows[0]["estimated_earnings"], Decimal("20.00"))

        order = AssignmentService.reclaim(self.order.id, self.a)
        self.assertEqual(order.driver_id, "drv-a")
        self.assertTrue(AuditLog.objects.filter(action="order_reclaimed", reference_id=str(order.id)).exists())
        self.assertEqual(AssignmentService.list_reclaimable(self.a, *A_POS), [])

    def test_reclaim_cancelled_order(self):
        AssignmentService.skip(self.order.id, self.a)
        Order.objects.filter(pk=self.order.pk).update(status=Order.STATUS_CANCELLED)

        with self.assertRaises(ConflictException) as ctx:
            AssignmentService.reclaim(self.order.id, self.a)
        self.assertEqual(ctx.exception.code, "invalid_order_state")
        self.assertIsNone(Order.objects.get(pk=self.order.pk).driver_id)

    def test_reclaimable_hides_orders_offered_elsewhere(self):
        AssignmentService.skip(self.order.id, self.a)
        self._poll(self.b, B_POS)

        self.assertEqual(AssignmentService.list_reclaimable(self.a, *A_POS), [])
        with self.assertRaises(ConflictException) as ctx:
            AssignmentService.reclaim(self.order.id, self.a)
        self.assertEqual(ctx.exception.code, "offer_taken")

    def test_reclaim_assigned_order(self):
        AssignmentService.accept(self.order.id, self.b)
        with self.assertRaises(ConflictException) as ctx:
            AssignmentService.reclaim(self.order.id, self.a)
        self.assertEqual(ctx.exception.code, "already_assigned")


class LifecycleTestCase(DispatchTestCase):

    def setUp(self):
        super().setUp()
        AssignmentService.accept(self.order.id, self.a)

    def test_only_assigned_driver(self):
        with self.assertRaises(ForbiddenException):
            DeliveryService.pickup(self.order.id, self.b)
        with self.assertRaises(ForbiddenException):
            DeliveryService.mark_delivered(self.order.id, self.b)

    def test_missing_order(self):
        with self.assertRaises(NotFoundException):
            DeliveryService.pickup(999999, self.a)

    def test_deliver_before_pickup(self):
        with self.assertRaises(ConflictException) as ctx:
            DeliveryService.mark_delivered(self.order.id, self.a)
        self.assertEqual(ctx.exception.code, "invalid_order_state")

    def test_repeat_pickup_is_noop(self):
        first = DeliveryService.pickup(self.order.id, self.a)
        second = DeliveryService.pickup(self.order.id, self.a)

        self.assertEqual(second.status, Order.STATUS_SHIPPED)
        self.assertEqual(second.picked_up_at, first.picked_up_at)
        self.assertEqual(AuditLog.objects.filter(action="order_picked_up").count(), 1)

    def test_pickup_cancelled_order(self):
        Order.objects.filter(pk=self.order.pk).update(status=Order.STATUS_CANCELLED)
        with self.assertRaises(ConflictException):
            DeliveryService.pickup(self.order.id, self.a)

    def test_delivery_earnings(self):
        DeliveryService.pickup(self.order.id, self.a)
        result = DeliveryService.mark_delivered(self.order.id, self.a)

        self.assertEqual(result["earnings"], Decimal("20.00"))
        self.assertEqual(DriverEarning.objects.get(order_id=self.order.id).amount, Decimal("20.00"))

        self.a.refresh_from_db()
        self.assertEqual(self.a.total_deliveries, 1)
        self.assertEqual(self.a.total_earnings, Decimal("20.00"))

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_DELIVERED)
        self.assertIsNotNone(self.order.delivered_at)

        with self.assertRaises(ConflictException) as ctx:
            DeliveryService.mark_delivered(self.order.id, self.a)
        self.assertEqual(ctx.exception.code, "already_delivered")

    @override_settings(DISPATCH_COMMISSION_RATE="0.15")
    def test_commission_rate_from_settings(self):
        DeliveryService.pickup(self.order.id, self.a)
        result = DeliveryService.mark_delivered(self.order.id, self.a)
        self.assertEqual(result["earnings"], Decimal("30.00"))

    def test_stats_failure_does_not_undo_delivery(self):
        DeliveryService.pickup(self.order.id, self.a)

        with patch("apps.delivery.services.DriverService.record_delivery", side_effect=DatabaseError("boom")):
            with self.assertLogs("apps.delivery.services", "WARNING"):
                result = DeliveryService.mark_delivered(self.order.id, self.a)

        self.assertEqual(result["earnings"], Decimal("20.00"))
        self.assertEqual(Order.objects.get(pk=self.order.pk).status, Order.STATUS_DELIVERED)
        self.assertFalse(DriverEarning.objects.exists())

    def test_track(self):
        result = DeliveryService.track(self.order.id, self.a, 0.002, 0.0)

        self.assertTrue(result["within_auto_complete_radius"])
        self.assertEqual(result["status"], Order.STATUS_CONFIRMED)
        self.order.refresh_from_db()
        self.assertEqual(self.order.driver_location["latitude"], 0.002)
        # Reporting near the customer does not complete the order
        self.assertEqual(self.order.status, Order.STATUS_CONFIRMED)

        far = DeliveryService.track(self.order.id, self.a, 0.01, 0.0)
        self.assertFalse(far["within_auto_complete_radius"])

    def test_track_closed_order(self):
        DeliveryService.pickup(self.order.id, self.a)
        DeliveryService.mark_delivered(self.order.id, self.a)
        with self.assertRaises(ConflictException):
            DeliveryService.track(self.order.id, self.a, 0.0, 0.0)

    def test_history(self):
        DeliveryService.pickup(self.order.id, self.a)
        DeliveryService.mark_delivered(self.order.id, self.a)

        now = timezone.now()
        self.assertEqual(list(DeliveryService.history(self.a)), [self.order])
        self.assertEqual(list(DeliveryService.history(self.a, month=now.month, year=now.year)), [self.order])
        self.assertEqual(list(DeliveryService.history(self.a, year=now.year - 1)), [])
        self.assertEqual(list(DeliveryService.history(self.b)), [])

    def test_cancel_after_assignment(self):
        OrderService.cancel_order(self.order)
        with self.assertRaises(ForbiddenException):
            DeliveryService.pickup(self.order.id, self.a)


class SlaMonitorTestCase(DispatchTestCase):

    def test_nominal(self):
        self.assertEqual(monitor_unassigned_orders(), "All systems nominal")

    def test_breach(self):
        Order.objects.filter(pk=self.order.pk).update(created_at=timezone.now() - timedelta(minutes=30))

        with self.assertLogs("apps.delivery.tasks", "WARNING"):
            result = monitor_unassigned_orders.delay().get()
        self.assertIn("[SLA BREACH] 1 orders", result)
        self.assertIn(f"#{self.order.id}", result)


class DispatchAPITestCase(DispatchTestCase):

    def setUp(self):
        super().setUp()
        self.client = APIClient()

    def _as(self, driver):
        self.client.force_authenticate(user=driver.user)

    def _offer(self, pos):
        return self.client.get("/api/v1/delivery/offer/", {"latitude": pos[0], "longitude": pos[1]})

    def test_non_driver_unauthorized(self):
        self.client.force_authenticate(user=self.customer)
        response = self._offer(A_POS)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["error"]["code"], "no_driver_identity")

    def test_unapproved_forbidden(self):
        banned = self._driver("drv-x", "+919666666666", A_POS, status=DriverProfile.STATUS_BANNED)
        self._as(banned)
        response = self._offer(A_POS)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["error"]["code"], "driver_not_approved")

    def test_missing_coordinates(self):
        self._as(self.a)
        response = self.client.get("/api/v1/delivery/offer/", {"latitude": 1})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "validation_error")

    def test_offer_payload(self):
        self._as(self.a)
        response = self._offer(A_POS)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        offer = response.data["offer"]
        self.assertEqual(offer["order_id"], self.order.id)
        self.assertEqual(offer["store_name"], "Origin")
        self.assertEqual(offer["estimated_earnings"], "20.00")
        self.assertEqual(offer["store_latitude"], 0.0)
        self.assertEqual(offer["customer_latitude"], 0.002)

    def test_offer_repoll_without_store_location(self):
        self._as(self.a)
        self._offer(A_POS)
        Store.objects.filter(pk=self.store.pk).update(latitude=None, longitude=None)

        response = self._offer(A_POS)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["offer"]["order_id"], self.order.id)
        self.assertIsNone(response.data["offer"]["distance_to_store"])

    def test_conflict_status(self):
        self._as(self.a)
        self._offer(A_POS)

        self._as(self.b)
        response = self.client.post("/api/v1/delivery/offer/accept/", {"order_id": self.order.id})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["error"]["code"], "offer_taken")

    def test_skip_and_reclaim(self):
        self._as(self.a)
        response = self.client.post("/api/v1/delivery/offer/skip/", {"order_id": self.order.id})
        self.assertEqual(response.data, {"status": "order skipped", "order_id": self.order.id})

        response = self.client.get("/api/v1/delivery/skipped/", {"latitude": A_POS[0], "longitude": A_POS[1]})
        self.assertEqual([row["order_id"] for row in response.data], [self.order.id])

        response = self.client.post("/api/v1/delivery/skipped/reclaim/", {"order_id": self.order.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "order reclaimed")

    def test_not_assigned_driver_forbidden(self):
        AssignmentService.accept(self.order.id, self.a)
        self._as(self.b)
        response = self.client.post(f"/api/v1/delivery/orders/{self.order.id}/pickup/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unknown_order(self):
        self._as(self.a)
        response = self.client.post("/api/v1/delivery/orders/999999/pickup/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_nearby_browse(self):
        self._as(self.b)
        response = self.client.get("/api/v1/delivery/nearby/", {"latitude": 0, "longitude": 0, "radius": 500})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row["order_id"] for row in response.data], [self.order.id])
        self.assertEqual(response.data[0]["estimated_earnings"], "20.00")
        self.order.refresh_from_db()
        self.assertIsNone(self.order.current_offer_driver_id)

    def test_end_to_end(self):
        self._as(self.b)
        self.assertIsNone(self._offer(B_POS).data["offer"])

        self._as(self.a)
        self.assertEqual(self._offer(A_POS).data["offer"]["order_id"], self.order.id)

        response = self.client.post("/api/v1/delivery/offer/accept/", {"order_id": self.order.id})
        self.assertEqual(response.data, {"status": "order accepted", "order_id": self.order.id})

        self._as(self.b)
        self.assertIsNone(self._offer(B_POS).data["offer"])
        self.assertIsNone(self._offer((0.0, 0.0)).data["offer"])

        self._as(self.a)
        response = self.client.get("/api/v1/delivery/active/")
        self.assertEqual(response.data["order"]["id"], self.order.id)

        response = self.client.post(f"/api/v1/delivery/orders/{self.order.id}/pickup/")
        self.assertEqual(response.data["status"], Order.STATUS_SHIPPED)

        response = self.client.post(
            f"/api/v1/delivery/orders/{self.order.id}/location/", {"latitude": 0.002, "longitude": 0}
        )
        self.assertTrue(response.data["within_auto_complete_radius"])

        response = self.client.post(f"/api/v1/delivery/orders/{self.order.id}/deliver/")
        self.assertEqual(response.data, {"status": "delivered", "order_id": self.order.id, "earnings": "20.00"})

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_DELIVERED)
        self.assertIsNotNone(self.order.picked_up_at)
        self.assertIsNotNone(self.order.delivered_at)
        self.assertEqual(self.order.driver_id, "drv-a")

        response = self.client.get("/api/v1/delivery/active/")
        self.assertIsNone(response.data["order"])

        response = self.client.get("/api/v1/delivery/history/")
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["earnings"], "20.00")


class ManagementCommandTestCase(TestCase):

    def test_setup_demo_dispatch(self):
        out = StringIO()
        call_command("setup_demo_dispatch", "--orders", "2", stdout=out)
        call_command("setup_demo_dispatch", "--orders", "1", stdout=out)

        self.assertEqual(Store.objects.count(), 1)
        self.assertEqual(DriverProfile.objects.filter(is_working=True).count(), 3)
        self.assertEqual(Order.objects.filter(status=Order.STATUS_CONFIRMED).count(), 3)

        # Closest demo driver is offered the oldest order
        driver = DriverProfile.objects.get(uid="demo-driver-1")
        offer = DispatchMatcher.poll(driver, driver.latitude, driver.longitude)
        self.assertEqual(offer.order_id, Order.objects.order_by("created_at", "id").first().id)

    def test_check_unassigned(self):
        out = StringIO()
        call_command("check_unassigned", stdout=out)
        self.assertIn("All systems nominal", out.getvalue())
