import itertools
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from apps.drivers.models import DriverProfile, DriverEarning
from apps.drivers.services import DriverLocatorService, DriverService, NearbyDriver
from apps.orders.models import Order
from apps.stores.models import Store
from apps.utils.exceptions import ForbiddenException, UnauthenticatedException

User = get_user_model()
_phones = itertools.count(1)


def make_driver(uid, lat=None, lng=None, status=DriverProfile.STATUS_APPROVED, is_working=True):
    user = User.objects.create_user(phone=f"+9199{next(_phones):08d}")
    return DriverProfile.objects.create(
        user=user, uid=uid, status=status, is_working=is_working,
        latitude=lat, longitude=lng,
    )


class DriverLocatorTestCase(TestCase):
    def setUp(self):
        self.near = make_driver("drv-near", Decimal("0.001"), Decimal("0"))
        self.far = make_driver("drv-far", Decimal("0.01"), Decimal("0"))

    def test_sorted_by_distance(self):
        nearby = DriverLocatorService.find_nearby(0, 0, 10000)
        self.assertEqual([d.uid for d in nearby], ["drv-near", "drv-far"])
        self.assertLess(nearby[0].distance, nearby[1].distance)

    def test_radius_is_inclusive_filter(self):
        nearby = DriverLocatorService.find_nearby(0, 0, 500)
        self.assertEqual([d.uid for d in nearby], ["drv-near"])

    def test_ties_broken_by_uid(self):
        make_driver("drv-a-twin", Decimal("0.01"), Decimal("0"))
        nearby = DriverLocatorService.find_nearby(0, 0, 10000)
        self.assertEqual([d.uid for d in nearby], ["drv-near", "drv-a-twin", "drv-far"])

    def test_excludes_unavailable_drivers(self):
        make_driver("drv-offline", Decimal("0.001"), Decimal("0"), is_working=False)
        make_driver("drv-pending", Decimal("0.001"), Decimal("0"), status=DriverProfile.STATUS_PENDING)
        make_driver("drv-banned", Decimal("0.001"), Decimal("0"), status=DriverProfile.STATUS_BANNED)
        make_driver("drv-nowhere")

        uids = {d.uid for d in DriverLocatorService.find_nearby(0, 0, 10000)}
        self.assertEqual(uids, {"drv-near", "drv-far"})

    def test_read_only(self):
        before = DriverProfile.objects.get(pk=self.near.pk).updated_at
        DriverLocatorService.find_nearby(0, 0, 10000)
        self.assertEqual(DriverProfile.objects.get(pk=self.near.pk).updated_at, before)

    def test_update_location(self):
        DriverLocatorService.update_location(self.far, 12.9716, 77.5946)
        self.far.refresh_from_db()
        self.assertEqual(self.far.latitude, Decimal("12.971600"))
        self.assertEqual(self.far.longitude, Decimal("77.594600"))
        self.assertIsNotNone(self.far.location_updated_at)

    def test_nearby_driver_is_value_object(self):
        self.assertEqual(NearbyDriver("x", 1.0), NearbyDriver("x", 1.0))

    def test_all_with_locations_orders_working_first(self):
        offline = make_driver("drv-offline", Decimal("1"), Decimal("1"), is_working=False)
        make_driver("drv-pending", Decimal("1"), Decimal("1"), status=DriverProfile.STATUS_PENDING)

        uids = [d.uid for d in DriverLocatorService.all_with_locations()]
        self.assertEqual(set(uids), {"drv-near", "drv-far", offline.uid})
        self.assertEqual(uids[-1], offline.uid)


class DriverServiceTestCase(TestCase):
    def setUp(self):
        self.driver = make_driver("drv-1", is_working=False)

    def test_for_user_without_profile(self):
        customer = User.objects.create_user(phone="+910000000001")
        with self.assertRaises(UnauthenticatedException):
            DriverService.for_user(customer)

    def test_for_user(self):
        self.assertEqual(DriverService.for_user(self.driver.user), self.driver)

    def test_set_working(self):
        DriverService.set_working(self.driver, True)
        self.driver.refresh_from_db()
        self.assertTrue(self.driver.is_working)

        DriverService.set_working(self.driver, False)
        self.driver.refresh_from_db()
        self.assertFalse(self.driver.is_working)

    def test_unapproved_cannot_go_online(self):
        pending = make_driver("drv-pending", status=DriverProfile.STATUS_PENDING, is_working=False)
        with self.assertRaises(ForbiddenException):
            DriverService.set_working(pending, True)
        # Going offline is always allowed
        DriverService.set_working(pending, False)

    def test_stats(self):
        store = Store.objects.create(name="S", latitude=0, longitude=0)
        customer = User.objects.create_user(phone="+910000000002")
        now = timezone.now()
        for price, delivered_at in [(Decimal("200.00"), now), (Decimal("100.00"), now - timedelta(days=400))]:
            order = Order.objects.create(
                user=customer, store=store, total_price=price,
                status=Order.STATUS_DELIVERED, driver=self.driver, delivered_at=delivered_at,
            )
            DriverService.record_delivery(self.driver, order, price * Decimal("0.10"))

        all_time = DriverService.get_stats(self.driver)
        self.assertEqual(all_time["period"], "All Time")
        self.assertEqual(all_time["stats"]["total_deliveries"], 2)
        self.assertEqual(all_time["stats"]["total_earnings"], Decimal("30.00"))
        self.assertEqual(all_time["stats"]["avg_order_value"], Decimal("150.00"))
        self.assertEqual(all_time["stats"]["deliveries_today"], 1)
        self.assertEqual(all_time["stats"]["earnings_today"], Decimal("20.00"))

        this_month = DriverService.get_stats(self.driver, month=now.month, year=now.year)
        self.assertEqual(this_month["period"], f"{now.month}/{now.year}")
        self.assertEqual(this_month["stats"]["total_deliveries"], 1)

    def test_record_delivery_bumps_counters(self):
        store = Store.objects.create(name="S", latitude=0, longitude=0)
        order = Order.objects.create(
            user=self.driver.user, store=store, total_price=Decimal("50.00"),
            status=Order.STATUS_DELIVERED, driver=self.driver,
        )
        DriverService.record_delivery(self.driver, order, Decimal("5.00"))

        self.driver.refresh_from_db()
        self.assertEqual(self.driver.total_deliveries, 1)
        self.assertEqual(self.driver.total_earnings, Decimal("5.00"))
        self.assertEqual(DriverEarning.objects.get(order=order).reference, f"Order #{order.id}")


class DriverAPITestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.driver = make_driver("drv-api", is_working=False)
        self.client.force_authenticate(user=self.driver.user)

    def test_me(self):
        response = self.client.get("/api/v1/drivers/me/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["uid"], "drv-api")

    def test_me_requires_driver_identity(self):
        self.client.force_authenticate(user=User.objects.create_user(phone="+910000000003"))
        response = self.client.get("/api/v1/drivers/me/")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["error"]["type"], "UnauthenticatedException")

    def test_anonymous_rejected(self):
        self.client.force_authenticate(user=None)
        response = self.client.get("/api/v1/drivers/me/")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_location_update(self):
        response = self.client.post("/api/v1/drivers/location/", {"latitude": 12.5, "longitude": 77.5})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.driver.refresh_from_db()
        self.assertEqual(self.driver.latitude, Decimal("12.500000"))

    def test_location_update_rejects_bad_coordinates(self):
        response = self.client.post("/api/v1/drivers/location/", {"latitude": 100, "longitude": 0})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "validation_error")

    def test_set_working(self):
        response = self.client.post("/api/v1/drivers/working/", {"is_working": True}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.driver.refresh_from_db()
        self.assertTrue(self.driver.is_working)

    def test_stats_bad_period(self):
        response = self.client.get("/api/v1/drivers/stats/?month=13&year=2025")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_stats(self):
        response = self.client.get("/api/v1/drivers/stats/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["period"], "All Time")
        self.assertEqual(response.data["stats"]["total_deliveries"], 0)

    def test_admin_locations_requires_staff(self):
        response = self.client.get("/api/v1/drivers/admin/locations/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_locations_filter(self):
        make_driver("drv-on", Decimal("1"), Decimal("1"))
        make_driver("drv-off", Decimal("1"), Decimal("1"), is_working=False)
        admin = User.objects.create_superuser(phone="+910000000099", password="x")
        self.client.force_authenticate(user=admin)

        response = self.client.get("/api/v1/drivers/admin/locations/")
        self.assertEqual({row["uid"] for row in response.data}, {"drv-on", "drv-off"})

        response = self.client.get("/api/v1/drivers/admin/locations/?is_working=true")
        self.assertEqual([row["uid"] for row in response.data], ["drv-on"])
