# apps/drivers/services.py
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from django.db import transaction
from django.db.models import Avg, Count, F, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from apps.utils.exceptions import (
    ForbiddenException,
    InvalidInputException,
    UnauthenticatedException,
)
from apps.utils.geo import haversine_m

from .models import DriverProfile, DriverEarning

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NearbyDriver:
    uid: str
    distance: float


class DriverLocatorService:
    """
    Proximity queries over approved, working drivers.
    """

    @staticmethod
    def available_queryset():
        return DriverProfile.objects.filter(
            status=DriverProfile.STATUS_APPROVED,
            is_working=True,
            latitude__isnull=False,
            longitude__isnull=False,
        )

    @staticmethod
    def find_nearby(lat, lng, radius_m):
        """
        Returns NearbyDriver entries within radius_m of (lat, lng),
        nearest first. Equal distances are ordered by uid.
        """
        rows = DriverLocatorService.available_queryset().values_list(
            "uid", "latitude", "longitude"
        )

        nearby = []
        for uid, d_lat, d_lng in rows:
            distance = haversine_m(lat, lng, d_lat, d_lng)
            if distance <= radius_m:
                nearby.append(NearbyDriver(uid=uid, distance=distance))

        nearby.sort(key=lambda d: (d.distance, d.uid))
        return nearby

    @staticmethod
    def update_location(driver: DriverProfile, lat, lng):
        """
        Last known position, written on every poll regardless of outcome.
        """
        driver.latitude = Decimal(str(round(float(lat), 6)))
        driver.longitude = Decimal(str(round(float(lng), 6)))
        driver.location_updated_at = timezone.now()
        driver.save(update_fields=["latitude", "longitude", "location_updated_at", "updated_at"])

    @staticmethod
    def all_with_locations():
        """
        Admin map: approved drivers with a known position,
        working drivers first, freshest position first.
        """
        return DriverProfile.objects.select_related("user").filter(
            status=DriverProfile.STATUS_APPROVED,
            latitude__isnull=False,
            longitude__isnull=False,
        ).order_by("-is_working", F("location_updated_at").desc(nulls_last=True), "uid")


class DriverService:

    @staticmethod
    def for_user(user) -> DriverProfile:
        """
        Resolves the driver identity behind a request user.
        """
        profile = getattr(user, "driver_profile", None) if user else None
        if profile is None:
            raise UnauthenticatedException("User is not a registered driver.", code="no_driver_identity")
        return profile

    @staticmethod
    def require_approved(driver: DriverProfile):
        if not driver.is_approved:
            raise ForbiddenException(
                f"Driver account is {driver.status}.", code="driver_not_approved"
            )

    @staticmethod
    def set_working(driver: DriverProfile, is_working: bool):
        """
        Toggles the working flag. A live offer held by a driver going
        offline is left to expire on its own.
        """
        if is_working:
            DriverService.require_approved(driver)

        driver.is_working = is_working
        driver.save(update_fields=["is_working", "updated_at"])
        logger.info(f"Driver {driver.uid} is_working={is_working}")
        return driver

    @staticmethod
    def record_delivery(driver: DriverProfile, order, earnings: Decimal):
        """
        Bumps cumulative counters and writes the ledger row.
        Callers wrap this in a savepoint; it is best-effort.
        """
        if earnings < 0:
            raise InvalidInputException("Earning amount cannot be negative")

        with transaction.atomic():
            DriverProfile.objects.filter(pk=driver.pk).update(
                total_deliveries=Coalesce(F("total_deliveries"), 0) + 1,
                total_earnings=Coalesce(F("total_earnings"), Decimal("0.00")) + earnings,
                updated_at=timezone.now(),
            )
            return DriverEarning.objects.create(
                driver=driver,
                order=order,
                amount=earnings,
                reference=f"Order #{order.id}",
            )

    @staticmethod
    def get_stats(driver: DriverProfile, month=None, year=None):
        """
        Delivery totals for a period plus today's figures.
        Earnings are summed from the ledger, so they reflect the commission
        rate in force when each order was delivered.
        """
        from apps.orders.models import Order

        delivered = Order.objects.filter(driver=driver, status=Order.STATUS_DELIVERED)

        period_qs = delivered
        if month and year:
            period_qs = period_qs.filter(delivered_at__year=year, delivered_at__month=month)
            period = f"{month}/{year}"
        elif year:
            period_qs = period_qs.filter(delivered_at__year=year)
            period = f"{year}"
        else:
            period = "All Time"

        totals = period_qs.aggregate(
            total_deliveries=Count("id"),
            total_earnings=Coalesce(Sum("driver_earning__amount"), Decimal("0.00")),
            avg_order_value=Coalesce(Avg("total_price"), Decimal("0.00")),
        )

        today = timezone.localdate()
        today_totals = delivered.filter(delivered_at__date=today).aggregate(
            deliveries_today=Count("id"),
            earnings_today=Coalesce(Sum("driver_earning__amount"), Decimal("0.00")),
        )

        return {
            "driver": driver,
            "stats": {
                "total_deliveries": totals["total_deliveries"],
                "total_earnings": Decimal(totals["total_earnings"]).quantize(Decimal("0.01")),
                "avg_order_value": Decimal(totals["avg_order_value"]).quantize(Decimal("0.01")),
                "deliveries_today": today_totals["deliveries_today"],
                "earnings_today": Decimal(today_totals["earnings_today"]).quantize(Decimal("0.01")),
            },
            "period": period,
        }


def validate_period(month, year):
    """
    Parses optional month/year query params. Raises InvalidInputException on junk.
    """
    try:
        month = int(month) if month not in (None, "") else None
        year = int(year) if year not in (None, "") else None
    except (TypeError, ValueError):
        raise InvalidInputException("month and year must be integers")

    if month is not None and not 1 <= month <= 12:
        raise InvalidInputException("month must be between 1 and 12")
    if year is not None and not date.min.year <= year <= date.max.year:
        raise InvalidInputException("year out of range")
    return month, year
