# apps/delivery/services.py
import logging

from django.db import DatabaseError, transaction
from django.utils import timezone

from apps.audit.services import AuditService
from apps.drivers.models import DriverProfile
from apps.drivers.services import DriverLocatorService, DriverService
from apps.orders.models import Order
from apps.utils.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
)
from apps.utils.geo import haversine_m

from . import conf, metrics

logger = logging.getLogger(__name__)


class DeliveryService:
    """
    Moves an assigned order through pickup and delivery.
    Only the assigned driver can drive these transitions.
    """

    @staticmethod
    def _get_assigned(order_id, driver: DriverProfile, lock=False):
        qs = Order.objects.select_related("store", "user")
        if lock:
            qs = qs.select_for_update(of=("self",))
        try:
            order = qs.get(pk=order_id)
        except Order.DoesNotExist:
            raise NotFoundException(f"Order {order_id} not found", code="order_not_found")

        if order.driver_id != driver.uid:
            raise ForbiddenException("You are not assigned to this order", code="not_assigned_driver")
        return order

    @staticmethod
    @transaction.atomic
    def pickup(order_id, driver: DriverProfile):
        order = DeliveryService._get_assigned(order_id, driver, lock=True)

        if order.status == Order.STATUS_SHIPPED:
            return order

        if order.status != Order.STATUS_CONFIRMED:
            metrics.conflicts_total.labels(reason="invalid_order_state").inc()
            raise ConflictException(
                f"Cannot pick up order in state: {order.status}", code="invalid_order_state"
            )

        order.status = Order.STATUS_SHIPPED
        if order.picked_up_at is None:
            order.picked_up_at = timezone.now()
        order.save(update_fields=["status", "picked_up_at", "updated_at"])

        AuditService.order_picked_up(order, driver)
        logger.info(f"Driver {driver.uid} picked up order {order.id}")
        return order

    @staticmethod
    @transaction.atomic
    def mark_delivered(order_id, driver: DriverProfile):
        """
        shipped -> delivered, then credits the driver.
        Crediting is best-effort: a failure there is logged and the
        delivery still stands.
        """
        order = DeliveryService._get_assigned(order_id, driver)

        if order.status == Order.STATUS_DELIVERED:
            metrics.conflicts_total.labels(reason="already_delivered").inc()
            raise ConflictException("Order already delivered", code="already_delivered")

        now = timezone.now()
        updated = Order.objects.filter(
            pk=order.pk, driver_id=driver.uid, status=Order.STATUS_SHIPPED
        ).update(status=Order.STATUS_DELIVERED, delivered_at=now, updated_at=now)

        if not updated:
            metrics.conflicts_total.labels(reason="invalid_order_state").inc()
            raise ConflictException(
                "Order must be picked up before it can be delivered", code="invalid_order_state"
            )

        order.refresh_from_db()
        earnings = conf.earnings_for(order.total_price)

        try:
            DriverService.record_delivery(driver, order, earnings)
        except DatabaseError as e:
            logger.warning(f"Could not record stats for driver {driver.uid} on order {order.id}: {e}")

        AuditService.delivery_completed(order, driver, earnings)
        metrics.deliveries_completed.inc()
        logger.info(f"Driver {driver.uid} delivered order {order.id}, earnings {earnings}")

        return {"order_id": order.id, "earnings": earnings}

    @staticmethod
    def track(order_id, driver: DriverProfile, lat, lng):
        """
        Position report for an order in progress. Distance to the customer is
        returned alongside; nothing is completed automatically.
        """
        order = DeliveryService._get_assigned(order_id, driver)

        if order.status not in Order.ACTIVE_STATUSES:
            raise ConflictException(
                f"Order is {order.status}, tracking closed", code="invalid_order_state"
            )

        now = timezone.now()
        order.driver_location = {
            "latitude": lat,
            "longitude": lng,
            "updated_at": now.isoformat(),
        }
        order.save(update_fields=["driver_location", "updated_at"])
        DriverLocatorService.update_location(driver, lat, lng)

        customer = order.user
        distance = None
        if customer.latitude is not None and customer.longitude is not None:
            distance = haversine_m(lat, lng, customer.latitude, customer.longitude)

        threshold = conf.get("AUTO_COMPLETE_DISTANCE_METERS")
        return {
            "order_id": order.id,
            "status": order.status,
            "distance_to_customer": distance,
            "within_auto_complete_radius": distance is not None and distance <= threshold,
        }

    @staticmethod
    def history(driver: DriverProfile, month=None, year=None):
        qs = Order.objects.select_related("store", "driver_earning").filter(
            driver=driver, status=Order.STATUS_DELIVERED
        )
        if month and year:
            qs = qs.filter(delivered_at__year=year, delivered_at__month=month)
        elif year:
            qs = qs.filter(delivered_at__year=year)
        return qs.order_by("-delivered_at", "-id")
