# apps/delivery/assignment.py
import logging

from django.db import transaction
from django.utils import timezone

from apps.audit.services import AuditService
from apps.drivers.models import DriverProfile
from apps.drivers.services import DriverService
from apps.orders.models import Order
from apps.orders.services import OrderQueueService
from apps.utils.exceptions import ConflictException, NotFoundException
from apps.utils.geo import haversine_m

from . import conf, metrics
from .offers import OfferManager

logger = logging.getLogger(__name__)


def _get_order(order_id):
    try:
        return Order.objects.select_related("store", "user").get(pk=order_id)
    except Order.DoesNotExist:
        raise NotFoundException(f"Order {order_id} not found", code="order_not_found")


def _conflict(message, reason):
    metrics.conflicts_total.labels(reason=reason).inc()
    return ConflictException(message, code=reason)


class AssignmentService:
    """
    The only code path that writes Order.driver.
    """

    @staticmethod
    def _claim(order_id, uid) -> bool:
        """
        Compare-and-set on the order row. Exactly one concurrent caller
        sees a row change; everyone else gets False.
        """
        updated = Order.objects.filter(
            pk=order_id,
            driver__isnull=True,
            status=Order.STATUS_CONFIRMED,
        ).update(
            driver_id=uid,
            status=Order.STATUS_CONFIRMED,
            current_offer_driver=None,
            offer_expires_at=None,
            updated_at=timezone.now(),
        )
        return updated == 1

    @staticmethod
    def _ensure_free(driver: DriverProfile, order_id):
        active = OrderQueueService.active_for_driver(driver.uid)
        if active is not None and active.id != order_id:
            raise _conflict(
                f"Driver already has active order {active.id}", "driver_busy"
            )

    @staticmethod
    @transaction.atomic
    def accept(order_id, driver: DriverProfile):
        DriverService.require_approved(driver)
        order = _get_order(order_id)
        uid = driver.uid

        if order.driver_id == uid:
            # Retry of an accept that already went through
            return order

        if order.driver_id:
            raise _conflict("Order already assigned", "already_assigned")

        if order.status != Order.STATUS_CONFIRMED:
            raise _conflict(f"Order is {order.status}", "invalid_order_state")

        now = timezone.now()
        if OfferManager.has_offer(order):
            if order.current_offer_driver_id != uid and OfferManager.is_live(order, now):
                raise _conflict("This offer is not for you", "offer_taken")
            if not OfferManager.is_live(order, now):
                raise _conflict("Offer has expired", "offer_expired")

        AssignmentService._ensure_free(driver, order.id)

        if not AssignmentService._claim(order.id, uid):
            logger.warning(f"Driver {uid} lost the race for order {order.id}")
            raise _conflict("Order was taken by another driver", "race_lost")

        order.refresh_from_db()
        AuditService.order_assigned(order, driver)
        metrics.assignments_total.labels(path="accept").inc()
        logger.info(f"Driver {uid} accepted order {order.id}")
        return order

    @staticmethod
    @transaction.atomic
    def reclaim(order_id, driver: DriverProfile):
        """
        Take an order directly, bypassing proximity ranking.
        """
        DriverService.require_approved(driver)
        order = _get_order(order_id)
        uid = driver.uid

        if order.driver_id:
            raise _conflict("Order already assigned to another driver", "already_assigned")

        if order.status != Order.STATUS_CONFIRMED:
            raise _conflict(f"Order is {order.status}", "invalid_order_state")

        if order.current_offer_driver_id != uid and OfferManager.is_live(order):
            raise _conflict("Another driver is considering this order", "offer_taken")

        AssignmentService._ensure_free(driver, order.id)

        if not AssignmentService._claim(order.id, uid):
            logger.warning(f"Driver {uid} lost the reclaim race for order {order.id}")
            raise _conflict("Order is no longer available", "race_lost")

        order.refresh_from_db()
        AuditService.order_assigned(order, driver, reclaimed=True)
        metrics.assignments_total.labels(path="reclaim").inc()
        logger.info(f"Driver {uid} reclaimed order {order.id}")
        return order

    @staticmethod
    def skip(order_id, driver: DriverProfile):
        order = _get_order(order_id)
        order = OfferManager.add_skipped(order, driver.uid)
        logger.info(f"Driver {driver.uid} skipped order {order.id}")
        return order

    @staticmethod
    def list_reclaimable(driver: DriverProfile, lat, lng):
        """
        Dispatchable orders this driver declined that nobody else is
        currently considering.
        """
        now = timezone.now()
        reclaimable = []

        for order in OrderQueueService.pending_for_assignment():
            skipped = OfferManager.parse_skip_list(order.skipped_driver_ids, order_id=order.id)
            if driver.uid not in skipped:
                continue

            if order.current_offer_driver_id != driver.uid and OfferManager.is_live(order, now):
                continue

            store = order.store
            distance = (
                haversine_m(lat, lng, store.latitude, store.longitude)
                if store.has_location else None
            )
            reclaimable.append({
                "order_id": order.id,
                "store_id": store.id,
                "store_name": store.name or "Store",
                "total_price": order.total_price,
                "distance_to_store": distance,
                "estimated_earnings": conf.earnings_for(order.total_price),
                "store_latitude": float(store.latitude) if store.latitude is not None else None,
                "store_longitude": float(store.longitude) if store.longitude is not None else None,
            })

        return reclaimable
