import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from apps.audit.services import AuditService
from apps.delivery import conf
from apps.utils.exceptions import ConflictException, InvalidInputException
from apps.utils.geo import haversine_m

from .models import Order

logger = logging.getLogger(__name__)


class OrderQueueService:
    """
    Read-only views over orders waiting for, or held by, a driver.
    """

    @staticmethod
    def pending_for_assignment():
        """
        Dispatchable orders, oldest first: confirmed, standard (or unset)
        delivery, no driver yet.
        """
        return (
            Order.objects.select_related("store", "user")
            .filter(status=Order.STATUS_CONFIRMED, driver__isnull=True)
            .filter(
                Q(delivery_option=Order.DELIVERY_STANDARD)
                | Q(delivery_option="")
                | Q(delivery_option__isnull=True)
            )
            .order_by("created_at", "id")
        )

    @staticmethod
    def active_for_driver(uid):
        return (
            Order.objects.select_related("store", "user")
            .filter(driver_id=uid, status__in=Order.ACTIVE_STATUSES)
            .order_by("-updated_at")
            .first()
        )

    @staticmethod
    def nearby(lat, lng, radius_m=None, limit=10):
        """
        Browse dispatchable orders whose store is within radius_m.
        Returns (order, distance_m) pairs, nearest first. Creates no offers.
        """
        if radius_m is None:
            radius_m = conf.get("DEFAULT_SEARCH_RADIUS_METERS")

        results = []
        for order in OrderQueueService.pending_for_assignment():
            store = order.store
            if not store.has_location:
                continue
            distance = haversine_m(lat, lng, store.latitude, store.longitude)
            if distance <= radius_m:
                results.append((order, distance))

        results.sort(key=lambda pair: (pair[1], pair[0].id))
        return results[:limit]


class OrderService:

    @staticmethod
    def create_order(user, store, total_price, delivery_option=Order.DELIVERY_STANDARD,
                     shipping_address="", status=Order.STATUS_PENDING):
        total_price = Decimal(str(total_price))
        if total_price < 0:
            raise InvalidInputException("Order total cannot be negative")

        order = Order.objects.create(
            user=user,
            store=store,
            total_price=total_price,
            delivery_option=delivery_option,
            shipping_address=shipping_address or user.address,
            status=status,
        )
        logger.info(f"Order {order.id} created for store {store.id} ({status})")
        return order

    @staticmethod
    def confirm_order(order):
        """
        pending -> confirmed. From here on the order is visible to dispatch.
        """
        updated = Order.objects.filter(
            pk=order.pk, status=Order.STATUS_PENDING
        ).update(status=Order.STATUS_CONFIRMED, updated_at=timezone.now())

        if not updated:
            raise ConflictException(
                f"Order {order.id} is not pending", code="invalid_order_state"
            )
        order.refresh_from_db()
        return order

    @staticmethod
    @transaction.atomic
    def cancel_order(order):
        # Pessimistic Lock so a concurrent accept cannot slip in between
        order = Order.objects.select_for_update().get(id=order.id)

        if order.status in (Order.STATUS_DELIVERED, Order.STATUS_CANCELLED):
            raise ConflictException(
                f"Cannot cancel order in state: {order.status}",
                code="invalid_order_state",
            )

        previous_driver = order.driver_id

        order.status = Order.STATUS_CANCELLED
        order.cancelled_at = timezone.now()
        order.driver = None
        order.current_offer_driver = None
        order.offer_expires_at = None
        order.save(update_fields=[
            "status", "cancelled_at", "driver", "current_offer_driver",
            "offer_expires_at", "updated_at",
        ])

        AuditService.order_cancelled(order, previous_driver_uid=previous_driver)
        logger.info(f"Order {order.id} cancelled (driver was {previous_driver})")
        return order
