# apps/delivery/matcher.py
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal
from typing import Optional

from django.utils import timezone

from apps.audit.services import AuditService
from apps.drivers.models import DriverProfile
from apps.drivers.services import DriverLocatorService, DriverService
from apps.orders.services import OrderQueueService
from apps.utils.geo import haversine_m

from . import conf, metrics
from .offers import OfferManager

logger = logging.getLogger(__name__)


def _coord(value) -> float:
    return float(value) if value is not None else 0.0


@dataclass
class Offer:
    order_id: int
    store_id: int
    store_name: str
    total_price: Decimal
    distance_to_store: Optional[float]
    estimated_earnings: Decimal
    expires_at: datetime
    remaining_seconds: int
    store_latitude: float
    store_longitude: float
    customer_latitude: float
    customer_longitude: float
    customer_address: str

    @classmethod
    def for_order(cls, order, lat, lng, now=None):
        store = order.store
        customer = order.user
        return cls(
            order_id=order.id,
            store_id=store.id,
            store_name=store.name or "Store",
            total_price=order.total_price,
            distance_to_store=(
                haversine_m(lat, lng, store.latitude, store.longitude) if store.has_location else None
            ),
            estimated_earnings=conf.earnings_for(order.total_price),
            expires_at=order.offer_expires_at,
            remaining_seconds=OfferManager.remaining_seconds(order, now),
            store_latitude=_coord(store.latitude),
            store_longitude=_coord(store.longitude),
            customer_latitude=_coord(customer.latitude),
            customer_longitude=_coord(customer.longitude),
            customer_address=order.shipping_address or customer.address or "",
        )

    def as_dict(self):
        return asdict(self)


class DispatchMatcher:
    """
    Decides, per driver poll, whether that driver should be offered an order.

    Candidate selection here is optimistic and takes no locks; two drivers
    may briefly see the same order. AssignmentService.accept is what lets
    only one of them have it.
    """

    @staticmethod
    def poll(driver: DriverProfile, lat, lng) -> Optional[Offer]:
        DriverService.require_approved(driver)

        DriverLocatorService.update_location(driver, lat, lng)

        if OrderQueueService.active_for_driver(driver.uid):
            logger.debug(f"Driver {driver.uid} already has an active order, no offer")
            return None

        max_radius = conf.get("MAX_SEARCH_RADIUS_METERS")

        for order in OrderQueueService.pending_for_assignment():
            offer = DispatchMatcher._evaluate(order, driver.uid, lat, lng, max_radius)
            if offer is not None:
                return offer

        return None

    @staticmethod
    def _evaluate(order, uid, lat, lng, max_radius) -> Optional[Offer]:
        now = timezone.now()
        skipped = OfferManager.parse_skip_list(order.skipped_driver_ids, order_id=order.id)

        if OfferManager.has_offer(order):
            if OfferManager.is_live(order, now):
                if order.current_offer_driver_id == uid:
                    # Re-poll while the offer is open
                    return Offer.for_order(order, lat, lng, now)
                return None

            logger.info(f"Order {order.id}: offer to {order.current_offer_driver_id} expired, clearing")
            if not OfferManager.clear_offer(order, now) and OfferManager.is_live(order, now):
                # Re-offered by a concurrent poll after this row was read
                if order.current_offer_driver_id == uid:
                    return Offer.for_order(order, lat, lng, now)
                return None

        store = order.store
        if not store.has_location:
            return None

        if haversine_m(lat, lng, store.latitude, store.longitude) > max_radius:
            return None

        nearby = DriverLocatorService.find_nearby(store.latitude, store.longitude, max_radius)
        eligible = [d for d in nearby if d.uid not in skipped]

        if not eligible and nearby:
            # Every driver in range has declined; start over rather than starve the order
            if uid not in {d.uid for d in nearby}:
                return None

            cleared = OfferManager.reset_skipped(order)
            AuditService.skip_list_reset(order, cleared)
            metrics.skip_list_resets.inc()
            logger.info(f"Order {order.id}: all {len(nearby)} nearby drivers skipped, skip list reset")

            return DispatchMatcher._offer(order, uid, lat, lng, branch="starvation_reset")

        if eligible and eligible[0].uid == uid:
            return DispatchMatcher._offer(order, uid, lat, lng, branch="closest")

        return None

    @staticmethod
    def _offer(order, uid, lat, lng, branch):
        OfferManager.set_offer(order, uid)
        metrics.offers_created.labels(branch=branch).inc()
        logger.info(f"Offer created for driver {uid} - Order {order.id} ({branch})")
        return Offer.for_order(order, lat, lng)
