# apps/delivery/offers.py
import json
import logging
from datetime import timedelta

from django.db import transaction
from django.utils import timezone

from apps.orders.models import Order

from . import conf

logger = logging.getLogger(__name__)


class OfferManager:
    """
    Offer and skip-list state kept on the order row itself.

    An offer is the (current_offer_driver, offer_expires_at) pair. It expires
    by wall-clock comparison when read; nothing sweeps it.
    """

    @staticmethod
    def parse_skip_list(raw, order_id=None):
        """
        Normalises a stored skip list into a list of uid strings.
        Anything unreadable is logged and treated as empty so a poll never fails on it.
        """
        if raw in (None, ""):
            return []

        value = raw
        if isinstance(raw, (str, bytes)):
            try:
                value = json.loads(raw)
            except ValueError:
                logger.warning(f"Order {order_id}: malformed skipped_driver_ids {raw!r}, treating as empty")
                return []

        if not isinstance(value, list):
            logger.warning(f"Order {order_id}: skipped_driver_ids is {type(value).__name__}, treating as empty")
            return []

        # Keep first-seen order, drop duplicates and junk entries
        seen = []
        for uid in value:
            if isinstance(uid, (str, int)) and str(uid) not in seen:
                seen.append(str(uid))
        return seen

    @staticmethod
    def has_offer(order):
        return bool(order.current_offer_driver_id and order.offer_expires_at)

    @staticmethod
    def is_live(order, now=None):
        now = now or timezone.now()
        return OfferManager.has_offer(order) and order.offer_expires_at > now

    @staticmethod
    def remaining_seconds(order, now=None):
        now = now or timezone.now()
        if not OfferManager.has_offer(order):
            return 0
        return max(0, int((order.offer_expires_at - now).total_seconds()))

    @staticmethod
    @transaction.atomic
    def set_offer(order, uid, ttl=None):
        """
        Offers the order to `uid` for `ttl` seconds. Any other offer the
        driver holds is withdrawn first so a driver is never offered two orders.
        """
        if ttl is None:
            ttl = conf.get("OFFER_TTL_SECONDS")

        Order.objects.filter(current_offer_driver_id=uid).exclude(pk=order.pk).update(
            current_offer_driver=None, offer_expires_at=None, updated_at=timezone.now()
        )

        order.current_offer_driver_id = uid
        order.offer_expires_at = timezone.now() + timedelta(seconds=ttl)
        order.save(update_fields=["current_offer_driver", "offer_expires_at", "updated_at"])
        return order

    @staticmethod
    def clear_offer(order, now=None):
        """
        Withdraws an expired offer. Only clears the row if its offer is still
        expired, so a fresh offer written since `order` was read survives.
        Returns True when the row was cleared; otherwise `order` is reloaded.
        """
        now = now or timezone.now()
        cleared = Order.objects.filter(pk=order.pk, offer_expires_at__lte=now).update(
            current_offer_driver=None, offer_expires_at=None, updated_at=now
        )
        if cleared:
            order.current_offer_driver = None
            order.offer_expires_at = None
        else:
            order.refresh_from_db(fields=["current_offer_driver", "offer_expires_at"])
        return bool(cleared)

    @staticmethod
    @transaction.atomic
    def add_skipped(order, uid):
        """
        Idempotently records `uid` as having declined, then withdraws the offer.
        A live offer held by another driver is left alone.
        The row lock keeps concurrent skips from overwriting each other's entries.
        """
        locked = Order.objects.select_for_update().get(pk=order.pk)

        skipped = OfferManager.parse_skip_list(locked.skipped_driver_ids, order_id=locked.pk)
        if uid not in skipped:
            skipped.append(uid)

        locked.skipped_driver_ids = skipped
        if locked.current_offer_driver_id == uid or not OfferManager.is_live(locked):
            locked.current_offer_driver = None
            locked.offer_expires_at = None
        locked.save(update_fields=[
            "skipped_driver_ids", "current_offer_driver", "offer_expires_at", "updated_at"
        ])
        return locked

    @staticmethod
    def reset_skipped(order):
        """
        Empties the skip list. Returns what was cleared.
        """
        cleared = OfferManager.parse_skip_list(order.skipped_driver_ids, order_id=order.pk)
        order.skipped_driver_ids = []
        order.save(update_fields=["skipped_driver_ids", "updated_at"])
        return cleared
