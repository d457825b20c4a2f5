# apps/delivery/tasks.py
import logging
from datetime import timedelta

from celery import shared_task
from django.utils import timezone

from apps.orders.services import OrderQueueService

from . import conf

logger = logging.getLogger(__name__)


@shared_task(queue='low_priority')
def monitor_unassigned_orders():
    """
    SLA Monitor: warns when dispatchable orders have waited too long for a driver.
    Observes only; offers still expire lazily and nothing is reassigned here.
    """
    minutes = conf.get("SLA_MINUTES")
    limit = timezone.now() - timedelta(minutes=minutes)

    waiting = OrderQueueService.pending_for_assignment().filter(created_at__lt=limit)
    count = waiting.count()

    if count:
        oldest = waiting.first()
        msg = (
            f"[SLA BREACH] {count} orders unassigned for more than {minutes} minutes "
            f"(oldest: #{oldest.id}, store {oldest.store_id})"
        )
        logger.warning(msg)
        return msg

    return "All systems nominal"
