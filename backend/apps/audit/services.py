from django.utils import timezone
from .models import AuditLog

class AuditService:
    """
    Centralized Audit Logging.
    Writes immutable logs for compliance and dispute handling.
    """

    @staticmethod
    def log(action, reference_id, user, metadata):
        AuditLog.objects.create(
            user=user,
            action=action,
            reference_id=reference_id,
            metadata=metadata,
            created_at=timezone.now()
        )

    @staticmethod
    def order_assigned(order, driver, reclaimed=False):
        AuditService.log(
            action="order_reclaimed" if reclaimed else "order_assigned",
            reference_id=str(order.id),
            user=driver.user,
            metadata={"driver_uid": driver.uid, "store_id": order.store_id},
        )

    @staticmethod
    def skip_list_reset(order, cleared):
        AuditService.log(
            action="skip_list_reset",
            reference_id=str(order.id),
            user=None,
            metadata={"cleared_driver_uids": list(cleared)},
        )

    @staticmethod
    def order_picked_up(order, driver):
        AuditService.log(
            action="order_picked_up",
            reference_id=str(order.id),
            user=driver.user,
            metadata={"driver_uid": driver.uid},
        )

    @staticmethod
    def delivery_completed(order, driver, earnings):
        AuditService.log(
            action="delivery_completed",
            reference_id=str(order.id),
            user=driver.user,
            metadata={
                "driver_uid": driver.uid,
                "amount": str(order.total_price),
                "earnings": str(earnings),
            },
        )

    @staticmethod
    def order_cancelled(order, previous_driver_uid=None):
        AuditService.log(
            action="order_cancelled",
            reference_id=str(order.id),
            user=order.user,
            metadata={"previous_driver_uid": previous_driver_uid},
        )
