# marketplace/services/notification_service.py
from marketplace.celery_worker import celery_app
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Order notifications, processed asynchronously by Celery.
    Dispatch is best effort: the order is already committed when we get here.
    """

    def send_order_notification(self, user_id: int, order_id: int, order_number: str, status: str):
        try:
            send_order_notification_task.delay(user_id, order_id, order_number, status)
        except Exception as e:
            logger.warning(f"Could not enqueue notification for order {order_number}: {e}")


@celery_app.task(name="marketplace.services.notification_service.send_order_notification_task")
def send_order_notification_task(user_id: int, order_id: int, order_number: str, status: str):
    """
    Celery task. Message content and delivery channels live elsewhere;
    here we only record that the user has to be told.
    """
    logger.info(f"[NOTIFICATION] User {user_id}: order {order_number} ({order_id}) is now {status}")

    return {"user_id": user_id, "order_id": order_id, "status": status, "sent": True}
