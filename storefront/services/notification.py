"""
Notification service for order and payment events
Persists in-app payment notifications; customer emails go out through
Celery once the order change has been committed
"""

from typing import List
import logging

from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from storefront.core.exceptions import NotFoundException
from storefront.models import Order, PaymentNotification, PaymentNotificationType
from storefront.tasks.email_tasks import send_order_email

logger = logging.getLogger(__name__)

# session.info key holding (order_id, notification_type, status) tuples
PENDING_EMAILS_KEY = "pending_order_emails"

@event.listens_for(Session, "after_commit")
def dispatch_order_emails(session: Session) -> None:
    """Queue the emails of a committed transaction"""
    for order_id, notification_type, status in session.info.pop(PENDING_EMAILS_KEY, []):
        try:
            send_order_email.delay(order_id, notification_type, status)
        except Exception:
            logger.exception(f"Failed to queue {notification_type} email for order {order_id}")

@event.listens_for(Session, "after_transaction_end")
def discard_order_emails(session: Session, transaction) -> None:
    """Drop emails of a transaction that ended without a commit"""
    if transaction.parent is None:
        session.info.pop(PENDING_EMAILS_KEY, None)

class NotificationService:
    """Service for order/payment notifications"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def notify_order_event(
        self,
        user_id,
        order: Order,
        type: PaymentNotificationType,
        message: str
    ) -> None:
        """
        Record a payment notification and schedule the customer email.

        The email is queued when the surrounding transaction commits and
        dropped if it rolls back. Never raises: a failed notification must
        not undo the order change that triggered it.
        """
        try:
            async with self.db.begin_nested():
                self.db.add(PaymentNotification(
                    order_number=order.order_number,
                    user_id=user_id,
                    type=type,
                    message=message
                ))
        except Exception:
            logger.exception(f"Failed to store {type.value} notification for order {order.order_number}")
            return

        self.db.info.setdefault(PENDING_EMAILS_KEY, []).append(
            (order.id, type.value, order.status.value)
        )

    async def notify_admins(self, message: str, level: int = logging.INFO) -> None:
        """Admin activity feed; currently the application log"""
        logger.log(level, f"[admin] {message}")

    async def list_payment_notifications(self, user_id, limit: int = 50) -> List[PaymentNotification]:
        """Get a user's payment notifications, newest first"""
        result = await self.db.execute(
            select(PaymentNotification)
            .where(PaymentNotification.user_id == user_id)
            .order_by(PaymentNotification.created_at.desc(), PaymentNotification.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def mark_as_read(self, user_id, notification_id: int) -> PaymentNotification:
        """
        Mark one of the user's notifications as read

        Raises:
            NotFoundException: If the notification does not exist or belongs to someone else
        """
        result = await self.db.execute(
            select(PaymentNotification).where(
                PaymentNotification.id == notification_id,
                PaymentNotification.user_id == user_id
            )
        )
        notification = result.scalar_one_or_none()
        if not notification:
            raise NotFoundException("Notification not found", error_code="NOTIFICATION_NOT_FOUND")

        notification.is_read = True
        await self.db.flush()
        return notification
