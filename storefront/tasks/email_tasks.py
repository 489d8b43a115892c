"""Order email background tasks"""

from celery import Task
from celery.utils.log import get_task_logger
from typing import Any, Dict, Optional
import asyncio

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.celery_app import celery_app
from storefront.core.database import get_db_context, close_db
from storefront.models import ItemStatus, Order, PaymentNotificationType, User
from storefront.services.email_service import EmailService

logger = get_task_logger(__name__)

class EmailTask(Task):
    """Base email task with retry logic"""
    autoretry_for = (Exception,)
    retry_kwargs = {"max_retries": 3}
    retry_backoff = True
    retry_backoff_max = 600
    retry_jitter = True

def order_email_data(order: Order) -> Dict[str, Any]:
    """Template context for one order; only checked-out items are listed"""
    info = order.customer_info or {}
    return {
        "id": order.id,
        "order_number": order.order_number,
        "customer_name": info.get("name"),
        "shipping_address": info.get("address"),
        "total": order.total,
        "payment_method": order.payment_method.value,
        "tracking_number": order.tracking_number,
        "cancellation_reason": order.cancellation_reason,
        "items": [
            {
                "product_name": item.product_name,
                "size": item.size,
                "quantity": item.quantity,
                "price": item.price,
                "item_total": item.item_total,
            }
            for item in order.items
            if item.status == ItemStatus.CHECKED_OUT
        ],
    }

async def deliver_order_email(
    db: AsyncSession,
    order_id: int,
    notification_type: str,
    status: Optional[str] = None
) -> bool:
    """
    Render and send the customer email for one committed order event

    Returns:
        True when the message was handed to the SMTP server
    """
    order = await db.get(Order, order_id)
    if order is None:
        logger.warning(f"Order {order_id} no longer exists, {notification_type} email dropped")
        return False

    user = await db.get(User, order.user_id)
    if not user or not user.email:
        logger.warning(f"No email address for order {order.order_number}")
        return False

    email_service = EmailService()
    order_data = order_email_data(order)

    if notification_type == PaymentNotificationType.ORDER_PROCESSED.value:
        return await email_service.send_order_confirmation(user.email, order_data)
    return await email_service.send_order_status_update(
        user.email, order_data, status or order.status.value
    )

async def _send_order_email(order_id: int, notification_type: str, status: Optional[str]) -> bool:
    try:
        async with get_db_context() as db:
            return await deliver_order_email(db, order_id, notification_type, status)
    finally:
        # Pooled connections are bound to this event loop
        await close_db()

@celery_app.task(base=EmailTask, name="send_order_email")
def send_order_email(order_id: int, notification_type: str, status: Optional[str] = None):
    """Send the email for an order event"""
    sent = asyncio.run(_send_order_email(order_id, notification_type, status))
    logger.info(f"Order {order_id} {notification_type} email {'sent' if sent else 'not sent'}")
    return {"success": sent}
