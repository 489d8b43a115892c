"""Cleanup and maintenance tasks"""

from celery.utils.log import get_task_logger
from typing import Optional
import asyncio

from storefront.core.celery_app import celery_app
from storefront.core.database import get_db_context, close_db
from storefront.api.v1.orders.services import OrderService

logger = get_task_logger(__name__)

async def _expire_abandoned_orders(ttl_days: Optional[int]) -> int:
    try:
        async with get_db_context() as db:
            return await OrderService(db).expire_stale_pending_orders(ttl_days)
    finally:
        # Pooled connections are bound to this event loop
        await close_db()

@celery_app.task(name="expire_abandoned_orders")
def expire_abandoned_orders(ttl_days: Optional[int] = None):
    """Cancel pending orders whose carts were abandoned"""
    try:
        expired = asyncio.run(_expire_abandoned_orders(ttl_days))
        logger.info(f"Expired {expired} abandoned pending orders")
        return {"orders_expired": expired}

    except Exception as e:
        logger.error(f"Error expiring abandoned orders: {str(e)}")
        raise
