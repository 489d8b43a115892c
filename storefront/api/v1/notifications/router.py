"""Payment notification endpoints"""

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.database import get_db
from storefront.core.security import get_current_user
from storefront.services.notification import NotificationService

router = APIRouter()

class PaymentNotificationResponse(BaseModel):
    id: int
    order_number: str
    type: str
    message: str
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True

class PaymentNotificationList(BaseModel):
    success: bool = True
    notifications: List[PaymentNotificationResponse]
    unread_count: int

@router.get("/payments", response_model=PaymentNotificationList)
async def list_payment_notifications(
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get the current user's payment notifications"""
    service = NotificationService(db)
    notifications = await service.list_payment_notifications(current_user["id"], limit=limit)

    return PaymentNotificationList(
        notifications=[PaymentNotificationResponse.model_validate(n) for n in notifications],
        unread_count=sum(1 for n in notifications if not n.is_read)
    )

@router.patch("/payments/{notification_id}/read")
async def mark_notification_read(
    notification_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Mark a payment notification as read"""
    service = NotificationService(db)
    await service.mark_as_read(current_user["id"], notification_id)
    return {"success": True, "message": "Notification marked as read"}
