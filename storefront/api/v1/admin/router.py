"""Admin order management and revenue endpoints"""

from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.database import get_db
from storefront.core.security import require_admin
from storefront.models import ItemStatus, Order
from storefront.services.revenue_ledger import RevenueLedger
from ..orders.schemas import OrderItemResponse
from ..orders.services import OrderService
from ..orders.state_machine import OrderStateMachine
from .schemas import (
    AdminMetrics,
    AdminOrder,
    AdminOrdersResponse,
    MetricsResponse,
    OrderStatusSummary,
    OrderStatusUpdate,
    OrderStatusUpdateResponse,
    Pagination,
    RevenueResponse,
    StatusHistoryEntry,
    StatusHistoryResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

state_machine = OrderStateMachine()

def _next_statuses(order: Order) -> List[str]:
    return [status.value for status in state_machine.get_valid_transitions(order.status)]

def _admin_order(order: Order) -> AdminOrder:
    items = [item for item in order.items if item.status == ItemStatus.CHECKED_OUT]
    return AdminOrder(
        id=order.id,
        order_number=order.order_number,
        customer_info=order.customer_info or {},
        items=[OrderItemResponse.model_validate(item) for item in items],
        total=order.checked_out_total,
        status=order.status.value,
        payment_method=order.payment_method.value,
        payment_status=order.payment_status.value,
        order_date=order.created_at,
        delivered_at=order.delivered_at,
        cancelled_at=order.cancelled_at,
        notes=order.notes,
        tracking_number=order.tracking_number,
        allowed_transitions=_next_statuses(order),
        is_final=state_machine.is_terminal_state(order.status)
    )

@router.get("/orders", response_model=AdminOrdersResponse)
async def list_orders(
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Get checked-out orders"""
    service = OrderService(db)
    orders, total = await service.list_admin_orders(status=status, page=page, size=limit)

    return AdminOrdersResponse(
        orders=[_admin_order(order) for order in orders],
        pagination=Pagination(
            current=page,
            total=(total + limit - 1) // limit,
            has_more=(page - 1) * limit + len(orders) < total
        )
    )

@router.post("/orders/{order_number}/status", response_model=OrderStatusUpdateResponse)
async def update_order_status(
    order_number: str,
    update_data: OrderStatusUpdate,
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Change an order's status"""
    service = OrderService(db)
    order = await service.set_order_status(
        order_number=order_number,
        status=update_data.status,
        notes=update_data.notes,
        tracking_number=update_data.tracking_number,
        cancellation_reason=update_data.cancellation_reason,
        changed_by=current_user["id"]
    )
    logger.info(f"Admin {current_user['id']} set order {order_number} to {order.status.value}")

    return OrderStatusUpdateResponse(
        message=f"Order status updated to {order.status.value}",
        order=OrderStatusSummary(
            id=order.id,
            order_number=order.order_number,
            status=order.status.value,
            payment_status=order.payment_status.value,
            notes=order.notes,
            tracking_number=order.tracking_number,
            delivered_at=order.delivered_at,
            cancelled_at=order.cancelled_at,
            cancellation_reason=order.cancellation_reason,
            allowed_transitions=_next_statuses(order)
        )
    )

@router.get("/orders/{order_number}/history", response_model=StatusHistoryResponse)
async def order_history(
    order_number: str,
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Get an order's status history"""
    service = OrderService(db)
    history = await service.get_order_history(order_number)

    return StatusHistoryResponse(
        order_number=order_number,
        history=[
            StatusHistoryEntry(
                status=entry.status.value,
                previous_status=entry.previous_status.value if entry.previous_status else None,
                reason=entry.reason,
                notes=entry.notes,
                changed_by=str(entry.changed_by) if entry.changed_by else None,
                created_at=entry.created_at
            )
            for entry in history
        ]
    )

@router.delete("/orders/{order_number}")
async def delete_order(
    order_number: str,
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Delete an order"""
    service = OrderService(db)
    await service.delete_order(order_number)
    logger.info(f"Admin {current_user['id']} deleted order {order_number}")
    return {"success": True, "message": "Order deleted successfully"}

@router.get("/revenue", response_model=RevenueResponse)
async def get_revenue(
    period: str = Query("daily"),
    year: Optional[int] = Query(None),
    month: Optional[int] = Query(None, ge=1, le=12),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Delivered revenue by day, month or year"""
    ledger = RevenueLedger(db)
    data = await ledger.get_revenue(period=period, year=year, month=month)
    return RevenueResponse(period=period, data=data)

@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics(
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Dashboard counters"""
    ledger = RevenueLedger(db)
    metrics = await ledger.get_metrics()
    return MetricsResponse(metrics=AdminMetrics(**metrics))
