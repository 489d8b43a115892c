"""
Admin schemas for order management and revenue reporting
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal

from ..orders.schemas import OrderItemResponse

class OrderStatusUpdate(BaseModel):
    """Schema for an admin status change"""
    status: str
    notes: Optional[str] = Field(None, max_length=2000)
    tracking_number: Optional[str] = Field(None, max_length=100)
    cancellation_reason: Optional[str] = Field(None, max_length=500)

class OrderStatusSummary(BaseModel):
    id: int
    order_number: str
    status: str
    payment_status: str
    notes: Optional[str] = None
    tracking_number: Optional[str] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    allowed_transitions: List[str] = Field(default_factory=list)

    class Config:
        from_attributes = True

class OrderStatusUpdateResponse(BaseModel):
    success: bool = True
    message: str
    order: OrderStatusSummary

class AdminOrder(BaseModel):
    """Order as shown on the dashboard: checked-out items only"""
    id: int
    order_number: Optional[str] = None
    customer_info: Dict[str, Any]
    items: List[OrderItemResponse]
    total: Decimal
    status: str
    payment_method: str
    payment_status: str
    order_date: datetime
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    notes: Optional[str] = None
    tracking_number: Optional[str] = None
    allowed_transitions: List[str] = Field(default_factory=list)
    is_final: bool = False

class Pagination(BaseModel):
    current: int
    total: int
    has_more: bool

class AdminOrdersResponse(BaseModel):
    success: bool = True
    orders: List[AdminOrder]
    pagination: Pagination

class StatusHistoryEntry(BaseModel):
    status: str
    previous_status: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    changed_by: Optional[str] = None
    created_at: datetime

class StatusHistoryResponse(BaseModel):
    success: bool = True
    order_number: str
    history: List[StatusHistoryEntry]

class RevenueResponse(BaseModel):
    success: bool = True
    period: str
    data: List[Dict[str, Any]]

class AdminMetrics(BaseModel):
    products_count: int
    users_count: int
    delivered_revenue: Decimal
    delivered_orders_count: int

class MetricsResponse(BaseModel):
    success: bool = True
    metrics: AdminMetrics
