"""
Order schemas for request/response validation
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Union
from datetime import datetime
from decimal import Decimal

class ShippingAddress(BaseModel):
    """Structured shipping address"""
    address: str = Field(..., min_length=1, max_length=500)
    region: Optional[str] = Field(None, max_length=100)

class CheckoutRequest(BaseModel):
    """Schema for checkout"""
    address: Union[str, ShippingAddress]
    phone: str = Field(..., min_length=1, max_length=30)
    payment_method: str
    transaction_id: Optional[str] = Field(None, max_length=200)

class OrderItemResponse(BaseModel):
    """Schema for order item response"""
    product_id: int
    product_name: str
    product_image: Optional[str] = None
    price: Decimal
    quantity: int
    size: Optional[str] = None
    item_total: Decimal
    status: str

    class Config:
        from_attributes = True

class OrderResponse(BaseModel):
    """Schema for order response"""
    id: int
    order_number: Optional[str] = None
    customer_info: Dict[str, Any]
    items: List[OrderItemResponse]
    total: Decimal
    status: str
    payment_method: str
    payment_status: str
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    tracking_number: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    checked_out_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class CheckoutResponse(BaseModel):
    success: bool = True
    message: str
    order: Dict[str, Any]

class OrderListResponse(BaseModel):
    success: bool = True
    orders: List[OrderResponse]
