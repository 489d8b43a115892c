"""
Cart schemas for request/response validation
"""

from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from decimal import Decimal

class CartLineRequest(BaseModel):
    """Identifies one product size in the cart"""
    product_id: int
    size: Optional[str] = None

class AddToCartRequest(CartLineRequest):
    """Schema for adding to the cart; quantity is a signed delta"""
    quantity: int = 1
    payment_method: Optional[str] = None

class UpdateCartQuantityRequest(CartLineRequest):
    """Schema for setting an absolute quantity"""
    quantity: int
    payment_method: Optional[str] = None

class CartResponse(BaseModel):
    """Cart snapshot keyed by product id then size"""
    success: bool = True
    message: str
    cart: Dict[int, Dict[str, int]]
    total_items: int

class CartProduct(BaseModel):
    id: int
    name: str
    image: Optional[str] = None
    category: Optional[str] = None
    new_price: Decimal
    old_price: Optional[Decimal] = None

class CartDetailItem(BaseModel):
    key: str
    product: CartProduct
    size: str
    quantity: int
    item_total: Decimal

class CartSummary(BaseModel):
    total_items: int
    total_amount: Decimal
    items_count: int

class CartDetailsResponse(BaseModel):
    success: bool = True
    items: List[CartDetailItem] = Field(default_factory=list)
    summary: CartSummary
