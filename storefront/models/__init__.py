"""Models package initialization"""

from .base import Base
from .user import User, UserRole
from .product import Product
from .cart import CartLine
from .order import (
    Order, OrderItem, OrderStatus, OrderStatusHistory, PaymentMethod, PaymentStatus, ItemStatus
)
from .revenue import RevenueBucket
from .notification import PaymentNotification, PaymentNotificationType

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Product",
    "CartLine",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderStatusHistory",
    "PaymentMethod",
    "PaymentStatus",
    "ItemStatus",
    "RevenueBucket",
    "PaymentNotification",
    "PaymentNotificationType",
]
