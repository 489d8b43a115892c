"""Order model: the unit the cart reconciles into and the ledger accounts for"""

from sqlalchemy import (
    Column, String, Numeric, Integer, Enum, ForeignKey, Index, Text, DateTime, Date, Boolean, JSON, Uuid, text
)
from sqlalchemy.orm import relationship
from decimal import Decimal
import enum

from .base import Base, TimestampedModel

class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

class PaymentMethod(str, enum.Enum):
    CASH_ON_DELIVERY = "cash_on_delivery"
    BANK_TRANSFER = "bank_transfer"
    STRIPE = "stripe"
    PAYPAL = "paypal"

class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"

class ItemStatus(str, enum.Enum):
    IN_CART = "in_cart"
    CHECKED_OUT = "checked_out"

def _values(enum_cls):
    return [member.value for member in enum_cls]

class Order(Base, TimestampedModel):
    """
    Customer order.

    While ``status`` is pending the order mirrors the owner's cart; at most one
    pending order may exist per user (enforced by a partial unique index).
    ``customer_info`` is a snapshot copied at creation or checkout and is not
    kept in sync with later profile edits.
    """

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Sequential, zero-padded; derived from id right after the first flush
    order_number = Column(String(20), unique=True, nullable=True, index=True)

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    customer_info = Column(JSON, nullable=False, default=dict)

    total = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    # Status
    status = Column(
        Enum(OrderStatus, values_callable=_values, name="order_status"),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )
    payment_method = Column(
        Enum(PaymentMethod, values_callable=_values, name="payment_method"),
        default=PaymentMethod.CASH_ON_DELIVERY,
        nullable=False
    )
    payment_status = Column(
        Enum(PaymentStatus, values_callable=_values, name="payment_status"),
        default=PaymentStatus.PENDING,
        nullable=False
    )
    transaction_id = Column(String(200))

    # Fulfilment
    notes = Column(Text)
    tracking_number = Column(String(100))
    checked_out_at = Column(DateTime(timezone=True))
    delivered_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))
    cancellation_reason = Column(String(500))

    # What this order has already contributed to the revenue ledger
    ledger_day = Column(Date)
    ledger_bucket = Column(String(20))
    ledger_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    ledger_checked_out = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    ledger_counted = Column(Boolean, nullable=False, default=False)

    # Optimistic concurrency: a stale read-modify-write fails at flush
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id"
    )

    __mapper_args__ = {"version_id_col": version}

    # Indexes
    __table_args__ = (
        Index(
            "uq_orders_one_pending_per_user",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("idx_orders_user_created", "user_id", "created_at"),
        Index("idx_orders_status_created", "status", "created_at"),
        Index("idx_orders_payment_status", "payment_status"),
    )

    def recalculate_total(self) -> Decimal:
        """Sync every item total, then the order total"""
        for item in self.items:
            item.recalculate()
        self.total = sum((item.item_total for item in self.items), Decimal("0"))
        return self.total

    @property
    def checked_out_total(self) -> Decimal:
        return sum(
            (item.item_total for item in self.items if item.status == ItemStatus.CHECKED_OUT),
            Decimal("0")
        )

    def find_item(self, product_id: int, size: str, status: ItemStatus = ItemStatus.IN_CART):
        for item in self.items:
            if item.product_id == product_id and item.size == size and item.status == status:
                return item
        return None

class OrderItem(Base, TimestampedModel):
    """Line within an order; product fields are a snapshot at time of adding"""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)

    product_id = Column(Integer, nullable=False)
    product_name = Column(String(255), nullable=False)
    product_image = Column(String(500))

    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    size = Column(String(20), nullable=True)
    item_total = Column(Numeric(12, 2), nullable=False)

    status = Column(
        Enum(ItemStatus, values_callable=_values, name="order_item_status"),
        default=ItemStatus.IN_CART,
        nullable=False
    )

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        Index("idx_order_items_order_product", "order_id", "product_id"),
    )

    def recalculate(self) -> Decimal:
        self.item_total = Decimal(self.price) * self.quantity
        return self.item_total

class OrderStatusHistory(Base, TimestampedModel):
    """Track order status changes"""

    __tablename__ = "order_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    status = Column(Enum(OrderStatus, values_callable=_values, name="order_status"), nullable=False)
    previous_status = Column(Enum(OrderStatus, values_callable=_values, name="order_status"), nullable=True)
    reason = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    changed_by = Column(Uuid(as_uuid=True), nullable=True)

    __table_args__ = (
        Index("idx_order_status_history_order", "order_id"),
    )
