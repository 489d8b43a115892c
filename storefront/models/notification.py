"""Payment notifications shown to customers"""

from sqlalchemy import Column, String, Boolean, Integer, Text, Enum, ForeignKey, Index, Uuid
import enum

from .base import Base, TimestampedModel

class PaymentNotificationType(str, enum.Enum):
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_FAILED = "payment_failed"
    ORDER_PROCESSED = "order_processed"

class PaymentNotification(Base, TimestampedModel):
    """Order/payment event addressed to one user"""

    __tablename__ = "payment_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(20), nullable=False)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(
        Enum(
            PaymentNotificationType,
            values_callable=lambda e: [m.value for m in e],
            name="payment_notification_type"
        ),
        nullable=False
    )
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("idx_payment_notifications_user_created", "user_id", "created_at"),
        Index("idx_payment_notifications_read", "is_read"),
    )
