"""
Shopping cart model
One row per (user, product, size); the row is deleted when its quantity reaches zero
"""

from sqlalchemy import Column, String, Integer, ForeignKey, Index, UniqueConstraint, CheckConstraint, Uuid
import uuid

from .base import Base, TimestampedModel

class CartLine(Base, TimestampedModel):
    """Quantity of one product size in a user's cart"""

    __tablename__ = "cart_lines"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    size = Column(String(20), nullable=False)

    quantity = Column(Integer, nullable=False)

    # Constraints
    __table_args__ = (
        UniqueConstraint("user_id", "product_id", "size", name="uq_cart_user_product_size"),
        CheckConstraint("quantity > 0", name="check_positive_cart_quantity"),
        Index("idx_cart_lines_user", "user_id"),
    )
