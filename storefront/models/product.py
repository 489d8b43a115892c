"""Product catalog model"""

from sqlalchemy import Column, String, Integer, Numeric, Boolean, JSON

from .base import Base, TimestampedModel

class Product(Base, TimestampedModel):
    """Catalog entry, addressed by its numeric id"""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)

    name = Column(String(255), nullable=False, index=True)
    image = Column(String(500))
    category = Column(String(100), index=True)

    # Pricing
    new_price = Column(Numeric(10, 2), nullable=False)
    old_price = Column(Numeric(10, 2))

    # Empty list means the store-wide default sizes apply
    sizes = Column(JSON, default=list, nullable=False)

    is_available = Column(Boolean, default=True, nullable=False)
