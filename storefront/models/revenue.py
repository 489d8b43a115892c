"""Per-day revenue aggregates"""

from sqlalchemy import Column, Integer, Numeric, Date, Index
from decimal import Decimal

from .base import Base, TimestampedModel

class RevenueBucket(Base, TimestampedModel):
    """
    One row per calendar day. Counters are only ever changed with in-database
    increments by the revenue ledger; rows are never deleted.
    """

    __tablename__ = "revenue_buckets"

    id = Column(Integer, primary_key=True, autoincrement=True)

    date = Column(Date, nullable=False, unique=True)
    day = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)

    orders_count = Column(Integer, nullable=False, default=0)
    daily_revenue = Column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    delivered_revenue = Column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    pending_revenue = Column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    cancelled_revenue = Column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    checked_out_revenue = Column(Numeric(14, 2), nullable=False, default=Decimal("0"))

    __table_args__ = (
        Index("idx_revenue_year_month_day", "year", "month", "day"),
    )
