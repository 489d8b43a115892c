"""
Revenue ledger: per-day aggregates maintained from order state changes

Every order remembers what it has already contributed to the ledger
(``Order.ledger_*``). An update applies only the difference between the
order's current contribution and the recorded one, so replaying the same
state is a no-op and status changes move money between buckets instead of
adding it twice.
"""

from collections import defaultdict
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import select, update, insert, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.exceptions import ValidationException
from storefront.models import Order, OrderStatus, Product, RevenueBucket, User

logger = logging.getLogger(__name__)

LEDGER_ACTIONS = ("add", "update", "remove")
REVENUE_PERIODS = ("daily", "monthly", "yearly")

def status_bucket(status: OrderStatus) -> str:
    """Map an order status to the revenue bucket it is accounted in"""
    if status == OrderStatus.DELIVERED:
        return "delivered"
    if status == OrderStatus.CANCELLED:
        return "cancelled"
    return "pending"

def bucket_day(created_at: datetime) -> date:
    """UTC calendar day an order is accounted on"""
    if created_at.tzinfo is None:
        return created_at.date()
    return created_at.astimezone(timezone.utc).date()

def _columns(day: Optional[date], bucket: Optional[str], amount, checked_out, counted: bool):
    """Counter values one order contributes to its day bucket"""
    if day is None or not counted:
        return {}

    amount = Decimal(amount or 0)
    values = {
        "orders_count": Decimal(1),
        "checked_out_revenue": Decimal(checked_out or 0),
        f"{bucket}_revenue": amount,
    }
    if bucket == "delivered":
        values["daily_revenue"] = amount
    return {day: values}

class RevenueLedger:
    """Maintains and reports the revenue_buckets table"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def update_revenue(self, order: Order, action: str = "update") -> None:
        """
        Bring the ledger in line with the order's current state.

        Args:
            order: Flushed order (``created_at`` and ``total`` must be set)
            action: ``add`` for a new order, ``update`` after any change,
                ``remove`` before the order is deleted

        Never raises. On failure the savepoint is rolled back, the error is
        logged and the order's recorded contribution is left untouched so the
        next update heals the difference.
        """
        if action not in LEDGER_ACTIONS:
            logger.error(f"Unknown revenue action {action!r} for order {order.order_number}")
            return

        if action == "remove":
            target = (None, None, Decimal("0"), Decimal("0"), False)
        else:
            target = (
                bucket_day(order.created_at),
                status_bucket(order.status),
                Decimal(order.total or 0),
                order.checked_out_total,
                True,
            )

        recorded = (
            order.ledger_day,
            order.ledger_bucket,
            order.ledger_amount,
            order.ledger_checked_out,
            order.ledger_counted,
        )

        try:
            async with self.db.begin_nested():
                await self._apply(recorded, target)
        except Exception:
            logger.exception(f"Error updating revenue for order {order.order_number} ({action})")
            return

        (
            order.ledger_day,
            order.ledger_bucket,
            order.ledger_amount,
            order.ledger_checked_out,
            order.ledger_counted,
        ) = target

    async def _apply(self, recorded: tuple, target: tuple) -> None:
        deltas: Dict[date, Dict[str, Decimal]] = defaultdict(lambda: defaultdict(Decimal))
        for day, values in _columns(*target).items():
            for column, value in values.items():
                deltas[day][column] += value
        for day, values in _columns(*recorded).items():
            for column, value in values.items():
                deltas[day][column] -= value

        for day, values in deltas.items():
            changes = {column: value for column, value in values.items() if value != 0}
            if not changes:
                continue

            await self._ensure_bucket(day)
            await self.db.execute(
                update(RevenueBucket)
                .where(RevenueBucket.date == day)
                .values(**{
                    column: getattr(RevenueBucket, column) + (
                        int(value) if column == "orders_count" else value
                    )
                    for column, value in changes.items()
                })
                .execution_options(synchronize_session=False)
            )

    async def _ensure_bucket(self, day: date) -> None:
        """Create the day's bucket unless it exists; a concurrent insert wins"""
        result = await self.db.execute(
            select(RevenueBucket.id).where(RevenueBucket.date == day)
        )
        if result.scalar_one_or_none() is not None:
            return

        try:
            async with self.db.begin_nested():
                await self.db.execute(
                    insert(RevenueBucket).values(
                        date=day,
                        day=day.day,
                        month=day.month,
                        year=day.year,
                        orders_count=0,
                        daily_revenue=Decimal("0"),
                        delivered_revenue=Decimal("0"),
                        pending_revenue=Decimal("0"),
                        cancelled_revenue=Decimal("0"),
                        checked_out_revenue=Decimal("0"),
                    )
                )
        except IntegrityError:
            logger.debug(f"Revenue bucket for {day} created concurrently")

    async def get_bucket(self, day: date) -> Optional[RevenueBucket]:
        """Get the bucket for one day, re-read from the database"""
        result = await self.db.execute(
            select(RevenueBucket)
            .where(RevenueBucket.date == day)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_revenue(
        self,
        period: str = "daily",
        year: Optional[int] = None,
        month: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Delivered revenue grouped by period

        Args:
            period: ``daily`` (latest 30 days), ``monthly`` (latest 12 months)
                or ``yearly`` (all years)
            year: Only buckets of this year
            month: Only buckets of this month

        Raises:
            ValidationException: If the period is unknown
        """
        if period not in REVENUE_PERIODS:
            raise ValidationException(
                f"Invalid period '{period}'. Use one of: {', '.join(REVENUE_PERIODS)}",
                error_code="INVALID_PERIOD"
            )

        filters = []
        if year is not None:
            filters.append(RevenueBucket.year == year)
        if month is not None:
            filters.append(RevenueBucket.month == month)

        if period == "daily":
            result = await self.db.execute(
                select(RevenueBucket)
                .where(*filters)
                .order_by(RevenueBucket.date.desc())
                .limit(settings.REVENUE_DAILY_LIMIT)
                .execution_options(populate_existing=True)
            )
            return [
                {
                    "date": bucket.date.isoformat(),
                    "year": bucket.year,
                    "month": bucket.month,
                    "day": bucket.day,
                    "delivered_revenue": bucket.delivered_revenue,
                    "orders_count": bucket.orders_count,
                }
                for bucket in result.scalars().all()
            ]

        if period == "monthly":
            query = (
                select(
                    RevenueBucket.year,
                    RevenueBucket.month,
                    func.sum(RevenueBucket.delivered_revenue).label("delivered_revenue"),
                    func.sum(RevenueBucket.orders_count).label("orders_count"),
                )
                .where(*filters)
                .group_by(RevenueBucket.year, RevenueBucket.month)
                .order_by(RevenueBucket.year.desc(), RevenueBucket.month.desc())
                .limit(settings.REVENUE_MONTHLY_LIMIT)
            )
            rows = (await self.db.execute(query)).all()
            return [
                {
                    "year": row.year,
                    "month": row.month,
                    "delivered_revenue": Decimal(str(row.delivered_revenue or 0)),
                    "orders_count": int(row.orders_count or 0),
                }
                for row in rows
            ]

        query = (
            select(
                RevenueBucket.year,
                func.sum(RevenueBucket.delivered_revenue).label("delivered_revenue"),
                func.sum(RevenueBucket.orders_count).label("orders_count"),
            )
            .where(*filters)
            .group_by(RevenueBucket.year)
            .order_by(RevenueBucket.year.desc())
        )
        rows = (await self.db.execute(query)).all()
        return [
            {
                "year": row.year,
                "delivered_revenue": Decimal(str(row.delivered_revenue or 0)),
                "orders_count": int(row.orders_count or 0),
            }
            for row in rows
        ]

    async def get_metrics(self) -> Dict[str, Any]:
        """Dashboard counters; revenue comes from delivered orders themselves"""
        products_count = (await self.db.execute(select(func.count(Product.id)))).scalar() or 0
        users_count = (await self.db.execute(select(func.count(User.id)))).scalar() or 0

        delivered = (await self.db.execute(
            select(
                func.coalesce(func.sum(Order.total), 0).label("revenue"),
                func.count(Order.id).label("orders"),
            ).where(Order.status == OrderStatus.DELIVERED)
        )).one()

        return {
            "products_count": products_count,
            "users_count": users_count,
            "delivered_revenue": Decimal(str(delivered.revenue or 0)),
            "delivered_orders_count": delivered.orders or 0,
        }
