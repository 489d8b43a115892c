"""
Order service layer
Keeps the pending order in step with the cart and applies admin status changes
"""

from typing import Any, Dict, List, Optional, Tuple
from datetime import timedelta
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
import logging
import uuid

from storefront.core.config import settings
from storefront.core.database import flush_or_conflict
from storefront.core.exceptions import (
    NotFoundException,
    ValidationException,
    InvalidStatusTransitionException
)
from storefront.models import (
    CartLine,
    ItemStatus,
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusHistory,
    PaymentMethod,
    PaymentNotificationType,
    PaymentStatus,
    Product,
    User,
)
from storefront.models.base import utcnow
from storefront.services.catalog import UserStore
from storefront.services.notification import NotificationService
from storefront.services.revenue_ledger import RevenueLedger
from .state_machine import OrderStateMachine

logger = logging.getLogger(__name__)

# Informal labels sent by storefront clients
PAYMENT_METHOD_ALIASES = {
    "cash": PaymentMethod.CASH_ON_DELIVERY,
    "cod": PaymentMethod.CASH_ON_DELIVERY,
    "online": PaymentMethod.BANK_TRANSFER,
    "bank": PaymentMethod.BANK_TRANSFER,
    "card": PaymentMethod.STRIPE,
}

def normalize_payment_method(value: Any) -> Optional[PaymentMethod]:
    """
    Map a client payment label to a PaymentMethod

    Returns:
        None when no hint was given

    Raises:
        ValidationException: If the label is not recognised
    """
    if value is None or value == "":
        return None
    if isinstance(value, PaymentMethod):
        return value

    key = str(value).strip().lower()
    if key in PAYMENT_METHOD_ALIASES:
        return PAYMENT_METHOD_ALIASES[key]
    try:
        return PaymentMethod(key)
    except ValueError:
        raise ValidationException(
            f"Invalid payment method '{value}'",
            error_code="INVALID_PAYMENT_METHOD"
        )

def customer_snapshot(
    user: User,
    phone: Optional[str] = None,
    address: Optional[str] = None,
    region: Optional[str] = None
) -> Dict[str, Any]:
    """Customer details frozen into an order"""
    unspecified = settings.UNSPECIFIED_FIELD_VALUE
    return {
        "name": user.full_name or settings.UNKNOWN_CUSTOMER_NAME,
        "email": user.email,
        "phone": phone or user.phone or unspecified,
        "address": address or user.address or unspecified,
        "region": region or user.region or unspecified,
    }

def build_order_item(
    product: Product,
    quantity: int,
    size: Optional[str],
    status: ItemStatus = ItemStatus.IN_CART
) -> OrderItem:
    """Order line priced at the product's current price"""
    item = OrderItem(
        product_id=product.id,
        product_name=product.name,
        product_image=product.image,
        price=product.new_price,
        quantity=quantity,
        size=size,
        status=status
    )
    item.recalculate()
    return item

def format_order_number(order_id: int) -> str:
    return f"{settings.ORDER_NUMBER_PREFIX}{order_id:0{settings.ORDER_NUMBER_WIDTH}d}"

class OrderService:
    """Order reconciliation and administration"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.state_machine = OrderStateMachine()
        self.ledger = RevenueLedger(db)
        self.notifications = NotificationService(db)
        self.users = UserStore(db)

    async def get_pending_order(self, user_id: uuid.UUID, lock: bool = True) -> Optional[Order]:
        """
        Get the user's pending order

        Args:
            user_id: Owner of the order
            lock: Select FOR UPDATE where the database supports it
        """
        query = select(Order).where(
            Order.user_id == user_id,
            Order.status == OrderStatus.PENDING
        )
        if lock:
            query = query.with_for_update()

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_order(self, order_number: str, lock: bool = False) -> Order:
        """
        Get order by number

        Raises:
            NotFoundException: If no order has this number
        """
        query = select(Order).where(Order.order_number == order_number)
        if lock:
            query = query.with_for_update()

        result = await self.db.execute(query)
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundException("Order not found", error_code="ORDER_NOT_FOUND")
        return order

    async def reconcile(
        self,
        user_id: uuid.UUID,
        product: Product,
        quantity: int,
        size: Optional[str],
        payment_method: Any = None,
        action: str = "add"
    ) -> Optional[Order]:
        """
        Apply a cart change to the user's pending order

        Args:
            user_id: Cart owner
            product: Product whose line changed
            quantity: Signed quantity delta that was applied to the cart
            size: Size of the changed line
            payment_method: Optional payment hint from the client
            action: ``add`` when the change came from adding to the cart

        Returns:
            The pending (or just cancelled) order, None if nothing changed
        """
        method = normalize_payment_method(payment_method)
        order = await self.get_pending_order(user_id)

        if order is None:
            if action != "add" or quantity <= 0:
                return None
            return await self._create_pending_order(user_id, product, quantity, size, method)

        item = order.find_item(product.id, size)
        if item:
            item.quantity += quantity
            if item.quantity <= 0:
                order.items.remove(item)
            else:
                item.recalculate()
        elif quantity > 0:
            order.items.append(build_order_item(product, quantity, size))

        if method and method != order.payment_method:
            order.payment_method = method

        order.recalculate_total()

        if not order.items:
            self._cancel(order, "All items removed from cart")

        await flush_or_conflict(self.db)
        await self.ledger.update_revenue(order, "update")

        logger.info(f"Order updated: {order.order_number}, status {order.status.value}, total {order.total}")
        return order

    async def _create_pending_order(
        self,
        user_id: uuid.UUID,
        product: Product,
        quantity: int,
        size: Optional[str],
        method: Optional[PaymentMethod]
    ) -> Order:
        user = await self.users.get_user(user_id)

        order = Order(
            user_id=user_id,
            customer_info=customer_snapshot(user),
            status=OrderStatus.PENDING,
            payment_method=method or PaymentMethod.CASH_ON_DELIVERY,
            payment_status=PaymentStatus.PENDING
        )

        # The cart already holds the delta; seed from all of it
        for line, line_product in await self._cart_lines_with_products(user_id):
            order.items.append(build_order_item(line_product, line.quantity, line.size))
        if not order.items:
            order.items.append(build_order_item(product, quantity, size))

        order.recalculate_total()
        self.db.add(order)
        await flush_or_conflict(self.db)

        order.order_number = format_order_number(order.id)
        self.db.add(OrderStatusHistory(
            order_id=order.id,
            status=OrderStatus.PENDING,
            notes="Order created from cart",
            changed_by=user_id
        ))
        await flush_or_conflict(self.db)

        await self.ledger.update_revenue(order, "add")

        logger.info(f"New order created: {order.order_number} for user {user_id}, total {order.total}")
        return order

    async def _cart_lines_with_products(self, user_id: uuid.UUID) -> List[Tuple[CartLine, Product]]:
        result = await self.db.execute(
            select(CartLine, Product)
            .join(Product, Product.id == CartLine.product_id)
            .where(CartLine.user_id == user_id, CartLine.quantity > 0)
            .order_by(CartLine.created_at, CartLine.product_id, CartLine.size)
        )
        return [(row[0], row[1]) for row in result.all()]

    def _cancel(self, order: Order, reason: str, changed_by: Optional[uuid.UUID] = None) -> None:
        previous = order.status
        order.status = OrderStatus.CANCELLED
        order.cancelled_at = utcnow()
        order.cancellation_reason = reason
        self.db.add(OrderStatusHistory(
            order_id=order.id,
            status=OrderStatus.CANCELLED,
            previous_status=previous,
            reason=reason,
            changed_by=changed_by
        ))

    async def cancel_pending_order(self, user_id: uuid.UUID, reason: str) -> Optional[Order]:
        """Cancel the user's pending order, if any"""
        order = await self.get_pending_order(user_id)
        if order is None:
            return None

        self._cancel(order, reason, changed_by=user_id)
        await flush_or_conflict(self.db)
        await self.ledger.update_revenue(order, "update")

        logger.info(f"Pending order {order.order_number} cancelled: {reason}")
        return order

    async def set_order_status(
        self,
        order_number: str,
        status: str,
        notes: Optional[str] = None,
        tracking_number: Optional[str] = None,
        cancellation_reason: Optional[str] = None,
        changed_by: Optional[uuid.UUID] = None
    ) -> Order:
        """
        Admin status change

        Args:
            order_number: Order to update
            status: Requested status value
            notes: Optional admin notes
            tracking_number: Optional shipment tracking number
            cancellation_reason: Stored when cancelling
            changed_by: Admin user id for the history row

        Returns:
            Updated order

        Raises:
            ValidationException: If the status value is unknown
            NotFoundException: If the order does not exist
            InvalidStatusTransitionException: If the move is not allowed
        """
        try:
            new_status = OrderStatus(status)
        except ValueError:
            raise ValidationException("Invalid status", error_code="INVALID_STATUS")

        order = await self.get_order(order_number, lock=True)
        previous = order.status

        if not self.state_machine.can_transition(previous, new_status):
            raise InvalidStatusTransitionException(previous.value, new_status.value)

        changed = previous != new_status
        order.status = new_status
        if notes:
            order.notes = notes
        if tracking_number:
            order.tracking_number = tracking_number

        if new_status == OrderStatus.DELIVERED and changed:
            order.delivered_at = utcnow()
            order.payment_status = PaymentStatus.PAID
        elif new_status == OrderStatus.CANCELLED:
            if changed:
                order.cancelled_at = utcnow()
                order.payment_status = PaymentStatus.FAILED
            if cancellation_reason:
                order.cancellation_reason = cancellation_reason

        self.db.add(OrderStatusHistory(
            order_id=order.id,
            status=new_status,
            previous_status=previous,
            reason=cancellation_reason,
            notes=notes,
            changed_by=changed_by
        ))

        await flush_or_conflict(self.db)
        await self.ledger.update_revenue(order, "update")

        if changed:
            logger.info(f"Order {order.order_number} status updated: {previous.value} -> {new_status.value}")

            if new_status == OrderStatus.DELIVERED:
                await self.notifications.notify_order_event(
                    order.user_id,
                    order,
                    PaymentNotificationType.PAYMENT_RECEIVED,
                    f"Your order #{order.order_number} has been delivered and payment has been processed."
                )
            elif new_status == OrderStatus.CANCELLED:
                await self.notifications.notify_order_event(
                    order.user_id,
                    order,
                    PaymentNotificationType.PAYMENT_FAILED,
                    f"Your order #{order.order_number} has been cancelled."
                )

            await self.notifications.notify_admins(
                f"Order status updated: #{order.order_number} from {previous.value} to {new_status.value}"
            )

        return order

    async def list_user_orders(self, user_id: uuid.UUID) -> List[Order]:
        """Get the user's orders, newest first"""
        result = await self.db.execute(
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        return list(result.scalars().all())

    async def list_admin_orders(
        self,
        status: Optional[str] = None,
        page: int = 1,
        size: int = settings.DEFAULT_PAGE_SIZE
    ) -> Tuple[List[Order], int]:
        """
        Get checked-out orders for the admin dashboard

        Args:
            status: Filter by status; None or ``all`` for every status
            page: 1-based page number
            size: Page size

        Returns:
            Orders on the page and the total number of matching orders
        """
        checked_out = select(OrderItem.order_id).where(OrderItem.status == ItemStatus.CHECKED_OUT)
        filters = [Order.id.in_(checked_out)]

        if status and status != "all":
            try:
                filters.append(Order.status == OrderStatus(status))
            except ValueError:
                raise ValidationException("Invalid status", error_code="INVALID_STATUS")

        total = (await self.db.execute(
            select(func.count(Order.id)).where(*filters)
        )).scalar() or 0

        result = await self.db.execute(
            select(Order)
            .where(*filters)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * size)
            .limit(size)
        )
        return list(result.scalars().all()), total

    async def delete_order(self, order_number: str) -> None:
        """Delete an order and take it out of the revenue ledger"""
        order = await self.get_order(order_number, lock=True)

        await self.ledger.update_revenue(order, "remove")

        await self.db.execute(
            delete(OrderStatusHistory).where(OrderStatusHistory.order_id == order.id)
        )
        await self.db.delete(order)
        await flush_or_conflict(self.db)

        logger.info(f"Order {order_number} deleted")
        await self.notifications.notify_admins(f"Order deleted: #{order_number}", logging.WARNING)

    async def get_order_history(self, order_number: str) -> List[OrderStatusHistory]:
        """Status changes of one order, oldest first"""
        order = await self.get_order(order_number)
        result = await self.db.execute(
            select(OrderStatusHistory)
            .where(OrderStatusHistory.order_id == order.id)
            .order_by(OrderStatusHistory.created_at, OrderStatusHistory.id)
        )
        return list(result.scalars().all())

    async def expire_stale_pending_orders(self, ttl_days: Optional[int] = None) -> int:
        """
        Cancel pending orders untouched for longer than the TTL and empty
        the carts they mirror

        Returns:
            Number of orders cancelled
        """
        ttl_days = settings.PENDING_ORDER_TTL_DAYS if ttl_days is None else ttl_days
        cutoff = utcnow() - timedelta(days=ttl_days)

        result = await self.db.execute(
            select(Order)
            .where(Order.status == OrderStatus.PENDING, Order.updated_at < cutoff)
            .with_for_update()
        )
        orders = list(result.scalars().all())

        for order in orders:
            self._cancel(order, "Pending order expired")
            await self.db.execute(delete(CartLine).where(CartLine.user_id == order.user_id))

        await flush_or_conflict(self.db)

        for order in orders:
            await self.ledger.update_revenue(order, "update")

        if orders:
            logger.info(f"Expired {len(orders)} abandoned pending orders older than {ttl_days} days")
        return len(orders)
