"""
Checkout: converts the cart into a checked-out order
"""

from typing import Any, Dict, Optional, Union
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import uuid

from storefront.core.database import flush_or_conflict
from storefront.core.exceptions import EmptyCartException, ValidationException
from storefront.models import (
    ItemStatus,
    Order,
    OrderStatus,
    OrderStatusHistory,
    PaymentNotificationType,
    PaymentStatus,
)
from storefront.models.base import utcnow
from storefront.services.catalog import ProductCatalog, UserStore
from ..cart.services import CartService
from .services import (
    OrderService,
    build_order_item,
    customer_snapshot,
    format_order_number,
    normalize_payment_method,
)

logger = logging.getLogger(__name__)

class CheckoutService:
    """Checkout transition"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.cart = CartService(db)
        self.orders = OrderService(db)
        self.catalog = ProductCatalog(db)
        self.users = UserStore(db)

    async def checkout(
        self,
        user_id: uuid.UUID,
        shipping_address: Union[str, Dict[str, Any]],
        phone: str,
        payment_method: Any,
        transaction_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Check out the user's cart

        Every cart line becomes a checked-out item at the current product
        price. Lines of missing or unavailable products are dropped with the
        rest of the cart. The pending order (or a new one) takes the full item list and
        moves to processing, so the next cart action starts a new order.

        Args:
            user_id: Cart owner
            shipping_address: Address string or ``{"address", "region"}``
            phone: Contact phone
            payment_method: Payment method value or client label
            transaction_id: Optional payment reference

        Returns:
            Order summary

        Raises:
            EmptyCartException: If the cart has no lines
            ValidationException: If the address or payment method is invalid
        """
        if isinstance(shipping_address, dict):
            address = shipping_address.get("address")
            region = shipping_address.get("region")
        else:
            address, region = shipping_address, None

        if not address or not phone:
            raise ValidationException("Address and phone are required", error_code="MISSING_SHIPPING_DETAILS")

        method = normalize_payment_method(payment_method)
        if method is None:
            raise ValidationException("Payment method is required", error_code="INVALID_PAYMENT_METHOD")

        user = await self.users.get_user(user_id)
        snapshot = await self.cart.read(user_id)
        if not snapshot:
            raise EmptyCartException()

        items = []
        for product_id, sizes in snapshot.items():
            product = await self.catalog.find_product(product_id)
            if product is None or not product.is_available:
                logger.warning(f"Skipping unavailable product {product_id} in checkout for user {user_id}")
                continue
            for size, quantity in sizes.items():
                items.append(build_order_item(product, quantity, size, ItemStatus.CHECKED_OUT))

        if not items:
            raise EmptyCartException()

        order = await self.orders.get_pending_order(user_id)
        is_new = order is None
        if is_new:
            order = Order(user_id=user_id, status=OrderStatus.PENDING)
            self.db.add(order)
            previous_status = None
        else:
            previous_status = order.status

        order.items = items
        order.recalculate_total()
        order.customer_info = customer_snapshot(user, phone=phone, address=address, region=region)
        order.payment_method = method
        order.payment_status = PaymentStatus.PENDING
        order.transaction_id = transaction_id
        order.checked_out_at = utcnow()
        order.status = OrderStatus.PROCESSING

        await flush_or_conflict(self.db)
        if is_new:
            order.order_number = format_order_number(order.id)

        self.db.add(OrderStatusHistory(
            order_id=order.id,
            status=OrderStatus.PROCESSING,
            previous_status=previous_status,
            notes="Checked out",
            changed_by=user_id
        ))

        await self.cart.clear_lines(user_id)
        await flush_or_conflict(self.db)

        await self.orders.ledger.update_revenue(order, "add" if is_new else "update")

        logger.info(f"Checkout completed: order {order.order_number}, total {order.total}, {len(items)} items")

        await self.orders.notifications.notify_order_event(
            user_id,
            order,
            PaymentNotificationType.ORDER_PROCESSED,
            f"Your order #{order.order_number} has been received and is being processed."
        )

        return {
            "id": order.id,
            "order_number": order.order_number,
            "total": order.total,
            "items": [
                {
                    "product_id": item.product_id,
                    "product_name": item.product_name,
                    "product_image": item.product_image,
                    "price": item.price,
                    "quantity": item.quantity,
                    "size": item.size,
                    "item_total": item.item_total,
                    "status": item.status.value,
                }
                for item in order.items
            ],
            "status": order.status.value,
            "payment_method": order.payment_method.value,
            "payment_status": order.payment_status.value,
        }
