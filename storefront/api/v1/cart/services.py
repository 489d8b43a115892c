"""
Cart service layer
Handles shopping cart business logic and keeps the pending order in step
"""

from typing import Any, Dict, List, Optional, Tuple
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
import logging
import uuid

from storefront.core.config import settings
from storefront.core.database import flush_or_conflict
from storefront.core.exceptions import NotFoundException, ValidationException
from storefront.models import CartLine, Order, Product
from storefront.services.catalog import ProductCatalog
from ..orders.services import OrderService, normalize_payment_method

logger = logging.getLogger(__name__)

# {product_id: {size: quantity}}
CartSnapshot = Dict[int, Dict[str, int]]

class CartService:
    """Shopping cart service"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.catalog = ProductCatalog(db)
        self.orders = OrderService(db)

    async def _get_line(self, user_id: uuid.UUID, product_id: int, size: str) -> Optional[CartLine]:
        result = await self.db.execute(
            select(CartLine)
            .where(
                CartLine.user_id == user_id,
                CartLine.product_id == product_id,
                CartLine.size == size
            )
            .with_for_update()
        )
        return result.scalar_one_or_none()

    def _validate_size(self, product: Product, size: Optional[str]) -> str:
        if size is None or not str(size).strip() or size == settings.NO_SIZE_SENTINEL:
            raise ValidationException("Size selection is required", error_code="SIZE_REQUIRED")
        if size not in self.catalog.available_sizes(product):
            raise ValidationException("Invalid size selected", error_code="INVALID_SIZE")
        return size

    async def _product_for_change(self, product_id: int, delta: int) -> Product:
        """
        Product whose line is about to change

        Only increases need an available product; lines of a product taken
        off sale can still be lowered or removed.
        """
        if delta > 0:
            return await self.catalog.get_product(product_id)

        product = await self.catalog.find_product(product_id)
        if product is None:
            raise NotFoundException("Product not found", error_code="PRODUCT_NOT_FOUND")
        return product

    async def _existing_line(self, user_id: uuid.UUID, product: Product, size: Optional[str]) -> Optional[CartLine]:
        """Existing line for the size, validating the size only when there is none"""
        line = await self._get_line(user_id, product.id, size) if size else None
        if line is None:
            self._validate_size(product, size)
        return line

    async def read(self, user_id: uuid.UUID) -> CartSnapshot:
        """
        Get the user's cart as {product_id: {size: quantity}}

        Lines with a non-positive quantity are dropped from the snapshot and
        deleted from storage.
        """
        result = await self.db.execute(
            select(CartLine)
            .where(CartLine.user_id == user_id)
            .order_by(CartLine.created_at, CartLine.product_id, CartLine.size)
        )

        snapshot: CartSnapshot = {}
        stale = []
        for line in result.scalars().all():
            if line.quantity <= 0:
                stale.append(line)
                continue
            snapshot.setdefault(line.product_id, {})[line.size] = line.quantity

        if stale:
            for line in stale:
                await self.db.delete(line)
            await self.db.flush()
            logger.info(f"Removed {len(stale)} empty cart lines for user {user_id}")

        return snapshot

    async def add_line(
        self,
        user_id: uuid.UUID,
        product_id: int,
        size: Optional[str],
        delta: int
    ) -> Tuple[CartSnapshot, int]:
        """
        Change one cart line by a signed quantity

        The line is deleted once its quantity reaches zero or below.

        Returns:
            New cart snapshot and the delta actually applied

        Raises:
            NotFoundException: If the product does not exist, or is
                unavailable and the delta is positive
            ValidationException: If the size is missing or invalid, the delta
                is zero, or the line would exceed the per-item maximum
        """
        if delta == 0:
            raise ValidationException("Quantity must not be zero", error_code="INVALID_QUANTITY")

        product = await self._product_for_change(product_id, delta)
        line = await self._existing_line(user_id, product, size)
        current = line.quantity if line else 0
        new_quantity = current + delta

        if new_quantity > settings.MAX_CART_LINE_QUANTITY:
            raise ValidationException(
                f"Maximum quantity per item is {settings.MAX_CART_LINE_QUANTITY}",
                error_code="QUANTITY_LIMIT_EXCEEDED"
            )

        if new_quantity <= 0:
            new_quantity = 0
            if line:
                await self.db.delete(line)
        elif line:
            line.quantity = new_quantity
        else:
            self.db.add(CartLine(
                user_id=user_id,
                product_id=product.id,
                size=size,
                quantity=new_quantity
            ))

        await flush_or_conflict(self.db)
        return await self.read(user_id), new_quantity - current

    async def remove_line(self, user_id: uuid.UUID, product_id: int, size: Optional[str]) -> Tuple[CartSnapshot, int]:
        """Remove one cart line entirely; a missing line is a no-op"""
        product = await self._product_for_change(product_id, -1)
        line = await self._existing_line(user_id, product, size)
        if not line:
            return await self.read(user_id), 0
        return await self.add_line(user_id, product.id, size, -line.quantity)

    async def set_line_quantity(
        self,
        user_id: uuid.UUID,
        product_id: int,
        size: Optional[str],
        new_quantity: int
    ) -> Tuple[CartSnapshot, int]:
        """Set one cart line to an absolute quantity; unchanged is a no-op"""
        if new_quantity < 0:
            raise ValidationException("Quantity cannot be negative", error_code="INVALID_QUANTITY")

        product = await self._product_for_change(product_id, -1)
        line = await self._existing_line(user_id, product, size)
        delta = new_quantity - (line.quantity if line else 0)
        if delta == 0:
            return await self.read(user_id), 0
        return await self.add_line(user_id, product.id, size, delta)

    async def clear_lines(self, user_id: uuid.UUID) -> int:
        """Delete every cart line of the user without touching orders"""
        result = await self.db.execute(
            delete(CartLine)
            .where(CartLine.user_id == user_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    async def clear(self, user_id: uuid.UUID) -> Optional[Order]:
        """Empty the cart and cancel the pending order it mirrors"""
        removed = await self.clear_lines(user_id)
        order = await self.orders.cancel_pending_order(user_id, "Cart cleared by user")
        logger.info(f"Cart cleared for user {user_id}, removed {removed} lines")
        return order

    # Entry points: cart change followed by order reconciliation

    async def add_to_cart(
        self,
        user_id: uuid.UUID,
        product_id: int,
        size: Optional[str],
        quantity: int,
        payment_method: Any = None
    ) -> CartSnapshot:
        """Add a signed quantity of one product size to the cart"""
        normalize_payment_method(payment_method)
        snapshot, applied = await self.add_line(user_id, product_id, size, quantity)
        if applied:
            product = await self.catalog.find_product(product_id)
            await self.orders.reconcile(user_id, product, applied, size, payment_method, action="add")
        return snapshot

    async def update_cart_quantity(
        self,
        user_id: uuid.UUID,
        product_id: int,
        size: Optional[str],
        quantity: int,
        payment_method: Any = None
    ) -> CartSnapshot:
        """Set one product size to an absolute quantity"""
        normalize_payment_method(payment_method)
        snapshot, applied = await self.set_line_quantity(user_id, product_id, size, quantity)
        if applied:
            product = await self.catalog.find_product(product_id)
            await self.orders.reconcile(
                user_id,
                product,
                applied,
                size,
                payment_method,
                action="add" if applied > 0 else "update"
            )
        return snapshot

    async def remove_from_cart(self, user_id: uuid.UUID, product_id: int, size: Optional[str]) -> CartSnapshot:
        """Remove one product size from the cart"""
        snapshot, applied = await self.remove_line(user_id, product_id, size)
        if applied:
            product = await self.catalog.find_product(product_id)
            await self.orders.reconcile(user_id, product, applied, size, action="remove")
        return snapshot

    async def clear_cart(self, user_id: uuid.UUID) -> CartSnapshot:
        await self.clear(user_id)
        return {}

    async def get_cart_details(self, user_id: uuid.UUID) -> Dict[str, Any]:
        """
        Priced view of the cart

        Returns:
            Items sorted by product name plus a summary; lines whose product
            no longer exists are skipped
        """
        snapshot = await self.read(user_id)

        items: List[Dict[str, Any]] = []
        total_items = 0
        total_amount = Decimal("0")

        for product_id, sizes in snapshot.items():
            product = await self.catalog.find_product(product_id)
            if product is None:
                continue

            price = Decimal(product.new_price or 0)
            for size, quantity in sizes.items():
                item_total = price * quantity
                items.append({
                    "key": f"{product.id}-{size}",
                    "product": {
                        "id": product.id,
                        "name": product.name,
                        "image": product.image,
                        "category": product.category,
                        "new_price": product.new_price,
                        "old_price": product.old_price,
                    },
                    "size": size,
                    "quantity": quantity,
                    "item_total": item_total,
                })
                total_items += quantity
                total_amount += item_total

        items.sort(key=lambda item: (item["product"]["name"], item["size"]))

        return {
            "items": items,
            "summary": {
                "total_items": total_items,
                "total_amount": total_amount.quantize(Decimal("0.01")),
                "items_count": len(items),
            },
        }
