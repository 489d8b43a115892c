"""
Unit tests for the order reconciler and admin order operations.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select, update

from storefront.api.v1.cart.services import CartService
from storefront.api.v1.orders.checkout import CheckoutService
from storefront.api.v1.orders.services import OrderService, normalize_payment_method
from storefront.core.database import flush_or_conflict
from storefront.core.exceptions import (
    ConcurrentModificationException,
    InvalidStatusTransitionException,
    NotFoundException,
    ValidationException,
)
from storefront.models import (
    Order,
    OrderStatus,
    PaymentMethod,
    PaymentNotification,
    PaymentNotificationType,
    PaymentStatus,
)
from storefront.models.base import utcnow
from storefront.services.revenue_ledger import RevenueLedger, bucket_day


async def pending_order(session, user):
    return await OrderService(session).get_pending_order(user.id, lock=False)


async def bucket_for(session, order):
    return await RevenueLedger(session).get_bucket(bucket_day(order.created_at))


class TestPaymentMethodNormalization:
    """Tests for client payment labels."""

    @pytest.mark.parametrize('label, expected', [
        ('cash', PaymentMethod.CASH_ON_DELIVERY),
        ('COD', PaymentMethod.CASH_ON_DELIVERY),
        ('online', PaymentMethod.BANK_TRANSFER),
        ('bank', PaymentMethod.BANK_TRANSFER),
        ('card', PaymentMethod.STRIPE),
        ('stripe', PaymentMethod.STRIPE),
        ('paypal', PaymentMethod.PAYPAL),
        ('bank_transfer', PaymentMethod.BANK_TRANSFER),
    ])
    def test_labels(self, label, expected):
        assert normalize_payment_method(label) == expected

    def test_missing_hint(self):
        assert normalize_payment_method(None) is None
        assert normalize_payment_method('') is None

    def test_unknown_label(self):
        with pytest.raises(ValidationException):
            normalize_payment_method('bitcoin')


class TestReconcileScenarios:
    """Cart changes flowing into the pending order and the ledger."""

    async def test_first_add_creates_order_and_bucket(self, session, user, products):
        p1, _ = products
        snapshot = await CartService(session).add_to_cart(user.id, p1.id, 'M', 1)

        order = await pending_order(session, user)
        assert snapshot == {p1.id: {'M': 1}}
        assert order.status == OrderStatus.PENDING
        assert len(order.items) == 1
        assert order.items[0].item_total == Decimal('100')
        assert order.total == Decimal('100')

        bucket = await bucket_for(session, order)
        assert bucket.orders_count == 1
        assert bucket.pending_revenue == Decimal('100')
        assert bucket.delivered_revenue == Decimal('0')

    async def test_second_add_merges_into_item(self, session, user, products):
        p1, _ = products
        cart = CartService(session)
        await cart.add_to_cart(user.id, p1.id, 'M', 1)
        snapshot = await cart.add_to_cart(user.id, p1.id, 'M', 2)

        order = await pending_order(session, user)
        assert snapshot == {p1.id: {'M': 3}}
        assert len(order.items) == 1
        assert order.items[0].quantity == 3
        assert order.items[0].item_total == Decimal('300')
        assert order.total == Decimal('300')

        bucket = await bucket_for(session, order)
        assert bucket.orders_count == 1
        assert bucket.pending_revenue == Decimal('300')

    async def test_setting_zero_cancels_order(self, session, user, products):
        p1, _ = products
        cart = CartService(session)
        await cart.add_to_cart(user.id, p1.id, 'M', 3)
        order = await pending_order(session, user)

        snapshot = await cart.update_cart_quantity(user.id, p1.id, 'M', 0)

        assert snapshot == {}
        assert order.status == OrderStatus.CANCELLED
        assert order.cancellation_reason == 'All items removed from cart'
        assert order.total == Decimal('0')

        bucket = await bucket_for(session, order)
        assert bucket.orders_count == 1
        assert bucket.pending_revenue == Decimal('0')

    async def test_reconcile_without_order_ignores_removals(self, session, user, products):
        p1, _ = products
        result = await OrderService(session).reconcile(user.id, p1, -1, 'M', action='remove')
        assert result is None

    async def test_customer_info_fallbacks(self, session, bare_user, products):
        p1, _ = products
        await CartService(session).add_to_cart(bare_user.id, p1.id, 'M', 1)

        order = await pending_order(session, bare_user)
        assert order.customer_info == {
            'name': 'Unknown User',
            'email': bare_user.email,
            'phone': 'Not specified',
            'address': 'Not specified',
            'region': 'Not specified',
        }

    async def test_customer_info_is_a_snapshot(self, session, user, products):
        p1, p2 = products
        cart = CartService(session)
        await cart.add_to_cart(user.id, p1.id, 'M', 1)

        user.full_name = 'Renamed Customer'
        await session.flush()
        await cart.add_to_cart(user.id, p2.id, 'L', 1)

        order = await pending_order(session, user)
        assert order.customer_info['name'] == 'Test Customer'

    async def test_second_pending_order_is_a_conflict(self, session, user, products):
        p1, _ = products
        await CartService(session).add_to_cart(user.id, p1.id, 'M', 1)

        session.add(Order(user_id=user.id, status=OrderStatus.PENDING))
        with pytest.raises(ConcurrentModificationException):
            await flush_or_conflict(session)

    async def test_stale_version_is_a_conflict(self, session, user, products):
        p1, _ = products
        await CartService(session).add_to_cart(user.id, p1.id, 'M', 1)
        order = await pending_order(session, user)
        await flush_or_conflict(session)

        # Another writer bumps the version behind this session's back
        await session.execute(
            update(Order)
            .where(Order.id == order.id)
            .values(version=Order.version + 1)
            .execution_options(synchronize_session=False)
        )

        order.notes = 'late write'
        with pytest.raises(ConcurrentModificationException):
            await flush_or_conflict(session)


class TestSetOrderStatus:
    """Tests for admin status changes."""

    async def _checked_out_order(self, session, user, products, quantity=3):
        p1, _ = products
        await CartService(session).add_to_cart(user.id, p1.id, 'M', quantity)
        summary = await CheckoutService(session).checkout(
            user.id, '1 Test Street', '0100000000', 'cash_on_delivery'
        )
        return await OrderService(session).get_order(summary['order_number'])

    async def test_delivered_moves_revenue(self, session, user, admin, products):
        order = await self._checked_out_order(session, user, products)
        service = OrderService(session)

        await service.set_order_status(order.order_number, 'delivered', changed_by=admin.id)

        assert order.status == OrderStatus.DELIVERED
        assert order.payment_status == PaymentStatus.PAID
        assert order.delivered_at is not None

        bucket = await bucket_for(session, order)
        assert bucket.delivered_revenue == Decimal('300')
        assert bucket.daily_revenue == Decimal('300')
        assert bucket.pending_revenue == Decimal('0')
        assert bucket.orders_count == 1

        daily = await RevenueLedger(session).get_revenue('daily')
        assert daily[0]['date'] == bucket_day(order.created_at).isoformat()
        assert daily[0]['delivered_revenue'] == Decimal('300')

    async def test_resubmitting_status_does_not_double_count(self, session, user, products):
        order = await self._checked_out_order(session, user, products)
        service = OrderService(session)

        await service.set_order_status(order.order_number, 'delivered')
        await service.set_order_status(order.order_number, 'delivered', notes='Left at the door')
        await service.set_order_status(order.order_number, 'delivered', notes='Left at the door')

        bucket = await bucket_for(session, order)
        assert order.notes == 'Left at the door'
        assert bucket.delivered_revenue == Decimal('300')
        assert bucket.daily_revenue == Decimal('300')

    async def test_cancel_moves_revenue_and_stores_reason(self, session, user, products):
        order = await self._checked_out_order(session, user, products)

        await OrderService(session).set_order_status(
            order.order_number, 'cancelled', cancellation_reason='Customer request'
        )

        assert order.status == OrderStatus.CANCELLED
        assert order.payment_status == PaymentStatus.FAILED
        assert order.cancellation_reason == 'Customer request'

        bucket = await bucket_for(session, order)
        assert bucket.cancelled_revenue == Decimal('300')
        assert bucket.pending_revenue == Decimal('0')
        assert bucket.delivered_revenue == Decimal('0')

    async def test_shipping_keeps_revenue_pending(self, session, user, products):
        order = await self._checked_out_order(session, user, products)

        await OrderService(session).set_order_status(
            order.order_number, 'shipped', tracking_number='TRK-1'
        )

        bucket = await bucket_for(session, order)
        assert order.tracking_number == 'TRK-1'
        assert bucket.pending_revenue == Decimal('300')

    async def test_status_notifications(self, session, user, products):
        order = await self._checked_out_order(session, user, products)
        await OrderService(session).set_order_status(order.order_number, 'delivered')

        result = await session.execute(
            select(PaymentNotification)
            .where(PaymentNotification.user_id == user.id)
            .order_by(PaymentNotification.id)
        )
        types = [n.type for n in result.scalars().all()]
        assert types == [
            PaymentNotificationType.ORDER_PROCESSED,
            PaymentNotificationType.PAYMENT_RECEIVED,
        ]

    async def test_terminal_status_cannot_change(self, session, user, products):
        order = await self._checked_out_order(session, user, products)
        service = OrderService(session)
        await service.set_order_status(order.order_number, 'delivered')

        with pytest.raises(InvalidStatusTransitionException):
            await service.set_order_status(order.order_number, 'cancelled')

    async def test_cannot_move_back_to_pending(self, session, user, products):
        order = await self._checked_out_order(session, user, products)
        with pytest.raises(InvalidStatusTransitionException):
            await OrderService(session).set_order_status(order.order_number, 'pending')

    async def test_invalid_status_value(self, session, user, products):
        order = await self._checked_out_order(session, user, products)
        with pytest.raises(ValidationException):
            await OrderService(session).set_order_status(order.order_number, 'lost')

    async def test_unknown_order(self, session):
        with pytest.raises(NotFoundException):
            await OrderService(session).set_order_status('ORD999999', 'delivered')

    async def test_history_is_recorded(self, session, user, products):
        order = await self._checked_out_order(session, user, products)
        service = OrderService(session)
        await service.set_order_status(order.order_number, 'shipped')
        await service.set_order_status(order.order_number, 'delivered')

        history = await service.get_order_history(order.order_number)
        assert [entry.status for entry in history] == [
            OrderStatus.PENDING,
            OrderStatus.PROCESSING,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
        ]
        assert history[-1].previous_status == OrderStatus.SHIPPED


class TestOrderQueries:
    """Tests for order listing and deletion."""

    async def test_admin_list_shows_checked_out_orders_only(self, session, user, products):
        p1, p2 = products
        cart = CartService(session)
        await cart.add_to_cart(user.id, p1.id, 'M', 1)
        await CheckoutService(session).checkout(user.id, 'Street', '0100', 'cash')
        await cart.add_to_cart(user.id, p2.id, 'L', 1)

        orders, total = await OrderService(session).list_admin_orders()
        assert total == 1
        assert orders[0].status == OrderStatus.PROCESSING

        mine = await OrderService(session).list_user_orders(user.id)
        assert len(mine) == 2

    async def test_admin_list_status_filter(self, session, user, products):
        p1, _ = products
        await CartService(session).add_to_cart(user.id, p1.id, 'M', 1)
        await CheckoutService(session).checkout(user.id, 'Street', '0100', 'cash')
        service = OrderService(session)

        assert (await service.list_admin_orders(status='delivered'))[1] == 0
        assert (await service.list_admin_orders(status='processing'))[1] == 1
        assert (await service.list_admin_orders(status='all'))[1] == 1
        with pytest.raises(ValidationException):
            await service.list_admin_orders(status='lost')

    async def test_delete_reverses_ledger(self, session, user, products):
        p1, _ = products
        await CartService(session).add_to_cart(user.id, p1.id, 'M', 2)
        summary = await CheckoutService(session).checkout(user.id, 'Street', '0100', 'cash')
        service = OrderService(session)
        order = await service.get_order(summary['order_number'])
        day = bucket_day(order.created_at)

        await service.delete_order(summary['order_number'])

        bucket = await RevenueLedger(session).get_bucket(day)
        assert bucket.orders_count == 0
        assert bucket.pending_revenue == Decimal('0')
        assert bucket.checked_out_revenue == Decimal('0')
        with pytest.raises(NotFoundException):
            await service.get_order(summary['order_number'])


class TestExpireStalePendingOrders:
    """Tests for the abandoned cart policy."""

    async def test_stale_pending_order_is_cancelled_and_cart_cleared(self, session, user, products):
        p1, _ = products
        cart = CartService(session)
        await cart.add_to_cart(user.id, p1.id, 'M', 2)
        order = await pending_order(session, user)
        await flush_or_conflict(session)

        await session.execute(
            update(Order)
            .where(Order.id == order.id)
            .values(updated_at=utcnow() - timedelta(days=45))
            .execution_options(synchronize_session=False)
        )

        expired = await OrderService(session).expire_stale_pending_orders(ttl_days=30)

        assert expired == 1
        assert order.status == OrderStatus.CANCELLED
        assert order.cancellation_reason == 'Pending order expired'
        assert await cart.read(user.id) == {}

        bucket = await bucket_for(session, order)
        assert bucket.pending_revenue == Decimal('0')
        assert bucket.cancelled_revenue == Decimal('200')

    async def test_recent_pending_order_is_kept(self, session, user, products):
        p1, _ = products
        await CartService(session).add_to_cart(user.id, p1.id, 'M', 1)
        await flush_or_conflict(session)

        assert await OrderService(session).expire_stale_pending_orders(ttl_days=30) == 0
        assert (await pending_order(session, user)).status == OrderStatus.PENDING
