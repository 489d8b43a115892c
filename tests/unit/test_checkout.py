"""
Unit tests for the checkout transition.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from storefront.api.v1.cart.services import CartService
from storefront.api.v1.orders.checkout import CheckoutService
from storefront.api.v1.orders.services import OrderService
from storefront.core.exceptions import EmptyCartException, ValidationException
from storefront.models import (
    ItemStatus,
    OrderStatus,
    PaymentMethod,
    PaymentNotification,
    PaymentNotificationType,
)
from storefront.services.revenue_ledger import RevenueLedger, bucket_day


class TestCheckout:
    """Tests for CheckoutService.checkout."""

    async def _fill_cart(self, session, user, products):
        p1, p2 = products
        cart = CartService(session)
        await cart.add_to_cart(user.id, p1.id, 'M', 2)
        await cart.add_to_cart(user.id, p2.id, 'L', 1)
        return await OrderService(session).get_pending_order(user.id, lock=False)

    async def test_checkout_converts_pending_order(self, session, user, products):
        pending = await self._fill_cart(session, user, products)
        total_before = pending.total

        summary = await CheckoutService(session).checkout(
            user.id,
            {'address': '5 Market Road', 'region': 'Giza'},
            '0123456789',
            'cash',
            transaction_id='TX-42'
        )

        assert summary['order_number'] == pending.order_number
        assert summary['status'] == 'processing'
        assert summary['payment_method'] == 'cash_on_delivery'
        assert summary['payment_status'] == 'pending'
        assert summary['total'] == total_before == Decimal('250')
        assert {item['status'] for item in summary['items']} == {'checked_out'}

        assert await CartService(session).read(user.id) == {}
        assert pending.status == OrderStatus.PROCESSING
        assert pending.checked_out_at is not None
        assert pending.transaction_id == 'TX-42'
        assert pending.payment_method == PaymentMethod.CASH_ON_DELIVERY
        assert pending.customer_info['address'] == '5 Market Road'
        assert pending.customer_info['region'] == 'Giza'
        assert pending.customer_info['phone'] == '0123456789'
        assert all(item.status == ItemStatus.CHECKED_OUT for item in pending.items)

    async def test_checkout_updates_checked_out_revenue(self, session, user, products):
        pending = await self._fill_cart(session, user, products)

        await CheckoutService(session).checkout(user.id, 'Street', '0100', 'bank_transfer')

        bucket = await RevenueLedger(session).get_bucket(bucket_day(pending.created_at))
        assert bucket.checked_out_revenue == Decimal('250')
        assert bucket.pending_revenue == Decimal('250')
        assert bucket.orders_count == 1

    async def test_next_add_starts_new_pending_order(self, session, user, products):
        p1, _ = products
        pending = await self._fill_cart(session, user, products)
        await CheckoutService(session).checkout(user.id, 'Street', '0100', 'cash')

        await CartService(session).add_to_cart(user.id, p1.id, 'S', 1)

        fresh = await OrderService(session).get_pending_order(user.id, lock=False)
        assert fresh.id != pending.id
        assert [(i.product_id, i.size, i.quantity) for i in fresh.items] == [(p1.id, 'S', 1)]

    async def test_checkout_without_pending_order_creates_one(self, session, user, products):
        pending = await self._fill_cart(session, user, products)
        # An admin moved the cart's order along before checkout
        await OrderService(session).set_order_status(pending.order_number, 'processing')

        summary = await CheckoutService(session).checkout(user.id, 'Street', '0100', 'paypal')

        assert summary['order_number'] != pending.order_number
        assert summary['order_number'] == f"ORD{summary['id']:06d}"
        assert summary['total'] == Decimal('250')
        assert summary['payment_method'] == 'paypal'

    async def test_empty_cart(self, session, user, products):
        with pytest.raises(EmptyCartException):
            await CheckoutService(session).checkout(user.id, 'Street', '0100', 'cash')

    async def test_missing_products_are_skipped(self, session, user, products):
        p1, p2 = products
        await self._fill_cart(session, user, products)
        await session.delete(p2)
        await session.flush()

        summary = await CheckoutService(session).checkout(user.id, 'Street', '0100', 'cash')

        assert [item['product_id'] for item in summary['items']] == [p1.id]
        assert summary['total'] == Decimal('200')

    async def test_items_priced_at_current_price(self, session, user, products):
        p1, _ = products
        await CartService(session).add_to_cart(user.id, p1.id, 'M', 2)
        p1.new_price = Decimal('80.00')
        await session.flush()

        summary = await CheckoutService(session).checkout(user.id, 'Street', '0100', 'cash')

        assert summary['items'][0]['item_total'] == Decimal('160')
        assert summary['total'] == Decimal('160')

    async def test_requires_address_and_phone(self, session, user, products):
        await self._fill_cart(session, user, products)
        with pytest.raises(ValidationException):
            await CheckoutService(session).checkout(user.id, '', '0100', 'cash')
        with pytest.raises(ValidationException):
            await CheckoutService(session).checkout(user.id, {'region': 'Giza'}, '0100', 'cash')

    async def test_rejects_unknown_payment_method(self, session, user, products):
        await self._fill_cart(session, user, products)
        with pytest.raises(ValidationException):
            await CheckoutService(session).checkout(user.id, 'Street', '0100', 'bitcoin')

    async def test_records_confirmation_notification(self, session, user, products):
        await self._fill_cart(session, user, products)
        summary = await CheckoutService(session).checkout(user.id, 'Street', '0100', 'cash')

        result = await session.execute(
            select(PaymentNotification).where(PaymentNotification.user_id == user.id)
        )
        notifications = result.scalars().all()
        assert len(notifications) == 1
        assert notifications[0].type == PaymentNotificationType.ORDER_PROCESSED
        assert notifications[0].order_number == summary['order_number']

    async def test_confirmation_email_waits_for_commit(self, session, user, products, queued_emails):
        pending = await self._fill_cart(session, user, products)
        await CheckoutService(session).checkout(user.id, 'Street', '0100', 'cash')

        assert queued_emails == []

        await session.commit()

        assert queued_emails == [(pending.id, 'order_processed', 'processing')]

    async def test_rolled_back_checkout_sends_no_email(self, session, user, products, queued_emails):
        await self._fill_cart(session, user, products)
        await CheckoutService(session).checkout(user.id, 'Street', '0100', 'cash')

        await session.rollback()
        await session.commit()

        assert queued_emails == []

    async def test_unavailable_products_are_skipped(self, session, user, products):
        p1, p2 = products
        await self._fill_cart(session, user, products)
        p2.is_available = False
        await session.flush()

        summary = await CheckoutService(session).checkout(user.id, 'Street', '0100', 'cash')

        assert [item['product_id'] for item in summary['items']] == [p1.id]
        assert summary['total'] == Decimal('200')
        assert await CartService(session).read(user.id) == {}

    async def test_only_unavailable_products_is_empty_cart(self, session, user, products):
        p1, _ = products
        await CartService(session).add_to_cart(user.id, p1.id, 'M', 1)
        p1.is_available = False
        await session.flush()

        with pytest.raises(EmptyCartException):
            await CheckoutService(session).checkout(user.id, 'Street', '0100', 'cash')
