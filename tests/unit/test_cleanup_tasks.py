"""
Unit tests for the abandoned pending-order task.
"""

import pytest

from storefront.tasks import cleanup_tasks


class TestExpireAbandonedOrders:

    def test_reports_expired_count(self, monkeypatch):
        calls = []

        async def fake_expire(ttl_days):
            calls.append(ttl_days)
            return 3

        monkeypatch.setattr(cleanup_tasks, '_expire_abandoned_orders', fake_expire)

        assert cleanup_tasks.expire_abandoned_orders(5) == {'orders_expired': 3}
        assert calls == [5]

    def test_errors_propagate(self, monkeypatch):
        async def broken(ttl_days):
            raise RuntimeError('database unavailable')

        monkeypatch.setattr(cleanup_tasks, '_expire_abandoned_orders', broken)

        with pytest.raises(RuntimeError):
            cleanup_tasks.expire_abandoned_orders()
