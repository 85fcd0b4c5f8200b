"""
Tests for the EventBus.
"""

import asyncio

import pytest

from portfolio_sync.sync import BALANCES_UPDATED, EXCHANGES_CHANGED, EventBus


class TestEventBus:
    """Test subscribe/publish semantics."""

    def test_publish_invokes_listeners(self, event_bus):
        """Test publish."""
        calls = []
        event_bus.subscribe(lambda: calls.append("a"))
        event_bus.subscribe(lambda: calls.append("b"))

        assert event_bus.publish(BALANCES_UPDATED) == 2
        assert sorted(calls) == ["a", "b"]

    def test_subscribe_is_deduplicated(self, event_bus):
        """Test duplicate subscribe."""
        def listener():
            pass

        assert event_bus.subscribe(listener) is True
        assert event_bus.subscribe(listener) is False
        assert event_bus.listener_count() == 1

    def test_unsubscribe(self, event_bus):
        """Test unsubscribe."""
        def listener():
            pass

        event_bus.subscribe(listener)
        assert event_bus.unsubscribe(listener) is True
        assert event_bus.unsubscribe(listener) is False
        assert event_bus.publish() == 0

    def test_topics_are_separate(self, event_bus):
        """Test topic isolation."""
        calls = []
        event_bus.subscribe(lambda: calls.append("changed"), EXCHANGES_CHANGED)

        event_bus.publish(BALANCES_UPDATED)
        assert calls == []

        event_bus.publish(EXCHANGES_CHANGED)
        assert calls == ["changed"]

    def test_raising_listener_does_not_stop_delivery(self, event_bus):
        """Test raising listener does not stop delivery."""
        calls = []

        def bad():
            raise RuntimeError("boom")

        event_bus.subscribe(bad)
        event_bus.subscribe(lambda: calls.append("ok"))

        assert event_bus.publish() == 1
        assert calls == ["ok"]

    def test_listener_removed_during_publish(self, event_bus):
        """Test unsubscribing during publish."""
        calls = []

        def second():
            calls.append("second")

        def first():
            calls.append("first")
            event_bus.unsubscribe(second)

        event_bus.subscribe(first)
        event_bus.subscribe(second)
        event_bus.publish()

        # Delivery iterates over a copy taken before the first listener ran
        assert len(calls) == 2
        assert event_bus.listener_count() == 1

    def test_close(self):
        """Test close."""
        bus = EventBus()
        bus.subscribe(lambda: None)
        bus.close()

        assert bus.is_closed
        assert bus.listener_count() == 0
        assert bus.publish() == 0
        assert bus.subscribe(lambda: None) is False

    @pytest.mark.asyncio
    async def test_async_listener_scheduled(self, event_bus):
        """Test async listener scheduling."""
        done = asyncio.Event()

        async def listener():
            done.set()

        event_bus.subscribe(listener)
        assert event_bus.publish() == 1

        await asyncio.wait_for(done.wait(), timeout=1)
