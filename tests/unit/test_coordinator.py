"""
Tests for BalanceCoordinator.

Tests the forced-refresh latch, failure handling, broadcast timing and the
background refresh paths.
"""

import asyncio

import pytest

from portfolio_sync.sync import BALANCES_UPDATED, EXCHANGES_CHANGED, BalanceCoordinator

from tests.mocks import MockResourceClient, make_snapshot


def make_coordinator(client, bus, **kwargs) -> BalanceCoordinator:
    kwargs.setdefault("emit_delay", 0.01)
    return BalanceCoordinator(client, bus, user_id="u1", **kwargs)


# =============================================================================
# Fetch
# =============================================================================


class TestFetch:
    """Test fetch semantics."""

    @pytest.mark.asyncio
    async def test_initial_fetch_uses_cache(self, mock_client, event_bus):
        """Test initial fetch goes through the cache."""
        coordinator = make_coordinator(mock_client, event_bus)

        assert coordinator.snapshot is None
        assert await coordinator.fetch() is True

        assert mock_client.balance_calls == [("u1", False)]
        assert len(coordinator.snapshot.items) == 2
        assert coordinator.error is None

    @pytest.mark.asyncio
    async def test_failure_keeps_last_snapshot(self, mock_client, event_bus):
        """Test failure keeps the last snapshot."""
        good = make_snapshot("binance")
        mock_client.set_balances(good, RuntimeError("server exploded"))
        coordinator = make_coordinator(mock_client, event_bus)

        await coordinator.fetch()
        assert await coordinator.fetch(force_refresh=True) is False

        assert coordinator.snapshot is good
        assert coordinator.error == "server exploded"
        assert coordinator.loading is False
        assert coordinator.refreshing is False

    @pytest.mark.asyncio
    async def test_error_fallback_message(self, event_bus):
        """Test fallback error message."""
        client = MockResourceClient(RuntimeError())
        coordinator = make_coordinator(client, event_bus)

        await coordinator.fetch()

        assert coordinator.error == "Failed to fetch balances"
        assert coordinator.snapshot is None

    @pytest.mark.asyncio
    async def test_success_clears_error(self, mock_client, event_bus):
        """Test success clears the error."""
        mock_client.set_balances(RuntimeError("boom"), make_snapshot("a"))
        coordinator = make_coordinator(mock_client, event_bus)

        await coordinator.fetch()
        assert coordinator.error == "boom"

        await coordinator.fetch()
        assert coordinator.error is None

    @pytest.mark.asyncio
    async def test_use_summary(self, mock_client, event_bus):
        """Test summary endpoint option."""
        coordinator = make_coordinator(mock_client, event_bus)

        await coordinator.fetch(use_summary=True)

        assert mock_client.summary_calls == [("u1", False)]
        assert mock_client.balance_calls == []

    @pytest.mark.asyncio
    async def test_observers_notified_synchronously(self, mock_client, event_bus):
        """Test observers are notified synchronously."""
        coordinator = make_coordinator(mock_client, event_bus)
        seen = []
        coordinator.add_snapshot_observer(seen.append)

        await coordinator.fetch()

        assert seen == [coordinator.snapshot]

        coordinator.remove_snapshot_observer(seen.append)
        await coordinator.fetch()
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_status_transitions(self, mock_client, event_bus):
        """Test status transitions."""
        statuses = []
        coordinator = make_coordinator(mock_client, event_bus, on_status_change=statuses.append)

        await coordinator.fetch()

        assert statuses[0].loading is True
        assert statuses[-1].loading is False
        assert statuses[-1].has_snapshot is True

    @pytest.mark.asyncio
    async def test_refreshing_flag_while_forced(self, event_bus):
        """Test refreshing flag during a forced refresh."""
        client = MockResourceClient(make_snapshot("a"), delay=0.05)
        coordinator = make_coordinator(client, event_bus)
        await coordinator.fetch()

        task = asyncio.create_task(coordinator.fetch(force_refresh=True))
        await asyncio.sleep(0.01)
        assert coordinator.refreshing is True
        assert coordinator.loading is False

        await task
        assert coordinator.refreshing is False

    @pytest.mark.asyncio
    async def test_silent_fetch_keeps_flags_down(self, event_bus):
        """Test silent fetch leaves loading flags unset."""
        client = MockResourceClient(make_snapshot("a"), delay=0.05)
        coordinator = make_coordinator(client, event_bus)

        task = asyncio.create_task(coordinator.fetch(force_refresh=True, silent=True))
        await asyncio.sleep(0.01)
        assert coordinator.loading is False
        assert coordinator.refreshing is False
        await task


# =============================================================================
# Refresh Latch and Broadcast
# =============================================================================


class TestRefresh:
    """Test user-forced refresh."""

    @pytest.mark.asyncio
    async def test_concurrent_refresh_single_request(self, event_bus):
        """Test concurrent refreshes make one request."""
        client = MockResourceClient(make_snapshot("a"), delay=0.05)
        coordinator = make_coordinator(client, event_bus)

        results = await asyncio.gather(coordinator.refresh(), coordinator.refresh())

        assert sorted(results) == [False, True]
        assert client.balance_calls == [("u1", True)]

    @pytest.mark.asyncio
    async def test_second_refresh_ten_ms_later_is_skipped(self, event_bus):
        """Test second refresh while one is in flight."""
        client = MockResourceClient(make_snapshot("a"), delay=0.05)
        coordinator = make_coordinator(client, event_bus)

        first = asyncio.create_task(coordinator.refresh())
        await asyncio.sleep(0.01)
        assert await coordinator.refresh() is False
        assert await first is True

        assert len(client.balance_calls) == 1

    @pytest.mark.asyncio
    async def test_latch_released_after_failure(self, event_bus):
        """Test refresh latch is released after failure."""
        client = MockResourceClient(RuntimeError("down"))
        coordinator = make_coordinator(client, event_bus)

        assert await coordinator.refresh() is True
        assert await coordinator.refresh() is True
        assert len(client.balance_calls) == 2

    @pytest.mark.asyncio
    async def test_refresh_broadcasts_after_delay(self, mock_client, event_bus):
        """Test refresh broadcast after the emit delay."""
        calls = []
        event_bus.subscribe(lambda: calls.append(1), BALANCES_UPDATED)
        coordinator = make_coordinator(mock_client, event_bus, emit_delay=0.02)

        await coordinator.refresh()
        assert calls == []

        await asyncio.sleep(0.06)
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_failed_refresh_does_not_broadcast(self, event_bus):
        """Test failed refresh does not broadcast."""
        calls = []
        event_bus.subscribe(lambda: calls.append(1), BALANCES_UPDATED)
        coordinator = make_coordinator(MockResourceClient(RuntimeError("x")), event_bus)

        await coordinator.refresh()
        await asyncio.sleep(0.05)

        assert calls == []

    @pytest.mark.asyncio
    async def test_refresh_on_exchange_change(self, mock_client, event_bus):
        """Test refresh on exchange change."""
        calls = []
        event_bus.subscribe(lambda: calls.append(1), BALANCES_UPDATED)
        coordinator = make_coordinator(mock_client, event_bus)

        assert await coordinator.refresh_on_exchange_change() is True
        await asyncio.sleep(0.05)

        assert mock_client.balance_calls == [("u1", True)]
        assert calls == [1]


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:
    """Test start/stop and background refresh paths."""

    @pytest.mark.asyncio
    async def test_start_loads_and_refreshes_periodically(self, mock_client, event_bus):
        """Test start with periodic refresh."""
        coordinator = make_coordinator(mock_client, event_bus, refresh_interval=0.05)

        await coordinator.start()
        assert mock_client.balance_calls == [("u1", False)]

        await asyncio.sleep(0.13)
        await coordinator.stop()

        forced = [c for c in mock_client.balance_calls if c[1]]
        assert len(forced) >= 1
        assert coordinator.is_running is False

    @pytest.mark.asyncio
    async def test_exchanges_changed_triggers_silent_refresh(self, mock_client, event_bus):
        """Test exchanges-changed event triggers a silent refresh."""
        coordinator = make_coordinator(mock_client, event_bus, refresh_interval=60)
        await coordinator.start()

        event_bus.publish(EXCHANGES_CHANGED)
        await asyncio.sleep(0.05)
        await coordinator.stop()

        assert mock_client.balance_calls == [("u1", False), ("u1", True)]

    @pytest.mark.asyncio
    async def test_stop_unsubscribes_and_cancels_pending(self, mock_client, event_bus):
        """Test stop cleanup."""
        coordinator = make_coordinator(mock_client, event_bus, refresh_interval=60, emit_delay=0.05)
        await coordinator.start()
        assert event_bus.listener_count(EXCHANGES_CHANGED) == 1

        event_bus.publish(EXCHANGES_CHANGED)
        await coordinator.stop()
        await asyncio.sleep(0.1)

        assert event_bus.listener_count(EXCHANGES_CHANGED) == 0
        assert mock_client.balance_calls == [("u1", False)]
