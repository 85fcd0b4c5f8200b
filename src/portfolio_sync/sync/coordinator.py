"""
Balance Refresh Coordinator.

Owns the canonical balance Snapshot and decides when it is refreshed:
initial cached load, user-forced refresh (single-flight), silent periodic
refresh and refresh after an external "exchanges changed" signal.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Set

from portfolio_sync.api import ResourceClient
from portfolio_sync.core import get_logger
from portfolio_sync.core.models import Snapshot

from .events import BALANCES_UPDATED, EXCHANGES_CHANGED, EventBus

logger = get_logger(__name__)

DEFAULT_REFRESH_INTERVAL = 300.0
DEFAULT_EMIT_DELAY = 0.1
FETCH_ERROR_FALLBACK = "Failed to fetch balances"

SnapshotObserver = Callable[[Snapshot], None]


@dataclass(frozen=True)
class CoordinatorStatus:
    """Observable state of the coordinator."""

    loading: bool = False
    refreshing: bool = False
    error: Optional[str] = None
    has_snapshot: bool = False
    last_updated: Optional[datetime] = None


class BalanceCoordinator:
    """
    Keeps the balance Snapshot current.

    Failures never raise out of the coordinator: the last good snapshot is
    kept and ``error`` carries a readable message.

    Example:
        >>> coordinator = BalanceCoordinator(client, bus, user_id="42")
        >>> await coordinator.start()
        >>> coordinator.snapshot.summary.total_usd
        Decimal('1234.56')
        >>> await coordinator.refresh()
        True
        >>> await coordinator.stop()
    """

    def __init__(
        self,
        client: ResourceClient,
        event_bus: EventBus,
        user_id: str,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        emit_delay: float = DEFAULT_EMIT_DELAY,
        on_status_change: Optional[Callable[[CoordinatorStatus], None]] = None,
    ):
        """
        Initialize BalanceCoordinator.

        Args:
            client: Resource client used for balance reads
            event_bus: Bus to broadcast on and listen to
            user_id: User whose balances are mirrored
            refresh_interval: Seconds between silent background refreshes
            emit_delay: Delay before broadcasting BALANCES_UPDATED, and before
                reacting to EXCHANGES_CHANGED
            on_status_change: Called on every loading/refreshing/error transition
        """
        self._client = client
        self._bus = event_bus
        self._user_id = user_id
        self._refresh_interval = refresh_interval
        self._emit_delay = emit_delay
        self._on_status_change = on_status_change

        self._snapshot: Optional[Snapshot] = None
        self._loading = False
        self._refreshing = False
        self._error: Optional[str] = None
        self._last_updated: Optional[datetime] = None

        # Set and checked with no await in between
        self._forced_in_flight = False

        self._observers: List[SnapshotObserver] = []
        self._running = False
        self._refresh_task: Optional[asyncio.Task] = None
        self._pending_handles: Set[asyncio.TimerHandle] = set()
        self._background_tasks: Set[asyncio.Task] = set()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def refreshing(self) -> bool:
        return self._refreshing

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def status(self) -> CoordinatorStatus:
        return CoordinatorStatus(
            loading=self._loading,
            refreshing=self._refreshing,
            error=self._error,
            has_snapshot=self._snapshot is not None,
            last_updated=self._last_updated,
        )

    # =========================================================================
    # Observers
    # =========================================================================

    def add_snapshot_observer(self, observer: SnapshotObserver) -> None:
        """Register a callback invoked synchronously with every new snapshot."""
        if observer not in self._observers:
            self._observers.append(observer)

    def remove_snapshot_observer(self, observer: SnapshotObserver) -> bool:
        if observer in self._observers:
            self._observers.remove(observer)
            return True
        return False

    def _notify_observers(self, snapshot: Snapshot) -> None:
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception as e:
                logger.warning(f"Snapshot observer error: {e}")

    def _set_status(
        self,
        loading: Optional[bool] = None,
        refreshing: Optional[bool] = None,
        error: Optional[str] = None,
        clear_error: bool = False,
    ) -> None:
        before = self.status
        if loading is not None:
            self._loading = loading
        if refreshing is not None:
            self._refreshing = refreshing
        if clear_error:
            self._error = None
        elif error is not None:
            self._error = error

        after = self.status
        if after != before and self._on_status_change:
            try:
                self._on_status_change(after)
            except Exception as e:
                logger.warning(f"Status callback error: {e}")

    # =========================================================================
    # Fetch Operations
    # =========================================================================

    async def fetch(
        self,
        force_refresh: bool = False,
        emit_event: bool = False,
        silent: bool = False,
        use_summary: bool = False,
    ) -> bool:
        """
        Fetch balances and replace the snapshot.

        Args:
            force_refresh: Bypass the cache (client and server side)
            emit_event: Broadcast BALANCES_UPDATED after emit_delay on success
            silent: Do not flip the loading/refreshing flags
            use_summary: Use the lightweight summary endpoint

        Returns:
            True if the snapshot was replaced
        """
        self._set_status(
            loading=True if (not silent and self._snapshot is None) else None,
            refreshing=True if (not silent and force_refresh and self._snapshot is not None) else None,
            clear_error=True,
        )

        try:
            if use_summary:
                snapshot = await self._client.get_balance_summary(self._user_id, force_refresh)
            else:
                snapshot = await self._client.get_balances(self._user_id, force_refresh)

            self._snapshot = snapshot
            self._last_updated = datetime.now(timezone.utc)
            logger.debug(
                f"Balances updated: {len(snapshot.items)} exchanges, "
                f"total ${snapshot.summary.total_usd} "
                f"(forced={force_refresh}, cached={snapshot.served_from_cache})"
            )

            self._notify_observers(snapshot)

            if emit_event:
                self._call_later(self._emit_delay, self._bus.publish, BALANCES_UPDATED)
            return True

        except Exception as e:
            message = str(e) or FETCH_ERROR_FALLBACK
            logger.error(f"Error fetching balances: {message}")
            self._set_status(error=message)
            return False

        finally:
            self._set_status(loading=False, refreshing=False)

    async def refresh(self) -> bool:
        """
        User-initiated forced refresh.

        Returns:
            False without doing anything if a forced refresh is already in
            flight, True otherwise
        """
        if self._forced_in_flight:
            logger.debug("Refresh already in flight, skipping")
            return False
        self._forced_in_flight = True

        try:
            await self.fetch(force_refresh=True, emit_event=True, silent=False)
            return True
        finally:
            self._forced_in_flight = False

    async def refresh_on_exchange_change(self) -> bool:
        """Silent forced refresh that broadcasts, for callers that changed exchanges."""
        return await self.fetch(force_refresh=True, emit_event=True, silent=True)

    # =========================================================================
    # Lifecycle Management
    # =========================================================================

    async def start(self) -> None:
        """Initial cached load, then periodic refresh and the external listener."""
        if self._running:
            return
        self._running = True

        self._bus.subscribe(self._on_exchanges_changed, EXCHANGES_CHANGED)

        await self.fetch(force_refresh=False)

        self._refresh_task = asyncio.create_task(self._refresh_loop())
        logger.info(f"Balance coordinator started (interval {self._refresh_interval:.0f}s)")

    async def stop(self) -> None:
        """Cancel the periodic task, pending timers and background fetches."""
        self._running = False
        self._bus.unsubscribe(self._on_exchanges_changed, EXCHANGES_CHANGED)

        for handle in list(self._pending_handles):
            handle.cancel()
        self._pending_handles.clear()

        tasks = [t for t in self._background_tasks if not t.done()]
        if self._refresh_task:
            tasks.append(self._refresh_task)
            self._refresh_task = None

        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

        logger.info("Balance coordinator stopped")

    async def _refresh_loop(self) -> None:
        """Silent forced refresh every refresh_interval."""
        while self._running:
            try:
                await asyncio.sleep(self._refresh_interval)
                logger.info("Auto-refresh: updating balances")
                await self.fetch(force_refresh=True, emit_event=False, silent=True)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Refresh loop error: {e}")

    # =========================================================================
    # Scheduling
    # =========================================================================

    def _on_exchanges_changed(self) -> None:
        self._call_later(self._emit_delay, self._spawn_silent_fetch)

    def _spawn_silent_fetch(self) -> None:
        if not self._running:
            return
        task = asyncio.create_task(
            self.fetch(force_refresh=True, emit_event=False, silent=True)
        )
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    def _call_later(self, delay: float, callback: Callable, *args) -> None:
        loop = asyncio.get_running_loop()
        handle: Optional[asyncio.TimerHandle] = None

        def _run() -> None:
            self._pending_handles.discard(handle)
            callback(*args)

        handle = loop.call_later(delay, _run)
        self._pending_handles.add(handle)
