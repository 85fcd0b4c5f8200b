"""
Open Orders Background Synchronizer.

After the balance snapshot changes, fetches the open orders of every
exchange in the snapshot in parallel and reports one SyncResult per
exchange. A failing exchange never fails the pass.
"""

import asyncio
import inspect
import time
from typing import TYPE_CHECKING, Any, Callable, List, Optional

from portfolio_sync.api import ResourceClient
from portfolio_sync.core import get_logger
from portfolio_sync.core.models import (
    ExchangeBalance,
    OpenOrdersResult,
    Snapshot,
    SyncResult,
    WarningKind,
)

if TYPE_CHECKING:
    from .coordinator import BalanceCoordinator

logger = get_logger(__name__)

DEFAULT_SETTLE_DELAY = 0.5
DEFAULT_DEBOUNCE_WINDOW = 2.0


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class OpenOrdersSynchronizer:
    """
    Debounced, parallel open-orders sync.

    Automatic passes are triggered by snapshot changes: the pass waits
    ``settle_delay`` after the latest change and is skipped if another pass
    started less than ``debounce_window`` ago. A skipped trigger is dropped,
    not re-queued. ``sync_now()`` ignores the window.

    Example:
        >>> synchronizer = OpenOrdersSynchronizer(
        ...     client, user_id="42",
        ...     on_sync_complete=lambda results: print(len(results)),
        ... )
        >>> synchronizer.attach(coordinator)
        >>> results = await synchronizer.sync_now()
    """

    def __init__(
        self,
        client: ResourceClient,
        user_id: str,
        enabled: bool = True,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        debounce_window: float = DEFAULT_DEBOUNCE_WINDOW,
        on_sync_start: Optional[Callable[[], Any]] = None,
        on_sync_complete: Optional[Callable[[List[SyncResult]], Any]] = None,
        on_sync_error: Optional[Callable[[Exception], Any]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize OpenOrdersSynchronizer.

        Args:
            client: Resource client used for open-orders reads
            user_id: User whose orders are synced
            enabled: Whether passes run at all
            settle_delay: Wait after a snapshot change before syncing
            debounce_window: Minimum seconds between starts of automatic passes
            on_sync_start: Called when a pass starts (sync or async)
            on_sync_complete: Called with the results of a pass (sync or async)
            on_sync_error: Called if the pass itself fails (sync or async)
            clock: Monotonic clock in seconds (injectable for tests)
        """
        self._client = client
        self._user_id = user_id
        self._enabled = enabled
        self._settle_delay = settle_delay
        self._debounce_window = debounce_window
        self._on_sync_start = on_sync_start
        self._on_sync_complete = on_sync_complete
        self._on_sync_error = on_sync_error
        self._clock = clock or time.monotonic

        self._snapshot: Optional[Snapshot] = None
        self._last_fingerprint: Optional[tuple] = None
        self._is_syncing = False
        self._last_sync_started: Optional[float] = None
        self._pending: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()
        self._coordinator: Optional["BalanceCoordinator"] = None
        self._last_results: List[SyncResult] = []

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def is_syncing(self) -> bool:
        return self._is_syncing

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = value
        if not value:
            self._cancel_pending()

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    @property
    def last_results(self) -> List[SyncResult]:
        return list(self._last_results)

    # =========================================================================
    # Triggers
    # =========================================================================

    def attach(self, coordinator: "BalanceCoordinator") -> None:
        """Follow the snapshots produced by a coordinator."""
        self._coordinator = coordinator
        coordinator.add_snapshot_observer(self.notify_snapshot_changed)
        if coordinator.snapshot is not None:
            self._snapshot = coordinator.snapshot

    def notify_snapshot_changed(self, snapshot: Optional[Snapshot]) -> None:
        """
        Schedule an automatic pass after a snapshot change.

        Snapshots with the same exchanges and token counts as the last one
        seen do not schedule anything. A new change replaces a pending pass.
        """
        if snapshot is None:
            return
        self._snapshot = snapshot

        if not self._enabled:
            return

        fingerprint = snapshot.fingerprint()
        if fingerprint == self._last_fingerprint:
            logger.debug("Balance unchanged, skipping auto-sync")
            return
        self._last_fingerprint = fingerprint

        self._cancel_pending()
        loop = asyncio.get_running_loop()
        self._pending = loop.call_later(self._settle_delay, self._fire_pending)
        logger.debug(f"Balance changed, auto-sync in {self._settle_delay}s")

    def _fire_pending(self) -> None:
        self._pending = None
        task = asyncio.create_task(self.sync(force=False))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    # =========================================================================
    # Sync Pass
    # =========================================================================

    async def sync_now(self) -> Optional[List[SyncResult]]:
        """Manual pass, bypassing the debounce window."""
        return await self.sync(force=True)

    async def sync(self, force: bool = False) -> Optional[List[SyncResult]]:
        """
        Sync open orders of every exchange in the current snapshot.

        Args:
            force: Ignore the debounce window

        Returns:
            One SyncResult per exchange in snapshot order, or None if skipped
        """
        if not self._enabled or self._snapshot is None or self._is_syncing:
            return None

        now = self._clock()
        if (
            not force
            and self._last_sync_started is not None
            and now - self._last_sync_started < self._debounce_window
        ):
            logger.debug("Skipping sync: too soon since last sync")
            return None

        self._is_syncing = True
        self._last_sync_started = now
        items = self._snapshot.items
        started = time.monotonic()

        try:
            if self._on_sync_start:
                await _maybe_await(self._on_sync_start())

            outcomes = await asyncio.gather(
                *(self._sync_item(item) for item in items),
                return_exceptions=True,
            )
            results = [
                outcome if isinstance(outcome, SyncResult) else self._failed_result(item, outcome, 0)
                for item, outcome in zip(items, outcomes)
            ]
            self._last_results = results

            total_orders = sum(r.count for r in results)
            problems = sum(1 for r in results if r.has_problem)
            logger.info(
                f"Open orders synced: {len(results)} exchanges, {total_orders} orders, "
                f"{problems} with problems in {(time.monotonic() - started) * 1000:.0f}ms"
            )

            if self._on_sync_complete:
                await _maybe_await(self._on_sync_complete(results))
            return results

        except Exception as e:
            logger.error(f"Open orders sync failed: {e}")
            if self._on_sync_error:
                await _maybe_await(self._on_sync_error(e))
            return None

        finally:
            self._is_syncing = False

    async def _sync_item(self, item: ExchangeBalance) -> SyncResult:
        started = time.monotonic()
        try:
            response: OpenOrdersResult = await self._client.get_open_orders(
                self._user_id, item.id
            )
        except Exception as e:
            return self._failed_result(item, e, _elapsed_ms(started))

        elapsed = _elapsed_ms(started)
        if response.degradation is not None:
            kind = WarningKind(response.degradation.kind)
            logger.warning(f"{item.name}: {kind.value} - {response.degradation.message}")
            return SyncResult(
                item_id=item.id,
                item_name=item.name,
                count=0,
                success=True,
                from_cache=False,
                elapsed_ms=elapsed,
                warning=kind,
            )

        return SyncResult(
            item_id=item.id,
            item_name=item.name,
            count=response.count,
            success=True,
            from_cache=response.from_cache,
            elapsed_ms=elapsed,
        )

    @staticmethod
    def _failed_result(item: ExchangeBalance, error: BaseException, elapsed_ms: int) -> SyncResult:
        logger.warning(f"Failed to sync {item.name}: {error}")
        return SyncResult(
            item_id=item.id,
            item_name=item.name,
            count=0,
            success=True,
            from_cache=False,
            elapsed_ms=elapsed_ms,
            error=str(error) or type(error).__name__,
        )

    # =========================================================================
    # Lifecycle Management
    # =========================================================================

    async def stop(self) -> None:
        """Cancel the pending pass and any running automatic pass."""
        self._cancel_pending()
        if self._coordinator is not None:
            self._coordinator.remove_snapshot_observer(self.notify_snapshot_changed)
            self._coordinator = None

        tasks = [t for t in self._tasks if not t.done()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.monotonic() - started) * 1000))
