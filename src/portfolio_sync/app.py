"""
Portfolio Sync Application.

Composition root: builds every component from an AppConfig and owns their
lifecycle.
"""

from typing import Any, Callable, List, Optional

from portfolio_sync.api import BearerAuth, RequestExecutor, ResourceClient
from portfolio_sync.api.auth import TokenProvider
from portfolio_sync.cache import CacheStore
from portfolio_sync.config import AppConfig
from portfolio_sync.core import get_logger
from portfolio_sync.core.models import SyncResult
from portfolio_sync.sync import (
    EXCHANGES_CHANGED,
    BalanceCoordinator,
    CoordinatorStatus,
    EventBus,
    OpenOrdersSynchronizer,
)

logger = get_logger(__name__)


class PortfolioSyncApp:
    """
    Wires executor, cache, client, coordinator and synchronizer together.

    Example:
        >>> config = load_config("config/config.yaml")
        >>> async with PortfolioSyncApp(config) as app:
        ...     print(app.coordinator.snapshot.summary.total_usd)
        ...     await app.synchronizer.sync_now()
    """

    def __init__(
        self,
        config: AppConfig,
        token_provider: Optional[TokenProvider] = None,
        on_sync_start: Optional[Callable[[], Any]] = None,
        on_sync_complete: Optional[Callable[[List[SyncResult]], Any]] = None,
        on_sync_error: Optional[Callable[[Exception], Any]] = None,
        on_status_change: Optional[Callable[[CoordinatorStatus], None]] = None,
        executor: Optional[RequestExecutor] = None,
    ):
        """
        Initialize PortfolioSyncApp.

        Args:
            config: Application configuration
            token_provider: Credential provider; the configured static token
                is used when omitted
            on_sync_start: Open-orders sync start callback
            on_sync_complete: Open-orders sync results callback
            on_sync_error: Open-orders sync failure callback
            on_status_change: Coordinator status callback
            executor: Pre-built executor (tests, shared sessions)
        """
        self.config = config
        api = config.api

        auth = BearerAuth(token_provider) if token_provider else BearerAuth.static(api.access_token)
        timeouts = api.timeout_config()

        self.event_bus = EventBus()
        self.cache = CacheStore(enabled=config.cache.enabled)
        self.executor = executor or RequestExecutor(
            base_url=api.base_url,
            auth=auth,
            max_retries=api.max_retries,
            retry_delay=api.retry_delay,
            timeouts=timeouts,
        )
        self.client = ResourceClient(
            self.executor,
            self.cache,
            ttl=config.cache.ttl_table(),
            timeouts=timeouts,
        )
        self.coordinator = BalanceCoordinator(
            self.client,
            self.event_bus,
            user_id=api.user_id,
            refresh_interval=config.refresh.interval,
            emit_delay=config.refresh.emit_delay,
            on_status_change=on_status_change,
        )
        self.synchronizer = OpenOrdersSynchronizer(
            self.client,
            user_id=api.user_id,
            enabled=config.sync.enabled,
            settle_delay=config.sync.settle_delay,
            debounce_window=config.sync.debounce_window,
            on_sync_start=on_sync_start,
            on_sync_complete=on_sync_complete,
            on_sync_error=on_sync_error,
        )
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Attach the synchronizer, then run the initial load and background refresh."""
        if self._running:
            return
        self._running = True

        if not self.config.api.user_id:
            logger.warning("No user_id configured, requests will likely be rejected")

        self.synchronizer.attach(self.coordinator)
        await self.coordinator.start()
        logger.info(f"Portfolio sync started against {self.config.api.base_url}")

    async def stop(self) -> None:
        """Stop background work, close the HTTP session and the event bus."""
        if not self._running:
            return
        self._running = False

        await self.synchronizer.stop()
        await self.coordinator.stop()
        await self.executor.close()
        self.event_bus.close()
        logger.info("Portfolio sync stopped")

    def notify_exchanges_changed(self) -> int:
        """Signal that the user linked or removed an exchange."""
        return self.event_bus.publish(EXCHANGES_CHANGED)

    async def __aenter__(self) -> "PortfolioSyncApp":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
