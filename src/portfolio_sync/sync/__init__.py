# Sync module - balance refresh coordination and open-orders background sync
from .coordinator import BalanceCoordinator, CoordinatorStatus
from .events import BALANCES_UPDATED, EXCHANGES_CHANGED, EventBus, EventTopic
from .open_orders import OpenOrdersSynchronizer

__all__ = [
    "EventBus",
    "EventTopic",
    "BALANCES_UPDATED",
    "EXCHANGES_CHANGED",
    "BalanceCoordinator",
    "CoordinatorStatus",
    "OpenOrdersSynchronizer",
]
