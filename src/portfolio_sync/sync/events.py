"""
Event Bus.

Process-wide "data changed" broadcast. One bus is created by the application
and passed to every component that publishes or listens.
"""

import asyncio
import inspect
import threading
from enum import Enum
from typing import Any, Callable, Dict, Set

from portfolio_sync.core import get_logger

logger = get_logger(__name__)


class EventTopic(str, Enum):
    """Broadcast topics."""

    BALANCES_UPDATED = "balances_updated"
    EXCHANGES_CHANGED = "exchanges_changed"


BALANCES_UPDATED = EventTopic.BALANCES_UPDATED
EXCHANGES_CHANGED = EventTopic.EXCHANGES_CHANGED

Listener = Callable[[], Any]


class EventBus:
    """
    Topic-based publish/subscribe with zero-argument listeners.

    A listener that raises is logged and does not stop delivery to the
    others. A listener returning a coroutine has it scheduled as a task on
    the running loop.

    Example:
        >>> bus = EventBus()
        >>> bus.subscribe(lambda: print("balances changed"))
        True
        >>> bus.publish(BALANCES_UPDATED)
        balances changed
        1
    """

    def __init__(self):
        self._listeners: Dict[EventTopic, Set[Listener]] = {topic: set() for topic in EventTopic}
        self._lock = threading.Lock()
        self._closed = False
        self._tasks: Set[asyncio.Task] = set()

    @property
    def is_closed(self) -> bool:
        return self._closed

    def subscribe(self, callback: Listener, topic: EventTopic = BALANCES_UPDATED) -> bool:
        """
        Register a listener.

        Returns:
            True if added, False if it was already registered or the bus is closed
        """
        if self._closed:
            return False
        with self._lock:
            listeners = self._listeners[EventTopic(topic)]
            if callback in listeners:
                return False
            listeners.add(callback)
        return True

    def unsubscribe(self, callback: Listener, topic: EventTopic = BALANCES_UPDATED) -> bool:
        """
        Remove a listener.

        Returns:
            True if removed, False if it was not registered
        """
        with self._lock:
            listeners = self._listeners[EventTopic(topic)]
            if callback not in listeners:
                return False
            listeners.discard(callback)
        return True

    def listener_count(self, topic: EventTopic = BALANCES_UPDATED) -> int:
        return len(self._listeners[EventTopic(topic)])

    def publish(self, topic: EventTopic = BALANCES_UPDATED) -> int:
        """
        Invoke every listener of a topic.

        Listeners registered or removed during delivery do not affect the
        current delivery.

        Returns:
            Number of listeners invoked without raising
        """
        if self._closed:
            return 0

        topic = EventTopic(topic)
        with self._lock:
            listeners = list(self._listeners[topic])

        delivered = 0
        for callback in listeners:
            try:
                result = callback()
                if inspect.isawaitable(result):
                    self._schedule(result, topic)
                delivered += 1
            except Exception as e:
                logger.warning(f"Listener error on {topic.value}: {e}")

        logger.debug(f"Published {topic.value} to {delivered}/{len(listeners)} listeners")
        return delivered

    def _schedule(self, awaitable: Any, topic: EventTopic) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.warning(f"Async listener error on {topic.value}: {t.exception()}")

        task.add_done_callback(_done)

    def close(self) -> None:
        """Drop every listener; later publishes are no-ops."""
        self._closed = True
        with self._lock:
            for listeners in self._listeners.values():
                listeners.clear()
        for task in list(self._tasks):
            task.cancel()
        logger.debug("Event bus closed")
