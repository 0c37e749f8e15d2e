"""
Event Bus for the component kernel.

A synchronous publish/subscribe hub. Subscribers of one event name are called
in subscription order; a subscriber that raises is logged and skipped, and the
publisher never sees the exception. Namespaced names (``system:component:*``)
and the catch-all ``*`` let one subscriber observe a family of events.
``debounce`` and ``throttle`` delay or thin out publishes on the running loop.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from itertools import count
from typing import Any, Callable, Dict, List, Optional, Set

from custom_logging import get_logger
from component_registry.event_definitions import NAMESPACE_SEPARATOR, WILDCARD

_subscription_ids = count(1)


@dataclass(eq=False)
class Subscription:
    """A single (event name, callback) registration."""
    event_name: str
    callback: Callable[[Any], Any]
    once: bool = False
    active: bool = True
    subscription_id: int = field(default_factory=lambda: next(_subscription_ids))


class EventBus:
    """Publish/subscribe hub shared by the registry and its components."""

    def __init__(self, name: str = "default"):
        self.name = name
        self.logger = get_logger(f"event_bus.{name}")
        self._subscribers: Dict[str, List[Subscription]] = {}
        self._middlewares: List[Callable[[str, Any], Any]] = []
        self._pending: Set[asyncio.Future] = set()
        self._debounce_timers: Dict[str, asyncio.TimerHandle] = {}
        self._throttle_timers: Dict[str, asyncio.TimerHandle] = {}
        self._throttle_last_run: Dict[str, float] = {}

    def subscribe(self, event_name: str, callback: Callable[[Any], Any],
                  once: bool = False) -> Callable[[], None]:
        """
        Register ``callback`` for ``event_name``.

        Args:
            event_name: Exact event name, a namespace pattern ending in ``:*``, or ``*``
            callback: Called with the published payload
            once: Remove the subscription after its first delivery

        Returns:
            A function that removes exactly this subscription; calling it again does nothing
        """
        if not isinstance(event_name, str):
            raise TypeError("Event name must be a string")
        if not callable(callback):
            raise TypeError("Callback must be callable")

        subscription = Subscription(event_name, callback, once=once)
        self._subscribers.setdefault(event_name, []).append(subscription)
        self.logger.debug(f"Subscribed to {event_name} (#{subscription.subscription_id})")

        def unsubscribe() -> None:
            self._remove(subscription)

        return unsubscribe

    def once(self, event_name: str, callback: Callable[[Any], Any]) -> Callable[[], None]:
        """Subscribe for a single delivery."""
        return self.subscribe(event_name, callback, once=True)

    def unsubscribe(self, event_name: str, callback: Callable[[Any], Any]) -> bool:
        """Remove the first active subscription of ``callback`` to ``event_name``."""
        for subscription in self._subscribers.get(event_name, []):
            if subscription.callback == callback and subscription.active:
                self._remove(subscription)
                return True
        return False

    def _remove(self, subscription: Subscription) -> None:
        if not subscription.active:
            return
        subscription.active = False
        subscribers = self._subscribers.get(subscription.event_name)
        if subscribers is None:
            return
        try:
            subscribers.remove(subscription)
        except ValueError:
            pass
        if not subscribers:
            del self._subscribers[subscription.event_name]

    def add_middleware(self, middleware: Callable[[str, Any], Any]) -> None:
        """Add a ``(event_name, payload) -> payload`` transform applied before delivery."""
        if not callable(middleware):
            raise TypeError("Middleware must be callable")
        self._middlewares.append(middleware)

    def _apply_middlewares(self, event_name: str, payload: Any) -> Any:
        for middleware in self._middlewares:
            try:
                payload = middleware(event_name, payload)
            except Exception as e:
                self.logger.exception(f"Middleware {middleware!r} failed for {event_name}: {e}")
        return payload

    def _matching_names(self, event_name: str) -> List[str]:
        """Exact name first, then enclosing namespaces from most to least specific."""
        names = [event_name]
        parts = event_name.split(NAMESPACE_SEPARATOR)
        for i in range(len(parts) - 1, 0, -1):
            pattern = NAMESPACE_SEPARATOR.join(parts[:i] + [WILDCARD])
            if pattern not in names:
                names.append(pattern)
        if WILDCARD not in names:
            names.append(WILDCARD)
        return names

    def publish(self, event_name: str, payload: Any = None) -> bool:
        """
        Deliver ``payload`` to every subscriber of ``event_name``.

        Delivery is synchronous. Coroutine subscribers are scheduled on the
        running loop and not awaited.

        Returns:
            True if at least one subscriber received the event
        """
        if not isinstance(event_name, str):
            raise TypeError("Event name must be a string")

        payload = self._apply_middlewares(event_name, payload)

        delivered = False
        for name in self._matching_names(event_name):
            # Snapshot so subscribe/unsubscribe inside a callback doesn't disturb this round
            for subscription in list(self._subscribers.get(name, [])):
                if not subscription.active:
                    continue
                if subscription.once:
                    self._remove(subscription)
                delivered = True
                self._deliver(event_name, subscription, payload)

        return delivered

    def _deliver(self, event_name: str, subscription: Subscription, payload: Any) -> None:
        try:
            result = subscription.callback(payload)
        except Exception as e:
            self.logger.exception(
                f"Error in subscriber #{subscription.subscription_id} for {event_name}: {e}"
            )
            return

        if inspect.isawaitable(result):
            self._schedule(event_name, result)

    def _schedule(self, event_name: str, awaitable) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            self.logger.warning(f"No running event loop; dropped async subscriber for {event_name}")
            return

        future = asyncio.ensure_future(awaitable)
        self._pending.add(future)

        def _done(fut: asyncio.Future) -> None:
            self._pending.discard(fut)
            if fut.cancelled():
                return
            error = fut.exception()
            if error is not None:
                self.logger.error(
                    f"Async subscriber for {event_name} failed: {error}",
                    exc_info=(type(error), error, error.__traceback__)
                )

        future.add_done_callback(_done)

    def debounce(self, event_name: str, payload: Any = None, wait: float = 0.3) -> None:
        """
        Publish once calls stop arriving.

        Each call cancels the pending publish for ``event_name`` and schedules a
        new one ``wait`` seconds later with the latest payload. Must be called
        while an event loop is running.
        """
        if not isinstance(event_name, str):
            raise TypeError("Event name must be a string")
        loop = asyncio.get_running_loop()

        timer = self._debounce_timers.pop(event_name, None)
        if timer is not None:
            timer.cancel()
        self._debounce_timers[event_name] = loop.call_later(
            wait, self._fire_debounced, event_name, payload
        )

    def _fire_debounced(self, event_name: str, payload: Any) -> None:
        self._debounce_timers.pop(event_name, None)
        self.publish(event_name, payload)

    def throttle(self, event_name: str, payload: Any = None, limit: float = 0.3) -> None:
        """
        Publish at most once per ``limit`` seconds.

        The first call publishes immediately. A call inside the window schedules
        one trailing publish at the end of it; further calls in the same window
        are dropped. Must be called while an event loop is running.
        """
        if not isinstance(event_name, str):
            raise TypeError("Event name must be a string")
        loop = asyncio.get_running_loop()
        now = loop.time()

        last_run = self._throttle_last_run.get(event_name)
        if last_run is None or now - last_run >= limit:
            self._throttle_last_run[event_name] = now
            self.publish(event_name, payload)
            return

        if event_name not in self._throttle_timers:
            self._throttle_timers[event_name] = loop.call_later(
                limit - (now - last_run), self._fire_throttled, event_name, payload
            )

    def _fire_throttled(self, event_name: str, payload: Any) -> None:
        self._throttle_timers.pop(event_name, None)
        self._throttle_last_run[event_name] = asyncio.get_running_loop().time()
        self.publish(event_name, payload)

    def _cancel_timers(self, event_name: Optional[str] = None) -> None:
        names = [event_name] if event_name is not None else (
            list(self._debounce_timers) + list(self._throttle_timers)
        )
        for name in names:
            for timers in (self._debounce_timers, self._throttle_timers):
                timer = timers.pop(name, None)
                if timer is not None:
                    timer.cancel()
            self._throttle_last_run.pop(name, None)
        if event_name is None:
            self._throttle_last_run.clear()

    async def drain(self) -> None:
        """Wait for async subscribers scheduled by earlier publishes."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def clear(self, event_name: Optional[str] = None) -> None:
        """Remove the subscribers and pending timed publishes of one event, or of every event."""
        self._cancel_timers(event_name)
        names = [event_name] if event_name is not None else list(self._subscribers)
        for name in names:
            for subscription in self._subscribers.pop(name, []):
                subscription.active = False

    def listener_count(self, event_name: str) -> int:
        return len(self._subscribers.get(event_name, []))

    def has_subscribers(self, event_name: str) -> bool:
        return any(self._subscribers.get(name) for name in self._matching_names(event_name))

    def event_names(self) -> List[str]:
        return list(self._subscribers)
