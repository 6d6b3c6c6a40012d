"""
Replaying state publisher.

A multicast stream of DeviceState events. Every subscriber receives
the events published since the publisher was created, then follows
live events, so a view attaching late still renders current state.
"""

import asyncio
import logging
import threading
from collections import deque
from typing import Optional

from ..devices.models import DeviceState

logger = logging.getLogger("tasmota.control.state.publisher")


class Subscription:
    """Async iterator over one subscriber's view of the stream."""

    def __init__(self, publisher: "UpdatePublisher", cursor: int) -> None:
        self._publisher = publisher
        self._cursor = cursor
        self._wakeup = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> DeviceState:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()

        while not self._closed:
            # Clear before reading so a publish racing in after the read still wakes us
            self._wakeup.clear()
            state, self._cursor = self._publisher._read(self._cursor)
            if state is not None:
                return state
            if self._publisher.completed:
                break
            await self._wakeup.wait()
        raise StopAsyncIteration

    def close(self) -> None:
        """Stop receiving events."""
        if self._closed:
            return
        self._closed = True
        self._publisher._remove(self)
        self._notify()

    async def aclose(self) -> None:
        self.close()

    def _notify(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._wakeup.set()
        else:
            loop.call_soon_threadsafe(self._wakeup.set)


class UpdatePublisher:
    """
    Multicast publisher with replay.

    Features:
    - publish() never blocks and is atomic with respect to other publishers
    - subscribe() replays history, then follows live events
    - complete() ends every subscription once it has drained the history
    """

    def __init__(self, max_history: Optional[int] = None):
        """
        Initialize the publisher.

        Args:
            max_history: Events retained for replay (None keeps all)
        """
        self._lock = threading.Lock()
        self._history: deque[DeviceState] = deque(maxlen=max_history)
        self._offset = 0  # events dropped from the front of a bounded history
        self._latest: dict[str, DeviceState] = {}
        self._subscriptions: set[Subscription] = set()
        self._completed = False

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def history(self) -> tuple[DeviceState, ...]:
        """Events currently available for replay."""
        with self._lock:
            return tuple(self._history)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, state: DeviceState) -> bool:
        """
        Append an event for all current and future subscribers.

        Returns:
            False if the publisher is already completed
        """
        with self._lock:
            if self._completed:
                logger.debug("Dropping %s: publisher completed", state.device_id)
                return False
            if self._history.maxlen is not None and len(self._history) == self._history.maxlen:
                self._offset += 1
            self._history.append(state)
            self._latest[state.device_id] = state
            subscriptions = list(self._subscriptions)

        logger.debug(
            "Published %s power=%s health=%s to %d subscribers",
            state.device_id,
            state.power.value,
            state.health.value,
            len(subscriptions),
        )
        for subscription in subscriptions:
            subscription._notify()
        return True

    def subscribe(self) -> Subscription:
        """Create a subscription starting at the oldest retained event."""
        with self._lock:
            subscription = Subscription(self, self._offset)
            if not self._completed:
                self._subscriptions.add(subscription)
        return subscription

    def latest(self, device_id: str) -> Optional[DeviceState]:
        """Most recent state published for a device."""
        with self._lock:
            return self._latest.get(device_id)

    def snapshot(self) -> dict[str, DeviceState]:
        """Most recent state of every device seen so far."""
        with self._lock:
            return dict(self._latest)

    def complete(self) -> None:
        """End the stream. Subscribers finish after replaying what is left."""
        with self._lock:
            if self._completed:
                return
            self._completed = True
            subscriptions = list(self._subscriptions)
            self._subscriptions.clear()
        for subscription in subscriptions:
            subscription._notify()

    def _read(self, cursor: int) -> tuple[Optional[DeviceState], int]:
        with self._lock:
            cursor = max(cursor, self._offset)
            index = cursor - self._offset
            if index < len(self._history):
                return self._history[index], cursor + 1
            return None, cursor

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.discard(subscription)
