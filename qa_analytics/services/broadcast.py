"""Last-value-wins fan-out of progress snapshots."""

import asyncio
from collections.abc import AsyncIterator
from typing import Generic, TypeVar

T = TypeVar("T")


class Subscription(Generic[T]):
    """One observer's mailbox holding at most the latest undelivered value."""

    def __init__(self, channel: "BroadcastChannel[T]") -> None:
        self._channel = channel
        self._pending: T | None = None
        self._has_pending = False
        self._closed = False
        self._wakeup = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, value: T) -> None:
        """Replace any unread value; never waits on the reader."""
        if self._closed:
            return
        self._pending = value
        self._has_pending = True
        self._wakeup.set()

    def close(self) -> None:
        self._closed = True
        self._wakeup.set()

    def unsubscribe(self) -> None:
        """Detach from the channel. Safe to call more than once."""
        self._channel.remove(self)
        self.close()

    async def get(self) -> T | None:
        """Wait for the next value; None once closed and drained."""
        while True:
            if self._has_pending:
                value = self._pending
                self._pending = None
                self._has_pending = False
                self._wakeup.clear()
                return value
            if self._closed:
                return None
            self._wakeup.clear()
            await self._wakeup.wait()

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            value = await self.get()
            if value is None and self._closed:
                return
            yield value  # type: ignore[misc]

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.unsubscribe()


class BroadcastChannel(Generic[T]):
    """Publishes values to every current subscriber without blocking."""

    def __init__(self) -> None:
        self._subscribers: set[Subscription[T]] = set()
        self._latest: T | None = None
        self._closed = False

    @property
    def latest(self) -> T | None:
        return self._latest

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self) -> Subscription[T]:
        """Receive every value published from now on."""
        subscription: Subscription[T] = Subscription(self)
        if self._closed:
            subscription.close()
            return subscription
        self._subscribers.add(subscription)
        return subscription

    def remove(self, subscription: Subscription[T]) -> None:
        self._subscribers.discard(subscription)

    def publish(self, value: T) -> None:
        self._latest = value
        for subscription in list(self._subscribers):
            subscription.deliver(value)

    def close(self) -> None:
        """End every subscriber stream after its pending value is read."""
        self._closed = True
        for subscription in list(self._subscribers):
            subscription.close()
        self._subscribers.clear()
