"""Live query primitives shared by the store, repository and controller."""

from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")

Listener = Callable[[list[T]], None]


class Subscription:
    """Handle for a registered listener; cancelling stops further delivery."""

    def __init__(self, on_cancel: Callable[[], None] | None = None) -> None:
        self._on_cancel = on_cancel
        self._active = True

    @property
    def active(self) -> bool:
        """Whether the listener still receives emissions."""
        return self._active

    def cancel(self) -> None:
        """Release the subscription. Calling it again has no effect."""
        if not self._active:
            return
        self._active = False
        if self._on_cancel is not None:
            self._on_cancel()


class LiveQuery(Generic[T]):
    """
    Cold, continuously-updating list query.

    Nothing runs until subscribe() is awaited. Every subscription receives an
    initial snapshot before subscribe() returns, followed by a new full
    snapshot each time the underlying data changes, until it is cancelled.
    """

    def __init__(
        self, subscribe: Callable[[Listener[T]], Awaitable[Subscription]]
    ) -> None:
        """
        Initialize the query.

        Args:
            subscribe: Coroutine function registering a listener with the source
        """
        self._subscribe = subscribe

    async def subscribe(self, listener: Listener[T]) -> Subscription:
        """
        Start receiving snapshots.

        Args:
            listener: Called with each snapshot

        Returns:
            Subscription handle; cancel it to stop delivery
        """
        return await self._subscribe(listener)

    def map(self, transform: Callable[[list[T]], list[U]]) -> "LiveQuery[U]":
        """Derive a query whose snapshots are transformed copies of this one's."""

        async def subscribe(listener: Listener[U]) -> Subscription:
            return await self._subscribe(lambda items: listener(transform(items)))

        return LiveQuery(subscribe)

    async def snapshot(self) -> list[T]:
        """Fetch the current snapshot once without staying subscribed."""
        received: list[list[T]] = []
        subscription = await self._subscribe(received.append)
        subscription.cancel()
        return received[0] if received else []
