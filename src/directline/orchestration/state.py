"""
State register for a bot connection.

The StateRegister holds the current ConnectionState and broadcasts every
transition to its subscribers. Each subscription first yields the value that
was current when it was opened, then every later transition in publish order.
Writes are synchronous, so all subscribers observe the same ordering.

The register belongs to a single event loop and is not thread-safe.
"""

import asyncio
import logging

from .types import ConnectionState, Uninitialized

logger = logging.getLogger(__name__)


class StateSubscription:
    """
    Stream of connection states for one observer.

    Use as an async iterator; close it (or use it as a context manager) to
    stop receiving transitions.
    """

    def __init__(self, register: "StateRegister", initial: ConnectionState):
        self._register = register
        self._queue: asyncio.Queue[ConnectionState | None] = asyncio.Queue()
        self._queue.put_nowait(initial)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _deliver(self, state: ConnectionState) -> None:
        if not self._closed:
            self._queue.put_nowait(state)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._register._unsubscribe(self)
        # Wake a pending __anext__
        self._queue.put_nowait(None)

    def __aiter__(self) -> "StateSubscription":
        return self

    async def __anext__(self) -> ConnectionState:
        state = await self._queue.get()
        if state is None:
            raise StopAsyncIteration
        return state

    def __enter__(self) -> "StateSubscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    async def __aenter__(self) -> "StateSubscription":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class StateRegister:
    """Current connection state plus its broadcast to subscribers."""

    def __init__(self, initial: ConnectionState | None = None):
        self._state: ConnectionState = initial or Uninitialized()
        self._subscribers: list[StateSubscription] = []

    def get(self) -> ConnectionState:
        return self._state

    def set(self, state: ConnectionState) -> None:
        """Replace the current state and notify every subscriber."""
        previous = self._state
        self._state = state
        logger.debug(f"Connection state {previous} -> {state}")

        for subscription in list(self._subscribers):
            subscription._deliver(state)

    def subscribe(self) -> StateSubscription:
        """Open a subscription that starts with the current state."""
        subscription = StateSubscription(self, self._state)
        self._subscribers.append(subscription)
        return subscription

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def close(self) -> None:
        """End every open subscription."""
        for subscription in list(self._subscribers):
            subscription.close()

    def _unsubscribe(self, subscription: StateSubscription) -> None:
        try:
            self._subscribers.remove(subscription)
        except ValueError:
            pass
