"""
Shared inbound activity feed.

An ActivityStream fans one upstream subscription to the service out to any
number of subscribers. The upstream is opened when the first subscriber
attaches and torn down when the last one detaches; activity groups are
flattened into individual activities, preserving the service's order.
"""

import asyncio
import copy
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

from ..core.errors import BotConnectionError, classify_error
from ..core.models import Activity, ActivityGroup

logger = logging.getLogger(__name__)

GroupSource = Callable[[], AsyncIterator[ActivityGroup]]


@dataclass(frozen=True)
class _Failure:
    error: BotConnectionError


_END = object()


class ActivitySubscription:
    """
    One consumer attached to an ActivityStream.

    Iterate it to receive activities delivered after it attached. Close it,
    or leave its ``async with`` block, to detach.
    """

    def __init__(self, stream: "ActivityStream"):
        self._stream = stream
        self._queue: asyncio.Queue = asyncio.Queue()
        self._detached = False

    @property
    def detached(self) -> bool:
        return self._detached

    def _deliver(self, item: object) -> None:
        if not self._detached:
            self._queue.put_nowait(item)

    def _finish(self, item: object) -> None:
        """Deliver a terminal item; the stream has already dropped us."""
        if not self._detached:
            self._queue.put_nowait(item)
            self._detached = True

    def close(self) -> None:
        if self._detached:
            return
        self._detached = True
        self._stream._detach(self)
        self._queue.put_nowait(_END)

    async def aclose(self) -> None:
        self.close()

    def __aiter__(self) -> "ActivitySubscription":
        return self

    async def __anext__(self) -> Activity:
        item = await self._queue.get()
        if item is _END:
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            raise copy.copy(item.error)
        return item

    async def __aenter__(self) -> "ActivitySubscription":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class ActivityStream:
    """
    Multicast handle over the activity groups of one conversation.

    Each activity is fetched from the service once and delivered to every
    subscriber attached at that moment. Subscribing after the upstream has
    been torn down (last subscriber gone, upstream exhausted or failed)
    opens a new upstream subscription.

    Usage:
        async with stream.subscribe() as activities:
            async for activity in activities:
                ...

    subscribe() must be called from a running event loop.
    """

    def __init__(self, source: GroupSource):
        """
        Args:
            source: Callable returning a fresh async iterator of activity
                    groups; called once per upstream subscription
        """
        self._source = source
        self._subscribers: list[ActivitySubscription] = []
        self._pump_task: asyncio.Task | None = None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def is_active(self) -> bool:
        """Whether an upstream subscription is currently open."""
        return self._pump_task is not None and not self._pump_task.done()

    def subscribe(self) -> ActivitySubscription:
        """Attach a new subscriber, opening the upstream if needed."""
        subscription = ActivitySubscription(self)
        self._subscribers.append(subscription)

        if self._pump_task is None:
            logger.debug("Opening upstream activity subscription")
            self._pump_task = asyncio.get_running_loop().create_task(self._pump())

        return subscription

    async def __aiter__(self) -> AsyncIterator[Activity]:
        """Iterate over a private subscription, detaching when the loop ends."""
        subscription = self.subscribe()
        try:
            async for activity in subscription:
                yield activity
        finally:
            subscription.close()

    async def close(self) -> None:
        """Detach every subscriber and wait for the upstream to close."""
        task = self._pump_task
        for subscription in list(self._subscribers):
            subscription.close()

        self._pump_task = None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    def _detach(self, subscription: ActivitySubscription) -> None:
        try:
            self._subscribers.remove(subscription)
        except ValueError:
            return

        if not self._subscribers and self._pump_task is not None:
            logger.debug("Last subscriber detached, closing upstream activity subscription")
            self._pump_task.cancel()
            self._pump_task = None

    async def _pump(self) -> None:
        """Read the upstream and fan each activity out to all subscribers."""
        task = asyncio.current_task()
        groups = self._source()
        terminal: object = _END

        try:
            async for group in groups:
                for activity in group.activities:
                    for subscription in list(self._subscribers):
                        subscription._deliver(activity)
            logger.info("Upstream activity stream ended")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = classify_error(e)
            logger.error(f"Activity stream failed: {error!r}")
            terminal = _Failure(error)
        finally:
            aclose = getattr(groups, "aclose", None)
            if aclose is not None:
                await aclose()

            if self._pump_task is task:
                self._pump_task = None
                subscribers, self._subscribers = self._subscribers, []
                for subscription in subscribers:
                    subscription._finish(terminal)
