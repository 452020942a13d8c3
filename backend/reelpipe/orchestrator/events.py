"""Progress notification for running jobs.

The executor publishes a ProgressEvent whenever a stage becomes active or
completes and when a job reaches a terminal state. Observers either hold a
Subscription (async iterator over a bounded queue) or register a plain
callback, which is how the CLI renders progress.

Delivery is best-effort: a slow subscriber loses its oldest queued events
rather than blocking the executor. The store stays the source of truth and
can always be queried for the current state.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional, Set

from reelpipe.schemas.job import ProgressEvent

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ProgressEvent], None]

DEFAULT_QUEUE_SIZE = 100


class Subscription:
    """Stream of progress events for one job, or for all jobs.

    A job-scoped subscription ends after that job's terminal event. An
    unscoped one runs until close() is called.

    Example:
        with bus.subscribe(job_id) as events:
            async for event in events:
                print(event.progress_percent, event.message)
    """

    def __init__(self, bus: "ProgressBus", job_id: Optional[str], maxsize: int):
        self.job_id = job_id
        self.dropped = 0
        self._bus = bus
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._finished = False

    @property
    def closed(self) -> bool:
        return self._closed

    def wants(self, event: ProgressEvent) -> bool:
        return self.job_id is None or self.job_id == event.job_id

    def offer(self, event: Optional[ProgressEvent]) -> None:
        """Enqueue without blocking, evicting the oldest event when full.

        ``None`` is the end-of-stream marker.
        """
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._bus._unsubscribe(self)
        self.offer(None)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ProgressEvent:
        if self._finished:
            raise StopAsyncIteration
        event = await self._queue.get()
        if event is None:
            self._finished = True
            raise StopAsyncIteration
        if self.job_id is not None and event.is_terminal:
            self._finished = True
            self.close()
        return event

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class ProgressBus:
    """Fan-out of progress events to subscriptions and listeners.

    Assigns each event a per-job sequence number so observers can detect
    gaps. Events of one job are delivered in publication order.
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.queue_size = queue_size
        self._subscriptions: Set[Subscription] = set()
        self._listeners: list[ProgressListener] = []
        self._sequences: Dict[str, int] = {}

    def last_sequence(self, job_id: str) -> int:
        return self._sequences.get(job_id, 0)

    def subscribe(
        self,
        job_id: Optional[str] = None,
        initial: Optional[ProgressEvent] = None,
    ) -> Subscription:
        """Open a subscription, optionally seeded with a current-state event."""
        subscription = Subscription(self, job_id, self.queue_size)
        self._subscriptions.add(subscription)
        if initial is not None:
            subscription.offer(initial)
        return subscription

    def add_listener(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a synchronous callback. Returns a function that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def publish(self, event: ProgressEvent) -> ProgressEvent:
        """Stamp the event with the next sequence number and deliver it."""
        sequence = self._sequences.get(event.job_id, 0) + 1
        self._sequences[event.job_id] = sequence
        event = event.model_copy(update={"sequence": sequence})

        for subscription in list(self._subscriptions):
            if subscription.wants(event):
                subscription.offer(event)

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Progress listener failed for job {event.job_id}")

        return event

    def close(self) -> None:
        """End every open subscription."""
        for subscription in list(self._subscriptions):
            subscription.close()

    def _unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions.discard(subscription)
