"""
Bounded row channels with a shared fan-in wait point.

Every channel and the cancellation flag are guarded by one
``threading.Condition`` owned by ``FanIn``. The consumer therefore waits on a
single condition for "row arrived" or "channel closed", and producers blocked
on a full channel are woken by either a drained slot or cancellation.

A producer that fails closes its channel with the error. The error sits behind
the rows already queued, so the consumer raises it exactly when it asks that
source for the row that failed, independent of thread timing.
"""

import logging
import threading
from collections import deque
from typing import Deque, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10000


class RowChannel:
    """Single-producer, single-consumer bounded FIFO of field vectors."""

    def __init__(self, hub: "FanIn", capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"channel capacity must be positive, got: {capacity}")
        self._hub = hub
        self._capacity = capacity
        self._items: Deque[List[str]] = deque()
        self._closed = False
        self._error: Optional[BaseException] = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def send(self, item: List[str]) -> bool:
        """
        Queue ``item``, blocking while the channel is full.

        Returns:
            bool: False if the run was cancelled before the item could be queued.
                The item is dropped in that case.
        """
        cond = self._hub.condition
        with cond:
            while len(self._items) >= self._capacity and not self._hub.cancelled:
                cond.wait()
            if self._hub.cancelled:
                return False
            self._items.append(item)
            cond.notify_all()
            return True

    def close(self, error: Optional[BaseException] = None) -> None:
        """
        Mark the end of the stream. With ``error`` the stream ends in that error
        once the queued rows are drained. Only the first close counts.
        """
        with self._hub.condition:
            if not self._closed:
                self._closed = True
                self._error = error
            self._hub.condition.notify_all()


class FanIn:
    """Wait point shared by the synchronizer and every extractor of one run."""

    def __init__(self) -> None:
        self.condition = threading.Condition()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def channel(self, capacity: int = DEFAULT_CAPACITY) -> RowChannel:
        return RowChannel(self, capacity)

    def cancel(self) -> None:
        """Broadcast cancellation; later calls are no-ops."""
        with self.condition:
            if self._cancelled:
                return
            self._cancelled = True
            self.condition.notify_all()
        logger.debug("Cancellation broadcast")

    def receive(self, channel: RowChannel) -> Optional[List[str]]:
        """
        Block until ``channel`` yields a row or reaches its end.

        Returns:
            The next field vector, or None once the channel is closed and drained.

        Raises:
            The error the channel was closed with, once its queued rows are drained.
        """
        cond = self.condition
        with cond:
            while True:
                if channel._items:
                    item = channel._items.popleft()
                    cond.notify_all()
                    return item
                if channel._closed:
                    if channel._error is not None:
                        raise channel._error
                    return None
                cond.wait()
