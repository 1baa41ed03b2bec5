"""A bounded, thread-safe FIFO queue with shutdown, drain and wake signals."""

from __future__ import annotations

import threading
from collections import deque
from typing import Any, Deque, List


class QueueError(Exception):
    """Base class for queue conditions that stop an operation."""


class QueueInterrupted(QueueError):
    """The queue is shutting down, or draining with nothing left to hand out."""


class QueueBoundExceeded(QueueError):
    """The queue already holds as many items as its size bound allows."""


class QueueEmpty(QueueError):
    """A non-blocking read found no item in the queue."""


class QueueUserWake(QueueError):
    """A waiter was woken on request rather than by an item arriving."""


class LinkedBlockingQueue:
    """Bounded FIFO queue whose consumers can block until data or rundown.

    ``signal_shutdown`` aborts every read immediately, even if items remain.
    ``signal_drain`` refuses new items but lets readers take what is left.
    ``signal_user_wake`` makes the next blocked ``wait`` return early once.
    """

    def __init__(self, size_bound: int) -> None:
        self._size_bound = size_bound
        self._items: Deque[Any] = deque()
        self._cond = threading.Condition()
        self._lifetime_size = 0
        self._shutdown = False
        self._draining = False
        self._pending_user_wake = False

    def offer(self, item: Any) -> None:
        """Append ``item`` to the tail of the queue."""
        with self._cond:
            if self._shutdown or self._draining:
                raise QueueInterrupted("queue is not accepting items")
            if len(self._items) == self._size_bound:
                raise QueueBoundExceeded(
                    f"queue reached its size bound of {self._size_bound}"
                )
            was_empty = not self._items
            self._items.append(item)
            self._lifetime_size += 1
            # Waiters only block on an empty queue, so wake them on the
            # empty -> non-empty transition alone.
            if was_empty:
                self._cond.notify()

    def wait(self) -> Any:
        """Block until an item is available and remove it from the head."""
        with self._cond:
            while (
                not self._items
                and not self._draining
                and not self._shutdown
                and not self._pending_user_wake
            ):
                self._cond.wait()

            if self._shutdown:
                raise QueueInterrupted("queue is shutting down")

            if self._pending_user_wake:
                self._pending_user_wake = False
                raise QueueUserWake("woken on request")

            if self._draining and not self._items:
                raise QueueInterrupted("queue has been drained")

            return self._items.popleft()

    def _check_readable(self) -> None:
        if self._shutdown:
            raise QueueInterrupted("queue is shutting down")
        if not self._items:
            if self._draining:
                raise QueueInterrupted("queue has been drained")
            raise QueueEmpty("queue is empty")

    def poll(self) -> Any:
        """Remove and return the head item without blocking."""
        with self._cond:
            self._check_readable()
            return self._items.popleft()

    def peek(self) -> Any:
        """Return the head item without removing it or blocking."""
        with self._cond:
            self._check_readable()
            return self._items[0]

    def flush(self) -> List[Any]:
        """Empty the queue and return the items it held, head first."""
        with self._cond:
            items = list(self._items)
            self._items.clear()
            return items

    def destroy(self) -> List[Any]:
        """Tear the queue down and hand back whatever items were left in it."""
        with self._cond:
            items = list(self._items)
            self._items.clear()
            return items

    def signal_shutdown(self) -> None:
        """Abort all current and future reads and writes."""
        with self._cond:
            self._shutdown = True
            self._cond.notify_all()

    def signal_drain(self) -> None:
        """Refuse new items while letting readers take the remaining ones."""
        with self._cond:
            self._draining = True
            self._cond.notify_all()

    def signal_user_wake(self) -> None:
        """Make one blocked or future ``wait`` return with ``QueueUserWake``."""
        with self._cond:
            self._pending_user_wake = True
            self._cond.notify()

    def __len__(self) -> int:
        return len(self._items)