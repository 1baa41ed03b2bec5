"""Threads, events, sleeping, monotonic time and bounded string copies."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Optional

# The longest stretch sleep_ms_interruptible() sleeps before checking for an interrupt.
INTERRUPT_PERIOD_MS = 50

_start_ns = time.monotonic_ns()


class PlatformThread:
    """A named worker thread that runs ``entry(context)`` once.

    Interruption is cooperative: ``interrupt`` only sets a flag that the
    entry function is expected to poll through ``is_interrupted``.
    """

    def __init__(self, name: str, entry: Callable[[Any], Any], context: Any) -> None:
        self.name = name
        self._entry = entry
        self._context = context
        self._cancelled = False
        self._thread: Optional[threading.Thread] = None
        self._released = False

    def _run(self) -> None:
        self._entry(self._context)

    def start(self) -> None:
        """Start running the entry function on a new thread."""
        if self._thread is not None:
            raise RuntimeError(f"thread {self.name!r} has already been started")
        self._cancelled = False
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def _release(self) -> threading.Thread:
        if self._thread is None:
            raise RuntimeError(f"thread {self.name!r} was never started")
        if self._released:
            raise RuntimeError(f"thread {self.name!r} has already been joined or detached")
        self._released = True
        return self._thread

    def join(self) -> None:
        """Wait for the entry function to return."""
        self._release().join()

    def detach(self) -> None:
        """Let the thread finish on its own; it can no longer be joined."""
        self._release()

    def interrupt(self) -> None:
        """Ask the thread to stop at its next check."""
        self._cancelled = True

    def is_interrupted(self) -> bool:
        """Return whether ``interrupt`` has been called since the thread started."""
        return self._cancelled

    @property
    def is_alive(self) -> bool:
        """Whether the entry function is still running."""
        return self._thread is not None and self._thread.is_alive()


class PlatformEvent:
    """A manual-reset event: once set, every wait returns until it is cleared."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def set(self) -> None:
        """Signal the event, releasing all waiters."""
        self._event.set()

    def clear(self) -> None:
        """Return the event to the unsignalled state."""
        self._event.clear()

    def wait(self) -> None:
        """Block until the event is signalled."""
        self._event.wait()

    def is_set(self) -> bool:
        """Return whether the event is currently signalled."""
        return self._event.is_set()


def create_thread(name: str, entry: Callable[[Any], Any], context: Any) -> PlatformThread:
    """Create and start a thread that runs ``entry(context)``."""
    thread = PlatformThread(name, entry, context)
    thread.start()
    return thread


def sleep_ms(ms: int) -> None:
    """Sleep for ``ms`` milliseconds."""
    if ms > 0:
        time.sleep(ms / 1000)


def sleep_ms_interruptible(thread: PlatformThread, ms: int) -> None:
    """Sleep for up to ``ms`` milliseconds, stopping early if ``thread`` is interrupted."""
    while ms > 0 and not thread.is_interrupted():
        chunk = min(ms, INTERRUPT_PERIOD_MS)
        sleep_ms(chunk)
        ms -= chunk


def get_microseconds() -> int:
    """Microseconds elapsed since an arbitrary fixed starting point."""
    return (time.monotonic_ns() - _start_ns) // 1000


def get_millis() -> int:
    """Milliseconds elapsed since the same starting point as ``get_microseconds``."""
    return get_microseconds() // 1000


def safe_copy(src: str, dest_size: int) -> str:
    """Return ``src`` if it fits, with its terminator, in ``dest_size`` bytes.

    The length is measured in UTF-8 bytes. A string that does not fit
    raises ``ValueError`` rather than being truncated.
    """
    if dest_size <= 0:
        raise ValueError("destination size must be positive")
    if len(src.encode("utf-8")) >= dest_size:
        raise ValueError(
            f"string of {len(src.encode('utf-8'))} bytes does not fit in {dest_size} bytes"
        )
    return src