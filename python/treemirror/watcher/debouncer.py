"""
Debounced publication of the index snapshot.

This module provides the DebouncedValue class that coalesces rapid
snapshot updates so observers see at most one update per quiet period.
"""

import asyncio
import logging
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DebouncedValue(Generic[T]):
    """
    Holds the last published value and applies new ones after a delay.

    Behavior:
    ---------
    Every ``set()`` replaces the pending value and restarts the timer, so
    only the last of a burst of updates is published:

    set(A) at t=0ms
    set(B) at t=20ms     } Coalesced
    set(C) at t=40ms     }
    → Published at t=90ms with C (delay 0.05s)

    With ``delay == 0``, or when no event loop is running, values are
    published immediately.
    """

    def __init__(self, initial: T, delay: float = 0.05) -> None:
        """
        Initialize debounced value.

        Args:
        -----
        initial: Value visible before the first publish
        delay: Seconds of quiet before publishing (0 publishes immediately)

        Raises:
        -------
        ValueError: If delay invalid
        """
        if delay < 0 or delay > 10:
            raise ValueError("delay must be between 0 and 10 seconds")

        self._delay = delay
        self._value: T = initial
        self._pending: Optional[T] = None
        self._has_pending = False
        self._timer_handle: Optional[asyncio.TimerHandle] = None
        self._listeners: list[Callable[[T], Any]] = []

    @property
    def value(self) -> T:
        """Last published value."""
        return self._value

    @property
    def pending(self) -> bool:
        return self._has_pending

    def set(self, value: T) -> None:
        """Schedule ``value`` for publication, replacing any pending value."""
        self._pending = value
        self._has_pending = True

        if self._timer_handle:
            self._timer_handle.cancel()
            self._timer_handle = None

        if self._delay == 0:
            self.flush()
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop, nothing can fire the timer
            self.flush()
            return

        self._timer_handle = loop.call_later(self._delay, self.flush)

    def flush(self) -> None:
        """Publish the pending value now (no-op when nothing is pending)."""
        if self._timer_handle:
            self._timer_handle.cancel()
            self._timer_handle = None

        if not self._has_pending:
            return

        self._value = self._pending
        self._pending = None
        self._has_pending = False

        for listener in list(self._listeners):
            try:
                listener(self._value)
            except Exception as e:
                # Log error but keep notifying the others
                logger.error(f"Error in publish listener: {e}", exc_info=True)

    def cancel(self) -> None:
        """Drop the pending value without publishing it."""
        if self._timer_handle:
            self._timer_handle.cancel()
            self._timer_handle = None
        self._pending = None
        self._has_pending = False

    def subscribe(self, listener: Callable[[T], Any]) -> Callable[[], None]:
        """
        Register ``listener`` for published values.

        Returns:
        --------
        A function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
