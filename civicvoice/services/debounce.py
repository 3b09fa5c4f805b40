# File: civicvoice/services/debounce.py

import asyncio
from typing import Any, Callable, Optional


class Debouncer:
    """
    Coalesces bursts of calls: ``trigger`` (re)arms a timer on the running
    event loop and the callback fires once, with the latest arguments, after
    ``delay`` seconds without another trigger.
    """

    def __init__(self, delay: float, callback: Callable[..., Any]):
        self.delay = delay
        self.callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self._args: tuple = ()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self, *args) -> None:
        self.cancel()
        self._args = args
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        args, self._args = self._args, ()
        self.callback(*args)

    def flush(self, *args) -> None:
        """Skip the wait: drop any pending call and run the callback now."""
        self.cancel()
        self.callback(*args)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._args = ()
