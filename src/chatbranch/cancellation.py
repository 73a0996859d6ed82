"""Revocable per-stream cancellation signals."""

import threading
from typing import Callable, List


class CancellationToken:
    """A one-shot, thread-safe cancellation flag owned by a single stream.

    Consumers check `cancelled` cooperatively before applying work. Callbacks
    registered with `add_callback` run once, on the thread that calls
    `cancel()`; a callback added after cancellation runs immediately.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        """Cancel the token. Returns False if it was already cancelled."""
        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()
        return True

    def add_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)
                return
        callback()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled})"
