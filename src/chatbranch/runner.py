"""A background thread owning the asyncio loop every stream runs on."""

import asyncio
import logging
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger("chatbranch.runner")

_DEFAULT_CALL_TIMEOUT_SECONDS = 10


class LoopThread:
    """Runs an event loop on a daemon thread and marshals calls onto it.

    Dash serves callbacks on worker threads; routing every session call
    through `call` keeps all tree mutations and reads on the loop thread.
    """

    def __init__(self, name: str = "chatbranch-loop"):
        self.name = name
        self.loop = asyncio.new_event_loop()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "LoopThread":
        with self._lock:
            if self.running:
                return self
            self._thread = threading.Thread(
                target=self._run, name=self.name, daemon=True
            )
            self._thread.start()
        return self

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        try:
            self.loop.run_forever()
        finally:
            pending = asyncio.all_tasks(self.loop)
            for task in pending:
                task.cancel()
            if pending:
                self.loop.run_until_complete(
                    asyncio.gather(*pending, return_exceptions=True)
                )
            self.loop.close()

    def call(
        self,
        func: Callable[..., Any],
        *args: Any,
        timeout: Optional[float] = _DEFAULT_CALL_TIMEOUT_SECONDS,
        **kwargs: Any,
    ) -> Any:
        """Run `func(*args, **kwargs)` on the loop thread and return its result."""
        if threading.current_thread() is self._thread:
            return func(*args, **kwargs)
        self.start()

        async def invoke():
            return func(*args, **kwargs)

        future = asyncio.run_coroutine_threadsafe(invoke(), self.loop)
        return future.result(timeout)

    def stop(self, timeout: Optional[float] = 5) -> None:
        with self._lock:
            thread = self._thread
            if thread is None or not thread.is_alive():
                return
            self.loop.call_soon_threadsafe(self.loop.stop)
        thread.join(timeout)
        logger.debug("Loop thread %s stopped", self.name)
