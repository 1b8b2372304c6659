"""
Ordered listener lists for queue notifications.

Listeners run synchronously in subscription order. A listener that raises is
logged and skipped; a coroutine listener is scheduled as a task on the running
loop so it cannot stall the processing loop.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, List, Set

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Any]


class EventHook:
    """One notification channel with any number of subscribers."""

    def __init__(self, name: str):
        self.name = name
        self._listeners: List[Listener] = []
        self._tasks: Set[asyncio.Task] = set()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Add a listener; returns a function that removes it again."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: Any):
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    task = asyncio.ensure_future(result)
                    self._tasks.add(task)
                    task.add_done_callback(self._task_done)
            except Exception as e:
                logger.error(f"{self.name} listener {getattr(listener, '__name__', listener)!r} failed: {e}")

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception():
            logger.error(f"{self.name} async listener failed: {task.exception()}")

    async def drain(self):
        """Wait for scheduled coroutine listeners to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def clear(self):
        self._listeners.clear()

    def __len__(self):
        return len(self._listeners)
