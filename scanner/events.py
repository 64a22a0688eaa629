"""
Scanner event stream.

The orchestrator publishes ``{type, payload}`` events; observers (the web
dashboard, tests) subscribe with plain or async callbacks.
"""

import asyncio
import inspect
import logging
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Set

from solana_arbitrage.utils import get_logger

logger = get_logger(__name__)

EVENT_TYPES = ("log", "status", "opportunities", "scan_start", "scan_complete")

Event = Dict[str, Any]


class ScannerEvents:
    """
    In-process event bus with a bounded history.

    Async callbacks are scheduled on the running event loop; when no loop is
    running they are skipped.
    """

    def __init__(self, history_size: int = 200):
        self._subscribers: List[Callable[[Event], Any]] = []
        self._pending: Set[asyncio.Task] = set()
        self.history: Deque[Event] = deque(maxlen=history_size)

    def subscribe(self, callback: Callable[[Event], Any]) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, event_type: str, payload: Any = None) -> Event:
        """Record an event and deliver it to every subscriber."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type}")

        event = {"type": event_type, "payload": payload, "timestamp": time.time()}
        self.history.append(event)

        for callback in list(self._subscribers):
            try:
                result = callback(event)
            except Exception as e:
                logger.warning(f"Event subscriber {callback!r} failed: {e}")
                continue
            if inspect.isawaitable(result):
                self._schedule(result)
        return event

    def _schedule(self, awaitable):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        task = loop.create_task(awaitable)
        self._pending.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task):
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Async event subscriber failed: {error}")

    def recent(self, event_type: Optional[str] = None, limit: Optional[int] = None) -> List[Event]:
        """Most recent events, oldest first, optionally of one type."""
        events = [e for e in self.history if event_type is None or e["type"] == event_type]
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    def clear(self):
        self.history.clear()


class EventLogHandler(logging.Handler):
    """Forwards log records to the event stream as ``log`` events."""

    def __init__(self, events: ScannerEvents, level=logging.INFO):
        super().__init__(level)
        self.events = events

    def emit(self, record: logging.LogRecord):
        # Records from the bus itself would loop back into it
        if record.name == __name__:
            return
        try:
            self.events.emit(
                "log",
                {
                    "level": record.levelname,
                    "logger": record.name,
                    "message": record.getMessage(),
                    "timestamp": record.created,
                },
            )
        except Exception:
            self.handleError(record)
