"""Async event bus carrying palette publications to UI subscribers."""

import asyncio
import inspect
import weakref
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from loguru import logger


@dataclass
class Event:
    """Base event class."""
    type: str
    data: Dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.now)
    source: Optional[str] = None
    correlation_id: Optional[str] = None


def _make_ref(handler: Callable) -> weakref.ref:
    if inspect.ismethod(handler):
        return weakref.WeakMethod(handler)
    return weakref.ref(handler)


class EventBus:
    """
    Async pub/sub event bus for in-process communication.

    Event types follow pattern: category.action
    Examples: palette.results, palette.intent, palette.query
    """

    def __init__(self, max_queue: int = 1000):
        self._subscribers: Dict[str, List[weakref.ref]] = defaultdict(list)
        self._event_queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self._running = False
        self._processor_task: Optional[asyncio.Task] = None
        self._stats = defaultdict(int)

    def subscribe(self, event_pattern: str, handler: Callable[[Event], Any]) -> None:
        """
        Subscribe to events matching pattern.
        Pattern can use wildcards: 'palette.*' matches all palette events.
        Handlers are held weakly; keep a reference to them.
        """
        self._subscribers[event_pattern].append(_make_ref(handler))
        logger.debug(f"Subscribed handler to pattern: {event_pattern}")

    def unsubscribe(self, event_pattern: str, handler: Callable[[Event], Any]) -> None:
        self._subscribers[event_pattern] = [
            ref for ref in self._subscribers[event_pattern]
            if ref() is not None and ref() != handler
        ]

    async def emit(self, event: Event) -> None:
        if self._event_queue.full():
            logger.warning(f"Event queue full, dropping event: {event.type}")
            self._stats['dropped'] += 1
            return

        await self._event_queue.put(event)
        self._stats['emitted'] += 1

    def emit_nowait(self, event: Event) -> bool:
        """
        Emit an event without waiting.
        Returns True if queued, False if the queue is full.
        """
        try:
            self._event_queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Event queue full, dropping event: {event.type}")
            self._stats['dropped'] += 1
            return False
        self._stats['emitted'] += 1
        return True

    async def start(self) -> None:
        if self._running:
            logger.warning("Event bus already running")
            return

        self._running = True
        self._processor_task = asyncio.create_task(self._process_events())
        logger.info("Event bus started")

    async def stop(self) -> None:
        self._running = False
        if self._processor_task:
            self._processor_task.cancel()
            try:
                await self._processor_task
            except asyncio.CancelledError:
                pass
            self._processor_task = None
        logger.info("Event bus stopped")

    async def join(self) -> None:
        """Wait until every queued event has been delivered."""
        await self._event_queue.join()

    async def _process_events(self) -> None:
        while self._running:
            event = await self._event_queue.get()
            try:
                await self._dispatch(event)
                self._stats['processed'] += 1
            except Exception as e:
                logger.error(f"Error processing event {event.type}: {e}")
                self._stats['processing_errors'] += 1
            finally:
                self._event_queue.task_done()

    def _handlers_for(self, event_type: str) -> List[Callable]:
        handlers = []
        for pattern, refs in self._subscribers.items():
            if not self._matches_pattern(event_type, pattern):
                continue
            live_refs = []
            for ref in refs:
                handler = ref()
                if handler is not None:
                    handlers.append(handler)
                    live_refs.append(ref)
            self._subscribers[pattern] = live_refs
        return handlers

    async def _dispatch(self, event: Event) -> None:
        handlers = self._handlers_for(event.type)
        if not handlers:
            return

        calls = []
        for handler in handlers:
            if asyncio.iscoroutinefunction(handler):
                calls.append(handler(event))
            else:
                calls.append(asyncio.to_thread(handler, event))

        results = await asyncio.gather(*calls, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"Handler error for event {event.type}: {result}")
                self._stats['handler_errors'] += 1

    def _matches_pattern(self, event_type: str, pattern: str) -> bool:
        if pattern == "*":
            return True
        if pattern.endswith(".*"):
            prefix = pattern[:-2]
            return event_type.startswith(prefix + ".")
        return event_type == pattern

    def get_stats(self) -> Dict[str, int]:
        return dict(self._stats)

    def reset_stats(self) -> None:
        self._stats.clear()
