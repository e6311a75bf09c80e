"""Publication sinks that receive ranked results and the intent context."""

from typing import Callable, List, Optional, Protocol

from loguru import logger

from .bus import Event, EventBus
from .models import IntentContext, SearchResult


class PublicationSink(Protocol):
    """Receives every publication from the orchestrator, on the event loop."""

    def publish(self, results: List[SearchResult]) -> None:
        ...

    def publish_intent_context(self, context: Optional[IntentContext]) -> None:
        ...


class CallbackSink:
    """Forwards publications to plain callables."""

    def __init__(self,
                 on_results: Callable[[List[SearchResult]], None],
                 on_intent: Optional[Callable[[Optional[IntentContext]], None]] = None):
        self._on_results = on_results
        self._on_intent = on_intent

    def publish(self, results: List[SearchResult]) -> None:
        self._on_results(results)

    def publish_intent_context(self, context: Optional[IntentContext]) -> None:
        if self._on_intent is not None:
            self._on_intent(context)


class PaletteStateStore:
    """Holds the latest published state and a history of publications.

    Listeners are called synchronously after each change.
    """

    def __init__(self, history_size: int = 50):
        self.results: List[SearchResult] = []
        self.intent_context: Optional[IntentContext] = None
        self.selected_index = 0
        self.publications: List[List[SearchResult]] = []
        self.history_size = history_size
        self._listeners: List[Callable[["PaletteStateStore"], None]] = []

    def add_listener(self, listener: Callable[["PaletteStateStore"], None]) -> None:
        self._listeners.append(listener)

    def publish(self, results: List[SearchResult]) -> None:
        self.results = list(results)
        self.selected_index = 0
        self.publications.append(self.results)
        if len(self.publications) > self.history_size:
            self.publications.pop(0)
        self._notify()

    def publish_intent_context(self, context: Optional[IntentContext]) -> None:
        self.intent_context = context
        self._notify()

    @property
    def selected(self) -> Optional[SearchResult]:
        if 0 <= self.selected_index < len(self.results):
            return self.results[self.selected_index]
        return None

    def move_selection(self, delta: int) -> None:
        if not self.results:
            self.selected_index = 0
            return
        self.selected_index = max(0, min(len(self.results) - 1, self.selected_index + delta))
        self._notify()

    def _notify(self) -> None:
        for listener in self._listeners:
            listener(self)


class EventBusSink:
    """Emits publications as ``palette.results`` / ``palette.intent`` events."""

    RESULTS_EVENT = "palette.results"
    INTENT_EVENT = "palette.intent"

    def __init__(self, bus: EventBus, source: str = "orchestrator"):
        self.bus = bus
        self.source = source

    def publish(self, results: List[SearchResult]) -> None:
        event = Event(
            type=self.RESULTS_EVENT,
            data={"results": [r.to_dict() for r in results], "count": len(results)},
            source=self.source,
        )
        if not self.bus.emit_nowait(event):
            logger.warning("Results publication dropped by event bus")

    def publish_intent_context(self, context: Optional[IntentContext]) -> None:
        event = Event(
            type=self.INTENT_EVENT,
            data={"context": context.to_dict() if context else None},
            source=self.source,
        )
        if not self.bus.emit_nowait(event):
            logger.warning("Intent publication dropped by event bus")


class FanOutSink:
    """Delivers each publication to several sinks in order; a failing sink is skipped."""

    def __init__(self, *sinks: PublicationSink):
        self.sinks = list(sinks)

    def publish(self, results: List[SearchResult]) -> None:
        for sink in self.sinks:
            try:
                sink.publish(results)
            except Exception as e:
                logger.error(f"{type(sink).__name__} failed to publish results: {e}")

    def publish_intent_context(self, context: Optional[IntentContext]) -> None:
        for sink in self.sinks:
            try:
                sink.publish_intent_context(context)
            except Exception as e:
                logger.error(f"{type(sink).__name__} failed to publish intent context: {e}")
