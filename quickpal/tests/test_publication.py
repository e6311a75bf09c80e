"""Tests for publication sinks."""

from unittest.mock import Mock

import pytest

from quickpal.daemon.bus import Event, EventBus
from quickpal.daemon.models import (
    Category, Command, ContextEntity, EntityType, IntentContext, IntentType, SearchResult,
)
from quickpal.daemon.publication import (
    CallbackSink, EventBusSink, FanOutSink, PaletteStateStore,
)


def make_result(title, score=100):
    return SearchResult(title=title, category=Category.APPLICATION, score=score,
                        action=Command("noop"))


CONTEXT = IntentContext(
    intent_type=IntentType.CONVERT_UNITS,
    entities=(ContextEntity(EntityType.VALUE, "100"),),
    confidence=0.6,
    raw_query="100 km to miles",
)


class TestPaletteStateStore:
    """Latest-state store used by the CLI and UI adapters."""

    def test_publish_resets_selection(self):
        store = PaletteStateStore()
        store.publish([make_result("A"), make_result("B")])
        store.move_selection(1)
        assert store.selected.title == "B"

        store.publish([make_result("C")])

        assert store.selected_index == 0
        assert store.selected.title == "C"

    def test_selection_is_clamped(self):
        store = PaletteStateStore()
        store.publish([make_result("A"), make_result("B")])

        store.move_selection(5)
        assert store.selected_index == 1
        store.move_selection(-9)
        assert store.selected_index == 0

    def test_empty_results_have_no_selection(self):
        store = PaletteStateStore()
        store.publish([])
        store.move_selection(1)
        assert store.selected is None

    def test_history_is_bounded(self):
        store = PaletteStateStore(history_size=2)
        for title in ("A", "B", "C"):
            store.publish([make_result(title)])

        assert [[r.title for r in p] for p in store.publications] == [["B"], ["C"]]

    def test_listeners_see_every_change(self):
        store = PaletteStateStore()
        seen = []
        store.add_listener(lambda s: seen.append((len(s.results), s.intent_context)))

        store.publish([make_result("A")])
        store.publish_intent_context(CONTEXT)

        assert seen == [(1, None), (1, CONTEXT)]


class TestEventBusSink:
    @pytest.mark.asyncio
    async def test_publications_become_events(self):
        bus = EventBus()
        await bus.start()
        received = []

        async def handler(event: Event):
            received.append(event)

        bus.subscribe("palette.*", handler)
        sink = EventBusSink(bus)

        sink.publish([make_result("Safari", 900)])
        sink.publish_intent_context(CONTEXT)
        sink.publish_intent_context(None)
        await bus.join()
        await bus.stop()

        assert [e.type for e in received] == [
            "palette.results", "palette.intent", "palette.intent",
        ]
        assert received[0].data["count"] == 1
        assert received[0].data["results"][0]["title"] == "Safari"
        assert received[1].data["context"]["intent"] == "convert_units"
        assert received[2].data["context"] is None

    def test_full_queue_drops_publication(self):
        bus = EventBus(max_queue=1)
        sink = EventBusSink(bus)

        sink.publish([])
        sink.publish([])

        assert bus.get_stats()["dropped"] == 1


class TestFanOut:
    def test_every_sink_receives_publications(self):
        store = PaletteStateStore()
        results_seen = []
        contexts_seen = []
        sink = FanOutSink(store, CallbackSink(results_seen.append, contexts_seen.append))

        sink.publish([make_result("A")])
        sink.publish_intent_context(CONTEXT)

        assert [r.title for r in store.results] == ["A"]
        assert store.intent_context == CONTEXT
        assert [[r.title for r in p] for p in results_seen] == [["A"]]
        assert contexts_seen == [CONTEXT]

    def test_failing_sink_does_not_starve_later_sinks(self):
        broken = Mock()
        broken.publish.side_effect = RuntimeError("window closed")
        broken.publish_intent_context.side_effect = RuntimeError("window closed")
        results_seen = []
        contexts_seen = []
        sink = FanOutSink(broken, CallbackSink(results_seen.append, contexts_seen.append))

        sink.publish([make_result("A")])
        sink.publish_intent_context(CONTEXT)

        assert [[r.title for r in p] for p in results_seen] == [["A"]]
        assert contexts_seen == [CONTEXT]
        assert broken.publish.call_count == 1

    def test_callback_sink_without_intent_handler(self):
        results_seen = []
        sink = CallbackSink(results_seen.append)

        sink.publish_intent_context(CONTEXT)

        assert results_seen == []
