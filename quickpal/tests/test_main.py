"""Tests for service wiring."""

from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest

from quickpal.daemon.config import Config
from quickpal.daemon.main import PaletteService
from quickpal.daemon.models import Category, ResultSource
from quickpal.daemon.providers import CalendarEvent, Contact


@pytest.fixture
def config(tmp_path):
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "budget-2026.pdf").write_text("numbers")
    (docs / "notes.md").write_text("text")
    config = Config()
    config.search.slow_debounce_ms = 1
    config.search.intent_debounce_ms = 1
    config.intent.backend = "none"
    config.providers.application_dirs = []
    config.providers.file_search_roots = [docs]
    return config


class TestPaletteService:
    """End-to-end searches through the wired service."""

    @pytest.mark.asyncio
    async def test_file_search_reaches_store_and_sink(self, config):
        sink = Mock()
        service = PaletteService(config, sink=sink)
        await service.start()
        try:
            await service.search("budget")
        finally:
            await service.stop()

        titles = [r.title for r in service.store.results]
        assert "budget-2026.pdf" in titles
        assert sink.publish.call_count == len(service.store.publications)

    @pytest.mark.asyncio
    async def test_find_files_intent(self, config):
        service = PaletteService(config)
        await service.start()
        try:
            await service.search("find pdf files")
        finally:
            await service.stop()

        intent_results = [r for r in service.store.results if r.source == ResultSource.INTENT]
        assert [r.title for r in intent_results] == ["budget-2026.pdf"]
        assert service.store.intent_context.raw_query == "find pdf files"

    @pytest.mark.asyncio
    async def test_calendar_intent_uses_contacts(self, config):
        service = PaletteService(
            config,
            contacts=[Contact(name="Witek Nowak", emails=("witek@example.com",))],
        )
        await service.start()
        try:
            await service.search("meeting with Witek tomorrow")
        finally:
            await service.stop()

        titles = [r.title for r in service.store.results]
        assert titles[0] == "Meeting with Witek"
        assert any(r.category == Category.CONTACT for r in service.store.results)

    @pytest.mark.asyncio
    async def test_copying_a_conversion(self, config):
        service = PaletteService(config)
        await service.start()
        try:
            await service.search("100 km to miles")
            copied = service.dispatcher.execute(service.store.selected)
        finally:
            await service.stop()

        assert copied == "62.14 miles"
        assert [item.text for item in service.clipboard.items()][0] == "62.14 miles"

    @pytest.mark.asyncio
    async def test_disabled_intent(self, config):
        config.intent.enabled = False
        service = PaletteService(config)
        assert service.orchestrator.adapter is None
        assert service.interpreter is None

    def test_status(self, config):
        start = datetime.now() - timedelta(seconds=5)
        service = PaletteService(config, events=[
            CalendarEvent("Standup", start, start + timedelta(minutes=15)),
        ])

        status = service.get_status()

        assert status["status"] == "running"
        assert status["generation"] == 0
        assert status["providers"] == {}
        assert "counters" in status["metrics"]
