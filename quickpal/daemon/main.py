"""Service wiring and entry point for the quickpal engine."""

import asyncio
import signal
import sys
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

import psutil
from loguru import logger

from .actions import CommandDispatcher
from .bus import Event, EventBus
from .config import Config, LoggingConfig
from .intent.adapter import IntentAdapter
from .intent.fallback import RuleBasedParser
from .intent.interpreter import OllamaInterpreter
from .orchestrator import SOFT_DEADLINE_RATIO, SearchOrchestrator
from .providers.applications import ApplicationProvider
from .providers.base import ProviderRegistry
from .providers.calculator import CalculatorProvider, UnitConversionProvider
from .providers.calendar import CalendarEvent, CalendarProvider
from .providers.files import FileFinder, FileSearchProvider
from .providers.personal import (
    ClipboardHistory, ClipboardProvider, Contact, ContactProvider,
    Quicklink, QuicklinkProvider, UserCommand, UserCommandProvider,
)
from .providers.system import ProcessProvider, ShellCommandProvider
from .providers.toggles import AwakeState, ToggleProvider
from .publication import EventBusSink, FanOutSink, PaletteStateStore, PublicationSink
from .scoring import ScoreCalculator, statistics_from_weights

VERSION = "0.1.0"

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """Install the stderr sink and, when configured, a rotating file sink."""
    config = config or LoggingConfig()
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=config.level)

    if config.file is not None:
        log_path = Path(config.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            rotation=config.rotation,
            retention=config.retention,
            level="DEBUG",
        )


class PaletteService:
    """Owns the providers, the orchestrator and the stores they share."""

    def __init__(self,
                 config: Config,
                 sink: Optional[PublicationSink] = None,
                 contacts: Optional[Iterable[Contact]] = None,
                 events: Optional[Iterable[CalendarEvent]] = None):
        self.config = config
        self.start_time = datetime.now()

        self.statistics = statistics_from_weights(config.scoring)
        self.scorer = ScoreCalculator(config.scoring, self.statistics)

        self.event_bus = EventBus()
        self.store = PaletteStateStore()
        self.awake_state = AwakeState()
        self.clipboard = ClipboardHistory(config.providers.clipboard_history_size)

        providers = config.providers
        self.contacts = ContactProvider(self.scorer, contacts)
        self.calendar = CalendarProvider(self.scorer, events)
        self.quicklinks = QuicklinkProvider(self.scorer, [
            Quicklink(name=q.name, url=q.url, keywords=list(q.keywords))
            for q in providers.quicklinks
        ])
        self.finder = FileFinder(
            providers.file_search_roots,
            max_depth=providers.file_search_max_depth,
            budget_s=config.search.slow_provider_timeout_ms / 1000 * SOFT_DEADLINE_RATIO,
        )

        self.registry = ProviderRegistry(
            fast=[
                ShellCommandProvider(self.scorer, prefix=providers.shell_prefix),
                ProcessProvider(self.scorer, limit=providers.process_limit),
                ApplicationProvider(self.scorer, directories=providers.application_dirs),
                CalculatorProvider(self.scorer),
                UnitConversionProvider(self.scorer),
                self.calendar,
                self.contacts,
                ClipboardProvider(self.scorer, self.clipboard),
                self.quicklinks,
                ToggleProvider(self.scorer, self.awake_state),
                UserCommandProvider(self.scorer, [
                    UserCommand(name=c.name, command=c.command, description=c.description)
                    for c in providers.user_commands
                ]),
            ],
            slow=[
                FileSearchProvider(
                    self.finder,
                    self.scorer,
                    max_results=providers.file_search_max_results,
                    prefix_max_results=providers.file_prefix_max_results,
                ),
            ],
        )

        self.interpreter = None
        if config.intent.enabled and config.intent.backend == "ollama":
            self.interpreter = OllamaInterpreter(config.intent)
        self.adapter = IntentAdapter(
            config.intent,
            interpreter=self.interpreter,
            parser=RuleBasedParser(),
            finder=self.finder,
            contacts=self.contacts,
        )

        sinks = [self.store, EventBusSink(self.event_bus)]
        if sink is not None:
            sinks.append(sink)
        self.orchestrator = SearchOrchestrator(
            self.registry,
            FanOutSink(*sinks),
            adapter=self.adapter if config.intent.enabled else None,
            config=config.search,
        )
        self.dispatcher = CommandDispatcher(
            statistics=self.statistics,
            awake_state=self.awake_state,
            clipboard=self.clipboard,
        )

        self.stats = {"publications": 0, "intent_updates": 0}

    async def start(self) -> None:
        logger.info("Starting quickpal service...")
        await self.event_bus.start()
        self.event_bus.subscribe(EventBusSink.RESULTS_EVENT, self._on_results)
        self.event_bus.subscribe(EventBusSink.INTENT_EVENT, self._on_intent)
        logger.info(f"Providers: {', '.join(self.registry.names())}")

    async def stop(self) -> None:
        logger.info("Stopping quickpal service...")
        await self.orchestrator.close()
        if self.interpreter is not None:
            await self.interpreter.close()
        await self.event_bus.stop()
        logger.info("quickpal service stopped")

    async def search(self, query: str) -> None:
        """Submit ``query`` and wait for every phase to settle."""
        self.orchestrator.on_query_changed(query)
        await self.orchestrator.wait_idle()

    async def _on_results(self, event: Event) -> None:
        self.stats["publications"] += 1

    async def _on_intent(self, event: Event) -> None:
        self.stats["intent_updates"] += 1

    def get_status(self) -> dict:
        process = psutil.Process()
        uptime = (datetime.now() - self.start_time).total_seconds()
        return {
            "status": "running",
            "version": VERSION,
            "uptime": f"{uptime:.0f}s",
            "generation": self.orchestrator.generation,
            "stats": {
                **self.stats,
                "memory_mb": process.memory_info().rss / 1024 / 1024,
                "cpu_percent": process.cpu_percent(),
            },
            "metrics": self.orchestrator.metrics.to_dict(),
            "providers": self.orchestrator.provider_health(),
        }


async def main(config_path: Optional[str] = None):
    """Run the service, reading queries line by line from stdin."""
    try:
        config = Config.load(Path(config_path) if config_path else None)
    except FileNotFoundError as e:
        setup_logging()
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(config.logging)
    service = PaletteService(config)
    service.store.add_listener(
        lambda store: logger.info(
            f"{len(store.results)} results"
            + (f", top: {store.results[0].title}" if store.results else "")
        )
    )

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    await service.start()
    try:
        while not stop_event.is_set():
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                break
            service.orchestrator.on_query_changed(line.rstrip("\n"))
    except Exception as e:
        logger.exception(f"Service error: {e}")
    finally:
        await service.stop()


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None))
