"""Search orchestrator: phased, debounced, generation-checked fan-out.

Every query change starts a new generation:

1. fast providers run inline and their results are published at once
2. slow providers start after ``slow_debounce_ms`` in worker threads
3. the intent adapter starts after ``intent_debounce_ms``

Phases 2 and 3 are independent tasks. Each completion is dropped if a newer
generation exists by then. The published list is always
``merge(merge(fast, slow), intent)`` truncated to ``max_results``.
All state lives on the event loop; only provider calls leave it.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from loguru import logger

from .config import SearchConfig
from .error_handling import ProviderTimeout, ServiceHealth
from .intent.adapter import IntentAdapter
from .models import IntentContext, SearchResult, filter_valid, normalize_query
from .providers.base import CancelToken, FastProvider, ProviderRegistry, SlowProvider
from .publication import PublicationSink
from .ranking import merge_results, rank_results
from .tracing import PhaseMetrics, SearchSpan, start_trace

# share of the slow timeout a provider may spend before returning partial results
SOFT_DEADLINE_RATIO = 0.8


class OrchestratorState(Enum):
    IDLE = "idle"
    ACTIVE = "active"


@dataclass
class _Generation:
    number: int
    query: str
    token: CancelToken
    trace: SearchSpan
    pending: int = 0


class SearchOrchestrator:
    """Coordinates providers and the intent adapter for each keystroke.

    ``on_query_changed`` must be called from the event loop thread.
    """

    def __init__(self,
                 registry: ProviderRegistry,
                 sink: PublicationSink,
                 adapter: Optional[IntentAdapter] = None,
                 config: Optional[SearchConfig] = None,
                 metrics: Optional[PhaseMetrics] = None):
        self.registry = registry
        self.sink = sink
        self.adapter = adapter
        self.config = config or SearchConfig()
        self.metrics = metrics or PhaseMetrics()

        self.current_query = ""
        self.generation = 0
        self.state = OrchestratorState.IDLE
        self.results: List[SearchResult] = []
        self.intent_context: Optional[IntentContext] = None
        self.last_trace: Optional[SearchSpan] = None

        self._fast: List[SearchResult] = []
        self._slow: List[SearchResult] = []
        self._intent: List[SearchResult] = []
        self._active: Optional[_Generation] = None
        self._tasks: List[asyncio.Task] = []
        self._health: Dict[str, ServiceHealth] = {}

    # query intake

    def on_query_changed(self, raw_query: str) -> None:
        query = normalize_query(raw_query)
        if query == self.current_query:
            return

        self._cancel_in_flight()
        self.current_query = query
        self.generation += 1
        self.metrics.increment("generations")

        self._fast, self._slow, self._intent = [], [], []
        self._set_intent_context(None)

        if not query:
            self.state = OrchestratorState.IDLE
            self._active = None
            self._publish()
            return

        self.state = OrchestratorState.ACTIVE
        generation = _Generation(
            number=self.generation,
            query=query,
            token=CancelToken(),
            trace=start_trace(query, self.generation),
        )
        self._active = generation

        self._fast = self._run_fast_phase(generation)
        self._publish()

        loop = asyncio.get_running_loop()
        if self.registry.slow:
            generation.pending += 1
            self._tasks.append(loop.create_task(self._run_slow_phase(generation)))
        if self.adapter is not None:
            generation.pending += 1
            self._tasks.append(loop.create_task(self._run_intent_phase(generation)))
        if generation.pending == 0:
            self._finish_trace(generation)

    async def wait_idle(self) -> None:
        """Wait until no phase task is outstanding."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                self._tasks = []
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        self._cancel_in_flight()
        await self.wait_idle()
        self.state = OrchestratorState.IDLE
        logger.info("Search orchestrator closed")

    def provider_health(self) -> Dict[str, Dict]:
        return {name: health.to_dict() for name, health in self._health.items()}

    # phases

    def _run_fast_phase(self, generation: _Generation) -> List[SearchResult]:
        span = generation.trace.child("fast")
        claimer = self.registry.short_circuit_for(generation.query)
        providers = [claimer] if claimer is not None else self.registry.fast
        if claimer is not None:
            span.set_tag("short_circuit", claimer.name)

        collected: List[SearchResult] = []
        for provider in providers:
            collected.extend(self._call_fast(provider, generation.query, span))

        span.set_tag("results_count", len(collected))
        span.finish()
        self.metrics.record_latency("fast", span.duration_ms)
        return rank_results(collected)

    def _call_fast(self, provider: FastProvider, query: str, span: SearchSpan) -> List[SearchResult]:
        started = time.perf_counter()
        health = self._health_for(provider.name)
        try:
            valid = filter_valid(provider.search(query), provider.name)
        except Exception as e:
            logger.warning(f"Fast provider {provider.name} failed for {query!r}: {e}")
            health.record_failure(e, {"query": query})
            self.metrics.increment("provider_failures")
            return []
        health.record_success()
        span.set_tag(provider.name, f"{len(valid)} in {(time.perf_counter() - started) * 1000:.1f}ms")
        return valid

    async def _run_slow_phase(self, generation: _Generation) -> None:
        try:
            await asyncio.sleep(self.config.slow_debounce_ms / 1000)
            if self._is_stale(generation):
                return

            span = generation.trace.child("slow")
            batches = await asyncio.gather(*(
                self._call_slow(provider, generation, span)
                for provider in self.registry.slow
            ))
            span.finish()
            self.metrics.record_latency("slow", span.duration_ms)

            if self._is_stale(generation):
                self._discard("slow", generation)
                return

            self._slow = [result for batch in batches for result in batch]
            span.set_tag("results_count", len(self._slow))
            self._publish()
        finally:
            self._phase_done(generation)

    async def _call_slow(self, provider: SlowProvider, generation: _Generation,
                         span: SearchSpan) -> List[SearchResult]:
        child = span.child(provider.name)
        timeout_s = self.config.slow_provider_timeout_ms / 1000
        token = generation.token.child(deadline_s=timeout_s * SOFT_DEADLINE_RATIO)
        health = self._health_for(provider.name)
        try:
            results = await asyncio.wait_for(
                asyncio.to_thread(provider.search, generation.query, token),
                timeout=timeout_s,
            )
            valid = filter_valid(results, provider.name)
        except asyncio.TimeoutError:
            token.cancel()
            logger.warning(f"Slow provider {provider.name} timed out after {timeout_s:.2f}s")
            health.record_failure(ProviderTimeout(f"{provider.name} exceeded {timeout_s:.2f}s"))
            self.metrics.increment("provider_timeouts")
            child.set_tag("timeout", True)
            return []
        except asyncio.CancelledError:
            token.cancel()
            raise
        except Exception as e:
            logger.warning(f"Slow provider {provider.name} failed for {generation.query!r}: {e}")
            health.record_failure(e, {"query": generation.query})
            self.metrics.increment("provider_failures")
            child.set_tag("error", type(e).__name__)
            return []
        finally:
            child.finish()

        health.record_success()
        child.set_tag("results_count", len(valid))
        return valid

    async def _run_intent_phase(self, generation: _Generation) -> None:
        try:
            await asyncio.sleep(self.config.intent_debounce_ms / 1000)
            if self._is_stale(generation):
                return

            span = generation.trace.child("intent")
            try:
                outcome = await self.adapter.augment(generation.query, generation.token)
                intent_results = filter_valid(outcome.results, "intent") if outcome is not None else []
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Intent augmentation failed for {generation.query!r}: {e}")
                self.metrics.increment("intent_failures")
                span.set_tag("error", type(e).__name__)
                outcome = None
            finally:
                span.finish()
                self.metrics.record_latency("intent", span.duration_ms)

            if self._is_stale(generation):
                self._discard("intent", generation)
                return

            if outcome is None:
                span.set_tag("intent", "none")
                if self._intent:
                    self._intent = []
                    self._publish()
                self._set_intent_context(None)
                return

            span.set_tag("intent", outcome.tool_call.name)
            self._intent = intent_results
            self._publish()
            self._set_intent_context(outcome.context)
        finally:
            self._phase_done(generation)

    # helpers

    def _is_stale(self, generation: _Generation) -> bool:
        return generation.number != self.generation

    def _discard(self, phase: str, generation: _Generation) -> None:
        logger.debug(
            f"Discarding stale {phase} results for generation {generation.number} "
            f"(current {self.generation})"
        )
        self.metrics.increment("stale_discards")

    def _publish(self) -> None:
        base = merge_results(self._fast, self._slow)
        self.results = merge_results(base, self._intent, self.config.max_results)
        try:
            self.sink.publish(self.results)
        except Exception as e:
            logger.error(f"Publication sink failed: {e}")
        self.metrics.increment("publications")

    def _set_intent_context(self, context: Optional[IntentContext]) -> None:
        if context == self.intent_context:
            return
        self.intent_context = context
        try:
            self.sink.publish_intent_context(context)
        except Exception as e:
            logger.error(f"Publication sink failed on intent context: {e}")

    def _cancel_in_flight(self) -> None:
        if self._active is not None:
            self._active.token.cancel()
            self._active.trace.set_tag("superseded", True).finish()
        for task in self._tasks:
            if not task.done():
                task.cancel()
        self._tasks = [t for t in self._tasks if not t.done()]

    def _phase_done(self, generation: _Generation) -> None:
        generation.pending -= 1
        if generation.pending == 0 and not self._is_stale(generation):
            self._finish_trace(generation)

    def _finish_trace(self, generation: _Generation) -> None:
        generation.trace.finish()
        self.last_trace = generation.trace
        if self.config.tracing:
            self.metrics.record_trace(generation.trace)

    def _health_for(self, name: str) -> ServiceHealth:
        if name not in self._health:
            self._health[name] = ServiceHealth(name=name)
        return self._health[name]
