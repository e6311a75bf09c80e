"""Search tracing and phase latency metrics."""

import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger


class SearchSpan:
    """A timed unit of work with tags and child spans."""

    def __init__(self, operation: str):
        self.operation = operation
        self.started_at = datetime.now()
        self._start = time.perf_counter()
        self._end: Optional[float] = None
        self.tags: Dict[str, Any] = {}
        self.children: List["SearchSpan"] = []
        self._lock = threading.Lock()

    @property
    def finished(self) -> bool:
        return self._end is not None

    @property
    def duration_ms(self) -> float:
        if self._end is None:
            return 0.0
        return (self._end - self._start) * 1000

    @property
    def total_duration_ms(self) -> float:
        """Own duration plus the durations of all children."""
        return self.duration_ms + sum(child.total_duration_ms for child in self.children)

    def finish(self) -> "SearchSpan":
        if self._end is None:
            self._end = time.perf_counter()
        return self

    def set_tag(self, key: str, value: Any) -> "SearchSpan":
        with self._lock:
            self.tags[key] = value
        return self

    def child(self, operation: str) -> "SearchSpan":
        span = SearchSpan(operation)
        with self._lock:
            self.children.append(span)
        return span

    def to_string(self, indent: int = 0) -> str:
        line = f"{'  ' * indent}- {self.operation}: {self.duration_ms:.1f}ms"
        if self.tags:
            line += " [" + ", ".join(f"{k}={v}" for k, v in self.tags.items()) + "]"
        lines = [line]
        for child in self.children:
            lines.append(child.to_string(indent + 1))
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'operation': self.operation,
            'duration_ms': round(self.duration_ms, 2),
            'start_time': self.started_at.isoformat(),
        }
        if self.tags:
            data['tags'] = dict(self.tags)
        if self.children:
            data['children'] = [child.to_dict() for child in self.children]
        return data


def start_trace(query: str, generation: int) -> SearchSpan:
    span = SearchSpan("search")
    span.set_tag("query", query)
    span.set_tag("generation", generation)
    return span


@dataclass
class LatencyHistogram:
    """Latency distribution with approximate percentiles."""
    name: str
    buckets: List[float] = field(default_factory=lambda: [
        1, 5, 10, 25, 50, 100, 200, 300, 500, 1000, 2000  # milliseconds
    ])
    counts: Dict[float, int] = field(default_factory=dict)
    total_count: int = 0
    sum_ms: float = 0

    def __post_init__(self):
        for bucket in self.buckets:
            self.counts[bucket] = 0

    def record(self, latency_ms: float) -> None:
        self.total_count += 1
        self.sum_ms += latency_ms

        for bucket in self.buckets:
            if latency_ms <= bucket:
                self.counts[bucket] += 1
                break
        else:
            self.counts[self.buckets[-1]] += 1

    def get_percentile(self, percentile: float) -> float:
        if self.total_count == 0:
            return 0

        target_count = self.total_count * (percentile / 100)
        cumulative = 0
        for bucket in self.buckets:
            cumulative += self.counts[bucket]
            if cumulative >= target_count:
                return bucket

        return self.buckets[-1]

    def get_mean(self) -> float:
        if self.total_count == 0:
            return 0
        return self.sum_ms / self.total_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "count": self.total_count,
            "mean": round(self.get_mean(), 1),
            "p50": self.get_percentile(50),
            "p95": self.get_percentile(95),
            "p99": self.get_percentile(99),
        }


class PhaseMetrics:
    """Per-phase latency histograms and orchestration counters."""

    def __init__(self):
        self.histograms: Dict[str, LatencyHistogram] = {}
        self.counters: Dict[str, int] = defaultdict(int)

    def record_latency(self, phase: str, latency_ms: float) -> None:
        if phase not in self.histograms:
            self.histograms[phase] = LatencyHistogram(name=phase)
        self.histograms[phase].record(latency_ms)

    def increment(self, counter: str, value: int = 1) -> None:
        self.counters[counter] += value

    def record_trace(self, trace: SearchSpan) -> None:
        self.record_latency("trace", trace.duration_ms)
        logger.debug(f"Search trace:\n{trace.to_string()}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'latency': {name: h.to_dict() for name, h in self.histograms.items()},
            'counters': dict(self.counters),
        }
