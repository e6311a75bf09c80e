"""Short-circuit providers: shell commands and the process directive."""

import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import psutil
from loguru import logger

from ..models import Category, Command, SearchResult
from ..scoring import ScoreCalculator
from .base import FastProvider


class ShellCommandProvider(FastProvider):
    """'> cmd' runs a shell command and hides every other fast result."""

    name = "shell"

    def __init__(self, scorer: Optional[ScoreCalculator] = None, prefix: str = ">"):
        super().__init__(scorer)
        self.prefix = prefix

    def extract_command(self, query: str) -> Optional[str]:
        trimmed = query.strip()
        if not trimmed.startswith(self.prefix):
            return None
        command = trimmed[len(self.prefix):].strip()
        return command or None

    def claims(self, query: str) -> bool:
        return self.extract_command(query) is not None

    def search(self, query: str) -> List[SearchResult]:
        command = self.extract_command(query)
        if command is None:
            return []
        return [SearchResult(
            title=command,
            subtitle="Shell Command",
            category=Category.ACTION,
            score=1000,
            action=Command("run_shell", {"command": command}),
            provider=self.name,
        )]


@dataclass(frozen=True)
class ProcessSnapshot:
    pid: int
    name: str
    cpu_percent: float
    memory_bytes: int

    @property
    def memory_label(self) -> str:
        gigabytes = self.memory_bytes / 1_000_000_000
        if gigabytes >= 1.0:
            return f"{gigabytes:.1f} GB"
        return f"{self.memory_bytes / 1_000_000:.0f} MB"

    @property
    def cpu_label(self) -> str:
        if self.cpu_percent == int(self.cpu_percent):
            return f"{self.cpu_percent:.0f}%"
        return f"{self.cpu_percent:.1f}%"

    @property
    def subtitle(self) -> str:
        return f"PID: {self.pid} | {self.memory_label} | {self.cpu_label}"


def list_processes() -> List[ProcessSnapshot]:
    """Snapshot running processes, highest CPU first."""
    snapshots = []
    for proc in psutil.process_iter(['pid', 'name', 'cpu_percent', 'memory_info']):
        info = proc.info
        if not info.get('name'):
            continue
        memory = info.get('memory_info')
        snapshots.append(ProcessSnapshot(
            pid=info['pid'],
            name=info['name'],
            cpu_percent=info.get('cpu_percent') or 0.0,
            memory_bytes=memory.rss if memory else 0,
        ))
    snapshots.sort(key=lambda p: -p.cpu_percent)
    return snapshots


class ProcessProvider(FastProvider):
    """Queries containing 'process' list or filter running processes."""

    name = "processes"
    NO_RESULTS_TITLE = "No matching processes"

    def __init__(self,
                 scorer: Optional[ScoreCalculator] = None,
                 fetch: Callable[[], List[ProcessSnapshot]] = list_processes,
                 limit: int = 15,
                 cache_seconds: float = 2.0):
        super().__init__(scorer)
        self._fetch = fetch
        self.limit = limit
        self.cache_seconds = cache_seconds
        self._cache: List[ProcessSnapshot] = []
        self._cached_at = 0.0

    def claims(self, query: str) -> bool:
        return self._needle(query) is not None

    def _needle(self, query: str) -> Optional[str]:
        """Filter text for a process query, empty for a plain listing, None when not one."""
        lowered = query.lower().strip()
        if "process" not in lowered:
            return None
        if lowered in ("process", "processes"):
            return ""
        needle = lowered.replace("processes", "").replace("process", "").strip()
        return needle or None

    def _snapshot(self) -> List[ProcessSnapshot]:
        now = time.monotonic()
        if not self._cache or now - self._cached_at > self.cache_seconds:
            self._cache = self._fetch()
            self._cached_at = now
            logger.debug(f"Refreshed process snapshot: {len(self._cache)} processes")
        return self._cache

    def search(self, query: str) -> List[SearchResult]:
        needle = self._needle(query)
        if needle is None:
            return []
        if not needle:
            return self._to_results(self._snapshot()[:self.limit])

        matches = [
            p for p in self._snapshot()
            if needle in p.name.lower() or needle in p.name.lower().replace(".app", "")
        ]
        if not matches:
            return [SearchResult(
                title=self.NO_RESULTS_TITLE,
                subtitle="Try a different search term",
                category=Category.PROCESS,
                score=0,
                action=Command("noop"),
                provider=self.name,
            )]
        return self._to_results(matches[:self.limit])

    def _to_results(self, processes: List[ProcessSnapshot]) -> List[SearchResult]:
        return [
            SearchResult(
                title=p.name,
                subtitle=p.subtitle,
                category=Category.PROCESS,
                score=int(p.cpu_percent * 10),
                action=Command("activate_process", {"pid": p.pid}),
                reveal_action=Command("kill_process", {"pid": p.pid}),
                provider=self.name,
            )
            for p in processes
        ]
