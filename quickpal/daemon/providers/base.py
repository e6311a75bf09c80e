"""Result provider interface, cancellation token and registry."""

import threading
import time
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from ..models import SearchResult
from ..scoring import ScoreCalculator


class CancelToken:
    """Cooperative cancellation flag shared with worker threads."""

    def __init__(self, deadline_s: Optional[float] = None, parent: Optional["CancelToken"] = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + deadline_s if deadline_s is not None else None
        self._parent = parent

    def cancel(self) -> None:
        self._event.set()

    def child(self, deadline_s: Optional[float] = None) -> "CancelToken":
        """Token cancelled with this one, or on its own deadline."""
        return CancelToken(deadline_s=deadline_s, parent=self)

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return True
        return self._parent is not None and self._parent.cancelled

    @property
    def aborted(self) -> bool:
        """Cancelled explicitly here or up the chain. An expired deadline alone does not count."""
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.aborted

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, returning True early when cancelled."""
        deadline = time.monotonic() + timeout
        while not self.cancelled:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            self._event.wait(min(remaining, 0.05))
        return True


class ResultProvider(ABC):
    """Common base for fast and slow providers."""

    name: str = "provider"

    def __init__(self, scorer: Optional[ScoreCalculator] = None):
        self.scorer = scorer or ScoreCalculator()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class FastProvider(ResultProvider):
    """Synchronous, in-memory provider run inline on every keystroke."""

    def claims(self, query: str) -> bool:
        """Return True to short-circuit every other fast provider for ``query``."""
        return False

    @abstractmethod
    def search(self, query: str) -> List[SearchResult]:
        ...


class SlowProvider(ResultProvider):
    """Provider that may block; run off the event loop and polled for cancellation."""

    @abstractmethod
    def search(self, query: str, cancel_token: CancelToken) -> List[SearchResult]:
        ...


class ProviderRegistry:
    """Ordered fast and slow provider lists, injected into the orchestrator."""

    def __init__(self,
                 fast: Optional[Iterable[FastProvider]] = None,
                 slow: Optional[Iterable[SlowProvider]] = None):
        self.fast: List[FastProvider] = list(fast or [])
        self.slow: List[SlowProvider] = list(slow or [])

    def register_fast(self, provider: FastProvider) -> None:
        self.fast.append(provider)

    def register_slow(self, provider: SlowProvider) -> None:
        self.slow.append(provider)

    def short_circuit_for(self, query: str) -> Optional[FastProvider]:
        for provider in self.fast:
            if provider.claims(query):
                return provider
        return None

    def names(self) -> List[str]:
        return [p.name for p in self.fast] + [p.name for p in self.slow]
