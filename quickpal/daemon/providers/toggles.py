"""Toggle provider for keep-awake modes."""

import threading
from typing import Dict, List, Optional

from loguru import logger

from ..models import Category, Command, SearchResult
from ..scoring import ScoreCalculator
from .base import FastProvider

TOGGLE_KEYWORDS = ("caffeinate", "awake", "sleep prevention", "keep awake")
DEFAULT_TOGGLE_SCORE = 40


class AwakeState:
    """Which keep-awake modes are currently on."""

    MODES = ("system", "full")

    def __init__(self):
        self._active: Dict[str, bool] = {mode: False for mode in self.MODES}
        self._lock = threading.Lock()

    def is_active(self, mode: str) -> bool:
        with self._lock:
            return self._active.get(mode, False)

    def toggle(self, mode: str) -> bool:
        if mode not in self.MODES:
            raise ValueError(f"Unknown awake mode: {mode}")
        with self._lock:
            self._active[mode] = not self._active[mode]
            # modes are exclusive
            if self._active[mode]:
                for other in self.MODES:
                    if other != mode:
                        self._active[other] = False
            state = self._active[mode]
        logger.info(f"Awake mode '{mode}' {'enabled' if state else 'disabled'}")
        return state


class ToggleProvider(FastProvider):
    name = "toggles"

    TOGGLES = (
        ("Caffeinate System", "Prevent system sleep (display can sleep)", "system"),
        ("Caffeinate", "Prevent display and system sleep", "full"),
    )

    def __init__(self, scorer: Optional[ScoreCalculator] = None, state: Optional[AwakeState] = None):
        super().__init__(scorer)
        self.state = state or AwakeState()

    def _matches(self, query: str) -> bool:
        return (
            any(query in keyword for keyword in TOGGLE_KEYWORDS)
            or "caffeinate" in query
            or "awake" in query
            or "sleep" in query
        )

    def search(self, query: str) -> List[SearchResult]:
        lowered = query.lower().strip()
        if not lowered or not self._matches(lowered):
            return []

        results = []
        for title, subtitle, mode in self.TOGGLES:
            score = self.scorer.score(lowered, title, Category.TOGGLE)
            results.append(SearchResult(
                title=title,
                subtitle=subtitle,
                category=Category.TOGGLE,
                score=score if score > 0 else DEFAULT_TOGGLE_SCORE,
                action=Command("toggle_awake", {"mode": mode}),
                is_active=self.state.is_active(mode),
                provider=self.name,
            ))
        return results
