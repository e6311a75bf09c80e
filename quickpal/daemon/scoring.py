"""Score calculation for palette results.

    score = int(quality * match_bonus * category_weight * statistics_factor * 1000)

Weights are read from a ``ScoringWeights`` instance at call time, so updating
them takes effect on the next keystroke without rebuilding providers.
"""

import math
import threading
import time
from collections import defaultdict
from typing import Dict, Optional, Protocol, Tuple

from loguru import logger

from .config import ScoringWeights
from .matching import MatchAnalyzer
from .models import Category, MatchResult


class StatisticsFactor(Protocol):
    """Usage-derived multiplier applied to a result's score."""

    def factor(self, category: Category, identifier: str) -> float:
        ...

    def record_selection(self, category: Category, identifier: str) -> None:
        ...


class NeutralStatistics:
    """Statistics source that never changes a score."""

    def factor(self, category: Category, identifier: str) -> float:
        return 1.0

    def record_selection(self, category: Category, identifier: str) -> None:
        pass


class UsageStatistics:
    """In-memory selection counts with exponential decay.

    A result selected often recently gets a boost of at most ``max_boost``;
    one never selected stays at 1.0.
    """

    def __init__(self, max_boost: float = 0.5, half_life_days: float = 14.0, clock=time.time):
        self.max_boost = max_boost
        self.half_life_s = half_life_days * 86400
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (decayed count, last update timestamp)
        self._counts: Dict[Tuple[str, str], Tuple[float, float]] = defaultdict(lambda: (0.0, 0.0))

    def _decayed(self, key: Tuple[str, str], now: float) -> float:
        count, updated = self._counts[key]
        if count == 0.0:
            return 0.0
        elapsed = max(0.0, now - updated)
        return count * math.pow(0.5, elapsed / self.half_life_s)

    def factor(self, category: Category, identifier: str) -> float:
        key = (category.value, identifier)
        with self._lock:
            if key not in self._counts:
                return 1.0
            count = self._decayed(key, self._clock())
        return 1.0 + min(self.max_boost, math.log1p(count) * 0.1)

    def record_selection(self, category: Category, identifier: str) -> None:
        key = (category.value, identifier)
        now = self._clock()
        with self._lock:
            self._counts[key] = (self._decayed(key, now) + 1.0, now)
        logger.debug(f"Recorded selection: {category.value}/{identifier}")


def statistics_from_weights(weights: ScoringWeights) -> StatisticsFactor:
    if weights.statistics_enabled:
        return UsageStatistics(
            max_boost=weights.statistics_max_boost,
            half_life_days=weights.statistics_half_life_days,
        )
    return NeutralStatistics()


class ScoreCalculator:
    """Combines match quality, match type, category and usage into one integer."""

    def __init__(self,
                 weights: Optional[ScoringWeights] = None,
                 statistics: Optional[StatisticsFactor] = None,
                 analyzer: Optional[MatchAnalyzer] = None):
        self.weights = weights or ScoringWeights()
        self.statistics = statistics or NeutralStatistics()
        self.analyzer = analyzer or MatchAnalyzer()

    def update_weights(self, weights: ScoringWeights) -> None:
        self.weights = weights
        logger.info("Scoring weights updated")

    def match(self, query: str, target: str) -> MatchResult:
        return self.analyzer.analyze(query, target)

    def score_match(self, match: MatchResult, category: Category, identifier: str) -> int:
        if not match.is_match:
            return 0
        raw = (
            match.quality
            * self.weights.match_bonus(match.match_type.value)
            * self.weights.category_weight(category.value)
            * self.statistics.factor(category, identifier)
        )
        return int(raw * 1000)

    def score(self,
              query: str,
              title: str,
              category: Category,
              subtitle: Optional[str] = None,
              identifier: Optional[str] = None) -> int:
        """Score ``query`` against a title, falling back to the subtitle.

        Subtitle matches only count when the title match is weak, and then at
        a penalty, so titles always dominate.
        """
        identifier = identifier or title
        title_score = self.score_match(self.match(query, title), category, identifier)

        if subtitle and title_score < self.weights.strong_match_threshold:
            subtitle_score = self.score_match(self.match(query, subtitle), category, identifier)
            return max(title_score, int(subtitle_score * self.weights.subtitle_penalty))

        return title_score
