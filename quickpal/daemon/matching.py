"""Match analysis between a query and a candidate string.

Classification precedence is exact, prefix, word-start, then fuzzy subsequence.
A plain substring is always an in-order subsequence, so it lands in the fuzzy
class. Quality values within each class stay in bands so that a
stronger class never scores below a weaker one.
"""

import re
from typing import List

from .models import MatchResult, MatchType, NO_MATCH


_TOKEN_SPLIT = re.compile(r"[\s\-_.,/:;()\[\]]+")
_SEPARATORS = set(" -_.,/:;()[]")

FUZZY_BASE = 0.3
FUZZY_CONSECUTIVE_BONUS = 0.1
FUZZY_GAP_PENALTY = 0.02
FUZZY_MIN = 0.05
FUZZY_MAX = 0.6


class MatchAnalyzer:
    """Classifies how a query matches a target string."""

    def analyze(self, query: str, target: str) -> MatchResult:
        if not query or not target:
            return NO_MATCH

        q = query.casefold()
        t = target.casefold()

        if q == t:
            return MatchResult(1.0, MatchType.EXACT)

        if t.startswith(q):
            return MatchResult(0.9, MatchType.PREFIX)

        for index, token in enumerate(self._tokens(t)):
            if token.startswith(q):
                return MatchResult(0.85 - min(index * 0.05, 0.25), MatchType.WORD_START)

        fuzzy = self._fuzzy_quality(q, t)
        if fuzzy is not None:
            return MatchResult(fuzzy, MatchType.FUZZY)

        return NO_MATCH

    def _tokens(self, text: str) -> List[str]:
        return [token for token in _TOKEN_SPLIT.split(text) if token]

    def _fuzzy_quality(self, query: str, target: str):
        """Score an in-order subsequence match, or None when there is none."""
        positions = []
        start = 0
        for char in query:
            found = target.find(char, start)
            if found < 0:
                return None
            positions.append(found)
            start = found + 1

        quality = FUZZY_BASE
        for previous, current in zip(positions, positions[1:]):
            gap = current - previous
            if gap == 1:
                quality += FUZZY_CONSECUTIVE_BONUS
            else:
                quality -= (gap - 1) ** 2 * FUZZY_GAP_PENALTY

        quality += max(0.0, 0.2 - positions[0] * 0.01)

        for position in positions:
            if position == 0:
                quality += 0.05
            elif target[position - 1] in _SEPARATORS:
                quality += 0.03

        return min(max(quality, FUZZY_MIN), FUZZY_MAX)
