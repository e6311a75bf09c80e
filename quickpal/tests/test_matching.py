"""Tests for match analysis."""

import pytest

from quickpal.daemon.matching import FUZZY_MAX, FUZZY_MIN, MatchAnalyzer
from quickpal.daemon.models import MatchType, NO_MATCH


@pytest.fixture
def analyzer():
    return MatchAnalyzer()


class TestMatchClassification:
    """Each match class is detected with its documented quality."""

    def test_exact_is_case_insensitive(self, analyzer):
        result = analyzer.analyze("safari", "Safari")
        assert result.match_type == MatchType.EXACT
        assert result.quality == 1.0

    def test_prefix(self, analyzer):
        result = analyzer.analyze("saf", "Safari")
        assert result.match_type == MatchType.PREFIX
        assert result.quality == 0.9

    def test_word_start_quality_drops_with_token_index(self, analyzer):
        second = analyzer.analyze("studio", "Visual Studio Code")
        third = analyzer.analyze("code", "Visual Studio Code")

        assert second.match_type == MatchType.WORD_START
        assert third.match_type == MatchType.WORD_START
        assert second.quality > third.quality

    def test_word_start_splits_on_punctuation(self, analyzer):
        result = analyzer.analyze("report", "q3-report_final.pdf")
        assert result.match_type == MatchType.WORD_START

    def test_fuzzy_subsequence(self, analyzer):
        result = analyzer.analyze("sfr", "Safari")
        assert result.match_type == MatchType.FUZZY
        assert FUZZY_MIN <= result.quality <= FUZZY_MAX

    def test_inner_substring_is_fuzzy(self, analyzer):
        result = analyzer.analyze("ari", "Safari")
        assert result.match_type == MatchType.FUZZY
        assert FUZZY_MIN <= result.quality <= FUZZY_MAX

    def test_five_match_types(self):
        assert {m.value for m in MatchType} == {"exact", "prefix", "word_start", "fuzzy", "none"}

    def test_no_match(self, analyzer):
        result = analyzer.analyze("xyz", "Safari")
        assert result == NO_MATCH
        assert not result.is_match

    @pytest.mark.parametrize("query,target", [("", "Safari"), ("saf", ""), ("", "")])
    def test_empty_inputs(self, analyzer, query, target):
        assert analyzer.analyze(query, target) == NO_MATCH


class TestMatchBands:
    """Stronger classes never score below weaker ones."""

    def test_quality_bands_are_ordered(self, analyzer):
        exact = analyzer.analyze("notes", "Notes")
        prefix = analyzer.analyze("not", "Notes")
        word = analyzer.analyze("notes", "Sticky Notes")
        fuzzy = analyzer.analyze("nts", "Notes")

        assert exact.quality > prefix.quality > word.quality >= fuzzy.quality

    def test_fuzzy_never_exceeds_word_start_floor(self, analyzer):
        deep_word = analyzer.analyze("z", "a b c d e f g z")
        assert deep_word.match_type == MatchType.WORD_START
        assert deep_word.quality >= FUZZY_MAX - 1e-9
