"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from quickpal.daemon.config import (
    DEFAULT_CATEGORY_WEIGHTS, DEFAULT_MATCH_BONUSES, Config, IntentConfig, ScoringWeights,
    SearchConfig,
)
from quickpal.daemon.models import Category, MatchType


class TestDefaults:
    def test_default_values(self):
        config = Config()
        assert config.search.max_results == 80
        assert config.search.slow_debounce_ms == 100
        assert config.search.intent_debounce_ms == 200
        assert config.intent.score_tier == 950
        assert config.intent.confidence_weighting is False
        assert config.scoring.category_weight("application") == 1.2
        assert config.scoring.category_weight("unknown") == 1.0
        assert config.scoring.match_bonus("fuzzy") == 0.7
        assert config.providers.shell_prefix == ">"

    def test_weight_tables_cover_declared_enums(self):
        assert set(DEFAULT_CATEGORY_WEIGHTS) == {c.value for c in Category}
        assert set(DEFAULT_MATCH_BONUSES) == {m.value for m in MatchType}


class TestValidation:
    @pytest.mark.parametrize("model,field,value", [
        (SearchConfig, "max_results", 0),
        (SearchConfig, "slow_debounce_ms", -1),
        (IntentConfig, "backend", "gpt"),
        (IntentConfig, "min_confidence", 1.5),
        (ScoringWeights, "subtitle_penalty", 2.0),
        (ScoringWeights, "category_weights", {"file": -0.5}),
    ])
    def test_rejects_invalid_values(self, model, field, value):
        with pytest.raises(ValidationError):
            model(**{field: value})


class TestLoadSave:
    """YAML round trips through the filesystem."""

    def test_load_partial_file(self, tmp_path):
        path = tmp_path / "quickpal.yaml"
        path.write_text(yaml.safe_dump({
            "search": {"max_results": 10},
            "intent": {"backend": "none"},
            "providers": {"quicklinks": [{"name": "Docs", "url": "https://docs.example.com"}]},
        }))

        config = Config.load(path)

        assert config.search.max_results == 10
        assert config.search.slow_debounce_ms == 100
        assert config.intent.backend == "none"
        assert config.providers.quicklinks[0].name == "Docs"
        assert config.providers.quicklinks[0].keywords == []

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert Config.load(path) == Config()

    def test_missing_explicit_path(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config.load(tmp_path / "nope.yaml")

    def test_no_default_file(self, tmp_path, monkeypatch):
        monkeypatch.setattr(Config, "default_paths", classmethod(lambda cls: [tmp_path / "a.yaml"]))
        assert Config.load() == Config()

    def test_first_existing_default_wins(self, tmp_path, monkeypatch):
        second = tmp_path / "second.yaml"
        second.write_text("search:\n  max_results: 7\n")
        monkeypatch.setattr(
            Config, "default_paths",
            classmethod(lambda cls: [tmp_path / "first.yaml", second]),
        )
        assert Config.load().search.max_results == 7

    def test_save_and_reload(self, tmp_path):
        config = Config()
        config.search.max_results = 25
        config.providers.file_search_roots = [Path("/srv/docs")]
        path = tmp_path / "nested" / "config.yaml"

        config.save(path)
        reloaded = Config.load(path)

        assert reloaded.search.max_results == 25
        assert reloaded.providers.file_search_roots == [Path("/srv/docs")]
