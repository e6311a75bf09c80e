"""Configuration management for quickpal."""

from pathlib import Path
from typing import Optional, Dict, List

import yaml
from loguru import logger
from pydantic import BaseModel, Field, field_validator


DEFAULT_CATEGORY_WEIGHTS: Dict[str, float] = {
    "application": 1.2,
    "conversion": 1.1,
    "calendar": 1.05,
    "action": 1.0,
    "quicklink": 0.8,
    "contact": 0.7,
    "clipboard": 0.6,
    "file": 0.5,
    "process": 0.5,
    "toggle": 0.4,
    "settings": 0.3,
}

DEFAULT_MATCH_BONUSES: Dict[str, float] = {
    "exact": 1.0,
    "prefix": 0.95,
    "word_start": 0.9,
    "fuzzy": 0.7,
    "none": 0.0,
}


class ScoringWeights(BaseModel):
    """Tunable multipliers read by the score calculator on every call."""

    category_weights: Dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_WEIGHTS)
    )
    match_bonuses: Dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_MATCH_BONUSES)
    )
    strong_match_threshold: int = 700
    subtitle_penalty: float = 0.9
    statistics_enabled: bool = False
    statistics_max_boost: float = 0.5
    statistics_half_life_days: float = 14.0

    @field_validator('category_weights', 'match_bonuses')
    @classmethod
    def validate_non_negative(cls, v: Dict[str, float]) -> Dict[str, float]:
        for key, value in v.items():
            if value < 0:
                raise ValueError(f"weight for '{key}' must be non-negative")
        return v

    @field_validator('subtitle_penalty')
    @classmethod
    def validate_penalty(cls, v: float) -> float:
        if not 0 <= v <= 1:
            raise ValueError("subtitle_penalty must be between 0 and 1")
        return v

    def category_weight(self, category: str) -> float:
        return self.category_weights.get(category, 1.0)

    def match_bonus(self, match_type: str) -> float:
        return self.match_bonuses.get(match_type, 0.0)


class SearchConfig(BaseModel):
    max_results: int = 80
    slow_debounce_ms: int = 100
    intent_debounce_ms: int = 200
    slow_provider_timeout_ms: int = 2000
    tracing: bool = True

    @field_validator('max_results')
    @classmethod
    def validate_max_results(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("max_results must be positive")
        return v

    @field_validator('slow_debounce_ms', 'intent_debounce_ms', 'slow_provider_timeout_ms')
    @classmethod
    def validate_delay(cls, v: int) -> int:
        if v < 0:
            raise ValueError("delays must not be negative")
        return v


class IntentConfig(BaseModel):
    enabled: bool = True
    backend: str = "ollama"
    base_url: str = "http://localhost:11434"
    model: str = "qwen2.5:3b"
    timeout_ms: int = 1500
    temperature: float = 0.1
    min_confidence: float = 0.5
    score_tier: int = 950
    confidence_weighting: bool = False
    failure_threshold: int = 3
    recovery_timeout_s: int = 30

    @field_validator('backend')
    @classmethod
    def validate_backend(cls, v: str) -> str:
        if v not in ("ollama", "none"):
            raise ValueError("backend must be 'ollama' or 'none'")
        return v

    @field_validator('min_confidence')
    @classmethod
    def validate_confidence(cls, v: float) -> float:
        if not 0 <= v <= 1:
            raise ValueError("min_confidence must be between 0 and 1")
        return v


class QuicklinkEntry(BaseModel):
    name: str
    url: str
    keywords: List[str] = Field(default_factory=list)


class UserCommandEntry(BaseModel):
    name: str
    command: str
    description: str = ""


class ProvidersConfig(BaseModel):
    application_dirs: List[Path] = Field(default_factory=lambda: [
        Path("/Applications"),
        Path("/System/Applications"),
        Path("/usr/share/applications"),
        Path.home() / ".local" / "share" / "applications",
    ])
    file_search_roots: List[Path] = Field(default_factory=lambda: [Path.home()])
    file_search_max_results: int = 20
    file_search_max_depth: int = 6
    file_prefix_max_results: int = 5
    shell_prefix: str = ">"
    process_limit: int = 15
    quicklinks: List[QuicklinkEntry] = Field(default_factory=list)
    user_commands: List[UserCommandEntry] = Field(default_factory=list)
    clipboard_history_size: int = 50


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: Optional[Path] = None
    rotation: str = "1 day"
    retention: str = "7 days"


class Config(BaseModel):
    """Main configuration for the quickpal engine."""

    search: SearchConfig = Field(default_factory=SearchConfig)
    intent: IntentConfig = Field(default_factory=IntentConfig)
    scoring: ScoringWeights = Field(default_factory=ScoringWeights)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def default_paths(cls) -> List[Path]:
        return [
            Path("quickpal.yaml"),
            Path.home() / ".config" / "quickpal" / "config.yaml",
            Path("/etc/quickpal/config.yaml"),
        ]

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """Load configuration from YAML, falling back to defaults."""
        if config_path is None:
            for candidate in cls.default_paths():
                if candidate.exists():
                    config_path = candidate
                    break
            else:
                logger.debug("No config file found, using defaults")
                return cls()
        elif not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        logger.info(f"Loading config from: {config_path}")
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    def save(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w') as f:
            yaml.safe_dump(self.model_dump(mode="json"), f, default_flow_style=False)
