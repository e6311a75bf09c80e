"""Core data models for palette search results and intents."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger


class Category(Enum):
    """Result categories in tie-break priority order (first ranks first)."""
    APPLICATION = "application"
    CALENDAR = "calendar"
    CONVERSION = "conversion"
    ACTION = "action"
    QUICKLINK = "quicklink"
    CONTACT = "contact"
    CLIPBOARD = "clipboard"
    FILE = "file"
    PROCESS = "process"
    TOGGLE = "toggle"
    SETTINGS = "settings"


CATEGORY_PRIORITY: Dict[Category, int] = {
    category: index for index, category in enumerate(Category)
}


class ResultSource(Enum):
    STANDARD = "standard"
    INTENT = "intent"


SOURCE_PRIORITY: Dict[ResultSource, int] = {
    ResultSource.STANDARD: 0,
    ResultSource.INTENT: 1,
}


class MatchType(Enum):
    EXACT = "exact"
    PREFIX = "prefix"
    WORD_START = "word_start"
    FUZZY = "fuzzy"
    NONE = "none"


@dataclass(frozen=True)
class MatchResult:
    quality: float
    match_type: MatchType

    @property
    def is_match(self) -> bool:
        return self.match_type != MatchType.NONE and self.quality > 0


NO_MATCH = MatchResult(quality=0.0, match_type=MatchType.NONE)


@dataclass(frozen=True)
class Command:
    """Serializable invocation resolved by the command dispatcher.

    ``kind`` names a registered handler (``open_app``, ``copy``, ``run_shell``
    ...); ``args`` carries its parameters.
    """
    kind: str
    args: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "args": dict(self.args)}


@dataclass(frozen=True)
class SearchResult:
    """Immutable palette entry produced by a provider or the intent adapter."""
    title: str
    category: Category
    score: int
    action: Command
    subtitle: str = ""
    reveal_action: Optional[Command] = None
    file_path: Optional[str] = None
    is_active: bool = False
    source: ResultSource = ResultSource.STANDARD
    provider: Optional[str] = None

    @property
    def identity_key(self) -> Tuple[str, str]:
        return (self.title, self.subtitle)

    def with_score(self, score: int) -> "SearchResult":
        return replace(self, score=score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'subtitle': self.subtitle,
            'category': self.category.value,
            'score': self.score,
            'source': self.source.value,
            'provider': self.provider,
            'file_path': self.file_path,
            'is_active': self.is_active,
            'action': self.action.to_dict(),
            'reveal_action': self.reveal_action.to_dict() if self.reveal_action else None,
        }


def is_valid_result(result: Any) -> bool:
    """Check that a provider returned a well-formed result."""
    if not isinstance(result, SearchResult):
        return False
    if not isinstance(result.title, str) or not result.title.strip():
        return False
    if not isinstance(result.subtitle, str):
        return False
    if not isinstance(result.category, Category):
        return False
    if isinstance(result.score, bool) or not isinstance(result.score, int):
        return False
    return isinstance(result.action, Command)


def filter_valid(results: List[Any], provider: str) -> List[SearchResult]:
    """Drop malformed entries, keeping the rest of a provider's output.

    Raises TypeError when the output is not a list at all.
    """
    if results is None:
        return []
    if not isinstance(results, (list, tuple)):
        raise TypeError(f"{provider} returned {type(results).__name__}, expected a list")
    valid = []
    for result in results:
        if is_valid_result(result):
            valid.append(result)
        else:
            logger.warning(f"Dropping malformed result from {provider}: {result!r}")
    return valid


def normalize_query(raw: str) -> str:
    """Trim whitespace and strip a leading '=' calculator marker."""
    query = (raw or "").strip()
    if query.startswith("="):
        query = query[1:].strip()
    return query


class IntentType(Enum):
    CREATE_CALENDAR = "create_calendar"
    FIND_FILES = "find_files"
    CONVERT_UNITS = "convert_units"
    TRANSLATE = "translate"


class EntityType(Enum):
    TITLE = "title"
    CONTACT = "contact"
    LOCATION = "location"
    DATE = "date"
    TIME = "time"
    QUERY = "query"
    FILE_EXTENSION = "file_extension"
    MODIFIED_WITHIN = "modified_within"
    VALUE = "value"
    FROM_UNIT = "from_unit"
    TO_UNIT = "to_unit"
    UNIT_CATEGORY = "unit_category"
    SOURCE_TEXT = "source_text"
    TARGET_LANGUAGE = "target_language"
    SOURCE_LANGUAGE = "source_language"


@dataclass(frozen=True)
class ContextEntity:
    entity_type: EntityType
    value: str


@dataclass(frozen=True)
class IntentContext:
    """Structured explanation of the interpreted intent, shown alongside results."""
    intent_type: IntentType
    entities: Tuple[ContextEntity, ...]
    confidence: float
    raw_query: str

    def entity(self, entity_type: EntityType) -> Optional[str]:
        for entity in self.entities:
            if entity.entity_type == entity_type:
                return entity.value
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'intent': self.intent_type.value,
            'entities': [
                {'type': e.entity_type.value, 'value': e.value}
                for e in self.entities
            ],
            'confidence': round(self.confidence, 2),
            'query': self.raw_query,
        }
