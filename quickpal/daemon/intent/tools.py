"""Tool-call values produced by intent interpretation."""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Union

from ..models import IntentType


@dataclass(frozen=True)
class CalendarEventParams:
    title: str
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    contact: Optional[str] = None


@dataclass(frozen=True)
class FindFilesParams:
    query: str
    search_in_content: bool = False
    file_extension: Optional[str] = None
    modified_within_hours: Optional[int] = None


@dataclass(frozen=True)
class UnitConversionParams:
    value: float
    from_unit: str
    to_unit: str
    category: Optional[str] = None


@dataclass(frozen=True)
class TranslationParams:
    source_text: str
    target_language: str
    source_language: Optional[str] = None


ToolParams = Union[CalendarEventParams, FindFilesParams, UnitConversionParams, TranslationParams]

TOOL_NAMES = {
    CalendarEventParams: "create_calendar_event",
    FindFilesParams: "find_files",
    UnitConversionParams: "convert_units",
    TranslationParams: "translate_text",
}

INTENT_TYPES = {
    CalendarEventParams: IntentType.CREATE_CALENDAR,
    FindFilesParams: IntentType.FIND_FILES,
    UnitConversionParams: IntentType.CONVERT_UNITS,
    TranslationParams: IntentType.TRANSLATE,
}


@dataclass(frozen=True)
class ToolCall:
    """One interpreted intent: typed parameters plus interpreter confidence."""
    params: ToolParams
    confidence: float

    @property
    def name(self) -> str:
        return TOOL_NAMES[type(self.params)]

    @property
    def intent_type(self) -> IntentType:
        return INTENT_TYPES[type(self.params)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tool': self.name,
            'arguments': asdict(self.params),
            'confidence': self.confidence,
        }


def describe(tool_call: ToolCall) -> str:
    """One-line rendering used in logs and the CLI."""
    arguments = ", ".join(
        f"{key}: {value if value is not None else 'nil'}"
        for key, value in asdict(tool_call.params).items()
    )
    return f"{tool_call.name}({arguments}, confidence: {tool_call.confidence})"
