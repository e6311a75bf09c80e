"""Intent interpretation and augmentation."""

from .adapter import IntentAdapter, IntentOutcome
from .fallback import RuleBasedParser
from .interpreter import (
    IntentInterpreter, InterpreterError, OllamaInterpreter,
    map_payload_to_tool_call, parse_backend_reply,
)
from .tools import (
    CalendarEventParams, FindFilesParams, ToolCall,
    TranslationParams, UnitConversionParams, describe,
)

__all__ = [
    "IntentAdapter",
    "IntentOutcome",
    "RuleBasedParser",
    "IntentInterpreter",
    "InterpreterError",
    "OllamaInterpreter",
    "map_payload_to_tool_call",
    "parse_backend_reply",
    "CalendarEventParams",
    "FindFilesParams",
    "ToolCall",
    "TranslationParams",
    "UnitConversionParams",
    "describe",
]
