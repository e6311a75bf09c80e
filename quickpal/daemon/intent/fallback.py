"""Rule-based intent parser used when no interpreter backend answers.

Checks run in a fixed order: translation, unit conversion (only when the
text contains a digit), calendar event, then file search.
"""

import math
import re
from datetime import datetime
from typing import Callable, Dict, FrozenSet, Optional, Tuple

from loguru import logger

from .tools import (
    CalendarEventParams, FindFilesParams, ToolCall,
    TranslationParams, UnitConversionParams,
)

UNIT_CONFIDENCE = 0.6
RULE_CONFIDENCE = 0.55

UNIT_CATEGORIES: Dict[str, FrozenSet[str]] = {
    "length": frozenset({
        "km", "m", "cm", "mm", "mi", "mile", "miles", "ft", "foot", "feet", "yd", "yard",
        "yards", "in", "inch", "inches", "meter", "meters", "kilometer", "kilometers",
        "centimeter", "centimeters", "millimeter", "millimeters",
    }),
    "weight": frozenset({
        "kg", "g", "mg", "lb", "lbs", "pound", "pounds", "oz", "ounce", "ounces",
        "kilogram", "kilograms", "gram", "grams",
    }),
    "temperature": frozenset({"c", "f", "k", "celsius", "fahrenheit", "kelvin", "centigrade"}),
    "volume": frozenset({
        "l", "ml", "gal", "gallon", "gallons", "qt", "quart", "quarts", "pt", "pint", "cup",
        "cups", "floz", "liter", "liters", "litre", "litres", "milliliter", "milliliters",
    }),
    "area": frozenset({
        "sqm", "sqft", "sqyd", "acre", "acres", "ha", "hectare", "hectares", "sqkm",
    }),
    "speed": frozenset({"km/h", "kmh", "kph", "mph", "m/s", "fps", "knot", "knots"}),
    "time": frozenset({
        "s", "sec", "second", "seconds", "min", "minute", "minutes", "h", "hr", "hour",
        "hours", "day", "days", "week", "weeks", "year", "years",
    }),
    "data": frozenset({
        "b", "kb", "mb", "gb", "tb", "byte", "bytes", "kilobyte", "kilobytes", "megabyte",
        "megabytes", "gigabyte", "gigabytes", "terabyte", "terabytes",
    }),
}
KNOWN_UNITS = frozenset().union(*UNIT_CATEGORIES.values())

# (pattern, how_many) -- "how many X in N Y" puts the target unit first
_CONVERSION_PATTERNS = (
    (re.compile(r"convert\s+([\d.eE+-]+)\s*([a-zA-Z/]+)\s+(?:to|in)\s+([a-zA-Z/]+)", re.I), False),
    (re.compile(r"how\s+many\s+([a-zA-Z/]+)\s+(?:in|is|are)\s+([\d.eE+-]+)\s*([a-zA-Z/]+)", re.I), True),
    (re.compile(r"([\d.eE+-]+)\s*([a-zA-Z/]+)\s+(?:to|in)\s+([a-zA-Z/]+)", re.I), False),
)

_CONTACT = re.compile(
    r"\bwith\s+([A-Za-z][A-Za-z0-9 _'-]{0,40}?)"
    r"(?=\s+(?:at|in|on|tomorrow|today|tonight|morning|afternoon|evening)\b|$)",
    re.I,
)
_EXPLICIT_TIME = re.compile(r"\b(at\s+)?([0-1]?\d(:[0-5]\d)?\s?(am|pm))\b", re.I)
_IN_LOCATION = re.compile(r"\bin\s+(?:the\s+)?([A-Za-z0-9][A-Za-z0-9 _'-]{1,60})\b", re.I)
_AT_LOCATION = re.compile(
    r"\bat\s+(?:the\s+)?([A-Za-z][A-Za-z0-9 _'-]{1,60}?)"
    r"(?=\s*$|\s+on\b|\s+tomorrow\b|\s+today\b|\s+tonight\b|\s+at\s+[0-1]?\d(:[0-5]\d)?\s?(am|pm)\b)",
    re.I,
)
_TRAILING_TIME = re.compile(r"\s+at\s+[0-1]?\d(:[0-5]\d)?\s?(am|pm)\b.*$", re.I)

_EXTENSION = re.compile(r"\b(pdf|txt|md|markdown|doc|docx|xls|xlsx|ppt|pptx|csv|json|xml|png|jpg|jpeg)\b")
_EXTENSION_ALIASES = {"markdown": "md", "jpeg": "jpg"}
_LAST_N_HOURS = re.compile(r"\b(?:last|past)\s+(\d+)\s+hours?\b")
_N_HOURS_AGO = re.compile(r"\b(\d+)\s+hours?\s+ago\b")
_QUERY_NOISE = (
    r"\b(find|search|show|display|list)\b",
    r"\b(files?|documents?)\b",
    r"\b(created|modified|updated)\b",
    r"\b(today|yesterday)\b",
    r"\b(last|past)\s+\d+\s+hours?\b",
    r"\b\d+\s+hours?\s+ago\b",
    r"\b(an|one)\s+hour\s+ago\b",
    r"\b(last|past)\s+hour\b",
    r"\b(in|from|within|content|contents)\b",
    r"\bthe\b",
)

_TRANSLATE = re.compile(
    r"^translate\s+(?P<text>.+?)(?:\s+from\s+(?P<source>[A-Za-z]+))?\s+(?:to|into)\s+(?P<target>[A-Za-z]+)$",
    re.I,
)


def _first_group(pattern: re.Pattern, text: str, group: int = 1) -> Optional[str]:
    match = pattern.search(text)
    if not match:
        return None
    value = (match.group(group) or "").strip()
    return value or None


def unit_category(from_unit: str, to_unit: str) -> Optional[str]:
    for unit in (from_unit.lower(), to_unit.lower()):
        for category, members in UNIT_CATEGORIES.items():
            if unit in members:
                return category
    return None


def infer_unit_conversion(text: str) -> Optional[UnitConversionParams]:
    trimmed = text.strip()
    for pattern, how_many in _CONVERSION_PATTERNS:
        match = pattern.search(trimmed)
        if not match:
            continue
        if how_many:
            to_unit, value_text, from_unit = match.group(1), match.group(2), match.group(3)
        else:
            value_text, from_unit, to_unit = match.group(1), match.group(2), match.group(3)
        from_unit, to_unit = from_unit.lower(), to_unit.lower()
        try:
            value = float(value_text)
        except ValueError:
            continue
        if math.isnan(value) or math.isinf(value):
            continue
        if from_unit not in KNOWN_UNITS and to_unit not in KNOWN_UNITS:
            continue
        return UnitConversionParams(
            value=value,
            from_unit=from_unit,
            to_unit=to_unit,
            category=unit_category(from_unit, to_unit),
        )
    return None


def infer_contact(text: str) -> Optional[str]:
    return _first_group(_CONTACT, text)


def infer_event_title(text: str) -> Optional[str]:
    contact = infer_contact(text)
    if contact:
        return f"Meeting with {contact}"
    return "Event" if text.strip() else None


def infer_date(text: str) -> Optional[str]:
    lowered = text.lower()
    if "tomorrow" in lowered:
        return "tomorrow"
    if "today" in lowered or "tonight" in lowered:
        return "today"
    return None


def infer_time(text: str) -> Optional[str]:
    explicit = _first_group(_EXPLICIT_TIME, text, group=2)
    if explicit:
        return explicit
    lowered = text.lower()
    for word, default in (("morning", "9am"), ("afternoon", "2pm"), ("evening", "6pm"), ("tonight", "8pm")):
        if word in lowered:
            return default
    return None


def infer_location(text: str) -> Optional[str]:
    location = _first_group(_IN_LOCATION, text)
    if location:
        return location
    raw = _first_group(_AT_LOCATION, text)
    if not raw:
        return None
    cleaned = _TRAILING_TIME.sub("", raw).strip()
    return cleaned or None


def hours_since_midnight(now: Optional[datetime] = None) -> int:
    now = now or datetime.now()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return max(1, math.ceil((now - midnight).total_seconds() / 3600))


def infer_modified_within(text: str, clock: Callable[[], datetime] = datetime.now) -> Optional[int]:
    lowered = text.lower()
    if "today" in lowered:
        return hours_since_midnight(clock())
    for pattern in (_LAST_N_HOURS, _N_HOURS_AGO):
        hours = _first_group(pattern, lowered)
        if hours:
            return max(1, int(hours))
    if any(phrase in lowered for phrase in ("last hour", "past hour", "an hour ago", "1 hour ago")):
        return 1
    return None


def infer_file_query(text: str, file_extension: Optional[str]) -> str:
    query = text.lower()
    for pattern in _QUERY_NOISE:
        query = re.sub(pattern, " ", query)
    if file_extension:
        query = re.sub(rf"\b{re.escape(file_extension)}s?\b", " ", query)
        for alias, canonical in _EXTENSION_ALIASES.items():
            if canonical == file_extension:
                query = re.sub(rf"\b{alias}s?\b", " ", query)
    query = re.sub(r"\s+", " ", query).strip()
    return query or "*"


def infer_find_files(text: str, clock: Callable[[], datetime] = datetime.now) -> FindFilesParams:
    lowered = text.lower()
    extension = _first_group(_EXTENSION, lowered)
    if extension:
        extension = _EXTENSION_ALIASES.get(extension, extension)
    return FindFilesParams(
        query=infer_file_query(text, extension),
        search_in_content="content" in lowered,
        file_extension=extension,
        modified_within_hours=infer_modified_within(text, clock),
    )


def infer_translation(text: str) -> Optional[TranslationParams]:
    match = _TRANSLATE.match(text.strip())
    if not match:
        return None
    return TranslationParams(
        source_text=match.group("text").strip().strip('"\''),
        target_language=match.group("target").lower(),
        source_language=match.group("source").lower() if match.group("source") else None,
    )


def infer_calendar_event(text: str) -> CalendarEventParams:
    return CalendarEventParams(
        title=infer_event_title(text) or "Event",
        date=infer_date(text),
        time=infer_time(text),
        location=infer_location(text),
        contact=infer_contact(text),
    )


class RuleBasedParser:
    """Deterministic keyword and pattern parser with fixed, modest confidence."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock

    def parse(self, text: str) -> Optional[ToolCall]:
        lowered = text.lower()

        translation = infer_translation(text)
        if translation is not None:
            return ToolCall(translation, RULE_CONFIDENCE)

        if any(ch.isdigit() for ch in lowered):
            conversion = infer_unit_conversion(text)
            if conversion is not None:
                return ToolCall(conversion, UNIT_CONFIDENCE)

        if any(word in lowered for word in ("meeting", "event", "calendar", "schedule")):
            return ToolCall(infer_calendar_event(text), RULE_CONFIDENCE)

        if any(word in lowered for word in ("find", "search", "file")):
            return ToolCall(infer_find_files(text, self._clock), RULE_CONFIDENCE)

        logger.debug(f"No rule matched query: {text!r}")
        return None
