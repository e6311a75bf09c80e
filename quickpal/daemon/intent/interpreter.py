"""Intent interpreter backends."""

import json
from typing import Any, Dict, Optional, Protocol

import httpx
from loguru import logger

from ..config import IntentConfig
from .fallback import (
    infer_contact, infer_date, infer_event_title, infer_location,
    infer_time, infer_translation, infer_unit_conversion,
)
from .tools import (
    CalendarEventParams, FindFilesParams, ToolCall,
    TranslationParams, UnitConversionParams,
)

INTERPRETER_CONFIDENCE = 0.9
INFERRED_UNITS_CONFIDENCE = 0.7

SYSTEM_PROMPT = """You map command palette input to at most one tool call.
Tools:
- create_calendar_event(title, date?, time?, location?, contact?)
- find_files(query, search_in_content?, file_extension?, modified_within?)  modified_within is hours
- convert_units(value, from_unit, to_unit, category?)
- translate_text(text, target_language, source_language?)
Answer with JSON only: {"tool": "<name or none>", "arguments": {...}}"""


class InterpreterError(RuntimeError):
    """The backend answered with something that is not a usable tool call."""


class IntentInterpreter(Protocol):
    async def interpret(self, query: str) -> Optional[ToolCall]:
        ...


def _text(fields: Dict[str, Any], key: str) -> Optional[str]:
    value = fields.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _int(fields: Dict[str, Any], key: str) -> Optional[int]:
    value = fields.get(key)
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _float(fields: Dict[str, Any], key: str) -> Optional[float]:
    value = fields.get(key)
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def map_payload_to_tool_call(tool_name: str,
                             fields: Dict[str, Any],
                             original_input: str) -> Optional[ToolCall]:
    """Turn a raw backend payload into a ToolCall, filling gaps from the input text."""
    if tool_name == "create_calendar_event":
        title = _text(fields, "title") or infer_event_title(original_input) or "Event"
        return ToolCall(CalendarEventParams(
            title=title,
            date=_text(fields, "date") or infer_date(original_input),
            time=_text(fields, "time") or infer_time(original_input),
            location=_text(fields, "location") or infer_location(original_input),
            contact=_text(fields, "contact") or infer_contact(original_input),
        ), INTERPRETER_CONFIDENCE)

    if tool_name == "find_files":
        query = _text(fields, "query")
        if not query:
            return None
        return ToolCall(FindFilesParams(
            query=query,
            search_in_content=bool(fields.get("search_in_content", False)),
            file_extension=_text(fields, "file_extension"),
            modified_within_hours=_int(fields, "modified_within"),
        ), INTERPRETER_CONFIDENCE)

    if tool_name == "convert_units":
        value = _float(fields, "value")
        from_unit = (_text(fields, "from_unit") or "").lower()
        to_unit = (_text(fields, "to_unit") or "").lower()
        if value is not None and from_unit and to_unit:
            return ToolCall(UnitConversionParams(
                value=value,
                from_unit=from_unit,
                to_unit=to_unit,
                category=_text(fields, "category"),
            ), INTERPRETER_CONFIDENCE)
        inferred = infer_unit_conversion(original_input)
        if inferred is not None:
            return ToolCall(inferred, INFERRED_UNITS_CONFIDENCE)
        return None

    if tool_name == "translate_text":
        text = _text(fields, "text")
        target = _text(fields, "target_language")
        if text and target:
            return ToolCall(TranslationParams(
                source_text=text,
                target_language=target.lower(),
                source_language=(_text(fields, "source_language") or "").lower() or None,
            ), INTERPRETER_CONFIDENCE)
        inferred = infer_translation(original_input)
        return ToolCall(inferred, INFERRED_UNITS_CONFIDENCE) if inferred else None

    return None


def parse_backend_reply(reply: str, original_input: str) -> Optional[ToolCall]:
    """Parse the JSON object a backend produced for ``original_input``."""
    try:
        payload = json.loads(reply)
    except json.JSONDecodeError as e:
        raise InterpreterError(f"Backend reply is not JSON: {e}") from e
    if not isinstance(payload, dict):
        raise InterpreterError("Backend reply is not a JSON object")

    tool_name = str(payload.get("tool") or payload.get("name") or "none")
    arguments = payload.get("arguments") or payload.get("parameters") or {}
    if not isinstance(arguments, dict):
        raise InterpreterError("Tool arguments must be an object")
    return map_payload_to_tool_call(tool_name, arguments, original_input)


class OllamaInterpreter:
    """Asks a local Ollama model for a tool call over HTTP."""

    def __init__(self, config: IntentConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.config.base_url)
        return self._client

    async def interpret(self, query: str) -> Optional[ToolCall]:
        response = await self._get_client().post(
            "/api/generate",
            json={
                "model": self.config.model,
                "system": SYSTEM_PROMPT,
                "prompt": query,
                "format": "json",
                "stream": False,
                "options": {"temperature": self.config.temperature},
            },
            timeout=self.config.timeout_ms / 1000,
        )
        response.raise_for_status()
        reply = response.json().get("response", "")
        tool_call = parse_backend_reply(reply, query)
        logger.debug(f"Interpreter reply for {query!r}: {tool_call}")
        return tool_call

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
