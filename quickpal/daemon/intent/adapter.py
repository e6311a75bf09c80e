"""Intent augmentation: interpret a query and synthesize results for it."""

import asyncio
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import quote_plus

from loguru import logger

from ..config import IntentConfig
from ..error_handling import CircuitBreaker, CircuitOpenError
from ..models import (
    Category, Command, ContextEntity, EntityType, IntentContext,
    ResultSource, SearchResult,
)
from ..providers.base import CancelToken
from ..providers.files import FileFinder, file_result
from ..providers.personal import ContactProvider
from ..units import ConversionError, convert, format_number, format_quantity
from .fallback import RuleBasedParser
from .interpreter import IntentInterpreter
from .tools import (
    CalendarEventParams, FindFilesParams, ToolCall,
    TranslationParams, UnitConversionParams, describe,
)

SECONDARY_OFFSET = 50
CONTACT_OFFSET = 60
MAX_FILE_RESULTS = 10


@dataclass(frozen=True)
class IntentOutcome:
    tool_call: ToolCall
    results: List[SearchResult]
    context: IntentContext


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else format_number(value)


class IntentAdapter:
    """Turns a query into intent results and an intent context.

    The interpreter backend is tried first; the rule-based parser answers
    whenever the backend is disabled, failing, silent or under-confident.
    """

    def __init__(self,
                 config: Optional[IntentConfig] = None,
                 interpreter: Optional[IntentInterpreter] = None,
                 parser: Optional[RuleBasedParser] = None,
                 finder: Optional[FileFinder] = None,
                 contacts: Optional[ContactProvider] = None):
        self.config = config or IntentConfig()
        self.interpreter = interpreter
        self.parser = parser or RuleBasedParser()
        self.finder = finder
        self.contacts = contacts
        self.breaker = CircuitBreaker(
            "intent-interpreter",
            failure_threshold=self.config.failure_threshold,
            recovery_timeout=self.config.recovery_timeout_s,
        )

    async def infer(self, query: str) -> Optional[ToolCall]:
        if not self.config.enabled:
            return None

        if self.interpreter is not None and self.config.backend != "none":
            try:
                tool_call = await self.breaker.call(self.interpreter.interpret, query)
            except CircuitOpenError:
                tool_call = None
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Intent interpreter failed, using rules: {e}")
                tool_call = None

            if tool_call is not None and tool_call.confidence >= self.config.min_confidence:
                return tool_call

        tool_call = self.parser.parse(query)
        if tool_call is not None:
            logger.debug(f"Rule-based intent: {describe(tool_call)}")
        return tool_call

    async def augment(self, query: str, cancel_token: CancelToken) -> Optional[IntentOutcome]:
        tool_call = await self.infer(query)
        if tool_call is None:
            return None
        results = await asyncio.to_thread(self.build_results, tool_call, cancel_token)
        return IntentOutcome(tool_call, results, self.build_context(tool_call, query))

    def score_tier(self, tool_call: ToolCall) -> int:
        tier = self.config.score_tier
        if self.config.confidence_weighting:
            tier = int(tier * min(1.0, max(0.0, tool_call.confidence)))
        return tier

    def build_results(self, tool_call: ToolCall, cancel_token: CancelToken) -> List[SearchResult]:
        params = tool_call.params
        tier = self.score_tier(tool_call)
        if isinstance(params, CalendarEventParams):
            return self._calendar_results(params, tier)
        if isinstance(params, UnitConversionParams):
            return [self._conversion_result(params, tier)]
        if isinstance(params, TranslationParams):
            return [self._translation_result(params, tier)]
        if isinstance(params, FindFilesParams):
            return self._file_results(params, tier, cancel_token)
        return []

    def _intent_result(self, **kwargs) -> SearchResult:
        return SearchResult(source=ResultSource.INTENT, provider="intent", **kwargs)

    def _calendar_results(self, params: CalendarEventParams, tier: int) -> List[SearchResult]:
        details = [
            f"{label}: {value}"
            for label, value in (
                ("Date", params.date),
                ("Time", params.time),
                ("Location", params.location),
                ("Contact", params.contact),
            )
            if value
        ]
        results = [self._intent_result(
            title=params.title,
            subtitle=" • ".join(details) if details else "Calendar Event",
            category=Category.CALENDAR,
            score=tier,
            action=Command("create_event", {
                "title": params.title,
                "date": params.date,
                "time": params.time,
                "location": params.location,
                "contact": params.contact,
            }),
        )]

        if params.location:
            results.append(self._intent_result(
                title=f"Search in Maps: {params.location}",
                subtitle="Location Context",
                category=Category.ACTION,
                score=tier - SECONDARY_OFFSET,
                action=Command("open_url", {
                    "url": f"https://maps.google.com/?q={quote_plus(params.location)}",
                }),
            ))

        if params.contact and self.contacts is not None:
            for contact in self.contacts.lookup(params.contact):
                for result in self.contacts.results_for(contact, tier - CONTACT_OFFSET):
                    results.append(self._intent_result(
                        title=result.title,
                        subtitle=result.subtitle,
                        category=result.category,
                        score=result.score,
                        action=result.action,
                    ))
        return results

    def _conversion_result(self, params: UnitConversionParams, tier: int) -> SearchResult:
        try:
            value, unit = convert(params.value, params.from_unit, params.to_unit)
            title = format_quantity(value, unit)
        except ConversionError as e:
            logger.debug(f"Intent conversion not computable: {e}")
            title = f"Convert {_number(params.value)} {params.from_unit} to {params.to_unit}"
        return self._intent_result(
            title=title,
            subtitle="Conversion",
            category=Category.CONVERSION,
            score=tier,
            action=Command("copy", {"text": title}),
        )

    def _translation_result(self, params: TranslationParams, tier: int) -> SearchResult:
        return self._intent_result(
            title=f"Translate to {params.target_language.title()}: {params.source_text}",
            subtitle="Translation",
            category=Category.ACTION,
            score=tier,
            action=Command("translate", {
                "text": params.source_text,
                "target_language": params.target_language,
                "source_language": params.source_language,
            }),
        )

    def _file_results(self, params: FindFilesParams, tier: int,
                      cancel_token: CancelToken) -> List[SearchResult]:
        if self.finder is None:
            return []
        hits = self.finder.find(
            cancel_token,
            name_contains=params.query,
            extension=params.file_extension,
            modified_within_hours=params.modified_within_hours,
            limit=MAX_FILE_RESULTS,
        )
        return [
            file_result(hit, tier - index, "intent", source=ResultSource.INTENT)
            for index, hit in enumerate(hits)
        ]

    def build_context(self, tool_call: ToolCall, raw_query: str) -> IntentContext:
        params = tool_call.params
        pairs = []
        if isinstance(params, CalendarEventParams):
            pairs = [
                (EntityType.TITLE, params.title),
                (EntityType.CONTACT, params.contact),
                (EntityType.LOCATION, params.location),
                (EntityType.DATE, params.date),
                (EntityType.TIME, params.time),
            ]
        elif isinstance(params, FindFilesParams):
            pairs = [
                (EntityType.QUERY, params.query),
                (EntityType.FILE_EXTENSION, params.file_extension),
                (EntityType.MODIFIED_WITHIN,
                 f"{params.modified_within_hours}h" if params.modified_within_hours else None),
            ]
        elif isinstance(params, UnitConversionParams):
            pairs = [
                (EntityType.VALUE, _number(params.value)),
                (EntityType.FROM_UNIT, params.from_unit),
                (EntityType.TO_UNIT, params.to_unit),
                (EntityType.UNIT_CATEGORY, params.category),
            ]
        elif isinstance(params, TranslationParams):
            pairs = [
                (EntityType.SOURCE_TEXT, params.source_text),
                (EntityType.TARGET_LANGUAGE, params.target_language),
                (EntityType.SOURCE_LANGUAGE, params.source_language),
            ]

        return IntentContext(
            intent_type=tool_call.intent_type,
            entities=tuple(ContextEntity(kind, value) for kind, value in pairs if value),
            confidence=tool_call.confidence,
            raw_query=raw_query,
        )
