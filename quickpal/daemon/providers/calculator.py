"""Calculator and unit conversion providers."""

from typing import List

from .. import calculator, units
from ..models import Category, Command, SearchResult
from .base import FastProvider

CALCULATOR_SCORE = 1500
CONVERSION_SCORE = 2000


class CalculatorProvider(FastProvider):
    name = "calculator"

    def search(self, query: str) -> List[SearchResult]:
        value = calculator.evaluate(query)
        if value is None:
            return []
        return [SearchResult(
            title=value,
            subtitle="Copy to clipboard",
            category=Category.ACTION,
            score=CALCULATOR_SCORE,
            action=Command("copy", {"text": value}),
            provider=self.name,
        )]


class UnitConversionProvider(FastProvider):
    """Handles '<value> <unit> to <unit>' expressions."""

    name = "conversion"

    def search(self, query: str) -> List[SearchResult]:
        if calculator.is_math_expression(query):
            return []
        value = units.convert_expression(query)
        if value is None:
            return []
        return [SearchResult(
            title=value,
            subtitle="Conversion",
            category=Category.CONVERSION,
            score=CONVERSION_SCORE,
            action=Command("copy", {"text": value}),
            provider=self.name,
        )]
