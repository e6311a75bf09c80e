"""Unit conversion engine shared by the conversion provider and intents."""

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple


class UnitCategory(Enum):
    LENGTH = "length"
    WEIGHT = "weight"
    TEMPERATURE = "temperature"
    VOLUME = "volume"
    AREA = "area"
    SPEED = "speed"
    TIME = "time"
    DATA = "data"


@dataclass(frozen=True)
class Unit:
    name: str
    aliases: Tuple[str, ...]
    category: UnitCategory
    to_base: Callable[[float], float]
    from_base: Callable[[float], float]
    display: Optional[str] = None

    @property
    def label(self) -> str:
        return self.display or self.name


def _linear(name: str, aliases: Tuple[str, ...], category: UnitCategory,
            factor: float, display: Optional[str] = None) -> Unit:
    return Unit(name, aliases, category, lambda v: v * factor, lambda v: v / factor, display)


_KB = 1024.0

UNITS: List[Unit] = [
    # length, base meters
    _linear("kilometers", ("km", "kilometer", "kilometers"), UnitCategory.LENGTH, 1000),
    _linear("miles", ("mi", "mile", "miles"), UnitCategory.LENGTH, 1609.344),
    _linear("meters", ("m", "meter", "meters", "metre", "metres"), UnitCategory.LENGTH, 1),
    _linear("feet", ("ft", "foot", "feet"), UnitCategory.LENGTH, 0.3048),
    _linear("centimeters", ("cm", "centimeter", "centimeters"), UnitCategory.LENGTH, 0.01),
    _linear("inches", ("in", "inch", "inches"), UnitCategory.LENGTH, 0.0254),
    # weight, base kilograms
    _linear("kilograms", ("kg", "kilogram", "kilograms"), UnitCategory.WEIGHT, 1),
    _linear("pounds", ("lb", "lbs", "pound", "pounds"), UnitCategory.WEIGHT, 0.453592, "lbs"),
    _linear("grams", ("g", "gram", "grams"), UnitCategory.WEIGHT, 0.001),
    _linear("ounces", ("oz", "ounce", "ounces"), UnitCategory.WEIGHT, 0.0283495, "oz"),
    # temperature, base celsius
    Unit("celsius", ("c", "celsius", "centigrade"), UnitCategory.TEMPERATURE,
         lambda v: v, lambda v: v, "°C"),
    Unit("fahrenheit", ("f", "fahrenheit"), UnitCategory.TEMPERATURE,
         lambda v: (v - 32) * 5 / 9, lambda v: v * 9 / 5 + 32, "°F"),
    Unit("kelvin", ("k", "kelvin"), UnitCategory.TEMPERATURE,
         lambda v: v - 273.15, lambda v: v + 273.15, "K"),
    # volume, base liters
    _linear("liters", ("l", "liter", "liters", "litre", "litres"), UnitCategory.VOLUME, 1),
    _linear("gallons", ("gal", "gallon", "gallons"), UnitCategory.VOLUME, 3.78541),
    _linear("milliliters", ("ml", "milliliter", "milliliters"), UnitCategory.VOLUME, 0.001),
    _linear("cups", ("cup", "cups"), UnitCategory.VOLUME, 0.236588),
    # area, base square meters
    _linear("square meters", ("sqm", "m2", "m^2", "square meter", "square meters"), UnitCategory.AREA, 1),
    _linear("square feet", ("sqft", "ft2", "ft^2", "square foot", "square feet"), UnitCategory.AREA, 0.092903),
    _linear("acres", ("acre", "acres"), UnitCategory.AREA, 4046.86),
    _linear("hectares", ("ha", "hectare", "hectares"), UnitCategory.AREA, 10000),
    # speed, base meters per second
    _linear("meters per second", ("m/s", "mps"), UnitCategory.SPEED, 1, "m/s"),
    _linear("kilometers per hour", ("km/h", "kmh", "kph"), UnitCategory.SPEED, 1 / 3.6, "km/h"),
    _linear("miles per hour", ("mph", "mi/h"), UnitCategory.SPEED, 0.44704, "mph"),
    _linear("knots", ("kn", "knot", "knots"), UnitCategory.SPEED, 0.514444),
    # time, base seconds
    _linear("seconds", ("s", "sec", "second", "seconds"), UnitCategory.TIME, 1),
    _linear("minutes", ("min", "minute", "minutes"), UnitCategory.TIME, 60),
    _linear("hours", ("h", "hr", "hour", "hours"), UnitCategory.TIME, 3600),
    _linear("days", ("d", "day", "days"), UnitCategory.TIME, 86400),
    # data, base bytes (binary)
    _linear("bytes", ("b", "byte", "bytes"), UnitCategory.DATA, 1, "B"),
    _linear("kilobytes", ("kb", "kilobyte", "kilobytes"), UnitCategory.DATA, _KB, "KB"),
    _linear("megabytes", ("mb", "megabyte", "megabytes"), UnitCategory.DATA, _KB ** 2, "MB"),
    _linear("gigabytes", ("gb", "gigabyte", "gigabytes"), UnitCategory.DATA, _KB ** 3, "GB"),
    _linear("terabytes", ("tb", "terabyte", "terabytes"), UnitCategory.DATA, _KB ** 4, "TB"),
]

_BY_ALIAS: Dict[str, Unit] = {}
for _unit in UNITS:
    for _alias in _unit.aliases:
        _BY_ALIAS.setdefault(_alias.lower(), _unit)

KNOWN_UNITS = frozenset(_BY_ALIAS)

# "100 km to miles", "100k m in cm", "-40 c -> f"
_EXPRESSION = re.compile(
    r"^(?P<value>-?[\d.]+(?:e[+-]?\d+)?(?:k(?=\s))?)\s*(?P<from>[a-z/^2]+)\s+(?:to|in|->)\s+(?P<to>[a-z/^2]+)$",
    re.IGNORECASE,
)


class ConversionError(ValueError):
    """Raised for unknown units or units from different categories."""


def find_unit(alias: str) -> Optional[Unit]:
    return _BY_ALIAS.get(alias.strip().lower())


def infer_category(*aliases: Optional[str]) -> Optional[UnitCategory]:
    for alias in aliases:
        if alias:
            unit = find_unit(alias)
            if unit is not None:
                return unit.category
    return None


def parse_value(text: str) -> Optional[float]:
    """Parse a number with an optional 'k' (thousands) suffix."""
    text = text.strip()
    multiplier = 1.0
    if text[-1:] in ("k", "K"):
        text = text[:-1]
        multiplier = 1000.0
    try:
        return float(text) * multiplier
    except ValueError:
        return None


def convert(value: float, from_alias: str, to_alias: str) -> Tuple[float, Unit]:
    from_unit = find_unit(from_alias)
    to_unit = find_unit(to_alias)
    if from_unit is None or to_unit is None:
        raise ConversionError(f"Unknown unit: {from_alias if from_unit is None else to_alias}")
    if from_unit.category != to_unit.category:
        raise ConversionError(
            f"Cannot convert {from_unit.category.value} to {to_unit.category.value}"
        )
    return to_unit.from_base(from_unit.to_base(value)), to_unit


def format_number(value: float) -> str:
    if math.isnan(value) or math.isinf(value):
        return "Error"
    if value == 0:
        return "0"
    if abs(value) >= 1e9 or abs(value) < 0.001:
        return f"{value:.2e}"
    if value == round(value) and abs(value) < 1e6:
        return str(int(round(value)))
    return f"{value:,.2f}".rstrip("0").rstrip(".")


def format_quantity(value: float, unit: Unit) -> str:
    number = format_number(value)
    if unit.category == UnitCategory.TEMPERATURE:
        return f"{number}{unit.label}"
    return f"{number} {unit.label}"


def parse_expression(text: str) -> Optional[Tuple[float, str, str]]:
    """Parse '<value> <unit> to|in|-> <unit>' with both units known."""
    match = _EXPRESSION.match(text.strip())
    if not match:
        return None
    if find_unit(match.group("from")) is None or find_unit(match.group("to")) is None:
        return None
    value = parse_value(match.group("value"))
    if value is None:
        return None
    return value, match.group("from"), match.group("to")


def convert_expression(text: str) -> Optional[str]:
    """Convert a full expression such as '100 km to miles', or None."""
    parsed = parse_expression(text)
    if parsed is None:
        return None
    value, from_alias, to_alias = parsed
    try:
        result, unit = convert(value, from_alias, to_alias)
    except ConversionError:
        return None
    return format_quantity(result, unit)
