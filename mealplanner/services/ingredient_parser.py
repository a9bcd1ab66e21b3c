"""
Free-text ingredient line parsing.

Turns lines like "2 cups all-purpose flour, sifted" into
{quantity, unit, name, notes}. Parsing is best-effort and never raises:
anything that does not look like a quantity or a known unit is left in the
name.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Optional


UNICODE_FRACTIONS = {
    "½": 0.5,
    "⅓": 1 / 3,
    "⅔": 2 / 3,
    "¼": 0.25,
    "¾": 0.75,
    "⅕": 0.2,
    "⅖": 0.4,
    "⅗": 0.6,
    "⅘": 0.8,
    "⅙": 1 / 6,
    "⅚": 5 / 6,
    "⅛": 0.125,
    "⅜": 0.375,
    "⅝": 0.625,
    "⅞": 0.875,
}

# Controlled unit vocabulary. Longest spellings are tried first so "tbsp"
# never shadows "tablespoons" and "g" never shadows "grams".
UNITS = [
    "cups", "cup",
    "tablespoons", "tablespoon", "tbsp", "tbs",
    "teaspoons", "teaspoon", "tsp",
    "ounces", "ounce", "oz",
    "pounds", "pound", "lbs", "lb",
    "grams", "gram", "g",
    "kilograms", "kilogram", "kg",
    "milliliters", "millilitres", "ml",
    "liters", "litres", "liter", "litre",
    "quarts", "quart",
    "pints", "pint",
    "gallons", "gallon",
    "cloves", "clove",
    "pieces", "piece",
    "slices", "slice",
    "cans", "can",
    "packages", "package",
    "bunches", "bunch",
    "heads", "head",
    "stalks", "stalk",
    "sprigs", "sprig",
    "pinches", "pinch",
    "dashes", "dash",
    "large", "medium", "small",
]

_FRACTION_CHARS = "".join(UNICODE_FRACTIONS)

# A single numeric token: "1/2", "1.5", "2", "1½" or "½"
_NUMBER = rf"(?:\d+\s*/\s*\d+|\d+(?:\.\d+)?[{_FRACTION_CHARS}]?|[{_FRACTION_CHARS}])"
# Space-separated tokens are summed ("1 1/2"); a token must not run into a word ("10-oz")
_NUMBER_SEQUENCE = rf"{_NUMBER}(?:\s+{_NUMBER})*"
_TOKEN_END = rf"(?![\w/.{_FRACTION_CHARS}-])"

RANGE_PATTERN = re.compile(
    rf"^\s*(?P<low>{_NUMBER_SEQUENCE})\s*(?:-|–|—|to)\s*(?P<high>{_NUMBER_SEQUENCE}){_TOKEN_END}",
    re.IGNORECASE,
)
QUANTITY_PATTERN = re.compile(rf"^\s*(?P<qty>{_NUMBER}{_TOKEN_END}(?:\s+{_NUMBER}{_TOKEN_END})*)")
UNIT_PATTERN = re.compile(
    r"^(?P<unit>" + "|".join(sorted(UNITS, key=len, reverse=True)) + r")\.?(?=\s|$)",
    re.IGNORECASE,
)
DECIMAL_PATTERN = re.compile(r"^\d+(?:\.\d+)?$")
PARENTHETICAL_PATTERN = re.compile(r"\(([^)]*)\)")
PRICE_PATTERN = re.compile(r"\s*\(\$[\d.]+\)\s*$")
LIST_ARTIFACTS = ("▢", "□", "•")


@dataclass(frozen=True)
class ParsedIngredient:
    """Result of parsing one ingredient line."""
    name: str
    quantity: Optional[float] = None
    unit: Optional[str] = None
    notes: Optional[str] = None


def _parse_decimal(text: str) -> Optional[float]:
    # Plain digits only; float() alone would accept "nan", "inf" and "1_000"
    if not DECIMAL_PATTERN.match(text):
        return None
    return float(text)


def _parse_token(token: str) -> Optional[float]:
    token = token.strip()
    if not token:
        return None
    if token in UNICODE_FRACTIONS:
        return UNICODE_FRACTIONS[token]
    if "/" in token:
        numerator, _, denominator = token.partition("/")
        num = _parse_decimal(numerator)
        denom = _parse_decimal(denominator)
        if num is None or not denom:
            return None
        return num / denom
    if token[-1] in UNICODE_FRACTIONS:
        whole = _parse_token(token[:-1])
        if whole is None:
            return None
        return whole + UNICODE_FRACTIONS[token[-1]]
    return _parse_decimal(token)


def _resolve_range(low: float, high: Optional[float]) -> tuple[float, Optional[float]]:
    """Return (quantity, upper bound) for a "low-high" pair."""
    if high is None:
        return low, None
    # "1-1/2 cups" is one and a half, not one to a half
    if low.is_integer() and 0 < high < 1:
        return low + high, None
    if high <= low:
        return low, None
    return low, high


def _sum_tokens(text: str) -> Optional[float]:
    # "1 / 2" is one fraction, not three tokens
    text = re.sub(r"\s*/\s*", "/", text.strip())
    tokens = text.split()
    if not tokens:
        return None
    total = 0.0
    for token in tokens:
        value = _parse_token(token)
        if value is None:
            return None
        total += value
    return total


def parse_fraction(value: Any) -> Optional[float]:
    """
    Convert a quantity value into a float.

    Accepts numbers, "1/2", "1 1/2", "1.5", "½", "1½" and ranges like "2-3"
    (lower bound). Returns None for anything else.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        quantity = float(value)
        return quantity if math.isfinite(quantity) else None
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    range_match = RANGE_PATTERN.match(text)
    if range_match and range_match.end() == len(text):
        low = _sum_tokens(range_match.group("low"))
        if low is not None:
            return _resolve_range(low, _sum_tokens(range_match.group("high")))[0]

    return _sum_tokens(text)


def format_quantity(quantity: Optional[float]) -> str:
    """Render a quantity without a trailing ".0" ("2", "0.5")."""
    if quantity is None:
        return ""
    return f"{quantity:g}"


def _match_quantity(text: str) -> tuple[Optional[float], Optional[float], str]:
    """Return (quantity, range upper bound, remaining text)."""
    range_match = RANGE_PATTERN.match(text)
    if range_match:
        low = _sum_tokens(range_match.group("low"))
        high = _sum_tokens(range_match.group("high"))
        if low is not None:
            quantity, upper = _resolve_range(low, high)
            return quantity, upper, text[range_match.end():].strip()

    qty_match = QUANTITY_PATTERN.match(text)
    if qty_match:
        quantity = _sum_tokens(qty_match.group("qty"))
        if quantity is not None:
            return quantity, None, text[qty_match.end():].strip()

    return None, None, text


def _clean_line(text: str) -> str:
    for artifact in LIST_ARTIFACTS:
        text = text.replace(artifact, "")
    text = PRICE_PATTERN.sub("", text)
    return re.sub(r"\s+", " ", text).strip()


def parse_ingredient_string(text: str) -> ParsedIngredient:
    """
    Parse a free-text ingredient line.

    Example: "2 cups all-purpose flour, sifted" ->
    ParsedIngredient(name="all-purpose flour", quantity=2.0, unit="cups", notes="sifted")
    """
    original = _clean_line(text or "")
    remaining = original

    quantity, upper, remaining = _match_quantity(remaining)

    notes = []
    paren_match = PARENTHETICAL_PATTERN.search(remaining)
    if paren_match:
        paren_note = paren_match.group(1).strip()
        if paren_note:
            notes.append(paren_note)
        remaining = (remaining[:paren_match.start()] + " " + remaining[paren_match.end():]).strip()

    unit = None
    if quantity is not None:
        unit_match = UNIT_PATTERN.match(remaining)
        if unit_match:
            unit = unit_match.group("unit").lower()
            remaining = remaining[unit_match.end():].strip()
            # "1 pinch of salt"
            remaining = re.sub(r"^of\s+", "", remaining, flags=re.IGNORECASE)

    if "," in remaining:
        remaining, _, comma_note = remaining.partition(",")
        comma_note = comma_note.strip().strip(",").strip()
        if comma_note:
            notes.append(comma_note)

    if upper is not None:
        notes.append(f"up to {format_quantity(upper)}")

    name = re.sub(r"\s+", " ", remaining).strip().strip(",").strip()
    if not name:
        name = original

    return ParsedIngredient(
        name=name,
        quantity=quantity,
        unit=unit,
        notes=", ".join(notes) if notes else None,
    )
