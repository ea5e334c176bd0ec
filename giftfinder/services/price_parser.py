"""
Price Range Parser — turns free-form price strings into a PriceRange.

Handles strings like "£50 - £75", "MX$1,200–MX$1,500", "around $40" or
"CHF 80 to 120". The parser never raises: it returns either a PriceRange
or a ParseFailure tag, and the orchestrator decides what to substitute.

Supported currency glyphs (kept as a fixed table on purpose):
$, £, €, ¥, ₩, ₹, ₺, ฿, kr, zł, CHF, C$, A$, MX$, R$
plus the symbol and ISO code of the caller's currency.
"""

import logging
import random
import re
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from giftfinder.agents.state import ParseFailure, PriceRange
from giftfinder.services.currency import currency_symbol

logger = logging.getLogger(__name__)

# --- Constants ---
KNOWN_CURRENCY_GLYPHS: tuple[str, ...] = (
    "MX$", "C$", "A$", "R$", "CHF", "zł", "kr",
    "$", "£", "€", "¥", "₩", "₹", "₺", "฿",
)

SINGLE_VALUE_LOW = Decimal("0.9")
SINGLE_VALUE_HIGH = Decimal("1.1")

# Placeholder ranges are drawn from (0.2·budget, budget)
PLACEHOLDER_BASE_FLOOR = 0.2
PLACEHOLDER_SPREAD_LOW = Decimal("0.8")
PLACEHOLDER_SPREAD_HIGH = Decimal("1.2")

_RANGE_SEPARATOR = re.compile(r"\s*(?:-|–|—|\bto\b)\s*", re.IGNORECASE)
_NUMBER = re.compile(r"\d+(?:\.\d+)?")
_THOUSANDS_SEPARATOR = re.compile(r"(?<=\d),(?=\d{3}\b)")


def _glyph_pattern(currency: str) -> re.Pattern[str]:
    """Build an alternation of every glyph to strip, longest first."""
    glyphs = set(KNOWN_CURRENCY_GLYPHS)
    glyphs.add(currency_symbol(currency))
    if currency:
        glyphs.add(currency.strip().upper())
    ordered = sorted((g for g in glyphs if g), key=len, reverse=True)
    return re.compile("|".join(re.escape(g) for g in ordered), re.IGNORECASE)


def strip_currency(text: str, currency: str = "USD") -> str:
    """Remove currency glyphs/prefixes and thousands separators."""
    stripped = _glyph_pattern(currency).sub(" ", text)
    return _THOUSANDS_SEPARATOR.sub("", stripped)


def parse_price_range(
    text: Optional[str],
    currency: str = "USD",
) -> Union[PriceRange, ParseFailure]:
    """
    Parse a price string into a PriceRange.

    Two numbers → (min, max), swapped if written high-to-low.
    One number → (0.9·v, 1.1·v).
    No numbers → ParseFailure.

    Args:
        text: The free-form price text, possibly None.
        currency: The caller's currency code (its symbol is stripped too).

    Returns:
        A PriceRange, or a ParseFailure describing why parsing failed.
    """
    if not text or not text.strip():
        return ParseFailure(text=text, reason="empty price text")

    cleaned = strip_currency(text, currency)

    values: list[Decimal] = []
    for part in _RANGE_SEPARATOR.split(cleaned):
        match = _NUMBER.search(part)
        if not match:
            continue
        try:
            values.append(Decimal(match.group(0)))
        except InvalidOperation:
            continue
        if len(values) == 2:
            break

    if len(values) == 2:
        low, high = sorted(values)
        return PriceRange(min_amount=low, max_amount=high)

    if len(values) == 1:
        value = values[0]
        return PriceRange(
            min_amount=value * SINGLE_VALUE_LOW,
            max_amount=value * SINGLE_VALUE_HIGH,
        )

    return ParseFailure(text=text, reason="no numeric value found")


def placeholder_range(budget: Decimal, rng: random.Random) -> PriceRange:
    """
    Randomized substitute range used when a price hint cannot be parsed.

    Picks a base price uniformly from [0.2·budget, budget] and spreads it
    to (0.8·base, 1.2·base). The upper end may exceed the budget; the
    orchestrator's budget clamp takes care of that.
    """
    fraction = Decimal(str(round(rng.uniform(PLACEHOLDER_BASE_FLOOR, 1.0), 4)))
    base = Decimal(budget) * fraction
    return PriceRange(
        min_amount=(base * PLACEHOLDER_SPREAD_LOW).quantize(Decimal("0.01")),
        max_amount=(base * PLACEHOLDER_SPREAD_HIGH).quantize(Decimal("0.01")),
    )
