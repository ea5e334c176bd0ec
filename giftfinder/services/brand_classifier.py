"""
Brand Classifier — detects luxury and premium brands in a product name.

Used by the shop link builder to decide whether to lead with an official
brand store and which tier of department stores to suggest. The table is
ordered: the first brand found in the name wins, so multi-word and more
specific names come before brands they could be confused with.
"""

import logging
import re
from typing import Literal, NamedTuple

from giftfinder.agents.state import BrandInfo

logger = logging.getLogger(__name__)


class _BrandEntry(NamedTuple):
    brand: str
    aliases: tuple[str, ...]
    tier: Literal["premium", "luxury"]
    has_official_store: bool


BRAND_TABLE: tuple[_BrandEntry, ...] = (
    # --- Luxury ---
    _BrandEntry("Louis Vuitton", ("louis vuitton",), "luxury", True),
    _BrandEntry("Bottega Veneta", ("bottega veneta",), "luxury", True),
    _BrandEntry("Saint Laurent", ("saint laurent", "ysl"), "luxury", True),
    _BrandEntry("Tiffany & Co.", ("tiffany & co", "tiffany"), "luxury", True),
    _BrandEntry("Gucci", ("gucci",), "luxury", True),
    _BrandEntry("Chanel", ("chanel",), "luxury", False),
    _BrandEntry("Hermès", ("hermès", "hermes"), "luxury", True),
    _BrandEntry("Prada", ("prada",), "luxury", True),
    _BrandEntry("Dior", ("dior",), "luxury", True),
    _BrandEntry("Burberry", ("burberry",), "luxury", True),
    _BrandEntry("Cartier", ("cartier",), "luxury", True),
    _BrandEntry("Rolex", ("rolex",), "luxury", False),
    _BrandEntry("Omega", ("omega",), "luxury", True),
    _BrandEntry("Versace", ("versace",), "luxury", True),
    _BrandEntry("Balenciaga", ("balenciaga",), "luxury", True),
    _BrandEntry("Fendi", ("fendi",), "luxury", True),
    _BrandEntry("Montblanc", ("montblanc", "mont blanc"), "luxury", True),
    # --- Premium ---
    _BrandEntry("Bang & Olufsen", ("bang & olufsen", "bang and olufsen"), "premium", True),
    _BrandEntry("Ralph Lauren", ("ralph lauren",), "premium", True),
    _BrandEntry("Michael Kors", ("michael kors",), "premium", True),
    _BrandEntry("Kate Spade", ("kate spade",), "premium", True),
    _BrandEntry("Hugo Boss", ("hugo boss",), "premium", True),
    _BrandEntry("Jo Malone", ("jo malone",), "premium", True),
    _BrandEntry("Le Creuset", ("le creuset",), "premium", True),
    _BrandEntry("Apple", ("apple",), "premium", True),
    _BrandEntry("Dyson", ("dyson",), "premium", True),
    _BrandEntry("Bose", ("bose",), "premium", True),
    _BrandEntry("Lululemon", ("lululemon",), "premium", True),
    _BrandEntry("Pandora", ("pandora",), "premium", True),
    _BrandEntry("Coach", ("coach",), "premium", True),
    _BrandEntry("Diptyque", ("diptyque",), "premium", False),
    _BrandEntry("Tommy Hilfiger", ("tommy hilfiger",), "premium", False),
)

UNBRANDED = BrandInfo(brand=None, tier="none", has_official_store=False)

# Whole-word match; an alias followed by "-<digit>" is a compound term, e.g. "Omega-3"
_ALIAS_PATTERNS: tuple[tuple[_BrandEntry, re.Pattern[str]], ...] = tuple(
    (
        entry,
        re.compile(
            r"(?<!\w)(?:" + "|".join(re.escape(a) for a in entry.aliases) + r")(?!\w)(?!-\d)",
            re.IGNORECASE,
        ),
    )
    for entry in BRAND_TABLE
)


def classify_brand(raw_name: str) -> BrandInfo:
    """
    Classify the brand tier of a product name.

    Args:
        raw_name: Product name, e.g. "Gucci GG Marmont Mini Bag".

    Returns:
        BrandInfo for the first brand in table order found in the name,
        or an unbranded BrandInfo.
    """
    if not raw_name:
        return UNBRANDED

    for entry, pattern in _ALIAS_PATTERNS:
        if pattern.search(raw_name):
            logger.debug(
                "Brand '%s' (%s) detected in '%s'", entry.brand, entry.tier, raw_name,
            )
            return BrandInfo(
                brand=entry.brand,
                tier=entry.tier,
                has_official_store=entry.has_official_store,
            )

    return UNBRANDED
