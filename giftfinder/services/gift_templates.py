"""
Gift Templates — deterministic fallback candidates when generation is unavailable.

Templates are keyed by personality trait or interest. Selection is fully
deterministic (no randomness), so the same profile always yields the same
fallback list:
1. Trait-matched, then interest-matched gifts (each iterated in sorted order,
   case-insensitive), skipping anything whose base price exceeds the budget,
   up to 6
2. Generic gifts, in table order, until there are 5
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, NamedTuple, Sequence

from giftfinder.agents.state import MATCH_PERCENTAGE_CEILING, GiftCandidate, RecipientProfile
from giftfinder.core.errors import ConfigurationError
from giftfinder.services.currency import currency_symbol, format_amount

logger = logging.getLogger(__name__)

# --- Constants ---
MAX_MATCHED_TEMPLATES = 6
MIN_TEMPLATE_CANDIDATES = 5
MATCHED_BASE_PERCENTAGE = 75
MATCHED_PER_TRAIT_BONUS = 5
GENERIC_MATCH_PERCENTAGE = 65
PRICE_HINT_LOW = Decimal("0.8")
PRICE_HINT_HIGH = Decimal("1.2")

_UNSPLASH = "https://images.unsplash.com/photo-{}?ixlib=rb-4.0.3&auto=format&fit=crop&w=400&h=250"


class TemplateGift(NamedTuple):
    name: str
    description: str
    base_price: Decimal
    image: str
    matching_traits: tuple[str, ...]


def _gift(name: str, description: str, base_price: int, photo: str, *traits: str) -> TemplateGift:
    return TemplateGift(name, description, Decimal(base_price), _UNSPLASH.format(photo), traits)


# ======================================================================
# Template data
# ======================================================================

GIFT_TEMPLATES: dict[str, tuple[TemplateGift, ...]] = {
    "Creative": (
        _gift(
            "Professional Watercolor Paint Set",
            "A premium 36-color watercolor set with vibrant, blendable colors and "
            "professional-grade brushes for unleashing creativity.",
            45, "1513475382585-d06e58bcb0e0", "Creative", "Artistic",
        ),
        _gift(
            "Digital Drawing Tablet",
            "A responsive graphics tablet that brings digital art to life, ideal for "
            "creative minds who love technology.",
            89, "1558618666-fcd25c85cd64", "Creative", "Tech-savvy",
        ),
    ),
    "Sporty": (
        _gift(
            "Wireless Fitness Tracker",
            "Fitness tracker with heart rate monitoring, GPS and workout tracking to "
            "fuel their athletic passion.",
            95, "1544117519-31a4b719223d", "Sporty", "Tech-savvy",
        ),
        _gift(
            "Premium Yoga Mat Set",
            "Eco-friendly yoga mat with alignment guides and accessories for fitness "
            "enthusiasts who value quality.",
            55, "1506905925346-21bda4d32df4", "Sporty", "Thoughtful",
        ),
    ),
    "Tech-savvy": (
        _gift(
            "Smart Home Assistant Hub",
            "Voice-controlled smart hub that connects all their devices and makes "
            "everyday life more convenient.",
            79, "1507003211169-0a1dd7228f2d", "Tech-savvy", "Innovative",
        ),
        _gift(
            "Mechanical Gaming Keyboard",
            "Mechanical keyboard with customizable RGB lighting, made for tech "
            "enthusiasts and gamers.",
            125, "1541140532154-b024d705b90a", "Tech-savvy", "Gaming",
        ),
    ),
    "Outdoorsy": (
        _gift(
            "Portable Camping Chair",
            "Lightweight, durable camping chair that packs small but gives real "
            "comfort on outdoor adventures.",
            65, "1487730116645-74489c95b41b", "Outdoorsy", "Adventurous",
        ),
        _gift(
            "Professional Hiking Backpack",
            "Ergonomic hiking backpack with multiple compartments and a hydration "
            "system, built for serious hikers.",
            145, "1516892366775-8d24e1b9d8b9", "Outdoorsy", "Adventurous",
        ),
    ),
    "Artistic": (
        _gift(
            "Sketching Pencil Set",
            "Artist pencil set in a range of hardness levels for detailed drawings "
            "and artistic expression.",
            35, "1513475382585-d06e58bcb0e0", "Artistic", "Creative",
        ),
        _gift(
            "Acrylic Paint Starter Kit",
            "Complete acrylic painting kit with canvas, brushes and vibrant colors "
            "for bringing artistic visions to life.",
            58, "1460661419201-fd4cecdf8a8b", "Artistic", "Creative",
        ),
    ),
    "Gaming": (
        _gift(
            "Wireless Gaming Headset",
            "Low-latency wireless headset with surround sound and a clear mic for "
            "long gaming sessions.",
            99, "1599669454699-248893623440", "Gaming", "Tech-savvy",
        ),
    ),
    "Reading": (
        _gift(
            "Book Lover's Subscription Box",
            "A monthly box with a hand-picked novel and cozy reading extras.",
            40, "1481627834876-b7833e8f5570", "Reading", "Thoughtful",
        ),
    ),
    "Cooking": (
        _gift(
            "Artisan Spice Collection",
            "A set of small-batch spices and blends from around the world for "
            "adventurous home cooks.",
            48, "1596040033229-a9821ebd058d", "Cooking", "Adventurous",
        ),
    ),
    "Music": (
        _gift(
            "Vinyl Record Subscription",
            "Curated vinyl records delivered monthly, matched to their taste in music.",
            60, "1493225457124-a3eb161ffa5f", "Music",
        ),
    ),
    "Photography": (
        _gift(
            "Instant Film Camera",
            "A fun instant camera that prints photos on the spot for capturing "
            "everyday moments.",
            85, "1526170375885-4d8ecf77b99f", "Photography", "Creative",
        ),
    ),
    "Travel": (
        _gift(
            "Leather Travel Organizer",
            "A slim organizer for passports, cards and tickets that keeps every "
            "trip tidy.",
            42, "1553062407-98eeb64c6a62", "Travel", "Adventurous",
        ),
    ),
}

GENERIC_GIFTS: tuple[TemplateGift, ...] = (
    _gift(
        "Premium Coffee Subscription",
        "Monthly delivery of freshly roasted, ethically sourced coffee beans from "
        "around the world.",
        25, "1447933601403-0c6688de566e", "Thoughtful",
    ),
    _gift(
        "Scented Candle Gift Set",
        "A trio of hand-poured soy candles in calming, seasonal scents.",
        30, "1602974508525-dd80dc41b4be", "Thoughtful",
    ),
    _gift(
        "Artisanal Chocolate Gift Box",
        "Curated selection of handcrafted chocolates with unique flavors and "
        "elegant presentation.",
        35, "1511910849309-0dffb8785146", "Thoughtful",
    ),
    _gift(
        "Indoor Herb Garden Kit",
        "Everything needed to grow fresh basil, mint and parsley on a windowsill.",
        28, "1416879595882-3373a0480b5b", "Thoughtful",
    ),
    _gift(
        "Bluetooth Wireless Headphones",
        "Wireless headphones with noise cancellation and rich sound.",
        89, "1505740420928-5e560c06d30e", "Tech-savvy",
    ),
)


# ======================================================================
# Selection
# ======================================================================

def _price_hint(base_price: Decimal, currency: str) -> str:
    symbol = currency_symbol(currency)
    low = (base_price * PRICE_HINT_LOW).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    high = (base_price * PRICE_HINT_HIGH).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return f"{symbol}{format_amount(low)} - {symbol}{format_amount(high)}"


def _to_candidate(
    gift: TemplateGift,
    profile: RecipientProfile,
    match_percentage: int,
    matching: list[str],
) -> GiftCandidate:
    description = gift.description
    if profile.notes:
        description += (
            f" This would be especially meaningful for {profile.name} "
            f"who {profile.notes.strip().rstrip('.').lower()}."
        )
    return GiftCandidate(
        name=gift.name,
        description=description,
        price_hint=_price_hint(gift.base_price, profile.currency),
        match_percentage=match_percentage,
        matching_traits=matching,
        image_url=gift.image,
        source="template",
    )


def select_template_candidates(
    profile: RecipientProfile,
    templates: Mapping[str, Sequence[TemplateGift]] = GIFT_TEMPLATES,
    generic: Sequence[TemplateGift] = GENERIC_GIFTS,
) -> list[GiftCandidate]:
    """
    Pick fallback gift candidates for a profile.

    Args:
        profile: The recipient profile.
        templates: Trait/interest keyed template table.
        generic: Gifts used to fill up to 5 candidates.

    Returns:
        Up to 6 matched candidates, topped up with generic ones to 5 where
        the budget allows. May be empty if nothing fits the budget.

    Raises:
        ConfigurationError: Both tables are empty.
    """
    if not templates and not generic:
        raise ConfigurationError("Gift template table is empty")

    profile_terms = {t.lower(): t for t in (*profile.traits, *profile.interests)}
    by_key = {key.lower(): gifts for key, gifts in templates.items()}
    used: set[str] = set()
    candidates: list[GiftCandidate] = []

    for term in [*profile.sorted_traits(), *profile.sorted_interests()]:
        for gift in by_key.get(term.lower(), ()):
            if len(candidates) >= MAX_MATCHED_TEMPLATES:
                break
            if gift.base_price > profile.budget or gift.name in used:
                continue
            used.add(gift.name)
            matching = [
                profile_terms[t.lower()]
                for t in gift.matching_traits
                if t.lower() in profile_terms
            ]
            percentage = min(
                MATCH_PERCENTAGE_CEILING,
                MATCHED_BASE_PERCENTAGE + MATCHED_PER_TRAIT_BONUS * len(matching),
            )
            candidates.append(_to_candidate(gift, profile, percentage, matching))

    for gift in generic:
        if len(candidates) >= MIN_TEMPLATE_CANDIDATES:
            break
        if gift.base_price > profile.budget or gift.name in used:
            continue
        used.add(gift.name)
        matching = [
            profile_terms[t.lower()]
            for t in gift.matching_traits
            if t.lower() in profile_terms
        ]
        candidates.append(_to_candidate(gift, profile, GENERIC_MATCH_PERCENTAGE, matching))

    logger.info(
        "Selected %d template candidates for %s: %s",
        len(candidates), profile.name, [c.name for c in candidates],
    )
    return candidates
