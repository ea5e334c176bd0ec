"""
Budget Filter — final guard that no recommendation exceeds the budget.

Re-parses each recommendation's formatted price and drops it when the
upper bound is over budget. A price that cannot be parsed is kept: the
range was produced by enrichment, which already clamped it.
"""

import logging
from decimal import Decimal

from giftfinder.agents.state import GiftRecommendation, ParseFailure
from giftfinder.services.price_parser import parse_price_range

logger = logging.getLogger(__name__)


def filter_by_budget(
    recommendations: list[GiftRecommendation],
    budget: Decimal,
    currency: str,
) -> tuple[list[GiftRecommendation], int]:
    """
    Drop recommendations whose price range ends above the budget.

    Args:
        recommendations: Enriched recommendations, in display order.
        budget: The recipient's budget.
        currency: Currency the prices are formatted in.

    Returns:
        (kept recommendations in original order, number dropped)
    """
    kept: list[GiftRecommendation] = []
    dropped = 0

    for rec in recommendations:
        parsed = parse_price_range(rec.price, currency)
        if isinstance(parsed, ParseFailure):
            logger.warning(
                "Could not re-parse price %r for '%s', keeping it",
                rec.price, rec.name,
            )
            kept.append(rec)
            continue
        if parsed.max_amount > budget:
            logger.info(
                "Dropping '%s': %s exceeds budget %s %s",
                rec.name, rec.price, budget, currency,
            )
            dropped += 1
            continue
        kept.append(rec)

    return kept, dropped
