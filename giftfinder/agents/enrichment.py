"""
Candidate Enrichment — turns GiftCandidates into GiftRecommendations.

For each candidate, in this order:
a. Price: catalog price range if the name matches the catalog, else the
   parsed price hint, else a randomized placeholder. Clamped to the budget
   and rounded to whole units.
b. Image: catalog image, else the template's curated image, else the
   ImageResolver (which never fails).
c. Shops: ShopLinkBuilder with the final range and the shop search term.
d. Match percentage clamped to [60, 95].

Candidates are enriched concurrently through a bounded pool; results come
back in input order. A candidate whose enrichment raises is dropped and
logged. Cancellation always propagates.
"""

import asyncio
import logging
import random
from typing import Optional

from giftfinder.agents.state import (
    MATCH_PERCENTAGE_CEILING,
    MATCH_PERCENTAGE_FLOOR,
    GiftCandidate,
    GiftRecommendation,
    ParseFailure,
    PriceRange,
    ProductRecord,
    RecipientProfile,
)
from giftfinder.core.config import MAX_CONCURRENT_ENRICHMENTS
from giftfinder.services.currency import format_price, format_price_range
from giftfinder.services.image_resolver import ImageResolver
from giftfinder.services.price_parser import parse_price_range, placeholder_range
from giftfinder.services.product_catalog import ProductCatalog, default_catalog
from giftfinder.services.shop_links import ShopLinkBuilder

logger = logging.getLogger(__name__)


def clamp_match_percentage(value: int) -> int:
    return max(MATCH_PERCENTAGE_FLOOR, min(MATCH_PERCENTAGE_CEILING, int(value)))


class CandidateEnricher:
    """Enriches candidates for one profile at a time; holds no per-request state."""

    def __init__(
        self,
        image_resolver: ImageResolver,
        shop_builder: ShopLinkBuilder,
        catalog: ProductCatalog = default_catalog,
        rng: Optional[random.Random] = None,
        max_concurrency: int = MAX_CONCURRENT_ENRICHMENTS,
    ) -> None:
        self.image_resolver = image_resolver
        self.shop_builder = shop_builder
        self.catalog = catalog
        self._rng = rng if rng is not None else random.Random()
        self.max_concurrency = max(1, max_concurrency)

    # ------------------------------------------------------------------
    # Price
    # ------------------------------------------------------------------

    def resolve_price_range(
        self,
        candidate: GiftCandidate,
        profile: RecipientProfile,
        record: Optional[ProductRecord] = None,
    ) -> PriceRange:
        """
        Final price range for a candidate, within budget and in whole units.

        Catalog prices win over the hint. An unparsable hint is replaced by a
        placeholder range drawn relative to the budget.
        """
        if record is not None:
            price_range = record.price_range
        else:
            parsed = parse_price_range(candidate.price_hint, profile.currency)
            if isinstance(parsed, ParseFailure):
                logger.info(
                    "Unparsable price hint for '%s' (%s: %r), using placeholder",
                    candidate.name, parsed.reason, parsed.text,
                )
                price_range = placeholder_range(profile.budget, self._rng)
            else:
                price_range = parsed

        return price_range.clamp_to_budget(profile.budget).whole_units()

    def apply_catalog_hint(
        self,
        candidate: GiftCandidate,
        profile: RecipientProfile,
    ) -> GiftCandidate:
        """Candidate with its price hint replaced by the catalog midpoint on a catalog hit."""
        record = self.catalog.match(candidate.name)
        if record is None:
            return candidate
        return candidate.model_copy(
            update={"price_hint": format_price(record.price_range.midpoint, profile.currency)},
        )

    # ------------------------------------------------------------------
    # Single candidate
    # ------------------------------------------------------------------

    async def enrich(
        self,
        candidate: GiftCandidate,
        profile: RecipientProfile,
    ) -> GiftRecommendation:
        record = self.catalog.match(candidate.name)
        if record is not None:
            # Catalog price range and image replace the generated hint
            logger.debug("Catalog record '%s' used for '%s'", record.canonical_key, candidate.name)

        price_range = self.resolve_price_range(candidate, profile, record)

        if record is not None:
            image = record.image
        elif candidate.image_url:
            image = candidate.image_url
        else:
            image = await self.image_resolver.resolve(
                candidate.image_search_term or candidate.name,
                candidate.description,
            )

        shops = self.shop_builder.build(
            price_range,
            profile.currency,
            candidate.shop_search_term or candidate.name,
            profile.country,
            record=record,
        )

        return GiftRecommendation(
            name=candidate.name,
            description=candidate.description,
            price=format_price_range(price_range, profile.currency),
            match_percentage=clamp_match_percentage(candidate.match_percentage),
            matching_traits=list(candidate.matching_traits),
            image=image,
            shops=shops,
        )

    # ------------------------------------------------------------------
    # Bounded pool
    # ------------------------------------------------------------------

    async def enrich_all(
        self,
        candidates: list[GiftCandidate],
        profile: RecipientProfile,
    ) -> list[GiftRecommendation]:
        """
        Enrich every candidate with at most ``max_concurrency`` in flight.

        Returns:
            Recommendations in the same order as ``candidates``, minus any
            candidate whose enrichment raised.
        """
        if not candidates:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _enrich_single(candidate: GiftCandidate) -> GiftRecommendation:
            async with semaphore:
                return await self.enrich(candidate, profile)

        results = await asyncio.gather(
            *[_enrich_single(c) for c in candidates],
            return_exceptions=True,
        )

        recommendations: list[GiftRecommendation] = []
        for candidate, result in zip(candidates, results):
            if isinstance(result, Exception):
                logger.error(
                    "Enrichment failed for '%s', dropping it: %s",
                    candidate.name, result,
                )
                continue
            if isinstance(result, BaseException):
                # CancelledError and friends
                raise result
            recommendations.append(result)

        logger.info(
            "Enriched %d/%d candidates for %s",
            len(recommendations), len(candidates), profile.name,
        )
        return recommendations
