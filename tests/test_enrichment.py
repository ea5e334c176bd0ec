"""
Tests for per-candidate enrichment and the bounded enrichment pool.

Verifies:
- Catalog price range and image override generative guesses
- Hint parsing, placeholder substitution and budget clamping
- Image precedence: catalog > template image > ImageResolver
- Shop search term is what the shop builder receives
- Match percentage is always clamped to [60, 95]
- enrich_all preserves input order, bounds concurrency, drops failures
  and propagates cancellation

Run with: pytest tests/test_enrichment.py -v
"""

import asyncio
import random
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from giftfinder.agents.enrichment import CandidateEnricher, clamp_match_percentage
from giftfinder.agents.state import GiftCandidate, RecipientProfile, ShopListing
from giftfinder.services.image_resolver import ImageResolver
from giftfinder.services.price_parser import parse_price_range
from giftfinder.services.product_catalog import default_catalog
from giftfinder.services.shop_links import ShopLinkBuilder

RESOLVED_IMAGE = "https://img.example.com/resolved.jpg"


# ======================================================================
# Sample data factories
# ======================================================================

def _sample_profile(**overrides) -> RecipientProfile:
    data = {
        "name": "Sam",
        "traits": frozenset({"Tech-savvy"}),
        "interests": frozenset({"Gaming"}),
        "budget": Decimal("100"),
        "currency": "USD",
        "country": "United States",
    }
    data.update(overrides)
    return RecipientProfile(**data)


def _make_candidate(name: str = "Handmade Ceramic Vase", **overrides) -> GiftCandidate:
    data = {
        "name": name,
        "description": "A lovely handmade piece.",
        "price_hint": "$30 - $45",
        "match_percentage": 80,
        "matching_traits": [],
    }
    data.update(overrides)
    return GiftCandidate(**data)


def _mock_resolver(side_effect=None) -> MagicMock:
    resolver = MagicMock(spec=ImageResolver)
    if side_effect is not None:
        resolver.resolve = AsyncMock(side_effect=side_effect)
    else:
        resolver.resolve = AsyncMock(return_value=RESOLVED_IMAGE)
    return resolver


def _make_enricher(resolver=None, builder=None, max_concurrency: int = 4, seed: int = 11):
    rng = random.Random(seed)
    return CandidateEnricher(
        image_resolver=resolver or _mock_resolver(),
        shop_builder=builder or ShopLinkBuilder(rng=rng),
        catalog=default_catalog,
        rng=rng,
        max_concurrency=max_concurrency,
    )


# ======================================================================
# 1. Price resolution
# ======================================================================

class TestPriceResolution:

    async def test_catalog_price_overrides_hint(self):
        enricher = _make_enricher()
        profile = _sample_profile(budget=Decimal("500"), currency="GBP", country="United Kingdom")
        rec = await enricher.enrich(
            _make_candidate("Nintendo Switch OLED", price_hint="£999"), profile,
        )
        assert rec.price == "£300 - £350"

    @pytest.mark.parametrize("hint", [None, "£5", "£999 - £1,200", "priceless"])
    async def test_catalog_price_independent_of_hint(self, hint):
        profile = _sample_profile(budget=Decimal("500"), currency="GBP", country="United Kingdom")
        rec = await _make_enricher().enrich(
            _make_candidate("Nintendo Switch OLED", price_hint=hint), profile,
        )
        assert rec.price == "£300 - £350"

    async def test_catalog_price_clamped_to_budget(self):
        enricher = _make_enricher()
        profile = _sample_profile(budget=Decimal("320"))
        rec = await enricher.enrich(_make_candidate("Nintendo Switch"), profile)
        assert rec.price == "$288 - $320"

    async def test_hint_parsed(self):
        rec = await _make_enricher().enrich(_make_candidate(), _sample_profile())
        assert rec.price == "$30 - $45"

    async def test_hint_over_budget_clamped(self):
        profile = _sample_profile(budget=Decimal("50"))
        rec = await _make_enricher().enrich(
            _make_candidate(price_hint="$40 - $80"), profile,
        )
        assert rec.price == "$40 - $50"

    async def test_fractional_hint_rounded_to_whole_units(self):
        rec = await _make_enricher().enrich(
            _make_candidate(price_hint="$19.50 - $24.99"), _sample_profile(),
        )
        assert rec.price == "$20 - $24"

    @pytest.mark.parametrize("hint", [None, "", "priceless", "varies by size"])
    async def test_unparsable_hint_uses_placeholder_within_budget(self, hint):
        profile = _sample_profile(budget=Decimal("100"))
        for seed in range(10):
            rec = await _make_enricher(seed=seed).enrich(
                _make_candidate(price_hint=hint), profile,
            )
            parsed = parse_price_range(rec.price, "USD")
            assert parsed.max_amount <= Decimal("100")
            assert parsed.min_amount >= Decimal("16")

    def test_resolve_price_range_directly(self):
        enricher = _make_enricher()
        record = default_catalog.get("kindle paperwhite")
        # Catalog range 100-140 against a budget of 100
        price_range = enricher.resolve_price_range(_make_candidate(), _sample_profile(), record)
        assert price_range.min_amount == Decimal("90")
        assert price_range.max_amount == Decimal("100")


class TestCatalogHint:

    def test_catalog_hit_uses_midpoint(self):
        profile = _sample_profile(currency="GBP", country="United Kingdom")
        candidate = _make_enricher().apply_catalog_hint(
            _make_candidate("Nintendo Switch OLED", price_hint="£999"), profile,
        )
        assert candidate.price_hint == "£325"
        assert candidate.name == "Nintendo Switch OLED"

    def test_catalog_miss_unchanged(self):
        candidate = _make_candidate()
        assert _make_enricher().apply_catalog_hint(candidate, _sample_profile()) is candidate


# ======================================================================
# 2. Image and shops
# ======================================================================

class TestImageAndShops:

    async def test_catalog_image_wins(self):
        resolver = _mock_resolver()
        rec = await _make_enricher(resolver).enrich(
            _make_candidate("Kindle Paperwhite"), _sample_profile(budget=Decimal("200")),
        )
        assert rec.image == default_catalog.get("kindle paperwhite").image
        resolver.resolve.assert_not_called()

    async def test_template_image_used(self):
        resolver = _mock_resolver()
        candidate = _make_candidate(
            image_url="https://images.unsplash.com/photo-curated", source="template",
        )
        rec = await _make_enricher(resolver).enrich(candidate, _sample_profile())
        assert rec.image == "https://images.unsplash.com/photo-curated"
        resolver.resolve.assert_not_called()

    async def test_resolver_used_otherwise(self):
        resolver = _mock_resolver()
        candidate = _make_candidate(image_search_term="ceramic vase")
        rec = await _make_enricher(resolver).enrich(candidate, _sample_profile())
        assert rec.image == RESOLVED_IMAGE
        resolver.resolve.assert_awaited_once_with("ceramic vase", "A lovely handmade piece.")

    async def test_shop_search_term_passed_to_builder(self):
        builder = MagicMock(spec=ShopLinkBuilder)
        builder.build = MagicMock(return_value=[
            ShopListing(name="Etsy", price="$35", in_stock=True, url="https://www.etsy.com/search?q=vase"),
        ])
        candidate = _make_candidate(shop_search_term="handmade stoneware vase")
        profile = _sample_profile(country="Canada")
        rec = await _make_enricher(builder=builder).enrich(candidate, profile)

        args, kwargs = builder.build.call_args
        price_range, currency, product_name, country = args
        assert product_name == "handmade stoneware vase"
        assert currency == "USD"
        assert country == "Canada"
        assert price_range.max_amount == Decimal("45")
        assert kwargs["record"] is None
        assert rec.shops[0].name == "Etsy"

    async def test_shops_between_one_and_four(self):
        rec = await _make_enricher().enrich(_make_candidate(), _sample_profile())
        assert 1 <= len(rec.shops) <= 4


# ======================================================================
# 3. Match percentage clamp
# ======================================================================

class TestMatchPercentage:

    @pytest.mark.parametrize("raw,expected", [
        (-50, 60), (0, 60), (59, 60), (60, 60), (75, 75), (95, 95), (96, 95), (1000, 95),
    ])
    def test_clamp(self, raw, expected):
        assert clamp_match_percentage(raw) == expected

    @pytest.mark.parametrize("raw", [-10, 30, 140])
    async def test_enriched_recommendation_is_clamped(self, raw):
        rec = await _make_enricher().enrich(
            _make_candidate(match_percentage=raw), _sample_profile(),
        )
        assert 60 <= rec.match_percentage <= 95


# ======================================================================
# 4. Bounded pool
# ======================================================================

class TestEnrichAll:

    async def test_empty(self):
        assert await _make_enricher().enrich_all([], _sample_profile()) == []

    async def test_order_preserved_when_first_is_slowest(self):
        delays = {"Gift A": 0.05, "Gift B": 0.02, "Gift C": 0.0, "Gift D": 0.01}

        async def _resolve(name, description=""):
            await asyncio.sleep(delays[name])
            return f"https://img.example.com/{name}.jpg"

        enricher = _make_enricher(_mock_resolver(side_effect=_resolve))
        candidates = [_make_candidate(name) for name in delays]
        recs = await enricher.enrich_all(candidates, _sample_profile())

        assert [r.name for r in recs] == list(delays)
        assert [r.image for r in recs] == [f"https://img.example.com/{n}.jpg" for n in delays]

    async def test_concurrency_bounded(self):
        in_flight = 0
        peak = 0

        async def _resolve(name, description=""):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return RESOLVED_IMAGE

        enricher = _make_enricher(_mock_resolver(side_effect=_resolve), max_concurrency=2)
        candidates = [_make_candidate(f"Gift {i}") for i in range(6)]
        recs = await enricher.enrich_all(candidates, _sample_profile())

        assert len(recs) == 6
        assert peak == 2

    async def test_failed_candidate_dropped(self):
        async def _resolve(name, description=""):
            if name == "Gift B":
                raise RuntimeError("boom")
            return RESOLVED_IMAGE

        enricher = _make_enricher(_mock_resolver(side_effect=_resolve))
        candidates = [_make_candidate(n) for n in ("Gift A", "Gift B", "Gift C")]
        recs = await enricher.enrich_all(candidates, _sample_profile())
        assert [r.name for r in recs] == ["Gift A", "Gift C"]

    async def test_cancellation_propagates(self):
        started = asyncio.Event()

        async def _resolve(name, description=""):
            started.set()
            await asyncio.sleep(10)
            return RESOLVED_IMAGE

        enricher = _make_enricher(_mock_resolver(side_effect=_resolve))
        task = asyncio.create_task(
            enricher.enrich_all([_make_candidate("Gift A")], _sample_profile()),
        )
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
