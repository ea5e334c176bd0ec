"""
Tests for the Shop Link Builder.

Verifies:
- 1–4 listings for any product/country combination
- UK luxury brands: official UK store + UK luxury department stores, no US-only retailers
- Premium brands get mid-tier department stores
- Catalog-backed listings skip generic retailers
- Category retailers + Amazon marketplace for unbranded, uncatalogued gifts
- Synthesized prices stay within ±10% of the range (and never negative)
- Seeded RNG makes listings reproducible

Run with: pytest tests/test_shop_links.py -v
"""

import random
from decimal import Decimal

import pytest

from giftfinder.agents.state import PriceRange
from giftfinder.services.price_parser import parse_price_range
from giftfinder.services.product_catalog import US_ONLY_STORES, default_catalog
from giftfinder.services.shop_links import (
    LUXURY_DEPARTMENT_STORES,
    MAX_LISTINGS,
    PREMIUM_DEPARTMENT_STORES,
    ShopLinkBuilder,
    amazon_domain,
    classify_category,
)


# ======================================================================
# Sample data factories
# ======================================================================

def _range(low: str = "40", high: str = "60") -> PriceRange:
    return PriceRange(min_amount=Decimal(low), max_amount=Decimal(high))


def _builder(seed: int = 1234) -> ShopLinkBuilder:
    return ShopLinkBuilder(rng=random.Random(seed))


def _listing_amount(listing, currency: str) -> Decimal:
    parsed = parse_price_range(listing.price, currency)
    # A single value parses to (0.9·v, 1.1·v); recover v
    return (parsed.min_amount + parsed.max_amount) / 2


# ======================================================================
# 1. Brand tiers
# ======================================================================

class TestBrandListings:

    def test_uk_luxury_brand(self):
        listings = _builder().build(
            _range("400", "500"), "GBP", "Gucci GG Marmont Mini Bag", "United Kingdom",
        )
        names = [s.name for s in listings]

        assert names[0] == "Gucci Official Store"
        assert "gucci.com/uk/" in listings[0].url
        uk_luxury = {r.name for r in LUXURY_DEPARTMENT_STORES[True]}
        department = [n for n in names[1:] if n in uk_luxury]
        assert 2 <= len(department) <= 3
        assert not {n.lower() for n in names} & US_ONLY_STORES
        assert all(s.price.startswith("£") for s in listings)

    def test_us_luxury_brand_uses_us_stores(self):
        listings = _builder().build(
            _range("400", "500"), "USD", "Gucci Loafers", "United States",
        )
        assert "gucci.com/us/" in listings[0].url
        us_luxury = {r.name for r in LUXURY_DEPARTMENT_STORES[False]}
        assert {s.name for s in listings[1:]} <= us_luxury

    def test_luxury_without_official_store(self):
        listings = _builder().build(
            _range("5000", "8000"), "USD", "Rolex Submariner", "United States",
        )
        assert not any("Official" in s.name for s in listings)
        assert 2 <= len(listings) <= 3

    def test_premium_brand(self):
        listings = _builder().build(
            _range("300", "400"), "GBP", "Dyson Airwrap", "United Kingdom",
        )
        assert listings[0].name == "Dyson Official Store"
        assert "dyson.co.uk" in listings[0].url
        uk_premium = {r.name for r in PREMIUM_DEPARTMENT_STORES[True]}
        department = [s.name for s in listings[1:] if s.name in uk_premium]
        assert 1 <= len(department) <= 2

    def test_supplement_named_like_a_brand_gets_no_luxury_stores(self):
        listings = _builder().build(
            _range("15", "25"), "USD", "Omega-3 Fish Oil Capsules", "United States",
        )
        names = {s.name for s in listings}
        assert not any("Official" in n for n in names)
        assert not names & {r.name for r in LUXURY_DEPARTMENT_STORES[False]}
        assert "Amazon" in names

    def test_official_price_at_or_above_max(self):
        for seed in range(20):
            listings = _builder(seed).build(
                _range("400", "500"), "USD", "Prada Re-Edition Bag", "United States",
            )
            amount = _listing_amount(listings[0], "USD")
            assert Decimal("500") <= amount <= Decimal("525")

    def test_query_is_url_encoded(self):
        listings = _builder().build(
            _range(), "USD", "Tiffany & Co. Heart Tag", "United States",
        )
        assert "tiffany+%26+co.+heart+tag" in listings[0].url


# ======================================================================
# 2. Catalog listings
# ======================================================================

class TestCatalogListings:

    def test_catalog_urls_used(self):
        listings = _builder().build(_range("100", "140"), "USD", "Kindle Paperwhite", "United States")
        record = default_catalog.get("kindle paperwhite")
        assert [s.url for s in listings] == list(record.store_urls.values())

    def test_catalog_capped_at_four(self):
        listings = _builder().build(_range("300", "350"), "USD", "Nintendo Switch", "United States")
        assert len(listings) == MAX_LISTINGS

    def test_catalog_listings_filtered_for_uk(self):
        listings = _builder().build(_range("300", "350"), "GBP", "Nintendo Switch", "United Kingdom")
        names = {s.name.lower() for s in listings}
        assert not names & US_ONLY_STORES
        assert "amazon" in names

    def test_pre_matched_record_is_used(self):
        record = default_catalog.get("yeti cooler")
        listings = _builder().build(
            _range("250", "300"), "USD", "something unrelated", "United States", record=record,
        )
        assert listings[0].url == record.store_urls["yeti"]


# ======================================================================
# 3. Category retailers
# ======================================================================

class TestCategoryListings:

    @pytest.mark.parametrize("name,category", [
        ("Noise Cancelling Headphones", "electronics"),
        ("Leather Wallet", "fashion"),
        ("Rose Perfume", "beauty"),
        ("Hardcover Poetry Collection", "books"),
        ("Acrylic Paint Starter Kit", "art"),
        ("Cork Yoga Block", "sports"),
        ("Scented Soy Candle", "general"),
    ])
    def test_classify_category(self, name, category):
        assert classify_category(name) == category

    def test_us_electronics(self):
        listings = _builder().build(_range(), "USD", "Noise Cancelling Headphones", "United States")
        names = [s.name for s in listings]
        assert names == ["Best Buy", "Target", "Walmart", "Amazon"]
        assert listings[-1].url.startswith("https://www.amazon.com/s?k=")

    def test_uk_electronics(self):
        listings = _builder().build(_range(), "GBP", "Noise Cancelling Headphones", "UK")
        names = [s.name for s in listings]
        assert names == ["Currys", "Argos", "John Lewis", "Amazon"]
        assert "amazon.co.uk" in listings[-1].url

    def test_marketplace_always_included(self):
        listings = _builder().build(_range(), "USD", "Hardcover Poetry Collection", "United States")
        assert listings[-1].name == "Amazon"
        assert len(listings) == 3

    @pytest.mark.parametrize("country,domain", [
        ("United Kingdom", "amazon.co.uk"),
        ("Germany", "amazon.de"),
        ("France", "amazon.fr"),
        ("Canada", "amazon.ca"),
        ("Australia", "amazon.com.au"),
        ("Japan", "amazon.co.jp"),
        ("India", "amazon.in"),
        ("Brazil", "amazon.com"),
        ("United States", "amazon.com"),
    ])
    def test_amazon_domain(self, country, domain):
        assert amazon_domain(country) == domain


# ======================================================================
# 4. Invariants
# ======================================================================

PRODUCTS = [
    ("Gucci Belt", "United Kingdom"),
    ("Apple AirPods Pro", "United States"),
    ("Kindle Paperwhite", "United Kingdom"),
    ("Scented Candle", "Germany"),
    ("Acrylic Paint Starter Kit", "United States"),
    ("Chanel No. 5", "France"),
]


class TestInvariants:

    @pytest.mark.parametrize("name,country", PRODUCTS)
    def test_listing_count_between_one_and_four(self, name, country):
        for seed in range(10):
            listings = _builder(seed).build(_range(), "USD", name, country)
            assert 1 <= len(listings) <= MAX_LISTINGS

    @pytest.mark.parametrize("name,country", PRODUCTS)
    def test_no_duplicate_store_names(self, name, country):
        listings = _builder().build(_range(), "USD", name, country)
        names = [s.name.lower() for s in listings]
        assert len(names) == len(set(names))

    def test_sampled_prices_within_ten_percent(self):
        builder = _builder(99)
        price_range = _range("40", "60")
        for _ in range(500):
            amount = builder.sample_price(price_range)
            assert Decimal("38") <= amount <= Decimal("63")

    def test_sampled_price_never_negative(self):
        builder = _builder(5)
        for _ in range(100):
            assert builder.sample_price(_range("0", "0")) >= 0

    def test_zero_decimal_rounding(self):
        builder = _builder(3)
        amount = builder.sample_price(_range("100", "200"))
        assert amount == amount.to_integral_value()

    def test_seeded_builder_is_reproducible(self):
        first = _builder(7).build(_range(), "USD", "Gucci Belt", "United Kingdom")
        second = _builder(7).build(_range(), "USD", "Gucci Belt", "United Kingdom")
        assert first == second
