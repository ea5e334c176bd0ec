"""
Shop Link Builder — produces 1–4 purchase listings for a gift.

Preference order:
1. Official brand store (luxury/premium brands that run one)
2. Department stores matching the brand tier
3. Real store URLs from the product catalog
4. Category retailers + an Amazon marketplace link, only when 1–3 found nothing

Retailer sets differ between the UK and everywhere else. Prices are
synthesized around the gift's price range; all randomness goes through an
injectable random.Random so tests can seed it.
"""

import logging
import random
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple, Optional
from urllib.parse import quote_plus

from giftfinder.agents.state import ProductRecord, PriceRange, ShopListing
from giftfinder.services.brand_classifier import classify_brand
from giftfinder.services.currency import format_price
from giftfinder.services.product_catalog import ProductCatalog, default_catalog, is_uk

logger = logging.getLogger(__name__)

# --- Constants ---
MAX_LISTINGS = 4
MAX_CATEGORY_RETAILERS = 3

PRICE_JITTER = 0.10
PRICE_FLOOR_FACTOR = Decimal("0.95")
PRICE_CEILING_FACTOR = Decimal("1.05")
OFFICIAL_MARKUP_MAX = 1.05

# Probability a listing is shown as in stock, by listing source
IN_STOCK_OFFICIAL = 0.95
IN_STOCK_DEPARTMENT = 0.90
IN_STOCK_CATALOG = 0.90
IN_STOCK_CATEGORY = 0.85
IN_STOCK_MARKETPLACE = 0.95


class Retailer(NamedTuple):
    name: str
    search_url: str  # contains a {query} placeholder


def _r(name: str, search_url: str) -> Retailer:
    return Retailer(name, search_url)


# ======================================================================
# Official brand stores: brand -> (UK template, everywhere-else template)
# ======================================================================

OFFICIAL_STORES: dict[str, tuple[str, str]] = {
    "Louis Vuitton": (
        "https://uk.louisvuitton.com/eng-gb/search/{query}",
        "https://us.louisvuitton.com/eng-us/search/{query}",
    ),
    "Bottega Veneta": (
        "https://www.bottegaveneta.com/en-gb/search?q={query}",
        "https://www.bottegaveneta.com/en-us/search?q={query}",
    ),
    "Saint Laurent": (
        "https://www.ysl.com/en-gb/search?q={query}",
        "https://www.ysl.com/en-us/search?q={query}",
    ),
    "Tiffany & Co.": (
        "https://www.tiffany.co.uk/search/?q={query}",
        "https://www.tiffany.com/search/?q={query}",
    ),
    "Gucci": (
        "https://www.gucci.com/uk/en_gb/search?searchString={query}",
        "https://www.gucci.com/us/en/search?searchString={query}",
    ),
    "Hermès": (
        "https://www.hermes.com/uk/en/search/?s={query}",
        "https://www.hermes.com/us/en/search/?s={query}",
    ),
    "Prada": (
        "https://www.prada.com/gb/en/search.html?q={query}",
        "https://www.prada.com/us/en/search.html?q={query}",
    ),
    "Dior": (
        "https://www.dior.com/en_gb/search?query={query}",
        "https://www.dior.com/en_us/search?query={query}",
    ),
    "Burberry": (
        "https://uk.burberry.com/search/?q={query}",
        "https://us.burberry.com/search/?q={query}",
    ),
    "Cartier": (
        "https://www.cartier.com/en-gb/search?q={query}",
        "https://www.cartier.com/en-us/search?q={query}",
    ),
    "Omega": (
        "https://www.omegawatches.com/en-gb/search?q={query}",
        "https://www.omegawatches.com/en-us/search?q={query}",
    ),
    "Versace": (
        "https://www.versace.com/gb/en/search/?q={query}",
        "https://www.versace.com/us/en/search/?q={query}",
    ),
    "Balenciaga": (
        "https://www.balenciaga.com/en-gb/search?q={query}",
        "https://www.balenciaga.com/en-us/search?q={query}",
    ),
    "Fendi": (
        "https://www.fendi.com/gb-en/search?q={query}",
        "https://www.fendi.com/us-en/search?q={query}",
    ),
    "Montblanc": (
        "https://www.montblanc.com/en-gb/search?q={query}",
        "https://www.montblanc.com/en-us/search?q={query}",
    ),
    "Bang & Olufsen": (
        "https://www.bang-olufsen.com/en/gb/search?q={query}",
        "https://www.bang-olufsen.com/en/us/search?q={query}",
    ),
    "Ralph Lauren": (
        "https://www.ralphlauren.co.uk/en/search?q={query}",
        "https://www.ralphlauren.com/search?q={query}",
    ),
    "Michael Kors": (
        "https://www.michaelkors.co.uk/search?q={query}",
        "https://www.michaelkors.com/search?q={query}",
    ),
    "Kate Spade": (
        "https://www.katespade.co.uk/search?q={query}",
        "https://www.katespade.com/search?q={query}",
    ),
    "Hugo Boss": (
        "https://www.hugoboss.com/uk/search?q={query}",
        "https://www.hugoboss.com/us/search?q={query}",
    ),
    "Jo Malone": (
        "https://www.jomalone.co.uk/search?search={query}",
        "https://www.jomalone.com/search?search={query}",
    ),
    "Le Creuset": (
        "https://www.lecreuset.co.uk/en_GB/search?q={query}",
        "https://www.lecreuset.com/search?q={query}",
    ),
    "Apple": (
        "https://www.apple.com/uk/search/{query}",
        "https://www.apple.com/us/search/{query}",
    ),
    "Dyson": (
        "https://www.dyson.co.uk/search-results?query={query}",
        "https://www.dyson.com/search-results?query={query}",
    ),
    "Bose": (
        "https://www.bose.co.uk/en_gb/search.html?q={query}",
        "https://www.bose.com/search?q={query}",
    ),
    "Lululemon": (
        "https://www.lululemon.co.uk/en-gb/search?q={query}",
        "https://shop.lululemon.com/search?Ntt={query}",
    ),
    "Pandora": (
        "https://uk.pandora.net/en/search/?q={query}",
        "https://us.pandora.net/en/search/?q={query}",
    ),
    "Coach": (
        "https://uk.coach.com/search?q={query}",
        "https://www.coach.com/search?q={query}",
    ),
}


# ======================================================================
# Department stores by brand tier
# ======================================================================

_JOHN_LEWIS = _r("John Lewis", "https://www.johnlewis.com/search?search-term={query}")
_SELFRIDGES = _r("Selfridges", "https://www.selfridges.com/GB/en/cat/?freeText={query}")
_NORDSTROM = _r("Nordstrom", "https://www.nordstrom.com/sr?keyword={query}")
_MACYS = _r("Macy's", "https://www.macys.com/shop/featured/{query}")
_TARGET = _r("Target", "https://www.target.com/s?searchTerm={query}")
_WALMART = _r("Walmart", "https://www.walmart.com/search?q={query}")
_ARGOS = _r("Argos", "https://www.argos.co.uk/search/{query}/")

LUXURY_DEPARTMENT_STORES: dict[bool, tuple[Retailer, ...]] = {
    True: (
        _r("Harrods", "https://www.harrods.com/en-gb/search?query={query}"),
        _SELFRIDGES,
        _r("Harvey Nichols", "https://www.harveynichols.com/search/?text={query}"),
        _r("Liberty London", "https://www.libertylondon.com/uk/search?q={query}"),
    ),
    False: (
        _r("Saks Fifth Avenue", "https://www.saksfifthavenue.com/search?q={query}"),
        _r("Neiman Marcus", "https://www.neimanmarcus.com/search.jsp?q={query}"),
        _r("Bergdorf Goodman", "https://www.bergdorfgoodman.com/search.jsp?q={query}"),
        _NORDSTROM,
    ),
}

PREMIUM_DEPARTMENT_STORES: dict[bool, tuple[Retailer, ...]] = {
    True: (
        _JOHN_LEWIS,
        _r("Fenwick", "https://www.fenwick.co.uk/search?q={query}"),
        _SELFRIDGES,
    ),
    False: (
        _NORDSTROM,
        _r("Bloomingdale's", "https://www.bloomingdales.com/shop/search?keyword={query}"),
        _MACYS,
    ),
}


# ======================================================================
# Category retailers (keyed by is_uk)
# ======================================================================

CATEGORY_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("electronics", re.compile(
        r"\b(?:headphone|earbud|airpod|speaker|tablet|laptop|phone|camera|console|"
        r"gaming|smart|charger|keyboard|mouse|tech|gadget|kindle|e-?reader|drone|switch)",
        re.IGNORECASE,
    )),
    ("fashion", re.compile(
        r"\b(?:bag|handbag|purse|wallet|scarf|watch|jewel|necklace|bracelet|earring|"
        r"ring|shoe|sneaker|boot|jacket|sweater|hoodie|shirt|dress|hat|sunglasses|"
        r"leggings|belt)",
        re.IGNORECASE,
    )),
    ("beauty", re.compile(
        r"\b(?:perfume|fragrance|cologne|skincare|makeup|cosmetic|lipstick|serum|"
        r"bath|spa|lotion|moisturi[sz]er)",
        re.IGNORECASE,
    )),
    ("books", re.compile(
        r"\b(?:book|novel|manga|journal|notebook|comic|poetry|cookbook)",
        re.IGNORECASE,
    )),
    ("art", re.compile(
        r"\b(?:paint|watercolou?r|sketch|canvas|brush|drawing|art\b|craft|pottery|"
        r"pencil|easel)",
        re.IGNORECASE,
    )),
    ("sports", re.compile(
        r"\b(?:yoga|fitness|gym|running|basketball|football|soccer|tennis|golf|"
        r"bike|cycling|hiking|camping|tent|dumbbell|wristband|sport)",
        re.IGNORECASE,
    )),
)

CATEGORY_RETAILERS: dict[str, dict[bool, tuple[Retailer, ...]]] = {
    "electronics": {
        True: (
            _r("Currys", "https://www.currys.co.uk/search?q={query}"),
            _ARGOS,
            _JOHN_LEWIS,
        ),
        False: (
            _r("Best Buy", "https://www.bestbuy.com/site/searchpage.jsp?st={query}"),
            _TARGET,
            _WALMART,
        ),
    },
    "fashion": {
        True: (
            _r("ASOS", "https://www.asos.com/search/?q={query}"),
            _JOHN_LEWIS,
            _r("Next", "https://www.next.co.uk/search?w={query}"),
        ),
        False: (_NORDSTROM, _MACYS, _TARGET),
    },
    "beauty": {
        True: (
            _r("Boots", "https://www.boots.com/search?text={query}"),
            _r("Lookfantastic", "https://www.lookfantastic.com/search?q={query}"),
            _JOHN_LEWIS,
        ),
        False: (
            _r("Sephora", "https://www.sephora.com/search?keyword={query}"),
            _r("Ulta Beauty", "https://www.ulta.com/search?search={query}"),
            _TARGET,
        ),
    },
    "books": {
        True: (
            _r("Waterstones", "https://www.waterstones.com/books/search/term/{query}"),
            _r("WHSmith", "https://www.whsmith.co.uk/search/?q={query}"),
        ),
        False: (
            _r("Barnes & Noble", "https://www.barnesandnoble.com/s/{query}"),
            _r("Bookshop.org", "https://bookshop.org/search?keywords={query}"),
        ),
    },
    "art": {
        True: (
            _r("Hobbycraft", "https://www.hobbycraft.co.uk/search?q={query}"),
            _r("Cass Art", "https://www.cassart.co.uk/search?q={query}"),
        ),
        False: (
            _r("Michaels", "https://www.michaels.com/search?q={query}"),
            _r("Blick Art Materials", "https://www.dickblick.com/search/?q={query}"),
        ),
    },
    "sports": {
        True: (
            _r("Decathlon", "https://www.decathlon.co.uk/search?Ntt={query}"),
            _r("JD Sports", "https://www.jdsports.co.uk/search/{query}/"),
        ),
        False: (
            _r("REI", "https://www.rei.com/search?q={query}"),
            _r("Dick's Sporting Goods", "https://www.dickssportinggoods.com/search/SearchDisplay?searchTerm={query}"),
        ),
    },
    "general": {
        True: (_ARGOS, _JOHN_LEWIS),
        False: (_TARGET, _WALMART),
    },
}

# Amazon storefront per country; anything unlisted uses amazon.com
AMAZON_DOMAINS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("germany", "deutschland"), "amazon.de"),
    (("france",), "amazon.fr"),
    (("canada",), "amazon.ca"),
    (("australia",), "amazon.com.au"),
    (("japan",), "amazon.co.jp"),
    (("india",), "amazon.in"),
)
DEFAULT_AMAZON_DOMAIN = "amazon.com"


def classify_category(product_name: str) -> str:
    """First matching category for a product name, or "general"."""
    for category, pattern in CATEGORY_PATTERNS:
        if pattern.search(product_name or ""):
            return category
    return "general"


def amazon_domain(country: str) -> str:
    if is_uk(country):
        return "amazon.co.uk"
    c = (country or "").strip().lower()
    for names, domain in AMAZON_DOMAINS:
        if any(name in c for name in names):
            return domain
    return DEFAULT_AMAZON_DOMAIN


def _round_price(value: Decimal, floor: Decimal, ceiling: Decimal) -> Decimal:
    """Whole units when that stays inside [floor, ceiling], otherwise cents."""
    value = max(floor, min(ceiling, value))
    whole = value.quantize(Decimal(1), rounding=ROUND_HALF_UP)
    if floor <= whole <= ceiling:
        return max(whole, Decimal(0))
    return max(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP), Decimal(0))


class ShopLinkBuilder:
    """Builds ShopListings for a gift. Safe to share: holds only read-only tables and an RNG."""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        catalog: ProductCatalog = default_catalog,
    ) -> None:
        self._rng = rng if rng is not None else random.Random()
        self._catalog = catalog

    # ------------------------------------------------------------------
    # Prices
    # ------------------------------------------------------------------

    def sample_price(self, price_range: PriceRange) -> Decimal:
        """
        Pick a plausible shelf price for the range.

        Uniform in [min, max] plus up to ±10% of the range width, clamped to
        [0.95·min, 1.05·max].
        """
        low, high = price_range.min_amount, price_range.max_amount
        base = Decimal(str(self._rng.uniform(float(low), float(high))))
        jitter = Decimal(str(self._rng.uniform(-PRICE_JITTER, PRICE_JITTER))) * price_range.width
        return _round_price(
            base + jitter,
            low * PRICE_FLOOR_FACTOR,
            high * PRICE_CEILING_FACTOR,
        )

    def official_price(self, price_range: PriceRange) -> Decimal:
        high = price_range.max_amount
        markup = Decimal(str(self._rng.uniform(1.0, OFFICIAL_MARKUP_MAX)))
        return _round_price(high * markup, high, high * PRICE_CEILING_FACTOR)

    def _in_stock(self, probability: float) -> bool:
        return self._rng.random() < probability

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def build(
        self,
        price_range: PriceRange,
        currency: str,
        product_name: str,
        country: str,
        record: Optional[ProductRecord] = None,
    ) -> list[ShopListing]:
        """
        Build purchase listings for a gift.

        Args:
            price_range: Final (budget-clamped) price range of the gift.
            currency: Currency code used to format listing prices.
            product_name: Shop search term; also used for brand/category detection.
            country: Shopper's country, selects UK vs other retailer sets.
            record: Catalog record already matched by the caller, if any.
                When omitted the catalog is consulted with ``product_name``.

        Returns:
            Between 1 and 4 ShopListings, in preference order.
        """
        uk = is_uk(country)
        query = quote_plus((product_name or "gift").strip().lower())
        listings: list[ShopListing] = []
        seen: set[str] = set()

        def add(name: str, url: str, price: Decimal, probability: float) -> None:
            if len(listings) >= MAX_LISTINGS or name.lower() in seen:
                return
            seen.add(name.lower())
            listings.append(ShopListing(
                name=name,
                price=format_price(price, currency),
                in_stock=self._in_stock(probability),
                url=url,
            ))

        # --- Brand stores ---
        brand = classify_brand(product_name)
        if brand.has_official_store and brand.brand in OFFICIAL_STORES:
            uk_template, other_template = OFFICIAL_STORES[brand.brand]
            template = uk_template if uk else other_template
            add(
                f"{brand.brand} Official Store",
                template.format(query=query),
                self.official_price(price_range),
                IN_STOCK_OFFICIAL,
            )

        if brand.tier == "luxury":
            stores = self._rng.sample(LUXURY_DEPARTMENT_STORES[uk], self._rng.randint(2, 3))
        elif brand.tier == "premium":
            stores = self._rng.sample(PREMIUM_DEPARTMENT_STORES[uk], self._rng.randint(1, 2))
        else:
            stores = []
        for store in stores:
            add(
                store.name,
                store.search_url.format(query=query),
                self.sample_price(price_range),
                IN_STOCK_DEPARTMENT,
            )

        # --- Catalog stores ---
        if record is None:
            record = self._catalog.match(product_name)
        if record is not None:
            for name, url in ProductCatalog.store_listings(record, country):
                add(name, url, self.sample_price(price_range), IN_STOCK_CATALOG)

        if listings:
            return listings

        # --- Category retailers + marketplace ---
        category = classify_category(product_name)
        logger.debug("Shop category for '%s': %s", product_name, category)
        for retailer in CATEGORY_RETAILERS[category][uk][:MAX_CATEGORY_RETAILERS]:
            add(
                retailer.name,
                retailer.search_url.format(query=query),
                self.sample_price(price_range),
                IN_STOCK_CATEGORY,
            )

        domain = amazon_domain(country)
        add(
            "Amazon",
            f"https://www.{domain}/s?k={query}",
            self.sample_price(price_range),
            IN_STOCK_MARKETPLACE,
        )
        return listings
