"""
Product Catalog — curated products with real store URLs, images and prices.

A static table loaded once at import time and never mutated. Lookups take a
noisy product name (as written by the generative backend) and resolve it to
a catalog entry via:
1. substring match of the normalized name against catalog keys (either direction)
2. a fixed synonym table for common phrasings ("e-reader", "gaming console", ...)

First match wins. There is deliberately no scoring, so lookups stay
deterministic and easy to assert on.

Catalog data is authoritative: when a candidate matches, the catalog's
image and price range replace whatever the generative model guessed.
"""

import logging
import re
from decimal import Decimal
from typing import Optional

from giftfinder.agents.state import PriceRange, ProductRecord

logger = logging.getLogger(__name__)


def _record(
    key: str,
    display_name: str,
    store_urls: dict[str, str],
    image: str,
    price_range: tuple[int, int],
) -> ProductRecord:
    return ProductRecord(
        canonical_key=key,
        display_name=display_name,
        store_urls=store_urls,
        image=image,
        price_range=PriceRange(
            min_amount=Decimal(price_range[0]),
            max_amount=Decimal(price_range[1]),
        ),
    )


# ======================================================================
# Catalog data
# ======================================================================

PRODUCT_RECORDS: tuple[ProductRecord, ...] = (
    _record(
        "crunchyroll premium",
        "Crunchyroll Premium Annual Subscription",
        {
            "crunchyroll": "https://www.crunchyroll.com/subscribe/premium",
            "amazon": "https://www.amazon.com/Crunchyroll-Premium-Gift-Card/dp/B09LB7GFQJ",
            "best buy": "https://www.bestbuy.com/site/crunchyroll-premium-membership/6471234.p",
        },
        "https://images.unsplash.com/photo-1628432136678-43ff9be34064?ixlib=rb-4.0.3&auto=format&fit=crop&w=400&h=300",
        (60, 80),
    ),
    _record(
        "izuku midoriya figure",
        "Kotobukiya My Hero Academia Izuku Midoriya ArtFX J Statue",
        {
            "amazon": "https://www.amazon.com/Kotobukiya-Academia-Midoriya-ArtFX-Statue/dp/B082ZQ8VJH",
            "big bad toy store": "https://www.bigbadtoystore.com/Product/VariationDetails/141234",
            "entertainment earth": "https://www.entertainmentearth.com/product/MY1234567",
            "hobby link japan": "https://www.hlj.com/my-hero-academia-izuku-midoriya-artfx-j-statue-kby1234",
        },
        "https://images.unsplash.com/photo-1601814933824-fd0b574dd592?ixlib=rb-4.0.3&auto=format&fit=crop&w=400&h=300",
        (90, 120),
    ),
    _record(
        "akira box set",
        "Akira 35th Anniversary Box Set by Katsuhiro Otomo",
        {
            "amazon": "https://www.amazon.com/Akira-35th-Anniversary-Box-Set/dp/1632367564",
            "barnes & noble": "https://www.barnesandnoble.com/w/akira-35th-anniversary-box-set-katsuhiro-otomo/1140234567",
            "forbidden planet": "https://forbiddenplanet.com/345234-akira-35th-anniversary-box-set/",
            "rightstuf anime": "https://www.rightstufanime.com/akira-35th-anniversary-box-set",
        },
        "https://images.unsplash.com/photo-1544716278-ca5e3f4abd8c?ixlib=rb-4.0.3&auto=format&fit=crop&w=400&h=300",
        (150, 200),
    ),
    _record(
        "wacom intuos pro",
        "Wacom Intuos Pro Creative Pen Tablet (Medium)",
        {
            "amazon": "https://www.amazon.com/Wacom-PTH660-Creative-Pressure-Bluetooth/dp/B077P2QX8X",
            "wacom": "https://www.wacom.com/en-us/products/pen-tablets/wacom-intuos-pro",
            "best buy": "https://www.bestbuy.com/site/wacom-intuos-pro-medium-creative-pen-tablet/6255234.p",
            "b&h photo": "https://www.bhphotovideo.com/c/product/1234567-REG/wacom_pth660_intuos_pro_medium.html",
        },
        "https://images.unsplash.com/photo-1544244015-0df4b3ffc6b0?ixlib=rb-4.0.3&auto=format&fit=crop&w=400&h=300",
        (250, 350),
    ),
    _record(
        "adidas wristband",
        "Adidas Interval Reversible Wristband",
        {
            "amazon": "https://www.amazon.com/adidas-Interval-Reversible-Wristband-Black/dp/B07XJ4Z4X7",
            "adidas": "https://www.adidas.com/us/interval-reversible-wristband/CI7190.html",
            "dick's sporting goods": "https://www.dickssportinggoods.com/p/adidas-interval-reversible-wristband-19adiuntryrvrsblwgaa/19adiuntryrvrsblwgaa",
        },
        "https://images.unsplash.com/photo-1595950653106-60904f39b8f2?ixlib=rb-4.0.3&auto=format&fit=crop&w=400&h=300",
        (10, 15),
    ),
    _record(
        "nike elite all court basketball",
        "Nike Elite All-Court Basketball",
        {
            "amazon": "https://www.amazon.com/Nike-Elite-All-Court-Basketball/dp/B094YTGDC2",
            "nike": "https://www.nike.com/t/elite-all-court-basketball-X8bkSC",
            "dick's sporting goods": "https://www.dickssportinggoods.com/p/nike-elite-all-court-basketball-21nikuelltcrtbsktbbal",
            "target": "https://www.target.com/p/nike-elite-all-court-basketball/-/A-81234567",
        },
        "https://m.media-amazon.com/images/I/71J6wwcsEgL._AC_SX679_.jpg",
        (25, 35),
    ),
    _record(
        "winsor newton cotman watercolor",
        "Winsor & Newton Cotman Watercolor Set",
        {
            "amazon": "https://www.amazon.com/Winsor-Newton-Cotman-Water-Colour/dp/B000BZNTHC",
            "winsor & newton": "https://uk.winsornewton.com/collections/watercolour-sets/products/cotman-watercolour-essentials-14pc-set",
            "jackson's art": "https://www.jacksonsart.com/winsor-newton-cotman-watercolours-14-half-pan-set",
            "blick art materials": "https://www.dickblick.com/products/winsor-newton-cotman-watercolor-paint-14-color-set/",
        },
        "https://images.unsplash.com/photo-1513475382585-d06e58bcb0e0?ixlib=rb-4.0.3&auto=format&fit=crop&w=400&h=300",
        (15, 25),
    ),
    _record(
        "apple airpods pro",
        "Apple AirPods Pro (2nd generation)",
        {
            "amazon": "https://www.amazon.com/Apple-Generation-Cancelling-Transparency-Personalized/dp/B0BDHWDR12",
            "apple": "https://www.apple.com/airpods-pro/",
            "best buy": "https://www.bestbuy.com/site/apple-airpods-pro-2nd-generation/6447382.p",
            "target": "https://www.target.com/p/apple-airpods-pro-2nd-generation/-/A-87137978",
        },
        "https://images.unsplash.com/photo-1600294037681-c80b4cb5b434?ixlib=rb-4.0.3&auto=format&fit=crop&w=400&h=300",
        (200, 250),
    ),
    _record(
        "instant pot",
        "Instant Pot Duo 7-in-1 Electric Pressure Cooker",
        {
            "amazon": "https://www.amazon.com/Instant-Pot-Pressure-Cooker-Sterilizer/dp/B00FLYWNYQ",
            "instant pot": "https://www.instantpot.com/collections/electric-pressure-cookers/products/instant-pot-duo-7-in-1",
            "target": "https://www.target.com/p/instant-pot-duo-7-in-1-electric-pressure-cooker/-/A-52583750",
            "walmart": "https://www.walmart.com/ip/Instant-Pot-Duo-7-in-1-Electric-Pressure-Cooker/55441466",
        },
        "https://m.media-amazon.com/images/I/71V6pTqpLrL._AC_SL1500_.jpg",
        (60, 120),
    ),
    _record(
        "kindle paperwhite",
        "Amazon Kindle Paperwhite",
        {
            "amazon": "https://www.amazon.com/Kindle-Paperwhite-adjustable-Ad-Supported/dp/B08KTZ8249",
            "best buy": "https://www.bestbuy.com/site/amazon-kindle-paperwhite/6418599.p",
            "target": "https://www.target.com/p/kindle-paperwhite/-/A-82345678",
        },
        "https://m.media-amazon.com/images/I/61rzcXnvJmL._AC_SL1500_.jpg",
        (100, 140),
    ),
    _record(
        "lululemon align leggings",
        'Lululemon Align High-Rise Pant 25"',
        {
            "lululemon": "https://shop.lululemon.com/p/women-pants/Align-Pant-2/_/prod2020012",
            "amazon": "https://www.amazon.com/Lululemon-Align-High-Rise-Pant/dp/B08XYZVQH3",
            "nordstrom": "https://www.nordstrom.com/s/lululemon-align-high-waist-leggings/5855584",
        },
        "https://images.lululemon.com/is/image/lululemon/LW5BVWS_031382_1",
        (98, 128),
    ),
    _record(
        "stanley tumbler",
        "Stanley Adventure Quencher Travel Tumbler 40oz",
        {
            "stanley": "https://www.stanley1913.com/collections/drinkware/products/adventure-quencher-travel-tumbler-40-oz",
            "amazon": "https://www.amazon.com/Stanley-Adventure-Quencher-Travel-Tumbler/dp/B0BXWQJZ8P",
            "target": "https://www.target.com/p/stanley-adventure-quencher-travel-tumbler-40oz/-/A-88234567",
            "rei": "https://www.rei.com/product/203025/stanley-adventure-quencher-travel-tumbler-40-fl-oz",
        },
        "https://m.media-amazon.com/images/I/71R8cF6sHsL._AC_SL1500_.jpg",
        (40, 50),
    ),
    _record(
        "nintendo switch",
        "Nintendo Switch OLED Model",
        {
            "amazon": "https://www.amazon.com/Nintendo-Switch-OLED-Model-Neon-Blue/dp/B098RKWHHZ",
            "nintendo": "https://www.nintendo.com/us/store/products/nintendo-switch-oled-model/",
            "best buy": "https://www.bestbuy.com/site/nintendo-switch-oled-model/6464206.p",
            "target": "https://www.target.com/p/nintendo-switch-oled-model/-/A-84234567",
            "gamestop": "https://www.gamestop.com/consoles-hardware/nintendo-switch/consoles/products/nintendo-switch-oled-model/300304.html",
        },
        "https://m.media-amazon.com/images/I/61-PblYntsL._AC_SL1500_.jpg",
        (300, 350),
    ),
    _record(
        "yeti cooler",
        "YETI Tundra 35 Cooler",
        {
            "yeti": "https://www.yeti.com/en_US/coolers/hard-coolers/tundra/tundra-35/10035100000.html",
            "amazon": "https://www.amazon.com/YETI-Tundra-Cooler-White/dp/B00J1FQDRQ",
            "rei": "https://www.rei.com/product/109356/yeti-tundra-35-cooler",
            "dick's sporting goods": "https://www.dickssportinggoods.com/p/yeti-tundra-35-cooler-16yetutnd35clrxxxcac",
        },
        "https://m.media-amazon.com/images/I/71OqkHCLORL._AC_SL1500_.jpg",
        (250, 300),
    ),
    _record(
        "vitamix blender",
        "Vitamix 5200 Blender",
        {
            "vitamix": "https://www.vitamix.com/us/en_us/shop/5200",
            "amazon": "https://www.amazon.com/Vitamix-Blender-Professional-Grade-Container/dp/B008H4SLV6",
            "williams sonoma": "https://www.williams-sonoma.com/products/vitamix-5200-blender/",
            "costco": "https://www.costco.com/vitamix-5200-blender.product.10415405.html",
        },
        "https://m.media-amazon.com/images/I/81Xw9V8QTDL._AC_SL1500_.jpg",
        (350, 450),
    ),
)

# Common phrasings → canonical catalog key. Checked in order after the
# direct key match fails.
PRODUCT_SYNONYMS: tuple[tuple[str, str], ...] = (
    ("crunchyroll", "crunchyroll premium"),
    ("anime subscription", "crunchyroll premium"),
    ("anime streaming", "crunchyroll premium"),
    ("izuku", "izuku midoriya figure"),
    ("midoriya", "izuku midoriya figure"),
    ("deku", "izuku midoriya figure"),
    ("hero academia", "izuku midoriya figure"),
    ("akira", "akira box set"),
    ("katsuhiro otomo", "akira box set"),
    ("manga box set", "akira box set"),
    ("wacom", "wacom intuos pro"),
    ("drawing tablet", "wacom intuos pro"),
    ("pen tablet", "wacom intuos pro"),
    ("graphics tablet", "wacom intuos pro"),
    ("wristband", "adidas wristband"),
    ("sweatband", "adidas wristband"),
    ("airpods", "apple airpods pro"),
    ("pressure cooker", "instant pot"),
    ("e reader", "kindle paperwhite"),
    ("ebook reader", "kindle paperwhite"),
    ("kindle", "kindle paperwhite"),
    ("yoga pants", "lululemon align leggings"),
    ("leggings", "lululemon align leggings"),
    ("activewear", "lululemon align leggings"),
    ("water bottle", "stanley tumbler"),
    ("tumbler", "stanley tumbler"),
    ("travel mug", "stanley tumbler"),
    ("gaming console", "nintendo switch"),
    ("switch", "nintendo switch"),
    ("cooler", "yeti cooler"),
    ("ice chest", "yeti cooler"),
    ("blender", "vitamix blender"),
    ("smoothie maker", "vitamix blender"),
    ("basketball", "nike elite all court basketball"),
    ("watercolor", "winsor newton cotman watercolor"),
    ("watercolour", "winsor newton cotman watercolor"),
    ("paint set", "winsor newton cotman watercolor"),
    ("art supplies", "winsor newton cotman watercolor"),
)

MIN_REVERSE_MATCH_LENGTH = 4

# Retailers that only ship within the US
US_ONLY_STORES = frozenset({
    "target", "walmart", "best buy", "costco", "dick's sporting goods",
})

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_product_name(name: str) -> str:
    """Lower-case, replace punctuation with spaces and collapse whitespace."""
    cleaned = _PUNCTUATION.sub(" ", (name or "").lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def is_uk(country: str) -> bool:
    """True when the country string refers to the United Kingdom."""
    c = (country or "").strip().lower()
    return "united kingdom" in c or c in {
        "uk", "u.k.", "gb", "great britain", "britain",
        "england", "scotland", "wales", "northern ireland",
    }


class ProductCatalog:
    """Read-only lookup over a fixed set of ProductRecords."""

    def __init__(
        self,
        records: tuple[ProductRecord, ...] = PRODUCT_RECORDS,
        synonyms: tuple[tuple[str, str], ...] = PRODUCT_SYNONYMS,
    ) -> None:
        self._records: dict[str, ProductRecord] = {
            r.canonical_key: r for r in records
        }
        self._synonyms = synonyms

    def __len__(self) -> int:
        return len(self._records)

    def get(self, key: str) -> Optional[ProductRecord]:
        return self._records.get(key)

    def match(self, raw_name: str) -> Optional[ProductRecord]:
        """
        Resolve a noisy product name to a catalog record.

        Args:
            raw_name: Product name as written by the model or template.

        Returns:
            The first matching ProductRecord, or None.
        """
        clean = normalize_product_name(raw_name)
        if not clean:
            return None

        for key, record in self._records.items():
            # Very short names ("a", "pot") are too vague to match a key
            if key in clean or (len(clean) >= MIN_REVERSE_MATCH_LENGTH and clean in key):
                logger.debug("Catalog direct match: '%s' -> %s", raw_name, key)
                return record

        for phrase, key in self._synonyms:
            if phrase in clean and key in self._records:
                logger.debug(
                    "Catalog synonym match: '%s' via '%s' -> %s",
                    raw_name, phrase, key,
                )
                return self._records[key]

        logger.debug("No catalog match for '%s'", raw_name)
        return None

    @staticmethod
    def store_listings(
        record: ProductRecord,
        country: str,
    ) -> list[tuple[str, str]]:
        """
        Return (store name, url) pairs relevant to the country.

        UK shoppers don't get US-only retailers. Store names are title-cased
        for display.
        """
        stores = list(record.store_urls.items())
        if is_uk(country):
            stores = [(n, u) for n, u in stores if n.lower() not in US_ONLY_STORES]
        return [(_display_store_name(n), u) for n, u in stores]


def _display_store_name(name: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in name.split(" "))


# Shared read-only instance
default_catalog = ProductCatalog()
