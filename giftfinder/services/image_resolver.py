"""
Image Resolver — finds a display image for a gift from its name and description.

Ordered fallback tiers, each tried only if the previous one found nothing:
1. Catalog image — handled by the orchestrator before this resolver is called
2. Web image search — Brave image search, each candidate probed with HEAD
   (2xx + image/* content type) before it is accepted, up to 5 probes
3. Keyword → curated stock image — direct, then partial, then category match
4. Static default gift image — always available

Network tiers carry their own timeouts and never raise: an error or timeout
is logged and treated exactly like "no result".
"""

import asyncio
import logging
import re
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from urllib.parse import urlparse

import httpx

from giftfinder.core.config import IMAGE_PROBE_TIMEOUT, IMAGE_SEARCH_TIMEOUT
from giftfinder.services.integrations.brave_images import BraveImageSearch

logger = logging.getLogger(__name__)

# --- Constants ---
MAX_PROBE_CANDIDATES = 5
VALID_STATUS_RANGE = range(200, 300)
MIN_PARTIAL_TOKEN_LENGTH = 4

# Images served from search-engine hosts are thumbnails/trackers, not products
EXCLUDED_IMAGE_HOSTS = ("google.", "gstatic.com", "googleusercontent.com", "bing.net")

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

_UNSPLASH = "https://images.unsplash.com/photo-{}?ixlib=rb-4.0.3&auto=format&fit=crop&w=400&h=300"

DEFAULT_GIFT_IMAGE = _UNSPLASH.format("1549465220-1a8b9238cd48")


# ======================================================================
# Curated stock images
# ======================================================================

STOCK_IMAGES: dict[str, str] = {
    # Electronics & tech
    "headphones": _UNSPLASH.format("1505740420928-5e560c06d30e"),
    "laptop": _UNSPLASH.format("1496181133206-80ce9b88a853"),
    "phone": _UNSPLASH.format("1511707171634-5f897ff02aa9"),
    "tablet": _UNSPLASH.format("1544244015-0df4b3ffc6b0"),
    "camera": _UNSPLASH.format("1606983340126-99ab4feaa64a"),
    "smartwatch": _UNSPLASH.format("1434494878577-86c23bcb06b9"),
    "bluetooth speaker": _UNSPLASH.format("1608043152269-423dbba4e7e1"),
    "speaker": _UNSPLASH.format("1608043152269-423dbba4e7e1"),
    "gaming mouse": _UNSPLASH.format("1527814050087-3793815479db"),
    "keyboard": _UNSPLASH.format("1587829741301-dc798b83add3"),
    # Fashion & accessories
    "watch": _UNSPLASH.format("1522312346375-d1a52e2b99b3"),
    "sunglasses": _UNSPLASH.format("1572635196237-14b3f281503f"),
    "bag": _UNSPLASH.format("1553062407-98eeb64c6a62"),
    "wallet": _UNSPLASH.format("1627123424574-724758594e93"),
    "jewelry": _UNSPLASH.format("1515562141207-7a88fb7ce338"),
    "necklace": _UNSPLASH.format("1599643478518-a784e5dc4c8f"),
    "bracelet": _UNSPLASH.format("1611591437281-460bfbe1220a"),
    "earrings": _UNSPLASH.format("1535632066927-ab7c9ab60908"),
    # Home & living
    "candle": _UNSPLASH.format("1602974508525-dd80dc41b4be"),
    "plant": _UNSPLASH.format("1416879595882-3373a0480b5b"),
    "mug": _UNSPLASH.format("1514228742587-6b1558fcf93a"),
    "pillow": _UNSPLASH.format("1586023492125-27b2c045efd7"),
    "blanket": _UNSPLASH.format("1584100936595-c0654b55a2e2"),
    "vase": _UNSPLASH.format("1578662996442-48f60103fc96"),
    # Books & stationery
    "book": _UNSPLASH.format("1481627834876-b7833e8f5570"),
    "notebook": _UNSPLASH.format("1517971129774-3b2e64e60a8e"),
    "pen": _UNSPLASH.format("1583485088034-697b5bc54ccd"),
    # Sports & fitness
    "yoga mat": _UNSPLASH.format("1544367567-0f2fcb009e0b"),
    "water bottle": _UNSPLASH.format("1602143407151-7111542de6e8"),
    "dumbbells": _UNSPLASH.format("1517836357463-d25dfeac3438"),
    "running shoes": _UNSPLASH.format("1542291026-7eec264c27ff"),
    # Beauty
    "perfume": _UNSPLASH.format("1541643600914-78b084683601"),
    "skincare": _UNSPLASH.format("1570194065650-d99fb4bedf0a"),
    "makeup": _UNSPLASH.format("1522335789203-aabd1fc54bc9"),
    # Food & drink
    "coffee": _UNSPLASH.format("1495474472287-4d71bcdd2085"),
    "tea": _UNSPLASH.format("1544787219-7f47ccb76574"),
    "wine": _UNSPLASH.format("1506377247377-2a5b3b417ebb"),
    "chocolate": _UNSPLASH.format("1549007908-b80825ae1bab"),
    # Art
    "watercolor": _UNSPLASH.format("1513475382585-d06e58bcb0e0"),
    "paint": _UNSPLASH.format("1513475382585-d06e58bcb0e0"),
    "sketchbook": _UNSPLASH.format("1460661419201-fd4cecdf8a8b"),
}

CATEGORY_IMAGES: dict[str, str] = {
    "tech": _UNSPLASH.format("1507003211169-0a1dd7228f2d"),
    "art": _UNSPLASH.format("1460661419201-fd4cecdf8a8b"),
    "sports": _UNSPLASH.format("1544117519-31a4b719223d"),
    "outdoors": _UNSPLASH.format("1487730116645-74489c95b41b"),
    "home": _UNSPLASH.format("1556909114-f6e7ad7d3136"),
    "books": _UNSPLASH.format("1481627834876-b7833e8f5570"),
    "music": _UNSPLASH.format("1493225457124-a3eb161ffa5f"),
    "food": _UNSPLASH.format("1447933601403-0c6688de566e"),
    "beauty": _UNSPLASH.format("1522335789203-aabd1fc54bc9"),
    "fashion": _UNSPLASH.format("1523275335684-37898b6baf30"),
    "tools": _UNSPLASH.format("1530124566582-a618bc2615dc"),
}

CATEGORY_KEYWORDS: dict[str, frozenset[str]] = {
    "tech": frozenset({
        "tech", "gadget", "electronic", "electronics", "smart", "iphone", "android",
        "mobile", "smartphone", "computer", "macbook", "pc", "console", "gaming",
        "earbuds", "airpods", "earphone", "charger", "drone",
    }),
    "art": frozenset({
        "art", "artist", "artistic", "drawing", "sketch", "canvas", "brush",
        "brushes", "acrylic", "pencil", "pencils", "creative", "craft", "pottery",
    }),
    "sports": frozenset({
        "sport", "sports", "fitness", "gym", "yoga", "running", "workout",
        "tracker", "basketball", "football", "soccer", "tennis", "golf", "cycling",
    }),
    "outdoors": frozenset({
        "outdoor", "outdoors", "camping", "hiking", "backpack", "tent", "adventure",
        "garden", "gardening",
    }),
    "home": frozenset({
        "home", "kitchen", "cooking", "cookware", "decor", "lamp", "scented",
        "aromatherapy", "succulent", "flower", "cozy",
    }),
    "books": frozenset({
        "books", "novel", "reading", "journal", "diary", "manga", "comic", "poetry",
    }),
    "music": frozenset({
        "music", "vinyl", "record", "guitar", "audio", "sound", "piano", "ukulele",
    }),
    "food": frozenset({
        "food", "gourmet", "snack", "snacks", "espresso", "latte", "brew", "candy",
        "sweet", "dessert", "cheese", "baking", "spice", "spices",
    }),
    "beauty": frozenset({
        "beauty", "fragrance", "cologne", "spa", "bath", "cosmetics", "lipstick",
        "serum", "lotion",
    }),
    "fashion": frozenset({
        "fashion", "timepiece", "purse", "handbag", "scarf", "shoe", "shoes",
        "sneaker", "sneakers", "boot", "boots", "ring", "pendant", "charm", "hat",
    }),
    "tools": frozenset({
        "tool", "tools", "drill", "toolkit", "wrench", "screwdriver", "diy",
        "multitool", "workshop",
    }),
}

_TOKEN = re.compile(r"[a-z0-9]+")
_LEADING_ARTICLE = re.compile(r"^(a|an|the)\s+", re.IGNORECASE)
_TRAILING_QUALIFIER = re.compile(r"\s+(for|with|in)\s+.+$", re.IGNORECASE)
_NON_WORD = re.compile(r"[^\w\s]")


def _tokenize(text: str) -> list[str]:
    return _TOKEN.findall(text.lower())


def clean_search_term(name: str, max_words: int = 3) -> str:
    """
    Reduce a gift name to a short image search term.

    Drops a leading article and trailing "for …"/"with …"/"in …" qualifiers,
    strips punctuation and keeps the first few words.
    """
    cleaned = _LEADING_ARTICLE.sub("", (name or "").strip())
    cleaned = _TRAILING_QUALIFIER.sub("", cleaned)
    cleaned = _NON_WORD.sub(" ", cleaned.lower())
    words = cleaned.split()
    return " ".join(words[:max_words])


def stock_image_for(name: str, description: str = "") -> Optional[str]:
    """
    Match gift text against the curated stock image tables.

    Tries, in order: a direct key match (token or phrase), a partial match
    (key inside a token or token inside a key), then a category keyword match.

    Returns:
        A stock image URL, or None if nothing matched.
    """
    tokens = _tokenize(f"{name} {description}")
    if not tokens:
        return None
    token_set = set(tokens)
    padded = f" {' '.join(tokens)} "

    # Direct
    for key, url in STOCK_IMAGES.items():
        if " " in key:
            if f" {key} " in padded:
                return url
        elif key in token_set:
            return url

    # Partial
    for key, url in STOCK_IMAGES.items():
        if " " in key:
            continue
        for token in tokens:
            if key in token or (len(token) >= MIN_PARTIAL_TOKEN_LENGTH and token in key):
                return url

    # Category
    for category, keywords in CATEGORY_KEYWORDS.items():
        if token_set & keywords:
            return CATEGORY_IMAGES[category]

    return None


def _is_candidate_image_url(url: str) -> bool:
    if not url or url.startswith("data:"):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme != "https" or not parsed.netloc:
        return False
    host = parsed.netloc.lower()
    return not any(excluded in host for excluded in EXCLUDED_IMAGE_HOSTS)


async def probe_image_url(
    url: str,
    client: httpx.AsyncClient,
    timeout: float = IMAGE_PROBE_TIMEOUT,
) -> bool:
    """
    Check that a URL serves an image, using a HEAD request only.

    Returns True for a 2xx response with an image/* content type.
    """
    try:
        response = await asyncio.wait_for(
            client.head(
                url,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
                timeout=timeout,
            ),
            timeout=timeout,
        )
    except (asyncio.TimeoutError, httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.debug("Image probe failed for %s: %s", url[:100], exc)
        return False

    if response.status_code not in VALID_STATUS_RANGE:
        return False
    content_type = response.headers.get("content-type", "") or ""
    return content_type.lower().startswith("image/")


class ImageResolver:
    """
    Resolves a display image URL for a gift. ``resolve`` never fails.

    Pass an httpx.AsyncClient to share connections across resolutions;
    otherwise a short-lived client is opened per call.
    """

    def __init__(
        self,
        search: Optional[BraveImageSearch] = None,
        client: Optional[httpx.AsyncClient] = None,
        search_timeout: float = IMAGE_SEARCH_TIMEOUT,
        probe_timeout: float = IMAGE_PROBE_TIMEOUT,
    ) -> None:
        self._search = search if search is not None else BraveImageSearch()
        self._client = client
        self.search_timeout = search_timeout
        self.probe_timeout = probe_timeout

    @asynccontextmanager
    async def _http_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.probe_timeout) as client:
            yield client

    async def resolve(self, name: str, description: str = "") -> str:
        """
        Resolve an image URL for a gift.

        Args:
            name: Gift name (or the candidate's image search term).
            description: Optional description, used by the keyword tier.

        Returns:
            A non-empty image URL. Falls back to DEFAULT_GIFT_IMAGE.
        """
        url = await self.search_web_image(name)
        if url:
            logger.debug("Image for '%s' from web search: %s", name, url)
            return url

        url = stock_image_for(name, description)
        if url:
            logger.debug("Image for '%s' from stock keywords", name)
            return url

        logger.debug("Image for '%s' fell back to default", name)
        return DEFAULT_GIFT_IMAGE

    async def search_web_image(self, name: str) -> Optional[str]:
        """Web image tier. Returns None on any miss, error or timeout."""
        if not self._search.is_configured():
            return None

        term = clean_search_term(name)
        if not term:
            return None

        try:
            async with self._http_client() as client:
                return await self._search_and_probe(term, client)
        except (asyncio.TimeoutError, httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Web image tier failed for '%s': %s", name, exc)
            return None

    async def _search_and_probe(
        self,
        term: str,
        client: httpx.AsyncClient,
    ) -> Optional[str]:
        probes_left = MAX_PROBE_CANDIDATES
        tried: set[str] = set()

        for query in (f"{term} product", term):
            try:
                urls = await asyncio.wait_for(
                    self._search.search(query, client),
                    timeout=self.search_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning("Image search timed out for query: %s", query)
                continue

            for url in urls:
                if probes_left <= 0:
                    return None
                if url in tried or not _is_candidate_image_url(url):
                    continue
                tried.add(url)
                probes_left -= 1
                if await probe_image_url(url, client, self.probe_timeout):
                    return url

        logger.info("No valid web image found for '%s'", term)
        return None
