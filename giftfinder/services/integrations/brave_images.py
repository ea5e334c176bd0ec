"""
Brave Image Search — text-to-image lookup used by the web image tier.

Returns a ranked list of candidate image URLs for a free-text query. The
URLs are not guaranteed to load; callers must probe them before use.
No retries: a rate limit, timeout or HTTP error simply yields no results,
and the image resolver moves on to its next tier.
"""

import logging
from typing import Any, Optional

import httpx

from giftfinder.core.config import BRAVE_SEARCH_API_KEY, IMAGE_SEARCH_TIMEOUT

logger = logging.getLogger(__name__)

# ======================================================================
# Constants
# ======================================================================

BRAVE_IMAGE_SEARCH_URL = "https://api.search.brave.com/res/v1/images/search"
RESULTS_PER_QUERY = 8


def _nested_str(result: dict[str, Any], section: str, field: str) -> Optional[str]:
    value = result.get(section)
    if not isinstance(value, dict):
        return None
    url = value.get(field)
    return url if isinstance(url, str) and url else None


def _image_urls_from_response(data: Any) -> list[str]:
    """
    Pull full-size image URLs (or thumbnails as a fallback) out of a response.

    Anything that does not have the documented shape yields no URLs.
    """
    if not isinstance(data, dict) or not isinstance(data.get("results"), list):
        return []

    urls: list[str] = []
    for result in data["results"]:
        if not isinstance(result, dict):
            continue
        url = _nested_str(result, "properties", "url") or _nested_str(result, "thumbnail", "src")
        if url:
            urls.append(url)
    return urls


class BraveImageSearch:
    """Thin async client over the Brave image search endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = IMAGE_SEARCH_TIMEOUT,
    ) -> None:
        self._api_key = BRAVE_SEARCH_API_KEY if api_key is None else api_key
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def search(
        self,
        query: str,
        client: httpx.AsyncClient,
        count: int = RESULTS_PER_QUERY,
    ) -> list[str]:
        """
        Search for images matching the query.

        Args:
            query: Free-text search, e.g. "watercolor paint set product".
            client: Shared httpx.AsyncClient for this resolution.
            count: Max results to request.

        Returns:
            Candidate image URLs in ranked order. Empty on any error.
        """
        if not self.is_configured():
            return []

        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip",
            "X-Subscription-Token": self._api_key,
        }
        params = {
            "q": query,
            "count": count,
            "safesearch": "strict",
            "search_lang": "en",
        }

        try:
            response = await client.get(
                BRAVE_IMAGE_SEARCH_URL,
                headers=headers,
                params=params,
                timeout=self.timeout,
            )

            if response.status_code == 429:
                logger.warning("Brave image search rate limited for query: %s", query[:60])
                return []

            response.raise_for_status()
            return _image_urls_from_response(response.json())

        except (httpx.TimeoutException, httpx.HTTPError) as exc:
            logger.warning("Brave image search failed for '%s': %s", query[:60], exc)
            return []
        except ValueError as exc:
            logger.warning("Brave image search returned invalid JSON for '%s': %s", query[:60], exc)
            return []
