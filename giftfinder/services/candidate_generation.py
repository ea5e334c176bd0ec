"""
Candidate Generation Service — Claude-powered gift ideas for one recipient.

Makes a single Claude call per request and returns up to 6 GiftCandidates.
There are no retries: any failure (auth, network, timeout, malformed JSON,
nothing usable in the response) raises UpstreamUnavailable and the
orchestrator switches to the template fallback instead.

Prices and images in the response are only hints. Every candidate is
re-priced and re-imaged during enrichment.
"""

import asyncio
import json
import logging
from typing import Any, Optional

from anthropic import AsyncAnthropic
from pydantic import ValidationError

from giftfinder.agents.state import GiftCandidate, RecipientProfile
from giftfinder.core.config import (
    ANTHROPIC_API_KEY,
    GENERATION_TIMEOUT,
    GIFT_MODEL,
    is_anthropic_configured,
)
from giftfinder.core.errors import UpstreamUnavailable
from giftfinder.services.currency import currency_symbol, format_amount

logger = logging.getLogger(__name__)

# ======================================================================
# Constants
# ======================================================================

CLAUDE_MAX_TOKENS = 2048
MAX_CANDIDATES = 6
DEFAULT_MATCH_PERCENTAGE = 75


# ======================================================================
# System prompt
# ======================================================================

GIFT_SYSTEM_PROMPT = """\
You are a thoughtful gift recommendation expert. You suggest specific, \
real, purchasable gifts for one person based on their personality traits, \
interests and a fixed budget.

Rules:
1. Name REAL products a shopper can find online (include the brand where \
there is one). No vague categories like "a nice gift".
2. Every gift MUST fit within the budget. The upper end of the price range \
must not exceed the budget.
3. Vary the suggestions: different categories and price points.
4. matchingTraits may only contain traits or interests from the profile.

For each gift, return a JSON object with these keys:
- "name": string (specific product name)
- "description": string (2-3 sentences on why it suits them)
- "price": string price range in the requested currency, e.g. "£40 - £55"
- "matchPercentage": integer 60-95 (how well it fits the profile)
- "matchingTraits": array of trait/interest names it connects to
- "imageSearchTerm": string (short phrase to find a product photo)
- "shopSearchTerm": string (query that would find this exact item in a shop)

Return ONLY a JSON object {"recommendations": [...]} with 5-6 gifts. \
No markdown, no code fences, no explanation."""


# ======================================================================
# User prompt construction
# ======================================================================

def _build_user_prompt(profile: RecipientProfile) -> str:
    """Build the user prompt from the recipient profile."""
    symbol = currency_symbol(profile.currency)
    parts: list[str] = []

    parts.append(f"Generate 5-6 personalized gift ideas for {profile.name}.\n")

    parts.append("=== RECIPIENT PROFILE ===")
    parts.append(f"Name: {profile.name}")
    parts.append(f"Personality traits: {', '.join(profile.sorted_traits()) or 'not specified'}")
    parts.append(f"Interests: {', '.join(profile.sorted_interests()) or 'not specified'}")
    if profile.gender:
        parts.append(f"Gender: {profile.gender}")
    if profile.age_range:
        parts.append(f"Age range: {profile.age_range}")
    parts.append(f"Country: {profile.country}")

    parts.append("\n=== BUDGET ===")
    parts.append(f"Maximum: {symbol}{format_amount(profile.budget)} {profile.currency}")
    parts.append(
        f"Quote every price in {profile.currency} using the {symbol} symbol "
        "and stay within this budget."
    )

    if profile.notes:
        parts.append(f"\n=== ADDITIONAL CONTEXT ABOUT {profile.name.upper()} ===")
        parts.append(profile.notes)

    parts.append(
        "\nIMPORTANT: Use real product names that are sold in "
        f"{profile.country}. Never exceed the budget."
    )
    return "\n".join(parts)


# ======================================================================
# Response parsing
# ======================================================================

def _strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
    if text.endswith("```"):
        text = text[:-3].strip()
    if text.startswith("json"):
        text = text[4:].strip()
    return text


def _coerce_match_percentage(value: Any) -> int:
    """Best-effort integer; clamping to [60, 95] happens during enrichment."""
    if isinstance(value, bool):
        return DEFAULT_MATCH_PERCENTAGE
    if isinstance(value, (int, float)):
        return int(round(value))
    if isinstance(value, str):
        try:
            return int(round(float(value.strip().rstrip("%"))))
        except ValueError:
            return DEFAULT_MATCH_PERCENTAGE
    return DEFAULT_MATCH_PERCENTAGE


def _text_field(value: Any) -> Optional[str]:
    """Stripped text for a string or number field; None for empty or other types."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _normalize_candidate(
    raw: dict[str, Any],
    profile: RecipientProfile,
) -> Optional[GiftCandidate]:
    """Convert one response dict into a GiftCandidate, or None if unusable."""
    if not isinstance(raw, dict):
        return None
    name = _text_field(raw.get("name"))
    if not name:
        return None

    known = {t.lower(): t for t in (*profile.traits, *profile.interests)}
    raw_traits = raw.get("matchingTraits") or []
    matching = []
    if isinstance(raw_traits, list):
        for trait in raw_traits:
            canonical = known.get(str(trait).strip().lower())
            if canonical and canonical not in matching:
                matching.append(canonical)

    try:
        return GiftCandidate(
            name=name[:200],
            description=(_text_field(raw.get("description")) or "")[:1000],
            price_hint=_text_field(raw.get("price")),
            match_percentage=_coerce_match_percentage(raw.get("matchPercentage")),
            matching_traits=matching,
            image_search_term=_text_field(raw.get("imageSearchTerm")),
            shop_search_term=_text_field(raw.get("shopSearchTerm")),
            source="generative",
        )
    except ValidationError as exc:
        logger.debug("Candidate %r failed validation: %s", name[:60], exc)
        return None


def parse_candidates(text: str, profile: RecipientProfile) -> list[GiftCandidate]:
    """
    Parse a model response into GiftCandidates.

    Accepts either {"recommendations": [...]} or a bare JSON array.

    Raises:
        UpstreamUnavailable: The text is not JSON, has the wrong shape, or
            contains no usable candidate.
    """
    try:
        payload = json.loads(_strip_code_fences(text))
    except json.JSONDecodeError as exc:
        raise UpstreamUnavailable(f"Claude returned invalid JSON: {exc}") from exc

    if isinstance(payload, dict):
        payload = payload.get("recommendations")
    if not isinstance(payload, list):
        raise UpstreamUnavailable("Claude response has no recommendations list")

    candidates: list[GiftCandidate] = []
    for raw in payload:
        candidate = _normalize_candidate(raw, profile)
        if candidate is None:
            logger.debug("Skipping invalid candidate: %s", str(raw)[:100])
            continue
        candidates.append(candidate)
        if len(candidates) >= MAX_CANDIDATES:
            break

    if not candidates:
        raise UpstreamUnavailable("Claude response contained no valid candidates")
    return candidates


# ======================================================================
# Generator
# ======================================================================

class CandidateGenerator:
    """
    Wraps an AsyncAnthropic client.

    The client is injected so tests can pass a mock; ``reset()`` rebuilds a
    real client from the stored API key.
    """

    def __init__(
        self,
        client: Optional[AsyncAnthropic] = None,
        api_key: Optional[str] = None,
        model: str = GIFT_MODEL,
        timeout: float = GENERATION_TIMEOUT,
    ) -> None:
        self._api_key = ANTHROPIC_API_KEY if api_key is None else api_key
        self._client = client if client is not None else AsyncAnthropic(api_key=self._api_key)
        self.model = model
        self.timeout = timeout

    @classmethod
    def from_config(cls) -> Optional["CandidateGenerator"]:
        """A generator built from environment config, or None when no API key is set."""
        if not is_anthropic_configured():
            logger.warning("Anthropic API key not configured — generation disabled")
            return None
        return cls()

    def reset(self) -> None:
        """Drop the current client and build a fresh one."""
        self._client = AsyncAnthropic(api_key=self._api_key)

    async def generate(self, profile: RecipientProfile) -> list[GiftCandidate]:
        """
        Ask Claude for gift candidates.

        Args:
            profile: The recipient profile.

        Returns:
            1 to 6 GiftCandidates.

        Raises:
            UpstreamUnavailable: On any failure. Never retried.
        """
        user_prompt = _build_user_prompt(profile)
        logger.info(
            "Generating gift candidates for %s (budget: %s %s)",
            profile.name, profile.budget, profile.currency,
        )

        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=self.model,
                    max_tokens=CLAUDE_MAX_TOKENS,
                    system=GIFT_SYSTEM_PROMPT,
                    messages=[{"role": "user", "content": user_prompt}],
                ),
                timeout=self.timeout,
            )
            text = response.content[0].text
        except asyncio.TimeoutError as exc:
            logger.error("Gift generation timed out after %.1fs", self.timeout)
            raise UpstreamUnavailable("Claude request timed out") from exc
        except Exception as exc:
            logger.error("Gift generation failed: %s", exc)
            raise UpstreamUnavailable(f"Claude request failed: {exc}") from exc

        candidates = parse_candidates(text, profile)
        logger.info(
            "Generated %d candidates for %s: %s",
            len(candidates), profile.name, [c.name for c in candidates],
        )
        return candidates
