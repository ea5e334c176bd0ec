"""
Recommendation State Schema — Pydantic models for the gift recommendation pipeline.

Defines the data that flows through the recommendation graph:
1. request_candidates — Ask the generative backend for gift candidates
2. template_fallback — Deterministic template gifts when generation fails
3. enrich_candidates — Price, catalog, image and shop enrichment per candidate
4. filter_by_budget — Drop anything that still exceeds the budget

Monetary values are Decimals in whole currency units (not cents), since
the supported currencies include zero-decimal ones like JPY and KRW.
"""

from __future__ import annotations

from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MATCH_PERCENTAGE_FLOOR = 60
MATCH_PERCENTAGE_CEILING = 95


# ======================================================================
# Input: recipient profile
# ======================================================================

class RecipientProfile(BaseModel):
    """
    Everything the core knows about the person receiving the gift.

    Supplied by the surrounding friend/CRUD layer after it loads a stored
    friend record. Immutable for the lifetime of a pipeline run.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    traits: frozenset[str] = Field(default_factory=frozenset)
    interests: frozenset[str] = Field(default_factory=frozenset)
    budget: Decimal = Field(gt=0)
    currency: str = "USD"
    country: str = "United States"
    notes: Optional[str] = None
    gender: Optional[str] = None
    age_range: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.strip().upper() or "USD"

    def sorted_traits(self) -> list[str]:
        return sorted(self.traits)

    def sorted_interests(self) -> list[str]:
        return sorted(self.interests)


# ======================================================================
# Pricing
# ======================================================================

class PriceRange(BaseModel):
    """Min/max price in whole currency units. Both non-negative, min <= max."""

    model_config = ConfigDict(frozen=True)

    min_amount: Decimal = Field(ge=0)
    max_amount: Decimal = Field(ge=0)

    @model_validator(mode="after")
    def check_order(self) -> "PriceRange":
        if self.min_amount > self.max_amount:
            raise ValueError(
                f"min_amount {self.min_amount} exceeds max_amount {self.max_amount}"
            )
        return self

    @property
    def midpoint(self) -> Decimal:
        return (self.min_amount + self.max_amount) / 2

    @property
    def width(self) -> Decimal:
        return self.max_amount - self.min_amount

    def clamp_to_budget(self, budget: Decimal) -> "PriceRange":
        """
        Pull the upper bound down to the budget.

        The lower bound is kept at or below 90% of the new maximum so the
        range still reads as a range. Ranges already within budget are
        returned unchanged.
        """
        if self.max_amount <= budget:
            return self
        new_max = budget
        new_min = min(self.min_amount, new_max * Decimal("0.9"))
        return PriceRange(min_amount=new_min, max_amount=new_max)

    def whole_units(self) -> "PriceRange":
        """Round to whole units without ever rounding the maximum up."""
        low = self.min_amount.quantize(Decimal(1), rounding=ROUND_HALF_UP)
        high = self.max_amount.quantize(Decimal(1), rounding=ROUND_FLOOR)
        return PriceRange(min_amount=min(low, high), max_amount=high)


class ParseFailure(BaseModel):
    """Explicit failure tag returned when a price string has no usable number."""

    model_config = ConfigDict(frozen=True)

    text: Optional[str] = None
    reason: str


# ======================================================================
# Static reference data
# ======================================================================

class ProductRecord(BaseModel):
    """A curated catalog product with real store URLs. Never mutated at runtime."""

    model_config = ConfigDict(frozen=True)

    canonical_key: str
    display_name: str
    store_urls: dict[str, str]
    image: str
    price_range: PriceRange


class BrandInfo(BaseModel):
    """Brand detected in a product name, used to pick retailer tiers."""

    model_config = ConfigDict(frozen=True)

    brand: Optional[str] = None
    tier: Literal["none", "premium", "luxury"] = "none"
    has_official_store: bool = False


# ======================================================================
# Candidates
# ======================================================================

class GiftCandidate(BaseModel):
    """
    An unvalidated gift idea, before price/image/shop enrichment.

    Produced by the generative backend or by the template fallback.
    ``price_hint`` is free-form text like "£50 - £75" and may be missing
    or garbage. ``image_url`` is only set for template gifts, which carry
    a curated picture.
    """

    name: str
    description: str = ""
    price_hint: Optional[str] = None
    match_percentage: int = 75
    matching_traits: list[str] = Field(default_factory=list)
    image_search_term: Optional[str] = None
    shop_search_term: Optional[str] = None
    image_url: Optional[str] = None
    source: Literal["generative", "template"] = "generative"

    @model_validator(mode="after")
    def default_search_terms(self) -> "GiftCandidate":
        # Search terms fall back to the gift name when absent or blank
        if not (self.image_search_term or "").strip():
            self.image_search_term = self.name
        if not (self.shop_search_term or "").strip():
            self.shop_search_term = self.name
        return self


# ======================================================================
# Output
# ======================================================================

class ShopListing(BaseModel):
    """A single place to buy the gift."""

    model_config = ConfigDict(frozen=True)

    name: str
    price: str  # currency-symbol formatted, e.g. "£62"
    in_stock: bool
    url: str


class GiftRecommendation(BaseModel):
    """A fully enriched recommendation handed back to the caller."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    price: str  # formatted range, e.g. "£50 - £75"
    match_percentage: int = Field(
        ge=MATCH_PERCENTAGE_FLOOR, le=MATCH_PERCENTAGE_CEILING,
    )
    matching_traits: list[str] = Field(default_factory=list)
    image: str = Field(min_length=1)
    shops: list[ShopListing] = Field(min_length=1, max_length=4)


# ======================================================================
# Main LangGraph State
# ======================================================================

class RecommendationState(BaseModel):
    """
    Complete state for the recommendation graph.

    Flows through up to 4 nodes:
    1. request_candidates → populates candidates (or leaves them empty)
    2. template_fallback → populates candidates from the template table
    3. enrich_candidates → populates recommendations
    4. filter_by_budget → trims recommendations
    """

    # --- Input data (set before graph execution) ---
    profile: RecipientProfile

    # --- Populated by graph nodes ---
    candidates: list[GiftCandidate] = Field(default_factory=list)
    candidate_source: Optional[Literal["generative", "template"]] = None
    recommendations: list[GiftRecommendation] = Field(default_factory=list)
    dropped_over_budget: int = 0

    # --- Error/status tracking ---
    error: Optional[str] = None
