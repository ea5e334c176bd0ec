"""
Recommendation Pipeline — LangGraph graph turning a profile into gift recommendations.

Chains the recommendation nodes into an executable graph:
1. request_candidates — Ask Claude for gift candidates (no retries)
2. template_fallback — Deterministic template gifts, only if step 1 produced nothing
3. enrich_candidates — Price, catalog, image and shop enrichment (bounded pool)
4. filter_by_budget — Drop anything whose price still ends above the budget

A generative failure is never surfaced: it routes to the template fallback.
Only two errors reach the caller:
- ConfigurationError — no generator and an empty template table
- NoRecommendationsWithinBudget — nothing survived the budget filter
"""

import logging
import random
from typing import Any, Mapping, Optional, Sequence

from langgraph.graph import END, START, StateGraph

from giftfinder.agents.budget_filter import filter_by_budget
from giftfinder.agents.enrichment import CandidateEnricher
from giftfinder.agents.state import GiftRecommendation, RecipientProfile, RecommendationState
from giftfinder.core.config import MAX_CONCURRENT_ENRICHMENTS
from giftfinder.core.errors import (
    ConfigurationError,
    NoRecommendationsWithinBudget,
    UpstreamUnavailable,
)
from giftfinder.services.candidate_generation import CandidateGenerator
from giftfinder.services.gift_templates import (
    GENERIC_GIFTS,
    GIFT_TEMPLATES,
    TemplateGift,
    select_template_candidates,
)
from giftfinder.services.image_resolver import ImageResolver
from giftfinder.services.product_catalog import ProductCatalog, default_catalog
from giftfinder.services.shop_links import ShopLinkBuilder

logger = logging.getLogger(__name__)


# ======================================================================
# Conditional edge functions
# ======================================================================

def _check_after_request(state: RecommendationState) -> str:
    """
    Route after request_candidates.

    No candidates (generation failed or is not configured) → template fallback.
    """
    if not state.candidates:
        logger.warning("Generation produced no candidates, falling back to templates")
        return "fallback"
    return "continue"


# ======================================================================
# Orchestrator
# ======================================================================

class RecommendationOrchestrator:
    """
    Owns the compiled graph and its collaborators.

    All collaborators are injectable; anything omitted gets a default built
    from environment config. Pass a seeded ``rng`` for reproducible prices,
    placeholder ranges and stock flags.
    """

    def __init__(
        self,
        generator: Optional[CandidateGenerator] = None,
        templates: Mapping[str, Sequence[TemplateGift]] = GIFT_TEMPLATES,
        generic_gifts: Sequence[TemplateGift] = GENERIC_GIFTS,
        image_resolver: Optional[ImageResolver] = None,
        shop_builder: Optional[ShopLinkBuilder] = None,
        catalog: ProductCatalog = default_catalog,
        rng: Optional[random.Random] = None,
        max_concurrency: int = MAX_CONCURRENT_ENRICHMENTS,
    ) -> None:
        if generator is None and not templates and not generic_gifts:
            raise ConfigurationError(
                "No candidate source: generation is not configured and the "
                "gift template table is empty"
            )

        rng = rng if rng is not None else random.Random()
        self.generator = generator
        self.templates = templates
        self.generic_gifts = generic_gifts
        self.enricher = CandidateEnricher(
            image_resolver=image_resolver if image_resolver is not None else ImageResolver(),
            shop_builder=(
                shop_builder if shop_builder is not None
                else ShopLinkBuilder(rng=rng, catalog=catalog)
            ),
            catalog=catalog,
            rng=rng,
            max_concurrency=max_concurrency,
        )
        self.graph = self.build_graph().compile()

    @classmethod
    def from_config(cls) -> "RecommendationOrchestrator":
        """Orchestrator wired from environment config (generation only if a key is set)."""
        return cls(generator=CandidateGenerator.from_config())

    # ------------------------------------------------------------------
    # Graph nodes
    # ------------------------------------------------------------------

    async def request_candidates(self, state: RecommendationState) -> dict[str, Any]:
        """LangGraph node: ask the generative backend for candidates."""
        if self.generator is None:
            return {"candidates": [], "error": "Candidate generation is not configured"}

        try:
            candidates = await self.generator.generate(state.profile)
        except UpstreamUnavailable as exc:
            logger.warning("Generative backend unavailable: %s", exc)
            return {"candidates": [], "error": str(exc)}

        return {"candidates": candidates, "candidate_source": "generative"}

    async def template_fallback(self, state: RecommendationState) -> dict[str, Any]:
        """LangGraph node: deterministic candidates from the template table."""
        candidates = select_template_candidates(
            state.profile, self.templates, self.generic_gifts,
        )
        return {"candidates": candidates, "candidate_source": "template"}

    async def enrich_candidates(self, state: RecommendationState) -> dict[str, Any]:
        """LangGraph node: enrich every candidate into a recommendation."""
        candidates = [
            self.enricher.apply_catalog_hint(c, state.profile) for c in state.candidates
        ]
        recommendations = await self.enricher.enrich_all(candidates, state.profile)
        return {"candidates": candidates, "recommendations": recommendations}

    async def apply_budget_filter(self, state: RecommendationState) -> dict[str, Any]:
        """LangGraph node: drop recommendations that end above the budget."""
        kept, dropped = filter_by_budget(
            state.recommendations, state.profile.budget, state.profile.currency,
        )
        return {"recommendations": kept, "dropped_over_budget": dropped}

    # ------------------------------------------------------------------
    # Graph construction
    # ------------------------------------------------------------------

    def build_graph(self) -> StateGraph:
        """
        Build the LangGraph StateGraph for the recommendation pipeline.

        Returns the uncompiled StateGraph.

        Node names:
        - "request_candidates"
        - "template_fallback"
        - "enrich_candidates"
        - "filter_by_budget"
        """
        graph = StateGraph(RecommendationState)

        # --- Add nodes ---
        graph.add_node("request_candidates", self.request_candidates)
        graph.add_node("template_fallback", self.template_fallback)
        graph.add_node("enrich_candidates", self.enrich_candidates)
        graph.add_node("filter_by_budget", self.apply_budget_filter)

        # --- Define edges ---

        # START → request_candidates → (conditional) enrich or fallback
        graph.add_edge(START, "request_candidates")
        graph.add_conditional_edges(
            "request_candidates",
            _check_after_request,
            {"continue": "enrich_candidates", "fallback": "template_fallback"},
        )

        # template_fallback → enrich_candidates → filter_by_budget → END
        graph.add_edge("template_fallback", "enrich_candidates")
        graph.add_edge("enrich_candidates", "filter_by_budget")
        graph.add_edge("filter_by_budget", END)

        return graph

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def recommend(self, profile: RecipientProfile) -> list[GiftRecommendation]:
        """
        Produce gift recommendations for a recipient.

        Cancelling the awaiting task cancels every in-flight generation,
        search and probe call.

        Args:
            profile: The recipient profile.

        Returns:
            Recommendations in candidate order, each within budget.

        Raises:
            ConfigurationError: Fallback needed but the template table is empty.
            NoRecommendationsWithinBudget: Nothing survived the budget filter.
        """
        logger.info(
            "Starting recommendation pipeline for %s (budget: %s %s, country: %s)",
            profile.name, profile.budget, profile.currency, profile.country,
        )

        result = await self.graph.ainvoke(RecommendationState(profile=profile))

        recommendations = list(result.get("recommendations", []))
        if not recommendations:
            logger.warning(
                "No recommendations within budget for %s (%d dropped)",
                profile.name, result.get("dropped_over_budget", 0),
            )
            raise NoRecommendationsWithinBudget(profile.budget, profile.currency)

        logger.info(
            "Pipeline completed for %s: %d recommendations (source: %s) — %s",
            profile.name,
            len(recommendations),
            result.get("candidate_source"),
            [r.name for r in recommendations],
        )
        return recommendations


# ======================================================================
# Convenience runner
# ======================================================================

async def recommend_gifts(profile: RecipientProfile) -> list[GiftRecommendation]:
    """Run the pipeline with an orchestrator wired from environment config."""
    return await RecommendationOrchestrator.from_config().recommend(profile)
