"""
Error taxonomy for the recommendation core.

Only ConfigurationError and NoRecommendationsWithinBudget ever reach the
caller. UpstreamUnavailable is raised by the candidate generator and
recovered by the template fallback. Price parse failures are not
exceptions at all (see ParseFailure in giftfinder.agents.state).
"""


class GiftFinderError(Exception):
    """Base class for all recommendation core errors."""

    pass


class UpstreamUnavailable(GiftFinderError):
    """Raised when the generative backend is down, errors, times out or returns junk."""

    pass


class ConfigurationError(GiftFinderError):
    """Raised when neither the generative backend nor the template table can supply candidates."""

    pass


class NoRecommendationsWithinBudget(GiftFinderError):
    """Raised when every enriched recommendation was dropped by the budget filter."""

    def __init__(self, budget, currency: str) -> None:
        self.budget = budget
        self.currency = currency
        super().__init__(
            f"No gift recommendations fit within a budget of {budget} {currency}"
        )
