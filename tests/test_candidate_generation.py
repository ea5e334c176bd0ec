"""
Tests for the Candidate Generation Service.

Verifies:
- The user prompt embeds the full recipient profile
- Claude responses are parsed into GiftCandidates (object or bare array)
- Markdown code fences are stripped
- matchingTraits is filtered to the profile's traits/interests
- Every failure mode raises UpstreamUnavailable, with no retries
- Wrongly typed fields are coerced or the entry is skipped
- from_config() / reset() client lifecycle

Run with: pytest tests/test_candidate_generation.py -v
"""

import asyncio
import json
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from giftfinder.agents.state import RecipientProfile
from giftfinder.core.errors import UpstreamUnavailable
from giftfinder.services.candidate_generation import (
    MAX_CANDIDATES,
    CandidateGenerator,
    _build_user_prompt,
    parse_candidates,
)


# ======================================================================
# Sample data factories
# ======================================================================

def _sample_profile(**overrides) -> RecipientProfile:
    data = {
        "name": "Priya",
        "traits": frozenset({"Creative", "Tech-savvy"}),
        "interests": frozenset({"Gaming", "Reading"}),
        "budget": Decimal("500"),
        "currency": "GBP",
        "country": "United Kingdom",
        "notes": "Just moved into a new flat",
        "gender": "female",
        "age_range": "25-34",
    }
    data.update(overrides)
    return RecipientProfile(**data)


def _sample_gift(**overrides) -> dict:
    data = {
        "name": "Nintendo Switch OLED",
        "description": "Perfect for a gamer.",
        "price": "£300 - £350",
        "matchPercentage": 90,
        "matchingTraits": ["Gaming", "Tech-savvy"],
        "imageSearchTerm": "nintendo switch oled",
        "shopSearchTerm": "nintendo switch oled console",
    }
    data.update(overrides)
    return data


def _mock_claude_response(text: str) -> MagicMock:
    response = MagicMock()
    response.content = [MagicMock(text=text)]
    return response


def _mock_client(text: str = None, side_effect=None) -> MagicMock:
    client = MagicMock()
    if side_effect is not None:
        client.messages.create = AsyncMock(side_effect=side_effect)
    else:
        client.messages.create = AsyncMock(return_value=_mock_claude_response(text))
    return client


def _generator(client) -> CandidateGenerator:
    return CandidateGenerator(client=client, api_key="test-key", model="test-model", timeout=1.0)


# ======================================================================
# 1. Prompt construction
# ======================================================================

class TestBuildUserPrompt:

    def test_profile_fields_included(self):
        prompt = _build_user_prompt(_sample_profile())
        assert "Priya" in prompt
        assert "Creative, Tech-savvy" in prompt
        assert "Gaming, Reading" in prompt
        assert "£500 GBP" in prompt
        assert "United Kingdom" in prompt
        assert "Just moved into a new flat" in prompt
        assert "female" in prompt
        assert "25-34" in prompt

    def test_optional_fields_omitted(self):
        prompt = _build_user_prompt(_sample_profile(notes=None, gender=None, age_range=None))
        assert "Gender" not in prompt
        assert "Age range" not in prompt
        assert "ADDITIONAL CONTEXT" not in prompt

    def test_budget_instruction(self):
        prompt = _build_user_prompt(_sample_profile())
        assert "Never exceed the budget" in prompt


# ======================================================================
# 2. Response parsing
# ======================================================================

class TestParseCandidates:

    def test_object_with_recommendations(self):
        text = json.dumps({"recommendations": [_sample_gift()]})
        candidates = parse_candidates(text, _sample_profile())
        assert len(candidates) == 1
        candidate = candidates[0]
        assert candidate.name == "Nintendo Switch OLED"
        assert candidate.price_hint == "£300 - £350"
        assert candidate.match_percentage == 90
        assert candidate.shop_search_term == "nintendo switch oled console"
        assert candidate.source == "generative"

    def test_bare_array(self):
        text = json.dumps([_sample_gift(), _sample_gift(name="Kindle")])
        assert [c.name for c in parse_candidates(text, _sample_profile())] == [
            "Nintendo Switch OLED", "Kindle",
        ]

    def test_code_fences_stripped(self):
        text = "```json\n" + json.dumps([_sample_gift()]) + "\n```"
        assert len(parse_candidates(text, _sample_profile())) == 1

    def test_capped_at_six(self):
        gifts = [_sample_gift(name=f"Gift {i}") for i in range(9)]
        candidates = parse_candidates(json.dumps(gifts), _sample_profile())
        assert len(candidates) == MAX_CANDIDATES

    def test_matching_traits_filtered_to_profile(self):
        gift = _sample_gift(matchingTraits=["gaming", "Sporty", "READING", "gaming"])
        candidate = parse_candidates(json.dumps([gift]), _sample_profile())[0]
        assert candidate.matching_traits == ["Gaming", "Reading"]

    @pytest.mark.parametrize("raw,expected", [
        (85, 85), (72.6, 73), ("88%", 88), ("high", 75), (None, 75), (True, 75),
    ])
    def test_match_percentage_coerced(self, raw, expected):
        gift = _sample_gift(matchPercentage=raw)
        candidate = parse_candidates(json.dumps([gift]), _sample_profile())[0]
        assert candidate.match_percentage == expected

    def test_out_of_range_percentage_kept_raw(self):
        # Clamping happens during enrichment, not parsing
        gift = _sample_gift(matchPercentage=140)
        candidate = parse_candidates(json.dumps([gift]), _sample_profile())[0]
        assert candidate.match_percentage == 140

    def test_missing_search_terms_default_to_name(self):
        gift = _sample_gift(imageSearchTerm=None, shopSearchTerm="")
        candidate = parse_candidates(json.dumps([gift]), _sample_profile())[0]
        assert candidate.image_search_term == "Nintendo Switch OLED"
        assert candidate.shop_search_term == "Nintendo Switch OLED"

    def test_missing_price_is_none(self):
        gift = _sample_gift()
        del gift["price"]
        candidate = parse_candidates(json.dumps([gift]), _sample_profile())[0]
        assert candidate.price_hint is None

    def test_nameless_entries_skipped(self):
        gifts = [_sample_gift(name=""), "junk", _sample_gift(name="Kindle")]
        candidates = parse_candidates(json.dumps(gifts), _sample_profile())
        assert [c.name for c in candidates] == ["Kindle"]

    def test_invalid_json_raises(self):
        with pytest.raises(UpstreamUnavailable):
            parse_candidates("Here are some gift ideas!", _sample_profile())

    def test_wrong_shape_raises(self):
        with pytest.raises(UpstreamUnavailable):
            parse_candidates(json.dumps({"gifts": []}), _sample_profile())

    def test_no_valid_candidates_raises(self):
        with pytest.raises(UpstreamUnavailable):
            parse_candidates(json.dumps([{"description": "no name"}]), _sample_profile())

    def test_wrongly_typed_optional_fields_coerced(self):
        gift = _sample_gift(
            imageSearchTerm=5, shopSearchTerm={}, description=["a", "list"], price=20,
        )
        candidate = parse_candidates(json.dumps([gift]), _sample_profile())[0]
        assert candidate.image_search_term == "5"
        assert candidate.shop_search_term == "Nintendo Switch OLED"
        assert candidate.description == ""
        assert candidate.price_hint == "20"

    def test_wrongly_typed_name_skipped(self):
        gifts = [_sample_gift(name={"en": "Mug"}), _sample_gift(name=["Mug"]), _sample_gift(name=True)]
        with pytest.raises(UpstreamUnavailable):
            parse_candidates(json.dumps(gifts), _sample_profile())


# ======================================================================
# 3. CandidateGenerator.generate
# ======================================================================

class TestGenerate:

    async def test_success(self):
        client = _mock_client(json.dumps({"recommendations": [_sample_gift()]}))
        candidates = await _generator(client).generate(_sample_profile())

        assert len(candidates) == 1
        client.messages.create.assert_called_once()
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert "Priya" in kwargs["messages"][0]["content"]
        assert kwargs["system"]

    async def test_api_error_raises_upstream_unavailable(self):
        client = _mock_client(side_effect=RuntimeError("401 unauthorized"))
        with pytest.raises(UpstreamUnavailable):
            await _generator(client).generate(_sample_profile())

    async def test_no_retry_on_failure(self):
        client = _mock_client(side_effect=RuntimeError("overloaded"))
        with pytest.raises(UpstreamUnavailable):
            await _generator(client).generate(_sample_profile())
        assert client.messages.create.call_count == 1

    async def test_timeout_raises_upstream_unavailable(self):
        async def _slow_create(**kwargs):
            await asyncio.sleep(1)
            return _mock_claude_response("[]")

        client = _mock_client(side_effect=_slow_create)
        generator = CandidateGenerator(client=client, api_key="test-key", timeout=0.05)
        with pytest.raises(UpstreamUnavailable):
            await generator.generate(_sample_profile())

    async def test_malformed_json_raises_upstream_unavailable(self):
        client = _mock_client("Sorry, I can't help with that.")
        with pytest.raises(UpstreamUnavailable):
            await _generator(client).generate(_sample_profile())

    async def test_wrongly_typed_payload_raises_upstream_unavailable(self):
        payload = {"recommendations": [{"name": ["Mug"], "price": "$20", "imageSearchTerm": 5}]}
        client = _mock_client(json.dumps(payload))
        with pytest.raises(UpstreamUnavailable):
            await _generator(client).generate(_sample_profile())

    async def test_empty_content_raises_upstream_unavailable(self):
        client = MagicMock()
        response = MagicMock()
        response.content = []
        client.messages.create = AsyncMock(return_value=response)
        with pytest.raises(UpstreamUnavailable):
            await _generator(client).generate(_sample_profile())

    async def test_cancellation_propagates(self):
        started = asyncio.Event()

        async def _hanging_create(**kwargs):
            started.set()
            await asyncio.sleep(10)

        client = _mock_client(side_effect=_hanging_create)
        generator = CandidateGenerator(client=client, api_key="test-key", timeout=30)
        task = asyncio.create_task(generator.generate(_sample_profile()))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


# ======================================================================
# 4. Client lifecycle
# ======================================================================

class TestClientLifecycle:

    def test_from_config_none_without_key(self):
        with patch(
            "giftfinder.services.candidate_generation.is_anthropic_configured",
            return_value=False,
        ):
            assert CandidateGenerator.from_config() is None

    def test_from_config_builds_client(self):
        with patch(
            "giftfinder.services.candidate_generation.is_anthropic_configured",
            return_value=True,
        ), patch("giftfinder.services.candidate_generation.AsyncAnthropic") as mock_cls:
            generator = CandidateGenerator.from_config()
        assert generator is not None
        mock_cls.assert_called_once()

    def test_reset_rebuilds_client(self):
        with patch("giftfinder.services.candidate_generation.AsyncAnthropic") as mock_cls:
            mock_cls.side_effect = [MagicMock(name="first"), MagicMock(name="second")]
            generator = CandidateGenerator(api_key="test-key")
            first = generator._client
            generator.reset()
        assert generator._client is not first
        assert mock_cls.call_count == 2
        mock_cls.assert_called_with(api_key="test-key")
