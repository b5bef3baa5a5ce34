"""Tests for interior prompt construction and the scenario image fan-out."""

import time
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from spaceplan.activities.images import (
    GeminiImageGenerator,
    ImageGenerationError,
    build_interior_prompt,
    concept_description,
    default_concept,
    generate_scenario_images,
    reference_keywords,
    rooms_to_space_keywords,
    tier_for_index,
)
from spaceplan.activities.catalog import IMAGE_ONLY_VALUE
from spaceplan.activities.mock_stubs import MockImageGenerator
from spaceplan.activities.normalize import BUDGET_BRACKETS, fallback_scenarios


def _scenarios():
    return fallback_scenarios(BUDGET_BRACKETS["5b-15b"])


class TestKeywords:
    def test_tier_for_index(self):
        assert tier_for_index(0) == "conservative"
        assert tier_for_index(1) == "balanced"
        assert tier_for_index(2) == "aggressive"
        assert tier_for_index(7) == "aggressive"

    def test_rooms(self):
        assert rooms_to_space_keywords("10-20") == "compact, efficient space"
        assert rooms_to_space_keywords("20-30") == "spacious, well-planned layout"
        assert rooms_to_space_keywords("30+") == "well-designed interior"

    def test_reference_hints(self):
        kw = reference_keywords("화이트 톤에 대형 창문")
        assert "white tone, light color palette" in kw
        assert "large windows, natural daylight, open feel" in kw

    def test_reference_word_translation(self):
        assert reference_keywords("아늑한 감성") == "cozy aesthetic"

    def test_reference_without_hangul_is_empty(self):
        assert reference_keywords("white and airy") == ""

    def test_default_concept(self):
        assert default_concept("pension", "tourist") == (
            "cozy and warm natural design, comfortable atmosphere, resort-style, vacation vibes"
        )
        assert default_concept("motel", "other") == "clean and efficient modern design, practical layout"


class TestConceptDescription:
    def test_falls_back_to_type_default(self, facts):
        assert concept_description(facts) == default_concept("pension", "tourist")

    def test_concept_keyword(self, facts):
        minimal = facts.model_copy(update={"concept": "minimal"})
        assert concept_description(minimal).startswith("minimalist aesthetic")

    def test_unknown_concept_ignored(self, facts):
        assert concept_description(facts.model_copy(update={"concept": "unknown"})) == (
            default_concept("pension", "tourist")
        )

    def test_reference_wins_and_includes_concept(self, facts):
        both = facts.model_copy(update={"concept": "nature", "reference_text": "white and airy"})
        assert concept_description(both) == (
            "white and airy, incorporating natural materials, wood and stone elements, "
            "biophilic design, earth tones"
        )

    def test_image_placeholder_is_not_a_reference(self, facts):
        only_image = facts.model_copy(update={"reference_text": IMAGE_ONLY_VALUE})
        assert concept_description(only_image) == default_concept("pension", "tourist")

    def test_custom_concept_text(self, facts):
        custom = facts.model_copy(update={"concept": "아늑한 감성"})
        assert concept_description(custom) == "cozy aesthetic"


class TestInteriorPrompt:
    def test_single_line(self, facts):
        prompt = build_interior_prompt(facts, "balanced")
        assert "\n" not in prompt
        assert prompt.startswith("Professional architectural interior photography.")

    def test_space_and_location(self, facts):
        prompt = build_interior_prompt(facts, "conservative")
        assert "SPACE: pension villa, resort area location" in prompt
        assert "SCALE: compact, efficient space" in prompt

    def test_materials_depend_on_tier_and_budget(self, facts):
        low = build_interior_prompt(facts, "conservative")
        high = build_interior_prompt(facts, "aggressive")
        assert "FLOOR: quality vinyl plank flooring in light oak finish" in low
        assert "FLOOR: solid oak or walnut hardwood flooring in rich finish" in high
        assert "budget tier (lower range within user budget)" in low
        assert "premium tier (upper range within user budget)" in high

    def test_unknown_budget_uses_default_materials(self, facts):
        prompt = build_interior_prompt(facts.model_copy(update={"budget": "unknown"}), "balanced")
        assert "FLOOR: engineered hardwood flooring WALLS:" in prompt

    def test_target_customer_mood(self, facts):
        couple = facts.model_copy(update={"target_customer": "couple"})
        assert "ATMOSPHERE: romantic and intimate atmosphere" in build_interior_prompt(couple, "balanced")
        assert "ATMOSPHERE: comfortable and inviting atmosphere" in build_interior_prompt(
            facts, "balanced"
        )


class _FailingTier:
    """Image generator that fails for one tier's prompt."""

    def __init__(self, marker: str) -> None:
        self.marker = marker

    async def generate(self, prompt: str) -> str:
        if self.marker in prompt:
            raise ImageGenerationError("render failed")
        return "data:image/png;base64,AAAA"


class TestScenarioImages:
    async def test_all_scenarios_get_images(self, facts):
        progress: list[float] = []
        out = await generate_scenario_images(facts, _scenarios(), MockImageGenerator(), progress.append)
        assert all(s.image_url for s in out)
        assert sorted(progress) == pytest.approx([100 / 3, 200 / 3, 100])

    async def test_one_failure_keeps_scenario_without_image(self, facts):
        progress: list[float] = []
        out = await generate_scenario_images(
            facts, _scenarios(), _FailingTier("mid-range tier"), progress.append
        )
        assert [s.id for s in out] == ["conservative", "balanced", "aggressive"]
        assert out[0].image_url and out[2].image_url
        assert out[1].image_url is None
        assert progress[-1] == 100

    async def test_all_failing_still_reaches_100(self, facts):
        progress: list[float] = []
        out = await generate_scenario_images(
            facts, _scenarios(), _FailingTier("Professional"), progress.append
        )
        assert all(s.image_url is None for s in out)
        assert progress[-1] == 100

    async def test_inputs_not_mutated(self, facts):
        scenarios = _scenarios()
        await generate_scenario_images(facts, scenarios, MockImageGenerator())
        assert all(s.image_url is None for s in scenarios)


class TestGeminiImageGenerator:
    async def test_returns_png_data_url(self):
        client = MagicMock()
        image = Image.new("RGB", (4, 4), (1, 2, 3))
        with patch("spaceplan.activities.images.extract_image", return_value=image):
            url = await GeminiImageGenerator(client=client, model="m").generate("a room")
        assert url.startswith("data:image/png;base64,")
        call = client.models.generate_content.call_args
        assert call.kwargs["model"] == "m"
        assert call.kwargs["contents"] == ["a room"]

    async def test_retries_once_on_text_only(self):
        client = MagicMock()
        image = Image.new("RGB", (4, 4))
        with (
            patch("spaceplan.activities.images.extract_image", side_effect=[None, image]),
            patch("spaceplan.activities.images.extract_text", return_value="I'd describe it"),
        ):
            url = await GeminiImageGenerator(client=client).generate("a room")
        assert url.startswith("data:image/png")
        assert client.models.generate_content.call_count == 2
        retry_contents = client.models.generate_content.call_args.kwargs["contents"]
        assert retry_contents == ["a room", "Please generate the interior image now."]

    async def test_text_only_twice_raises(self):
        client = MagicMock()
        with (
            patch("spaceplan.activities.images.extract_image", return_value=None),
            patch("spaceplan.activities.images.extract_text", return_value="no image"),
        ):
            with pytest.raises(ImageGenerationError, match="text-only"):
                await GeminiImageGenerator(client=client).generate("a room")

    async def test_timeout_raises(self):
        client = MagicMock()
        client.models.generate_content.side_effect = lambda **_: time.sleep(0.3)
        with pytest.raises(ImageGenerationError, match="timed out"):
            await GeminiImageGenerator(client=client, timeout=0.01).generate("a room")
