"""Scenario interior renders: prompt construction and concurrent fan-out.

Each scenario gets one photorealistic interior image. The three requests run
concurrently; a failed render never fails the report, the scenario just keeps
no image. Prompts are English because the image model follows English
material and lighting vocabulary far more reliably than Korean.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Callable
from typing import Literal, Protocol

import structlog

from spaceplan.activities.catalog import IMAGE_ONLY_VALUE
from spaceplan.config import settings
from spaceplan.models.contracts import ProjectFacts, Scenario
from spaceplan.utils.gemini import (
    IMAGE_CONFIG,
    extract_image,
    extract_text,
    get_client,
    image_to_data_url,
)

logger = structlog.get_logger()

Tier = Literal["conservative", "balanced", "aggressive"]
TIERS: tuple[Tier, ...] = ("conservative", "balanced", "aggressive")

_ACCOMMODATION_EN = {
    "motel": "modern motel",
    "pension": "pension villa",
    "guesthouse": "guesthouse",
    "airbnb": "shared accommodation",
    "boutique": "boutique hotel",
    "other": "accommodation facility",
}

_LOCATION_EN = {
    "tourist": "resort area",
    "urban": "city center",
    "university": "university district",
    "station": "transportation hub",
    "other": "commercial area",
}

_CONCEPT_KEYWORDS = {
    "minimal": "minimalist aesthetic, clean lines, neutral palette, uncluttered spaces",
    "nature": "natural materials, wood and stone elements, biophilic design, earth tones",
    "luxury": "luxurious and elegant, refined details, sophisticated palette",
    "instagram": "photogenic and trendy, aesthetic design, statement pieces",
    "kitsch": "playful and eclectic, bold colors, vintage accents, unique character",
}

_DEFAULT_MOOD = "comfortable and inviting atmosphere"
_TARGET_MOOD = {
    "couple": "romantic and intimate atmosphere, cozy private spaces",
    "family": "warm and welcoming, spacious family-friendly layout",
    "longstay": "comfortable and practical, residential feel",
    "group": "social and communal, open gathering spaces",
    "unknown": _DEFAULT_MOOD,
}

_ACCOMMODATION_CONCEPT = {
    "motel": "clean and efficient modern design, practical layout",
    "pension": "cozy and warm natural design, comfortable atmosphere",
    "guesthouse": "friendly and welcoming design, communal spaces",
    "airbnb": "stylish and Instagram-worthy design, unique character",
    "boutique": "sophisticated and distinctive design, curated aesthetics",
    "other": "modern and comfortable design",
}

_LOCATION_CONCEPT = {
    "tourist": "resort-style, vacation vibes",
    "urban": "contemporary urban, city chic",
    "university": "young and fresh, modern minimal",
    "station": "sleek and convenient, business casual",
}

# Longest keys first so "미니멀한" is replaced before "미니멀".
_KO_EN = dict(
    sorted(
        {
            "화이트": "white",
            "톤": "tone",
            "미니멀": "minimal",
            "미니멀한": "minimal",
            "대형": "large",
            "창문": "windows",
            "자연": "natural",
            "채광": "lighting",
            "나무": "wood",
            "돌": "stone",
            "친화": "friendly",
            "친화적": "eco-friendly",
            "디자인": "design",
            "스타일": "style",
            "깔끔": "clean",
            "깔끔한": "clean",
            "모던": "modern",
            "모던한": "modern",
            "럭셔리": "luxury",
            "럭셔리한": "luxury",
            "프리미엄": "premium",
            "고급": "high-end",
            "고급스러운": "sophisticated",
            "우아한": "elegant",
            "세련된": "refined",
            "트렌디": "trendy",
            "트렌디한": "trendy",
            "인스타": "Instagram",
            "감성": "aesthetic",
            "감성적인": "aesthetic",
            "아늑한": "cozy",
            "편안한": "comfortable",
            "따뜻한": "warm",
            "밝은": "bright",
            "어두운": "dark",
            "따뜻함": "warmth",
            "밝음": "brightness",
        }.items(),
        key=lambda kv: -len(kv[0]),
    )
)

_REFERENCE_HINTS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("화이트", "흰색"), "white tone, light color palette"),
    (("미니멀",), "minimalist aesthetic, clean lines, uncluttered"),
    (("자연", "나무", "돌"), "natural materials, organic elements, biophilic design"),
    (("대형", "창문"), "large windows, natural daylight, open feel"),
    (("럭셔리", "고급"), "luxurious, premium finishes, sophisticated"),
)

_HANGUL_RE = re.compile(r"[ㄱ-ㅎㅏ-ㅣ가-힣]")

_TIER_STYLE: dict[Tier, tuple[str, str, str]] = {
    # (style, design approach, budget tier)
    "conservative": (
        "stable and proven design",
        "classic and timeless interior",
        "budget tier (lower range within user budget)",
    ),
    "balanced": (
        "modern and sophisticated design",
        "trendy yet practical interior",
        "mid-range tier (middle range within user budget)",
    ),
    "aggressive": (
        "original and bold design",
        "innovative and distinctive interior",
        "premium tier (upper range within user budget)",
    ),
}

# (floor, walls, fixtures, furniture, lighting) per tier and budget bracket.
_MATERIALS: dict[Tier, dict[str, tuple[str, str, str, str, str]]] = {
    "conservative": {
        "under-50m": (
            "budget vinyl flooring in light oak or gray finish",
            "simple white painted walls, minimal texture, basic drywall",
            "standard chrome faucets and handles, basic white tiles",
            "affordable minimalist furniture, IKEA-style, flat pack assembly, simple clean lines",
            "basic recessed LED lighting, simple pendant lights, standard track lighting",
        ),
        "50m-5b": (
            "quality vinyl plank flooring in light oak or beige finish",
            "clean white painted walls with minimal texture, simple accent wall",
            "standard modern chrome faucets and handles, ceramic white tiles",
            "affordable contemporary furniture, simple clean lines, budget-friendly pieces",
            "basic recessed LED lighting, simple pendant lights, wall sconces",
        ),
        "5b-15b": (
            "quality vinyl plank flooring in light oak finish",
            "clean white painted walls with minimal texture",
            "standard modern chrome faucets and handles",
            "affordable minimalist furniture, simple clean lines",
            "basic recessed LED lighting, simple pendant lights",
        ),
        "over-15b": (
            "engineered hardwood flooring in light oak finish",
            "clean white painted walls, subtle texture",
            "standard brushed nickel fixtures",
            "mid-range minimalist furniture, clean lines",
            "recessed LED lighting, simple designer pendant lights",
        ),
        "": (
            "quality vinyl flooring",
            "clean painted walls",
            "standard modern fixtures",
            "affordable contemporary furniture",
            "basic LED lighting",
        ),
    },
    "balanced": {
        "under-50m": (
            "quality vinyl plank flooring in oak or gray finish",
            "painted walls with accent wallpaper, subtle texture",
            "brushed nickel fixtures, ceramic designer tiles",
            "mid-range contemporary furniture, some custom joinery, tasteful details",
            "recessed LED lighting, designer pendant lights, accent lighting",
        ),
        "50m-5b": (
            "engineered hardwood flooring in oak or walnut finish",
            "painted walls with accent wallpaper, textured finishes",
            "brushed nickel or matte black fixtures, quartz countertops, ceramic designer tiles",
            "mid-range contemporary furniture, some custom joinery, tasteful details",
            "recessed LED lighting, designer pendant lights, wall sconces, accent lighting",
        ),
        "5b-15b": (
            "engineered hardwood flooring in oak or walnut finish",
            "painted walls with accent wallpaper, textured finishes",
            "brushed nickel or matte black fixtures, quartz countertops, ceramic designer tiles",
            "mid-range contemporary furniture, some custom joinery, tasteful details",
            "recessed LED lighting, designer pendant lights, wall sconces, accent lighting",
        ),
        "over-15b": (
            "solid oak or engineered hardwood flooring in rich finish",
            "painted walls with designer wallpaper, textured finishes",
            "brass or matte black designer fixtures, quartz countertops, luxury tiles",
            "high-end contemporary furniture, custom joinery, designer pieces",
            "sophisticated LED lighting system, designer pendant lights, wall sconces, "
            "accent lighting",
        ),
        "": (
            "engineered hardwood flooring",
            "painted walls with accent details",
            "modern designer fixtures",
            "mid-range contemporary furniture",
            "well-designed LED lighting",
        ),
    },
    "aggressive": {
        "under-50m": (
            "engineered hardwood flooring in premium finish",
            "painted walls with designer wallpaper, textured finishes",
            "brushed nickel designer fixtures, quartz countertops",
            "mid-range designer furniture, custom elements, enhanced details",
            "sophisticated LED lighting, designer pendant lights, accent lighting",
        ),
        "50m-5b": (
            "engineered hardwood or luxury vinyl in premium finish",
            "painted walls with designer wallpaper, textured finishes, accent features",
            "brass or matte black designer fixtures, quartz countertops, luxury tiles",
            "high-end contemporary furniture, custom joinery, designer elements",
            "sophisticated LED lighting system, designer pendant lights, wall sconces, "
            "accent lighting",
        ),
        "5b-15b": (
            "solid oak or walnut hardwood flooring in rich finish",
            "venetian plaster walls or designer wallpaper, textured finishes, accent features",
            "brass or matte black designer fixtures, natural marble or quartz, "
            "porcelain luxury tiles",
            "bespoke custom furniture, built-in cabinetry, designer pieces, premium finishes",
            "sophisticated LED lighting system, designer pendant lights, wall sconces, "
            "accent lighting, dimmable",
        ),
        "over-15b": (
            "solid oak or walnut hardwood flooring, natural marble accents",
            "venetian plaster walls, designer wallpaper, textured finishes, accent features",
            "brass or matte black designer fixtures, natural marble or granite, "
            "porcelain luxury tiles",
            "bespoke custom furniture, built-in cabinetry, designer pieces, luxury touches",
            "sophisticated LED lighting system, designer pendant lights, wall sconces, "
            "accent lighting, dimmable, smart controls",
        ),
        "": (
            "premium hardwood flooring",
            "designer wall finishes",
            "designer fixtures",
            "high-end custom furniture",
            "sophisticated lighting design",
        ),
    },
}


def tier_for_index(index: int) -> Tier:
    """Scenario position to tier: 0 conservative, 1 balanced, anything else aggressive."""
    return TIERS[min(max(index, 0), 2)]


def rooms_to_space_keywords(rooms: str) -> str:
    if rooms in ("10", "10-20"):
        return "compact, efficient space"
    if rooms == "20-30":
        return "spacious, well-planned layout"
    return "well-designed interior"


def reference_keywords(text: str) -> str:
    """English keywords for a Korean reference description.

    Returns "" for text with no Hangul, leaving the caller to use it verbatim.
    Known interior hints win; otherwise the text is word-translated in place.
    """
    if not _HANGUL_RE.search(text):
        return ""
    hints = [hint for needles, hint in _REFERENCE_HINTS if any(n in text for n in needles)]
    if hints:
        return ", ".join(hints)
    translated = text
    for ko, en in _KO_EN.items():
        translated = translated.replace(ko, en)
    return translated


def default_concept(accommodation_type: str, location_type: str) -> str:
    base = _ACCOMMODATION_CONCEPT.get(accommodation_type, "modern and comfortable design")
    location = _LOCATION_CONCEPT.get(location_type, "")
    return f"{base}, {location}" if location else base


def concept_description(facts: ProjectFacts) -> str:
    """Combine concept choice and reference text, falling back to a type-based default."""
    reference = (facts.reference_text or "").replace(IMAGE_ONLY_VALUE, "").strip()
    concept = (facts.concept or "").strip()
    if concept in ("unknown", "custom"):
        concept = ""
    # Free-text concepts (typed via the custom option) are described like references
    concept_kw = _CONCEPT_KEYWORDS.get(concept) or reference_keywords(concept) or concept

    if reference:
        ref = reference_keywords(reference) or reference
        return f"{ref}, incorporating {concept_kw}" if concept_kw else ref
    if concept_kw:
        return concept_kw
    return default_concept(facts.accommodation_type, facts.location.location_type)


def build_interior_prompt(facts: ProjectFacts, tier: Tier) -> str:
    """Single-line English prompt for one scenario's interior render."""
    _style, _approach, budget_tier = _TIER_STYLE[tier]
    floor, walls, fixtures, furniture, lighting = _MATERIALS[tier].get(
        facts.budget, _MATERIALS[tier][""]
    )
    space = _ACCOMMODATION_EN.get(facts.accommodation_type, "accommodation facility")
    location = _LOCATION_EN.get(facts.location.location_type, "commercial area")
    mood = _TARGET_MOOD.get(facts.target_customer or "", _DEFAULT_MOOD)

    prompt = f"""Professional architectural interior photography.
SPACE: {space}, {location} location
CONCEPT: {concept_description(facts)}
ATMOSPHERE: {mood}
SCALE: {rooms_to_space_keywords(facts.scale.rooms)}
BUDGET TIER: {budget_tier}
FLOOR: {floor}
WALLS: {walls}
FIXTURES: {fixtures}
FURNITURE: {furniture}
LIGHTING: {lighting}
Korean modern hospitality design aesthetic, natural daylight, wide angle architectural view,
photorealistic rendering, professional interior photography, magazine quality, 8K resolution."""
    return " ".join(prompt.split())


# === Generators ===


class ImageGenerator(Protocol):
    async def generate(self, prompt: str) -> str:
        """Render ``prompt`` and return an image reference (URL or data URL)."""
        ...


class ImageGenerationError(Exception):
    pass


class GeminiImageGenerator:
    """Image generation via google-genai, returned as PNG data URLs."""

    def __init__(self, client=None, model: str | None = None, timeout: float | None = None):
        self._client = client
        self.model = model or settings.gemini_model
        self.timeout = timeout if timeout is not None else settings.image_timeout_seconds

    @property
    def client(self):
        if self._client is None:
            self._client = get_client()
        return self._client

    async def _call(self, contents: list[str]):
        async with asyncio.timeout(self.timeout):
            return await asyncio.to_thread(
                self.client.models.generate_content,
                model=self.model,
                contents=contents,
                config=IMAGE_CONFIG,
            )

    async def generate(self, prompt: str) -> str:
        try:
            response = await self._call([prompt])
            image = extract_image(response)
            if image is None:
                # Retry once with an explicit image request
                logger.warning("gemini_no_image_response", gemini_text=extract_text(response)[:300])
                response = await self._call([prompt, "Please generate the interior image now."])
                image = extract_image(response)
        except TimeoutError as e:
            raise ImageGenerationError(f"Gemini timed out after {self.timeout:.0f}s") from e

        if image is None:
            raise ImageGenerationError(
                f"Gemini returned text-only response: {extract_text(response)[:200]}"
            )
        return image_to_data_url(image)


# === Fan-out ===


async def generate_scenario_images(
    facts: ProjectFacts,
    scenarios: list[Scenario],
    generator: ImageGenerator,
    on_progress: Callable[[float], None] | None = None,
) -> list[Scenario]:
    """Render all scenarios concurrently; failures keep the scenario without an image.

    ``on_progress`` receives completed / total * 100 each time a request settles,
    whether it succeeded or not, so it always ends at 100.
    """
    total = len(scenarios)
    completed = 0

    async def _render(index: int, scenario: Scenario) -> Scenario:
        nonlocal completed
        tier = tier_for_index(index)
        try:
            url = await generator.generate(build_interior_prompt(facts, tier))
            logger.info("scenario_image_generated", scenario=scenario.id, tier=tier)
            return scenario.model_copy(update={"image_url": url})
        except Exception as exc:
            logger.warning(
                "scenario_image_failed",
                scenario=scenario.id,
                tier=tier,
                error=str(exc)[:200],
                error_type=type(exc).__name__,
            )
            return scenario
        finally:
            completed += 1
            if on_progress is not None:
                on_progress(completed / total * 100)

    logger.info("scenario_images_start", count=total)
    results = await asyncio.gather(
        *(_render(i, s) for i, s in enumerate(scenarios)), return_exceptions=True
    )
    final = [
        result if isinstance(result, Scenario) else original
        for result, original in zip(results, scenarios, strict=True)
    ]
    logger.info(
        "scenario_images_done",
        count=total,
        with_image=sum(1 for s in final if s.image_url),
    )
    return final
