"""Mock collaborators for running the funnel without AI API keys.

Selected when USE_MOCK_GENERATORS is true (the default in development).
The canned report is written for a 5억~15억 budget; normalization clamps it
into whatever bracket the user actually picked.
"""

import json

import structlog
from PIL import Image

from spaceplan.activities.errors import GenerationError, GenerationErrorKind
from spaceplan.utils.gemini import image_to_data_url

logger = structlog.get_logger()

MOCK_REPORT = {
    "scenarios": [
        {
            "id": "conservative",
            "name": "안정형",
            "estimatedCost": {"min": 500_000_000, "max": 800_000_000},
            "monthlyRevenue": {"min": 12_000_000, "max": 18_000_000},
            "monthlyProfit": {"min": 4_500_000, "max": 7_500_000},
            "suggestedRooms": 12,
            "adr": {"peak": 120_000, "offPeak": 85_000},
            "occupancy": {"peak": 85, "offPeak": 55},
            "riskLevel": "low",
            "operationDifficulty": "easy",
            "keyRisk": "비수기 공실률 관리가 수익성을 좌우함",
            "moodDescription": "밝은 우드톤의 편안한 미니멀 객실",
            "riskScore": 25,
        },
        {
            "id": "balanced",
            "name": "균형형",
            "estimatedCost": {"min": 800_000_000, "max": 1_200_000_000},
            "monthlyRevenue": {"min": 18_000_000, "max": 26_000_000},
            "monthlyProfit": {"min": 6_000_000, "max": 10_000_000},
            "suggestedRooms": 16,
            "adr": {"peak": 150_000, "offPeak": 100_000},
            "occupancy": {"peak": 80, "offPeak": 50},
            "riskLevel": "medium",
            "operationDifficulty": "medium",
            "keyRisk": "주변 신규 숙소 공급에 따른 가격 경쟁",
            "moodDescription": "모던한 톤다운 컬러와 감성 조명",
            "riskScore": 50,
        },
        {
            "id": "aggressive",
            "name": "성장형",
            "estimatedCost": {"min": 1_200_000_000, "max": 1_500_000_000},
            "monthlyRevenue": {"min": 28_000_000, "max": 40_000_000},
            "monthlyProfit": {"min": 9_000_000, "max": 15_000_000},
            "suggestedRooms": 20,
            "adr": {"peak": 220_000, "offPeak": 140_000},
            "occupancy": {"peak": 75, "offPeak": 45},
            "riskLevel": "high",
            "operationDifficulty": "hard",
            "keyRisk": "높은 초기 투자비와 프리미엄 운영 인력 확보",
            "moodDescription": "대리석과 간접조명의 프리미엄 스위트",
            "riskScore": 72,
        },
    ],
    "recommendation": "초기 운영 안정성을 고려하면 안정형으로 시작해 단계적으로 확장하는 것을 추천합니다.",
}

_TIER_COLORS = [(214, 196, 170), (150, 160, 170), (70, 60, 55)]


class MockTextGenerator:
    """Returns MOCK_REPORT as JSON. ``fail_with`` makes the next call raise once."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.fail_with: GenerationError | None = None

    async def generate(self, brief: str, instruction: str) -> str:
        self.calls.append(brief)
        if self.fail_with is not None:
            error, self.fail_with = self.fail_with, None
            raise error
        logger.info("mock_report_generated", brief_chars=len(brief))
        return json.dumps(MOCK_REPORT, ensure_ascii=False)

    def fail_next(self, status_code: int = 429) -> None:
        self.fail_with = GenerationError(
            GenerationErrorKind.QUOTA_EXCEEDED, "Injected failure", status_code
        )


class MockImageGenerator:
    """Solid-color PNG placeholders, cycling through one color per tier."""

    def __init__(self) -> None:
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        color = _TIER_COLORS[len(self.prompts) % len(_TIER_COLORS)]
        self.prompts.append(prompt)
        return image_to_data_url(Image.new("RGB", (64, 48), color))

