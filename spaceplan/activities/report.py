"""Report request pipeline: diagnosis brief → text model → normalize → images.

The brief is the user turn sent to the text model; it restates the selected
budget bracket several times in absolute won because models otherwise drift
outside it. Output repair lives in normalize.py, image fan-out in images.py.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from functools import cache
from pathlib import Path
from typing import Any, Protocol

import anthropic
import structlog

from spaceplan.activities.errors import GenerationError, GenerationErrorKind
from spaceplan.activities.images import ImageGenerator, generate_scenario_images
from spaceplan.activities.normalize import bracket_for, normalize_report
from spaceplan.config import settings
from spaceplan.models.contracts import ProjectFacts, ReportResult
from spaceplan.utils.tracing import wrap_anthropic

logger = structlog.get_logger()

PROMPTS_DIR = Path(__file__).parent.parent / "prompts"

PROJECT_STATUS_LABELS = {
    "searching": "매물 탐색 중",
    "planning": "기획 단계",
    "design": "설계 단계",
    "construction": "시공 단계",
}

REGION_LABELS = {
    "seoul": "서울",
    "gyeonggi": "경기/인천",
    "gangwon": "강원",
    "chungcheong": "충청",
    "jeolla": "전라",
    "gyeongsang": "경상",
    "jeju": "제주",
    "undecided": "미정",
}

LOCATION_TYPE_LABELS = {
    "tourist": "관광지",
    "urban": "도심",
    "university": "대학가",
    "station": "역세권",
    "other": "기타",
}

ACCOMMODATION_LABELS = {
    "motel": "모텔",
    "pension": "펜션·풀빌라",
    "guesthouse": "게스트하우스",
    "airbnb": "공유숙박",
    "boutique": "소형호텔",
    "other": "기타",
}

_EXTRA_FIELDS = (
    ("target_customer", "타겟 고객"),
    ("concept", "컨셉"),
    ("reference_text", "레퍼런스"),
    ("interior_scope", "인테리어 범위"),
    ("building_condition", "건물 상태"),
    ("condition_text", "건물 상태 상세"),
)


@cache
def load_system_instruction() -> str:
    return (PROMPTS_DIR / "report_system.txt").read_text(encoding="utf-8")


def _won(amount: int) -> str:
    return f"{amount:,}"


def build_diagnosis_brief(facts: ProjectFacts) -> str:
    """Korean user-turn text describing the project for the text model.

    Coded answers become Korean labels; unknown codes pass through as-is.
    """
    bracket = bracket_for(facts.budget)
    budget_text = bracket.text if facts.budget in (bracket.code, "") else facts.budget

    lines = [
        "다음 정보를 바탕으로 숙박업 창업 사전진단 리포트를 생성해주세요:",
        "",
        "[프로젝트 현황]",
        f"- 프로젝트 단계: {PROJECT_STATUS_LABELS.get(facts.project_status, facts.project_status)}",
        f"- 지역: {REGION_LABELS.get(facts.location.region, facts.location.region)}",
        "- 입지 유형: "
        f"{LOCATION_TYPE_LABELS.get(facts.location.location_type, facts.location.location_type)}",
        "- 숙박 형태: "
        f"{ACCOMMODATION_LABELS.get(facts.accommodation_type, facts.accommodation_type)}",
        "",
        "[규모 및 예산]",
        f"- 예상 객실 수: {facts.scale.rooms}",
        f"- 건물 연면적: {facts.scale.area}",
        f"- 건물 층수: {facts.scale.floors}",
        f"- 주차장: {facts.scale.parking}",
    ]

    budget_line = f"- 사용자 예산: {budget_text}"
    if bracket.ceiling > 0:
        if bracket.code == "under-50m":
            budget_line += (
                f" (원 단위: 1천만원 ~ 5천만원 미만, 즉 {_won(bracket.floor)}원 ~ "
                f"{_won(bracket.ceiling)}원 미만)"
            )
        else:
            budget_line += f" (원 단위: {_won(bracket.floor)}원 ~ {_won(bracket.ceiling)}원)"
    lines.append(budget_line)
    lines.append(f"- 건물 매입 포함: {'예' if facts.include_building_purchase else '아니오'}")
    lines.append("")

    if bracket.ceiling > 0:
        lines.append(
            '⚠️ 매우 중요: 시나리오의 estimatedCost는 반드시 위의 "사용자 예산" 범위 내에서 '
            "제시해야 합니다."
        )
        if bracket.code == "under-50m":
            lines += [
                '- 사용자 예산이 "5천만원 미만"이므로, estimatedCost.max는 반드시 '
                f"5천만원({_won(bracket.ceiling)}원) 미만이어야 합니다.",
                f"- estimatedCost.min은 {_won(bracket.floor)}원 이상, estimatedCost.max는 "
                f"{_won(bracket.ceiling)}원 미만이어야 합니다.",
                "- 예를 들어 안정형 시나리오는 1천만~2천만원, 균형형은 2천만~3천5백만원, "
                "성장형은 3천5백만~4천5백만원 정도로 설정하세요.",
            ]
        else:
            lines += [
                f"- estimatedCost.min은 {_won(bracket.floor)}원 이상이어야 합니다.",
                f"- estimatedCost.max는 {_won(bracket.ceiling)}원 이하여야 합니다.",
            ]
            if bracket.code == "5b-15b":
                lines.append(
                    "- 예를 들어 안정형 시나리오는 5억~8억원, 균형형은 8억~12억원, "
                    "성장형은 12억~15억원 정도로 설정하세요."
                )
            else:
                lines.append("- 각 시나리오는 이 범위 내에서 현실적인 공사비를 계산하세요.")
        lines.append("")

    extras = [
        f"- {label}: {value}"
        for attr, label in _EXTRA_FIELDS
        if (value := getattr(facts, attr))
    ]
    if extras:
        lines.append("[추가 정보]")
        lines += extras
        lines.append("")

    lines.append("위 정보를 바탕으로 현실적이고 실용적인 진단 리포트를 생성해주세요.")
    return "\n".join(lines)


# === Text generation ===


class TextGenerator(Protocol):
    async def generate(self, brief: str, instruction: str) -> str:
        """Return the raw model text for ``brief`` under ``instruction``."""
        ...


_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def parse_report_json(text: str) -> dict[str, Any]:
    """Parse the model's JSON answer, tolerating a markdown code fence around it."""
    stripped = text.strip()
    if not stripped:
        raise GenerationError(GenerationErrorKind.MALFORMED_RESPONSE, "응답에 내용이 없습니다.")
    fenced = _FENCE_RE.match(stripped)
    if fenced:
        stripped = fenced.group(1)
    try:
        data = json.loads(stripped)
    except json.JSONDecodeError as e:
        logger.error("report_json_parse_failed", error=str(e), content=stripped[:300])
        raise GenerationError(
            GenerationErrorKind.MALFORMED_RESPONSE, "응답을 JSON으로 파싱할 수 없습니다."
        ) from e
    if not isinstance(data, dict):
        raise GenerationError(
            GenerationErrorKind.MALFORMED_RESPONSE, "응답 JSON이 객체 형식이 아닙니다."
        )
    return data


class ClaudeTextGenerator:
    """Report text via the Anthropic Messages API."""

    def __init__(self, client: anthropic.AsyncAnthropic | None = None, model: str | None = None):
        self._client = client
        self.model = model or settings.text_model

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            if not settings.anthropic_api_key:
                raise GenerationError(
                    GenerationErrorKind.AUTH_ERROR, "ANTHROPIC_API_KEY가 설정되지 않았습니다.", 401
                )
            self._client = wrap_anthropic(
                anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
            )
        return self._client

    async def generate(self, brief: str, instruction: str) -> str:
        client = self.client
        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=settings.text_max_tokens,
                system=instruction,
                messages=[{"role": "user", "content": brief}],
            )
        except anthropic.RateLimitError as e:
            logger.warning("report_text_rate_limited")
            raise GenerationError(GenerationErrorKind.QUOTA_EXCEEDED, f"rate limit: {e}", 429) from e
        except anthropic.APIConnectionError as e:
            logger.error("report_text_connection_failed", error=str(e))
            raise GenerationError(GenerationErrorKind.NETWORK_ERROR, f"connection error: {e}") from e
        except anthropic.APIStatusError as e:
            logger.error("report_text_api_error", status=e.status_code)
            raise GenerationError(_kind_for_status(e.status_code), str(e), e.status_code) from e

        text = "".join(b.text for b in response.content if hasattr(b, "text"))
        logger.info(
            "report_text_generated",
            model=self.model,
            chars=len(text),
            stop_reason=getattr(response, "stop_reason", None),
        )
        return text


def _kind_for_status(status: int) -> GenerationErrorKind:
    if status in (401, 403):
        return GenerationErrorKind.AUTH_ERROR
    if status == 429:
        return GenerationErrorKind.QUOTA_EXCEEDED
    if status == 404:
        return GenerationErrorKind.MODEL_NOT_FOUND
    if status >= 500:
        return GenerationErrorKind.UPSTREAM_ERROR
    return GenerationErrorKind.BAD_REQUEST


# === Pipeline ===


async def generate_report(
    facts: ProjectFacts,
    text_generator: TextGenerator,
    image_generator: ImageGenerator,
    on_progress: Callable[[float], None] | None = None,
    on_images_start: Callable[[], None] | None = None,
) -> ReportResult:
    """Run the full pipeline on a snapshot of ``facts``.

    Text generation and parsing failures raise GenerationError; image failures
    only leave the affected scenario without an image.
    """
    snapshot = facts.model_copy(deep=True)
    logger.info(
        "report_generation_start",
        budget=snapshot.budget,
        accommodation=snapshot.accommodation_type,
        region=snapshot.location.region,
    )

    raw_text = await text_generator.generate(build_diagnosis_brief(snapshot), load_system_instruction())
    report = normalize_report(parse_report_json(raw_text), snapshot.budget)

    if on_images_start is not None:
        on_images_start()
    scenarios = await generate_scenario_images(
        snapshot, report.scenarios, image_generator, on_progress
    )

    logger.info("report_generation_done", scenarios=[s.id for s in scenarios])
    return report.model_copy(update={"scenarios": scenarios})
