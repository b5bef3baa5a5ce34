"""Repair raw text-model output into a valid three-scenario ReportResult.

The model is asked for JSON matching the Scenario schema, but regularly
returns costs outside the selected budget bracket, drops fields, or produces
fewer than three scenarios. Everything here is pure and idempotent:
normalizing an already-normalized report returns an equal report.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import structlog

from spaceplan.models.contracts import MoneyRange, PeakBand, ReportResult, Scenario

logger = structlog.get_logger()

SCENARIO_COUNT = 3
DEFAULT_RECOMMENDATION = "추가 분석이 필요합니다."


@dataclass(frozen=True)
class BudgetBracket:
    code: str
    floor: int
    ceiling: int
    text: str

    @property
    def span(self) -> int:
        return self.ceiling - self.floor

    def at(self, percent: int) -> int:
        """Point ``percent`` of the way from floor to ceiling, rounded down."""
        return self.floor + self.span * percent // 100


BUDGET_BRACKETS: dict[str, BudgetBracket] = {
    b.code: b
    for b in (
        BudgetBracket("under-50m", 10_000_000, 50_000_000, "5천만원 미만"),
        BudgetBracket("50m-5b", 50_000_000, 500_000_000, "5천만원~5억원"),
        BudgetBracket("5b-15b", 500_000_000, 1_500_000_000, "5억~15억원"),
        BudgetBracket("over-15b", 1_500_000_000, 50_000_000_000, "15억 이상"),
        BudgetBracket("unknown", 0, 0, "미정"),
    )
}


def bracket_for(budget: str) -> BudgetBracket:
    """Bracket for a budget code; unrecognized codes behave like "unknown"."""
    return BUDGET_BRACKETS.get(budget, BUDGET_BRACKETS["unknown"])


def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, str):
        try:
            value = float(value.replace(",", ""))
        except ValueError:
            return default
    if isinstance(value, float) and not math.isfinite(value):
        # json.loads accepts NaN and 1e999
        return default
    if isinstance(value, int | float):
        return int(value)
    return default


def _range(value: Any) -> MoneyRange:
    if not isinstance(value, dict):
        return MoneyRange()
    return MoneyRange(min=_as_int(value.get("min")), max=_as_int(value.get("max")))


def _band(value: Any, peak: int, off_peak: int) -> PeakBand:
    if not isinstance(value, dict):
        return PeakBand(peak=peak, off_peak=off_peak)
    return PeakBand(
        peak=_as_int(value.get("peak"), peak) or peak,
        off_peak=_as_int(value.get("offPeak"), off_peak) or off_peak,
    )


def clamp_cost(cost: MoneyRange, bracket: BudgetBracket) -> MoneyRange:
    """Force an estimated-cost band inside the bracket.

    Brackets with a zero ceiling ("unknown") leave the band untouched. A band
    the model left at zero gets the 20–60% default before any clamping.
    """
    if bracket.ceiling <= 0:
        return cost
    if cost.min == 0 and cost.max == 0:
        return MoneyRange(min=bracket.at(20), max=bracket.at(60))

    lo, hi = cost.min, cost.max
    if lo < bracket.floor or lo == 0:
        lo = bracket.floor
    if hi > bracket.ceiling:
        hi = bracket.ceiling
    if lo > hi:
        lo = min(lo, bracket.ceiling)
        hi = max(lo, bracket.ceiling)
    if lo >= hi:
        lo = bracket.at(20)
        hi = bracket.at(60)
    return MoneyRange(min=lo, max=hi)


def normalize_scenario(raw: Any, index: int, bracket: BudgetBracket) -> Scenario:
    """Fill per-field defaults and clamp the cost band of one raw scenario."""
    data = raw if isinstance(raw, dict) else {}
    risk_level = data.get("riskLevel")
    difficulty = data.get("operationDifficulty")
    risk_score = _as_int(data.get("riskScore"), 50) if data.get("riskScore") is not None else 50

    cost = _range(data.get("estimatedCost"))
    clamped = clamp_cost(cost, bracket)
    if clamped != cost:
        logger.info(
            "scenario_cost_clamped",
            index=index,
            raw_min=cost.min,
            raw_max=cost.max,
            min=clamped.min,
            max=clamped.max,
        )

    return Scenario(
        id=str(data.get("id") or f"scenario-{index + 1}"),
        name=str(data.get("name") or f"시나리오 {index + 1}"),
        estimated_cost=clamped,
        monthly_revenue=_range(data.get("monthlyRevenue")),
        monthly_profit=_range(data.get("monthlyProfit")),
        suggested_rooms=_as_int(data.get("suggestedRooms"), 10) or 10,
        adr=_band(data.get("adr"), 100_000, 70_000),
        occupancy=_band(data.get("occupancy"), 70, 50),
        risk_level=risk_level if risk_level in ("low", "medium", "high") else "medium",
        operation_difficulty=(
            difficulty if difficulty in ("easy", "medium", "hard") else "medium"
        ),
        key_risk=str(data.get("keyRisk") or "리스크 분석 필요"),
        mood_description=str(data.get("moodDescription") or "인테리어 컨셉 미정"),
        risk_score=max(0, min(100, risk_score)),
        image_url=data.get("imageUrl") or None,
    )


def fallback_scenarios(bracket: BudgetBracket) -> list[Scenario]:
    """Deterministic conservative / balanced / aggressive scenarios for padding."""
    return [
        Scenario(
            id="conservative",
            name="안정형",
            estimated_cost=MoneyRange(min=bracket.at(10), max=bracket.at(30)),
            monthly_revenue=MoneyRange(min=5_000_000, max=8_000_000),
            monthly_profit=MoneyRange(min=2_000_000, max=4_000_000),
            suggested_rooms=8,
            adr=PeakBand(peak=80_000, off_peak=60_000),
            occupancy=PeakBand(peak=70, off_peak=50),
            risk_level="low",
            operation_difficulty="easy",
            key_risk="초기 투자비 회수 기간이 길 수 있음",
            mood_description="편안하고 안정적인 분위기",
            risk_score=30,
        ),
        Scenario(
            id="balanced",
            name="균형형",
            estimated_cost=MoneyRange(min=bracket.at(35), max=bracket.at(65)),
            monthly_revenue=MoneyRange(min=8_000_000, max=12_000_000),
            monthly_profit=MoneyRange(min=3_500_000, max=6_000_000),
            suggested_rooms=10,
            adr=PeakBand(peak=100_000, off_peak=70_000),
            occupancy=PeakBand(peak=75, off_peak=55),
            risk_level="medium",
            operation_difficulty="medium",
            key_risk="경쟁 치열 지역의 경우 점유율 확보 어려움",
            mood_description="모던하고 트렌디한 분위기",
            risk_score=50,
        ),
        Scenario(
            id="aggressive",
            name="성장형",
            estimated_cost=MoneyRange(
                min=bracket.at(70), max=bracket.ceiling - bracket.span * 10 // 100
            ),
            monthly_revenue=MoneyRange(min=12_000_000, max=18_000_000),
            monthly_profit=MoneyRange(min=5_000_000, max=9_000_000),
            suggested_rooms=12,
            adr=PeakBand(peak=120_000, off_peak=80_000),
            occupancy=PeakBand(peak=80, off_peak=60),
            risk_level="high",
            operation_difficulty="hard",
            key_risk="높은 초기 투자와 운영 비용 부담",
            mood_description="럭셔리하고 프리미엄한 분위기",
            risk_score=70,
        ),
    ]


def normalize_report(
    raw: Any, budget: str, created_at: datetime | None = None
) -> ReportResult:
    """Turn parsed model JSON into exactly three in-bracket scenarios.

    Missing or non-list ``scenarios`` counts as zero scenarios. Padding skips
    fallback ids already present, then the list is truncated to three.
    """
    data = raw if isinstance(raw, dict) else {}
    bracket = bracket_for(budget)
    raw_scenarios = data.get("scenarios")
    if not isinstance(raw_scenarios, list):
        raw_scenarios = []

    scenarios = [normalize_scenario(s, i, bracket) for i, s in enumerate(raw_scenarios)]

    if len(scenarios) < SCENARIO_COUNT:
        logger.warning("report_scenarios_padded", received=len(scenarios), budget=budget)
        existing = {s.id for s in scenarios}
        scenarios.extend(s for s in fallback_scenarios(bracket) if s.id not in existing)

    return ReportResult(
        scenarios=scenarios[:SCENARIO_COUNT],
        recommendation=str(data.get("recommendation") or DEFAULT_RECOMMENDATION),
        created_at=created_at or datetime.now(UTC),
    )
