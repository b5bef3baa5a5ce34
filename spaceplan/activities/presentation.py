"""Report views for the preview (locked) and post-booking (unlocked) screens."""

from __future__ import annotations

import math

from spaceplan.models.contracts import (
    ComparisonRow,
    ContactInfo,
    ReportResult,
    ReportView,
    Scenario,
    ScenarioCard,
)

RECOMMENDED_INDEX = 0
LOCKED_SECTIONS = ["공사비 세부 내역", "리스크 체크리스트", "마케팅 전략", "운영 가이드"]

_DIFFICULTY_LABELS = {"easy": "쉬움", "medium": "보통", "hard": "어려움"}

_EOK = 100_000_000
_CHEONMAN = 10_000_000
_MAN = 10_000


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def format_cost(low: int, high: int) -> str:
    """Cost band in 천만원 units when the top is under 1억, else in 억원."""
    if high < _EOK:
        return f"{_round_half_up(low / _CHEONMAN)}~{_round_half_up(high / _CHEONMAN)}천만원"
    return f"{_round_half_up(low / _EOK)}~{_round_half_up(high / _EOK)}억원"


def _man(amount: int) -> str:
    value = amount / _MAN
    if value == int(value):
        return f"{int(value):,}"
    return f"{value:,.3f}".rstrip("0")


def format_monthly(low: int, high: int, unit: str = "만") -> str:
    return f"{_man(low)}~{_man(high)}{unit}"


def _card(scenario: Scenario, index: int, unlocked: bool) -> ScenarioCard:
    return ScenarioCard(
        id=scenario.id,
        name=scenario.name,
        cost_label=format_cost(scenario.estimated_cost.min, scenario.estimated_cost.max),
        monthly_revenue_label=format_monthly(
            scenario.monthly_revenue.min, scenario.monthly_revenue.max, "만원"
        ),
        monthly_profit_label=format_monthly(
            scenario.monthly_profit.min, scenario.monthly_profit.max, "만원"
        ),
        risk_score_label=f"{scenario.risk_score}/100",
        risk_level=scenario.risk_level,
        operation_difficulty=scenario.operation_difficulty,
        image_url=scenario.image_url,
        is_recommended=index == RECOMMENDED_INDEX,
        detail=scenario if unlocked else None,
    )


def comparison_rows(scenarios: list[Scenario]) -> list[ComparisonRow]:
    return [
        ComparisonRow(
            label="예상 공사비",
            values=[format_cost(s.estimated_cost.min, s.estimated_cost.max) for s in scenarios],
        ),
        ComparisonRow(
            label="월 매출",
            values=[format_monthly(s.monthly_revenue.min, s.monthly_revenue.max) for s in scenarios],
        ),
        ComparisonRow(
            label="월 순이익",
            values=[format_monthly(s.monthly_profit.min, s.monthly_profit.max) for s in scenarios],
        ),
        ComparisonRow(label="리스크 점수", values=[f"{s.risk_score}/100" for s in scenarios]),
        ComparisonRow(
            label="운영 난이도",
            values=[_DIFFICULTY_LABELS[s.operation_difficulty] for s in scenarios],
        ),
    ]


def build_report_view(
    report: ReportResult, unlocked: bool = False, contact: ContactInfo | None = None
) -> ReportView:
    """Locked preview hides scenario detail and lists the gated sections."""
    return ReportView(
        locked=not unlocked,
        recommendation=report.recommendation,
        scenarios=[_card(s, i, unlocked) for i, s in enumerate(report.scenarios)],
        comparison=comparison_rows(report.scenarios),
        locked_sections=[] if unlocked else list(LOCKED_SECTIONS),
        contact=contact if unlocked else None,
        created_at=report.created_at,
    )
