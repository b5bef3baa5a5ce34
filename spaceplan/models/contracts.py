"""Spaceplan contract models.

Shared by the conversation workflow, the report pipeline and the API layer.
ProjectFacts and Scenario serialize with camelCase aliases: the wire shape
matches both the questionnaire field paths ("location.locationType") and the
JSON schema the text model is asked to produce.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Phase = Literal["required", "optional"]
FlowStep = Literal["landing", "conversation", "loading", "preview", "booking", "unlocked"]
InputType = Literal["button", "card", "chip", "text", "textWithImage"]
RiskLevel = Literal["low", "medium", "high"]
Difficulty = Literal["easy", "medium", "hard"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# === Project facts ===


class Location(_CamelModel):
    region: str = ""
    location_type: str = ""


class Scale(_CamelModel):
    rooms: str = ""
    area: str = ""
    floors: str = ""
    parking: str = ""


class ProjectFacts(_CamelModel):
    # Required answers
    project_status: str = ""
    location: Location = Field(default_factory=Location)
    accommodation_type: str = ""
    scale: Scale = Field(default_factory=Scale)
    budget: str = ""
    include_building_purchase: bool = False

    # Optional answers
    target_customer: str | None = None
    concept: str | None = None
    reference_text: str | None = None
    interior_scope: str | None = None
    building_condition: str | None = None
    condition_text: str | None = None


# === Question catalog ===


class ChatOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    value: str | bool
    description: str | None = None


class Question(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    role: Literal["assistant", "user"] = "assistant"
    content: str
    options: tuple[ChatOption, ...] = ()
    input_type: InputType | None = None
    field: str | None = None
    skippable: bool = False
    allow_text_input: bool = False
    allow_image_upload: bool = False


# === Conversation state ===


class TranscriptEntry(BaseModel):
    id: str
    role: Literal["assistant", "user"]
    content: str
    question_id: str | None = None


class HistoryFrame(BaseModel):
    index: int
    phase: Phase


class ConversationState(BaseModel):
    transcript: list[TranscriptEntry] = []
    phase: Phase = "required"
    question_index: int = 0
    history: list[HistoryFrame] = []
    is_revealing: bool = False
    input_visible: bool = False
    custom_input_open: bool = False
    initialized: bool = False
    completed: bool = False


# === Report ===


class MoneyRange(BaseModel):
    min: int = 0
    max: int = 0


class PeakBand(_CamelModel):
    peak: int
    off_peak: int


class Scenario(_CamelModel):
    id: str
    name: str
    estimated_cost: MoneyRange
    monthly_revenue: MoneyRange = Field(default_factory=MoneyRange)
    monthly_profit: MoneyRange = Field(default_factory=MoneyRange)
    suggested_rooms: int = 10
    adr: PeakBand = Field(default_factory=lambda: PeakBand(peak=100_000, off_peak=70_000))
    occupancy: PeakBand = Field(default_factory=lambda: PeakBand(peak=70, off_peak=50))
    risk_level: RiskLevel = "medium"
    operation_difficulty: Difficulty = "medium"
    key_risk: str = "리스크 분석 필요"
    mood_description: str = "인테리어 컨셉 미정"
    risk_score: int = Field(ge=0, le=100, default=50)
    image_url: str | None = None


class ReportResult(_CamelModel):
    scenarios: list[Scenario] = Field(min_length=3, max_length=3)
    recommendation: str
    created_at: datetime


class Notification(BaseModel):
    title: str
    message: str


# === Booking ===

_PHONE_RE = re.compile(r"^01[0-9]-?[0-9]{4}-?[0-9]{4}$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ContactInfo(BaseModel):
    name: str = Field(min_length=1)
    phone: str
    email: str

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be blank")
        return v.strip()

    @field_validator("phone")
    @classmethod
    def _korean_mobile(cls, v: str) -> str:
        if not _PHONE_RE.match(v.replace("-", "")):
            raise ValueError("phone must be a Korean mobile number (010-1234-5678)")
        return v

    @field_validator("email")
    @classmethod
    def _basic_email(cls, v: str) -> str:
        if not _EMAIL_RE.match(v):
            raise ValueError("email must look like name@example.com")
        return v


# === Flow state (returned by GET /flows/{id}) ===


class FlowState(BaseModel):
    step: FlowStep = "landing"
    facts: ProjectFacts = Field(default_factory=ProjectFacts)
    conversation: ConversationState = Field(default_factory=ConversationState)
    report: ReportResult | None = None
    unlocked: bool = False
    contact: ContactInfo | None = None
    is_generating_images: bool = False
    image_progress: float = 0.0
    notification: Notification | None = None


class ConversationView(BaseModel):
    """Conversation data a client needs to render the chat screen."""

    transcript: list[TranscriptEntry]
    phase: Phase
    question_index: int
    current_question: Question | None = None
    awaiting_response: bool
    is_revealing: bool
    custom_input_open: bool
    can_skip: bool
    re_editable: list[int] = []
    progress: int
    progress_label: str
    completed: bool


class FlowSnapshot(BaseModel):
    flow_id: str
    step: FlowStep
    facts: ProjectFacts
    conversation: ConversationView
    is_generating_images: bool
    image_progress: float
    notification: Notification | None = None
    has_report: bool
    unlocked: bool


# === Report views (locked preview / unlocked) ===


class ScenarioCard(BaseModel):
    id: str
    name: str
    cost_label: str
    monthly_revenue_label: str
    monthly_profit_label: str
    risk_score_label: str
    risk_level: RiskLevel
    operation_difficulty: Difficulty
    image_url: str | None = None
    is_recommended: bool = False
    detail: Scenario | None = None


class ComparisonRow(BaseModel):
    label: str
    values: list[str]


class ReportView(BaseModel):
    locked: bool
    recommendation: str
    scenarios: list[ScenarioCard]
    comparison: list[ComparisonRow]
    locked_sections: list[str] = []
    contact: ContactInfo | None = None
    created_at: datetime


# === API Request/Response Models ===


class CreateFlowResponse(BaseModel):
    flow_id: str


class SelectOptionRequest(BaseModel):
    value: str | bool


class TextAnswerRequest(BaseModel):
    text: str = ""
    image_attached: bool = False


class ReEditRequest(BaseModel):
    transcript_index: int = Field(ge=0)


class ExitRequest(BaseModel):
    confirmed: bool = False


class ExitResponse(BaseModel):
    status: Literal["confirmation_required", "abandoned"]


class ActionResponse(BaseModel):
    status: Literal["ok"] = "ok"
    accepted: bool = True


class ErrorResponse(BaseModel):
    error: str
    message: str
    retryable: bool
    detail: str | None = None
