"""Diagnosis flow API endpoints.

Flows live in memory for the lifetime of the process. Conversation pacing
runs on the module scheduler (the asyncio loop in production; tests swap in
a ManualScheduler and advance it explicitly). Clients poll GET /flows/{id}
for reveal progress and report generation status.
"""

import uuid

import structlog
from fastapi import APIRouter

from spaceplan.activities.booking import LoggingBookingService
from spaceplan.activities.images import GeminiImageGenerator, ImageGenerator
from spaceplan.activities.mock_stubs import MockImageGenerator, MockTextGenerator
from spaceplan.activities.report import ClaudeTextGenerator, TextGenerator
from spaceplan.config import settings
from spaceplan.models.contracts import (
    ActionResponse,
    ContactInfo,
    CreateFlowResponse,
    ErrorResponse,
    ExitRequest,
    ExitResponse,
    FlowSnapshot,
    ReEditRequest,
    ReportView,
    SelectOptionRequest,
    TextAnswerRequest,
)
from spaceplan.workflows.flow import FlowOrchestrator
from spaceplan.workflows.scheduler import LoopScheduler, Scheduler

logger = structlog.get_logger()

router = APIRouter(tags=["flows"])

# In-memory flow store
_flows: dict[str, FlowOrchestrator] = {}

# Replaced with a ManualScheduler in tests
_scheduler: Scheduler = LoopScheduler()

_booking_service = LoggingBookingService()

# WrongStepError and FlowNotFoundError become these via the handlers in main.py
_ERROR_RESPONSES: dict[int | str, dict] = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


class FlowNotFoundError(LookupError):
    def __init__(self, flow_id: str) -> None:
        super().__init__(f"Flow {flow_id!r} not found")
        self.flow_id = flow_id


def _generators() -> tuple[TextGenerator, ImageGenerator]:
    if settings.use_mock_generators:
        return MockTextGenerator(), MockImageGenerator()
    return ClaudeTextGenerator(), GeminiImageGenerator()


def _require_flow(flow_id: str) -> FlowOrchestrator:
    flow = _flows.get(flow_id)
    if flow is None:
        raise FlowNotFoundError(flow_id)
    structlog.contextvars.bind_contextvars(flow_id=flow_id)
    return flow


# --- Flow lifecycle ---


@router.post("/flows", status_code=201, response_model=CreateFlowResponse)
async def create_flow() -> CreateFlowResponse:
    """Create a flow on the landing step."""
    flow_id = str(uuid.uuid4())
    text_generator, image_generator = _generators()
    _flows[flow_id] = FlowOrchestrator(
        flow_id,
        _scheduler,
        text_generator,
        image_generator,
        _booking_service,
    )
    logger.info("flow_created", flow_id=flow_id, mock=settings.use_mock_generators)
    return CreateFlowResponse(flow_id=flow_id)


@router.get("/flows/{flow_id}", response_model=FlowSnapshot, responses=_ERROR_RESPONSES)
async def get_flow(flow_id: str) -> FlowSnapshot:
    """Current flow state. Clients poll this during reveals and report generation."""
    return _require_flow(flow_id).snapshot()


@router.delete("/flows/{flow_id}", status_code=204, responses=_ERROR_RESPONSES)
async def delete_flow(flow_id: str) -> None:
    flow = _require_flow(flow_id)
    flow.conversation.cancel()
    del _flows[flow_id]
    logger.info("flow_deleted")


@router.post("/flows/{flow_id}/start", response_model=FlowSnapshot, responses=_ERROR_RESPONSES)
async def start_flow(flow_id: str) -> FlowSnapshot:
    """Leave the landing page and begin the questionnaire."""
    flow = _require_flow(flow_id)
    flow.start()
    return flow.snapshot()


# --- Conversation ---


@router.post("/flows/{flow_id}/answer", response_model=ActionResponse, responses=_ERROR_RESPONSES)
async def select_option(flow_id: str, body: SelectOptionRequest) -> ActionResponse:
    """Answer the current question with one of its option values.

    ``accepted`` is false when no question is awaiting a response or the
    value is not one of its options.
    """
    return ActionResponse(accepted=_require_flow(flow_id).select_option(body.value))


@router.post("/flows/{flow_id}/text", response_model=ActionResponse, responses=_ERROR_RESPONSES)
async def submit_text(flow_id: str, body: TextAnswerRequest) -> ActionResponse:
    flow = _require_flow(flow_id)
    return ActionResponse(accepted=flow.submit_text(body.text, body.image_attached))


@router.post("/flows/{flow_id}/skip", response_model=ActionResponse, responses=_ERROR_RESPONSES)
async def skip_question(flow_id: str) -> ActionResponse:
    return ActionResponse(accepted=_require_flow(flow_id).skip())


@router.post("/flows/{flow_id}/re-edit", response_model=ActionResponse, responses=_ERROR_RESPONSES)
async def re_edit(flow_id: str, body: ReEditRequest) -> ActionResponse:
    """Rewind to the question answered by the transcript entry at ``transcript_index``."""
    return ActionResponse(accepted=_require_flow(flow_id).re_edit(body.transcript_index))


@router.post("/flows/{flow_id}/exit", response_model=ExitResponse, responses=_ERROR_RESPONSES)
async def exit_conversation(flow_id: str, body: ExitRequest) -> ExitResponse:
    """Leave the questionnaire. Requires ``confirmed`` once any answer was given."""
    return ExitResponse(status=_require_flow(flow_id).request_exit(body.confirmed))


# --- Report ---


@router.post(
    "/flows/{flow_id}/complete",
    status_code=202,
    response_model=FlowSnapshot,
    responses=_ERROR_RESPONSES,
)
async def complete(flow_id: str) -> FlowSnapshot:
    """Start (or retry) report generation for a finished questionnaire."""
    flow = _require_flow(flow_id)
    flow.begin_report()
    return flow.snapshot()


@router.get("/flows/{flow_id}/report", response_model=ReportView, responses=_ERROR_RESPONSES)
async def get_report(flow_id: str) -> ReportView:
    """Locked preview before booking, full detail after."""
    return _require_flow(flow_id).report_view()


# --- Booking ---


@router.post("/flows/{flow_id}/booking", response_model=FlowSnapshot, responses=_ERROR_RESPONSES)
async def go_to_booking(flow_id: str) -> FlowSnapshot:
    flow = _require_flow(flow_id)
    flow.go_to_booking()
    return flow.snapshot()


@router.post(
    "/flows/{flow_id}/booking/back", response_model=FlowSnapshot, responses=_ERROR_RESPONSES
)
async def back_to_preview(flow_id: str) -> FlowSnapshot:
    flow = _require_flow(flow_id)
    flow.back_to_preview()
    return flow.snapshot()


@router.post(
    "/flows/{flow_id}/booking/submit", response_model=ReportView, responses=_ERROR_RESPONSES
)
async def submit_booking(flow_id: str, body: ContactInfo) -> ReportView:
    """Record the consultation request and return the unlocked report."""
    flow = _require_flow(flow_id)
    await flow.submit_booking(body)
    return flow.report_view()


@router.post("/flows/{flow_id}/reset", response_model=FlowSnapshot, responses=_ERROR_RESPONSES)
async def reset_flow(flow_id: str) -> FlowSnapshot:
    """Start over from the landing step with empty answers."""
    flow = _require_flow(flow_id)
    flow.reset()
    return flow.snapshot()
