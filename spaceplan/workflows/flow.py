"""Flow orchestrator: one user's pass through the diagnosis funnel.

    landing → conversation → loading → preview ⇄ booking → unlocked

Owns the FlowState and the conversation state machine bound to it. Actions
on the wrong step raise WrongStepError (mapped to HTTP 409). Report
generation runs as a background task; on failure the flow returns to the
conversation with a notification and the answers intact, so /complete can
be retried.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from spaceplan.activities.answers import apply_answer
from spaceplan.activities.booking import BookingService
from spaceplan.activities.errors import classify_error
from spaceplan.activities.images import ImageGenerator
from spaceplan.activities.presentation import build_report_view
from spaceplan.activities.report import TextGenerator, generate_report
from spaceplan.config import Settings, settings
from spaceplan.models.contracts import (
    ContactInfo,
    FlowSnapshot,
    FlowState,
    FlowStep,
    ReportView,
)
from spaceplan.workflows.conversation import ConversationStateMachine, ExitResult
from spaceplan.workflows.scheduler import Scheduler

logger = structlog.get_logger()

# Strong references to report tasks to prevent GC before completion
_background_tasks: set[asyncio.Task] = set()  # type: ignore[type-arg]


class WrongStepError(Exception):
    def __init__(self, action: str, step: FlowStep, detail: str | None = None) -> None:
        message = f"Cannot {action} in step '{step}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.action = action
        self.step = step


class FlowOrchestrator:
    def __init__(
        self,
        flow_id: str,
        scheduler: Scheduler,
        text_generator: TextGenerator,
        image_generator: ImageGenerator,
        booking_service: BookingService,
        config: Settings = settings,
    ) -> None:
        self.flow_id = flow_id
        self._scheduler = scheduler
        self._text_generator = text_generator
        self._image_generator = image_generator
        self._booking_service = booking_service
        self._config = config
        self.state = FlowState()
        self.conversation = self._new_conversation()
        self.report_task: asyncio.Task[None] | None = None
        self._log = logger.bind(flow_id=flow_id)

    def _new_conversation(self) -> ConversationStateMachine:
        return ConversationStateMachine(
            self._scheduler,
            on_answer=self._apply_answer,
            on_complete=self._on_conversation_complete,
            on_abandon=self._abandon,
            state=self.state.conversation,
            config=self._config,
        )

    def _require(self, action: str, *steps: FlowStep) -> None:
        if self.state.step not in steps:
            raise WrongStepError(action, self.state.step)

    # --- landing / conversation ---

    def start(self) -> None:
        self._require("start diagnosis", "landing")
        self.state.step = "conversation"
        self.conversation.initialize()
        self._log.info("flow_started")

    def select_option(self, value: str | bool) -> bool:
        self._require("answer", "conversation")
        return self.conversation.select_option(value)

    def submit_text(self, text: str, image_attached: bool = False) -> bool:
        self._require("answer", "conversation")
        return self.conversation.submit_text(text, image_attached)

    def skip(self) -> bool:
        self._require("skip", "conversation")
        return self.conversation.skip()

    def re_edit(self, transcript_index: int) -> bool:
        self._require("re-edit", "conversation")
        return self.conversation.re_edit(transcript_index)

    def request_exit(self, confirmed: bool = False) -> ExitResult:
        self._require("exit", "conversation")
        return self.conversation.request_exit(confirmed)

    def _apply_answer(self, field: str, value: Any) -> None:
        self.state.facts = apply_answer(self.state.facts, field, value)

    def _abandon(self) -> None:
        self._log.info("flow_abandoned")
        self._reset_state()

    # --- report generation ---

    def _on_conversation_complete(self) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._log.warning("report_autostart_skipped", reason="no_running_loop")
            return
        self.begin_report()

    def begin_report(self) -> asyncio.Task[None]:
        """Move to loading and start generation. Also the retry entry point."""
        self._require("generate report", "conversation")
        if not self.state.conversation.completed:
            raise WrongStepError("generate report", self.state.step, "questionnaire not finished")

        s = self.state
        s.step = "loading"
        s.notification = None
        s.is_generating_images = False
        s.image_progress = 0.0

        task = asyncio.create_task(self._generate())
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)
        self.report_task = task
        return task

    async def _generate(self) -> None:
        s = self.state
        self._log.info("flow_report_start", budget=s.facts.budget)
        try:
            report = await generate_report(
                s.facts,
                self._text_generator,
                self._image_generator,
                on_progress=self._set_image_progress,
                on_images_start=self._images_started,
            )
        except Exception as exc:
            notification = classify_error(exc)
            self._log.error(
                "flow_report_failed",
                error=str(exc)[:300],
                error_type=type(exc).__name__,
                title=notification.title,
            )
            s.notification = notification
            s.is_generating_images = False
            s.image_progress = 0.0
            s.step = "conversation"
            return

        s.report = report
        s.is_generating_images = False
        s.image_progress = 100.0
        s.step = "preview"
        self._log.info(
            "flow_report_ready",
            images=sum(1 for sc in report.scenarios if sc.image_url),
        )

    def _images_started(self) -> None:
        self.state.is_generating_images = True
        self.state.image_progress = 0.0

    def _set_image_progress(self, percent: float) -> None:
        self.state.image_progress = percent

    # --- preview / booking ---

    def go_to_booking(self) -> None:
        self._require("open booking", "preview")
        self.state.step = "booking"

    def back_to_preview(self) -> None:
        self._require("return to preview", "booking")
        self.state.step = "preview"

    async def submit_booking(self, contact: ContactInfo) -> None:
        self._require("submit booking", "booking")
        s = self.state
        assert s.report is not None
        await self._booking_service.submit(contact, s.facts, s.report)
        s.contact = contact
        s.unlocked = True
        s.step = "unlocked"
        self._log.info("flow_unlocked")

    def report_view(self) -> ReportView:
        self._require("view report", "preview", "booking", "unlocked")
        assert self.state.report is not None
        return build_report_view(self.state.report, self.state.unlocked, self.state.contact)

    # --- reset ---

    def reset(self) -> None:
        """Back to landing with empty facts; not allowed while a report is generating."""
        if self.state.step == "loading":
            raise WrongStepError("reset", "loading")
        self._reset_state()
        self._log.info("flow_reset")

    def _reset_state(self) -> None:
        self.conversation.cancel()
        self.state = FlowState()
        self.conversation = self._new_conversation()

    def snapshot(self) -> FlowSnapshot:
        s = self.state
        return FlowSnapshot(
            flow_id=self.flow_id,
            step=s.step,
            facts=s.facts,
            conversation=self.conversation.view(),
            is_generating_images=s.is_generating_images,
            image_progress=s.image_progress,
            notification=s.notification,
            has_report=s.report is not None,
            unlocked=s.unlocked,
        )
