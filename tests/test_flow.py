"""Tests for the flow orchestrator: steps, report generation and booking."""

from unittest.mock import patch

import pytest

import spaceplan.activities.booking as booking_mod
from spaceplan.activities.booking import LoggingBookingService
from spaceplan.activities.images import concept_description, default_concept
from spaceplan.activities.mock_stubs import MockImageGenerator, MockTextGenerator
from spaceplan.models.contracts import ContactInfo
from spaceplan.workflows.flow import FlowOrchestrator, WrongStepError

REQUIRED_ANSWERS = [
    "planning", "jeju", "tourist", "pension", "10-20", "100-300py", "1-2", "6-10", "5b-15b", False,
]
CONTACT = ContactInfo(name="김민수", phone="010-1234-5678", email="kim@example.com")


@pytest.fixture
def text() -> MockTextGenerator:
    return MockTextGenerator()


@pytest.fixture
def booking() -> LoggingBookingService:
    return LoggingBookingService()


@pytest.fixture
def flow(scheduler, text, booking) -> FlowOrchestrator:
    return FlowOrchestrator("flow-1", scheduler, text, MockImageGenerator(), booking)


def _answer_all(flow, scheduler) -> None:
    flow.start()
    scheduler.run_until_idle()
    for value in REQUIRED_ANSWERS:
        assert flow.select_option(value)
        scheduler.run_until_idle()
    assert flow.select_option("no")
    scheduler.run_until_idle()


async def _to_preview(flow, scheduler) -> None:
    _answer_all(flow, scheduler)
    await flow.report_task
    assert flow.state.step == "preview"


class TestSteps:
    def test_starts_on_landing(self, flow):
        assert flow.state.step == "landing"
        assert flow.snapshot().step == "landing"

    def test_start_enters_conversation(self, flow, scheduler):
        flow.start()
        assert flow.state.step == "conversation"
        scheduler.run_until_idle()
        assert flow.snapshot().conversation.current_question.id == "project-status"

    def test_start_twice_is_wrong_step(self, flow):
        flow.start()
        with pytest.raises(WrongStepError, match="Cannot start diagnosis in step 'conversation'"):
            flow.start()

    def test_answers_require_conversation(self, flow):
        with pytest.raises(WrongStepError):
            flow.select_option("planning")
        with pytest.raises(WrongStepError):
            flow.skip()

    def test_answers_update_facts(self, flow, scheduler):
        flow.start()
        scheduler.run_until_idle()
        flow.select_option("planning")
        scheduler.run_until_idle()
        flow.select_option("jeju")
        assert flow.state.facts.project_status == "planning"
        assert flow.state.facts.location.region == "jeju"

    def test_report_view_needs_report(self, flow):
        with pytest.raises(WrongStepError):
            flow.report_view()

    def test_completion_without_loop_waits_for_explicit_start(self, flow, scheduler):
        _answer_all(flow, scheduler)
        assert flow.state.conversation.completed
        assert flow.state.step == "conversation"
        assert flow.report_task is None


class TestExitAndReset:
    def test_confirmed_exit_resets_to_landing(self, flow, scheduler):
        flow.start()
        scheduler.run_until_idle()
        flow.select_option("planning")
        scheduler.run_until_idle()
        assert flow.request_exit() == "confirmation_required"
        assert flow.state.step == "conversation"
        assert flow.request_exit(confirmed=True) == "abandoned"
        assert flow.state.step == "landing"
        assert flow.state.facts.project_status == ""
        assert flow.snapshot().conversation.transcript == []

    def test_flow_can_restart_after_reset(self, flow, scheduler):
        flow.start()
        scheduler.run_until_idle()
        flow.reset()
        scheduler.run_until_idle()
        assert flow.state.step == "landing"
        flow.start()
        scheduler.run_until_idle()
        assert [e.question_id for e in flow.state.conversation.transcript] == [
            "welcome", "project-status",
        ]


class TestReEdit:
    def _answer_three(self, flow, scheduler) -> None:
        flow.start()
        scheduler.run_until_idle()
        for value in REQUIRED_ANSWERS[:3]:
            assert flow.select_option(value)
            scheduler.run_until_idle()

    def _re_edit_region(self, flow, scheduler, value: str) -> None:
        # transcript: welcome, q1, u1, q2, u2 (region), ...
        assert flow.re_edit(4)
        scheduler.run_until_idle()
        assert flow.select_option(value)
        scheduler.run_until_idle()

    def _observe(self, flow):
        conv = flow.state.conversation
        return (
            [(e.role, e.content) for e in conv.transcript],
            flow.state.facts.model_dump(),
            [frame.model_dump() for frame in conv.history],
        )

    def test_repeated_re_edit_matches_single_edit(self, flow, scheduler):
        self._answer_three(flow, scheduler)
        self._re_edit_region(flow, scheduler, "seoul")
        once = self._observe(flow)
        assert flow.state.facts.location.region == "seoul"

        self._re_edit_region(flow, scheduler, "seoul")
        assert self._observe(flow) == once

    def test_re_edit_keeps_later_facts_until_reanswered(self, flow, scheduler):
        self._answer_three(flow, scheduler)
        self._re_edit_region(flow, scheduler, "seoul")
        assert flow.state.facts.location.location_type == "tourist"
        assert flow.state.conversation.transcript[-1].question_id == "location-type"


class TestReferenceImage:
    def test_image_only_reference_falls_back_to_type_concept(self, flow, scheduler):
        flow.start()
        scheduler.run_until_idle()
        for value in REQUIRED_ANSWERS + ["yes"]:
            assert flow.select_option(value)
            scheduler.run_until_idle()
        for _ in range(2):
            assert flow.skip()
            scheduler.run_until_idle()
        assert flow.submit_text("", image_attached=True)
        scheduler.run_until_idle()

        assert flow.state.facts.reference_text
        assert concept_description(flow.state.facts) == default_concept("pension", "tourist")


class TestReportGeneration:
    async def test_completion_starts_loading(self, flow, scheduler):
        _answer_all(flow, scheduler)
        assert flow.state.step == "loading"
        assert flow.report_task is not None
        with pytest.raises(WrongStepError):
            flow.reset()
        await flow.report_task

    async def test_success_lands_on_preview(self, flow, scheduler):
        await _to_preview(flow, scheduler)
        s = flow.state
        assert s.report is not None
        assert len(s.report.scenarios) == 3
        assert s.image_progress == 100
        assert not s.is_generating_images
        assert s.notification is None
        assert flow.snapshot().has_report

    async def test_failure_returns_to_conversation(self, flow, scheduler, text):
        text.fail_next(429)
        _answer_all(flow, scheduler)
        await flow.report_task

        s = flow.state
        assert s.step == "conversation"
        assert s.notification.title == "서비스 사용량 초과"
        assert s.image_progress == 0
        assert s.report is None
        assert s.facts.budget == "5b-15b"

    async def test_retry_after_failure(self, flow, scheduler, text):
        text.fail_next(401)
        _answer_all(flow, scheduler)
        await flow.report_task
        assert flow.state.notification.title == "API 키 오류"

        await flow.begin_report()
        assert flow.state.step == "preview"
        assert flow.state.notification is None
        assert len(text.calls) == 2

    async def test_begin_report_requires_finished_questionnaire(self, flow, scheduler):
        flow.start()
        scheduler.run_until_idle()
        with pytest.raises(WrongStepError, match="questionnaire not finished"):
            flow.begin_report()

    async def test_costs_clamped_to_answered_budget(self, scheduler, text, booking):
        flow = FlowOrchestrator("flow-2", scheduler, text, MockImageGenerator(), booking)
        flow.start()
        scheduler.run_until_idle()
        for value in REQUIRED_ANSWERS[:8] + ["under-50m", False, "no"]:
            assert flow.select_option(value)
            scheduler.run_until_idle()
        await flow.report_task
        for sc in flow.state.report.scenarios:
            assert sc.estimated_cost.max <= 50_000_000


class TestBooking:
    async def test_preview_is_locked(self, flow, scheduler):
        await _to_preview(flow, scheduler)
        view = flow.report_view()
        assert view.locked
        assert all(card.detail is None for card in view.scenarios)

    async def test_booking_round_trip(self, flow, scheduler):
        await _to_preview(flow, scheduler)
        flow.go_to_booking()
        assert flow.state.step == "booking"
        assert flow.report_view().locked
        flow.back_to_preview()
        assert flow.state.step == "preview"

    async def test_submit_unlocks(self, flow, scheduler):
        await _to_preview(flow, scheduler)
        flow.go_to_booking()
        with patch.object(booking_mod, "logger") as mock_logger:
            await flow.submit_booking(CONTACT)

        assert flow.state.step == "unlocked"
        assert flow.state.unlocked
        mock_logger.info.assert_called_once()
        assert mock_logger.info.call_args.kwargs["email"] == CONTACT.email
        view = flow.report_view()
        assert not view.locked
        assert view.contact == CONTACT
        assert all(card.detail is not None for card in view.scenarios)

    async def test_submit_requires_booking_step(self, flow, scheduler):
        await _to_preview(flow, scheduler)
        with pytest.raises(WrongStepError):
            await flow.submit_booking(CONTACT)

    async def test_reset_after_unlock(self, flow, scheduler):
        await _to_preview(flow, scheduler)
        flow.go_to_booking()
        await flow.submit_booking(CONTACT)
        flow.reset()
        assert flow.state.step == "landing"
        assert flow.state.report is None
        assert not flow.state.unlocked
