"""Conversation state machine for the guided diagnosis questionnaire.

Walks REQUIRED_QUESTIONS then OPTIONAL_QUESTIONS, pacing each question with
a short "typing" reveal before its input controls surface. All delays run on
an injected Scheduler.

Invariants:
- One HistoryFrame per user transcript entry, always.
- At most one scheduled transition is live. Re-edit and cancel() bump the
  epoch, so callbacks scheduled before them do nothing when they fire.
- Answers are only accepted while awaiting_response, so a double submit of
  the same answer is processed once.

Malformed navigation (answers with no question showing, re-edit of a machine
entry, ...) is a no-op that returns False and logs ``conversation_*_ignored``.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Literal
from uuid import uuid4

import structlog

from spaceplan.activities.catalog import (
    CONTINUE_OPTIONAL,
    CUSTOM_VALUE,
    IMAGE_ONLY_VALUE,
    conversation_progress,
    get_question,
    progress_label,
    questions_for,
)
from spaceplan.config import Settings, settings
from spaceplan.models.contracts import (
    ConversationState,
    ConversationView,
    HistoryFrame,
    Phase,
    Question,
    TranscriptEntry,
)
from spaceplan.workflows.scheduler import Scheduler

logger = structlog.get_logger()

SKIP_DISPLAY = "건너뛰기"
EMPTY_TEXT_DISPLAY = "입력 완료"
IMAGE_ATTACHED_DISPLAY = "[이미지 첨부됨]"

ExitResult = Literal["confirmation_required", "abandoned"]


class ConversationStateMachine:
    """Drives one ConversationState. Mutates ``state`` in place."""

    def __init__(
        self,
        scheduler: Scheduler,
        on_answer: Callable[[str, Any], None],
        on_complete: Callable[[], None],
        on_abandon: Callable[[], None],
        state: ConversationState | None = None,
        config: Settings = settings,
    ) -> None:
        self.state = state or ConversationState()
        self._scheduler = scheduler
        self._on_answer = on_answer
        self._on_complete = on_complete
        self._on_abandon = on_abandon
        self._config = config
        self._epoch = 0
        self._in_flight = False

    # --- scheduling ---

    def _schedule(self, delay: float, fn: Callable[[], None]) -> None:
        epoch = self._epoch

        def _fire() -> None:
            if epoch != self._epoch:
                logger.debug("conversation_stale_transition_dropped", epoch=epoch)
                return
            fn()

        self._scheduler.call_later(delay, _fire)

    def cancel(self) -> None:
        """Invalidate every pending transition."""
        self._epoch += 1
        self._in_flight = False
        self.state.is_revealing = False

    def _ignored(self, action: str, reason: str, **kw: Any) -> bool:
        logger.warning(f"conversation_{action}_ignored", reason=reason, **kw)
        return False

    # --- derived state ---

    @property
    def current_question(self) -> Question | None:
        if not self.state.transcript:
            return None
        return get_question(self.state.phase, self.state.question_index)

    @property
    def awaiting_response(self) -> bool:
        s = self.state
        question = self.current_question
        if question is None or question.input_type is None:
            return False
        if self._in_flight or s.completed or not s.input_visible:
            return False
        last = s.transcript[-1]
        return last.role == "assistant" and last.question_id == question.id

    def re_editable_indices(self) -> list[int]:
        s = self.state
        if s.is_revealing:
            return []
        last = len(s.transcript) - 1
        return [i for i, e in enumerate(s.transcript) if e.role == "user" and i < last]

    def view(self) -> ConversationView:
        s = self.state
        awaiting = self.awaiting_response
        question = self.current_question
        return ConversationView(
            transcript=list(s.transcript),
            phase=s.phase,
            question_index=s.question_index,
            current_question=question,
            awaiting_response=awaiting,
            is_revealing=s.is_revealing,
            custom_input_open=s.custom_input_open,
            can_skip=awaiting and question is not None and question.skippable,
            re_editable=self.re_editable_indices(),
            progress=conversation_progress(s.phase, s.question_index),
            progress_label=progress_label(s.phase, s.question_index),
            completed=s.completed,
        )

    # --- transitions ---

    def initialize(self) -> bool:
        """Reveal the welcome message, then the first real question. Runs once."""
        s = self.state
        if s.initialized:
            return self._ignored("initialize", "already_initialized")
        s.initialized = True
        s.is_revealing = True
        self._in_flight = True

        def _welcome() -> None:
            welcome = questions_for("required")[0]
            s.transcript.append(self._question_entry(welcome))
            s.question_index = 0
            s.is_revealing = False
            self._schedule(self._config.first_question_delay, lambda: self._transition(1))

        self._schedule(self._config.welcome_reveal_delay, _welcome)
        logger.info("conversation_initialized")
        return True

    def advance(self, index: int) -> bool:
        """Show the question at ``index`` in the current phase.

        Past the end of the required phase this switches to the optional intro;
        past the end of the optional phase it completes the conversation.
        """
        if self._in_flight:
            return self._ignored("advance", "transition_in_flight", index=index)
        if not self.state.initialized or self.state.completed:
            return self._ignored("advance", "not_active", index=index)
        self._go_to(index)
        return True

    def _transition(self, index: int) -> None:
        self._in_flight = False
        self._go_to(index)

    def _go_to(self, index: int) -> None:
        s = self.state
        if index >= len(questions_for(s.phase)):
            if s.phase == "required":
                logger.info("conversation_phase_switched", phase="optional")
                s.phase = "optional"
                s.question_index = 0
                self._reveal("optional", 0, self._config.question_reveal_delay)
            else:
                self._complete()
            return
        self._reveal(s.phase, index, self._config.question_reveal_delay)

    def _reveal(self, phase: Phase, index: int, delay: float) -> None:
        s = self.state
        s.input_visible = False
        s.custom_input_open = False
        s.is_revealing = True
        self._in_flight = True

        def _show() -> None:
            question = questions_for(phase)[index]
            s.transcript.append(self._question_entry(question))
            s.phase = phase
            s.question_index = index
            s.is_revealing = False
            self._schedule(self._config.input_reveal_delay, _surface)

        def _surface() -> None:
            s.input_visible = True
            self._in_flight = False

        self._schedule(delay, _show)

    def _complete(self) -> None:
        s = self.state
        self._in_flight = False
        s.completed = True
        s.input_visible = False
        s.custom_input_open = False
        logger.info("conversation_completed", answers=len(s.history))
        self._on_complete()

    # --- responses ---

    def select_option(self, value: str | bool) -> bool:
        """Answer with one of the current question's options, matched by value."""
        if not self.awaiting_response:
            return self._ignored("select", "not_awaiting_response")
        question = self.current_question
        assert question is not None
        option = next(
            (o for o in question.options if o.value == value and type(o.value) is type(value)),
            None,
        )
        if option is None:
            return self._ignored("select", "unknown_option", question=question.id, value=str(value))
        if option.value == CUSTOM_VALUE:
            self.state.custom_input_open = True
            logger.info("conversation_custom_input_opened", question=question.id)
            return True
        return self.record_answer(option.label, option.value)

    def submit_text(self, text: str, image_attached: bool = False) -> bool:
        """Free-text answer for text questions or an opened custom override."""
        if not self.awaiting_response:
            return self._ignored("text", "not_awaiting_response")
        question = self.current_question
        assert question is not None
        accepts_text = question.input_type in ("text", "textWithImage") or (
            question.allow_text_input and self.state.custom_input_open
        )
        if not accepts_text:
            return self._ignored("text", "text_not_accepted", question=question.id)
        if image_attached and not question.allow_image_upload:
            image_attached = False

        text = text.strip()
        display = f"{text}\n{IMAGE_ATTACHED_DISPLAY}" if image_attached else text
        value = text or (IMAGE_ONLY_VALUE if image_attached else "")
        return self.record_answer(display.strip() or EMPTY_TEXT_DISPLAY, value)

    def skip(self) -> bool:
        if not self.awaiting_response:
            return self._ignored("skip", "not_awaiting_response")
        question = self.current_question
        assert question is not None
        if not question.skippable:
            return self._ignored("skip", "not_skippable", question=question.id)
        return self.record_answer(SKIP_DISPLAY, None, write=False)

    def record_answer(self, display: str, value: Any, write: bool = True) -> bool:
        """Append the user's answer, store it and schedule the next question."""
        if not self.awaiting_response:
            return self._ignored("answer", "not_awaiting_response")
        s = self.state
        question = self.current_question
        assert question is not None

        s.transcript.append(
            TranscriptEntry(id=f"user-{uuid4().hex[:12]}", role="user", content=display)
        )
        s.history.append(HistoryFrame(index=s.question_index, phase=s.phase))
        s.input_visible = False
        s.custom_input_open = False
        self._in_flight = True
        logger.info(
            "conversation_answer_recorded",
            question=question.id,
            phase=s.phase,
            index=s.question_index,
            skipped=not write,
        )

        delay = self._config.answer_advance_delay
        if question.field == CONTINUE_OPTIONAL:
            if value == "no":
                self._schedule(delay, self._complete)
            else:
                self._schedule(delay, lambda: self._transition(1))
            return True

        if write and question.field:
            self._on_answer(question.field, value)
        next_index = s.question_index + 1
        self._schedule(delay, lambda: self._transition(next_index))
        return True

    # --- navigation ---

    def re_edit(self, transcript_index: int) -> bool:
        """Rewind to the question answered by the user entry at ``transcript_index``."""
        s = self.state
        if s.is_revealing:
            return self._ignored("re_edit", "reveal_in_progress", index=transcript_index)
        if not 0 <= transcript_index < len(s.transcript) - 1:
            return self._ignored("re_edit", "not_editable", index=transcript_index)
        if s.transcript[transcript_index].role != "user":
            return self._ignored("re_edit", "not_a_user_entry", index=transcript_index)

        user_positions = [i for i, e in enumerate(s.transcript) if e.role == "user"]
        ordinal = user_positions.index(transcript_index)
        frame_index = len(s.history) - (len(user_positions) - ordinal)
        if frame_index < 0:
            return self._ignored("re_edit", "no_history_frame", index=transcript_index)
        frame = s.history[frame_index]

        self._epoch += 1
        cut = transcript_index - 1 if transcript_index - 1 > 0 else transcript_index
        del s.transcript[cut:]
        del s.history[frame_index:]
        s.phase = frame.phase
        s.question_index = frame.index
        s.completed = False
        logger.info(
            "conversation_re_edit",
            transcript_index=transcript_index,
            phase=frame.phase,
            question_index=frame.index,
        )
        self._reveal(frame.phase, frame.index, self._config.re_edit_reveal_delay)
        return True

    def request_exit(self, confirmed: bool = False) -> ExitResult:
        if self.state.history and not confirmed:
            return "confirmation_required"
        self.cancel()
        logger.info("conversation_abandoned", answers=len(self.state.history))
        self._on_abandon()
        return "abandoned"

    @staticmethod
    def _question_entry(question: Question) -> TranscriptEntry:
        return TranscriptEntry(
            id=f"{question.id}-{uuid4().hex[:8]}",
            role=question.role,
            content=question.content,
            question_id=question.id,
        )
