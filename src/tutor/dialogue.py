from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from . import transitions
from .corrections import CorrectionMemo
from .errors import (
    ServiceError,
    TranscriptionError,
    TransientError,
    TransitionRejected,
    ValidationCallError,
)
from .explain import ExplanationClient
from .i18n import t
from .state import DialogueSession, NotStarted
from .transcriber import Transcriber
from .transitions import (
    CallExplain,
    CallValidate,
    Effect,
    RecordCorrection,
    ShowOfficialCorrection,
)
from .types import DialogueMessage, ExerciseContext, ExplainMode, ImagePayload
from .validator import AnswerValidator

logger = logging.getLogger(__name__)

ShowCorrectionHook = Callable[[ShowOfficialCorrection], Union[None, Awaitable[None]]]


class DialogueStateMachine:
    """Drives one tutoring dialogue for one exercise.

    All mutation goes through :mod:`tutor.transitions`; this class only
    performs the effects those functions return and feeds results back in.
    Actions that would race an outstanding call raise
    :class:`TransitionRejected`; service failures never raise out of an
    action, they are recorded on ``session.error`` instead.
    """

    def __init__(
        self,
        exercise: ExerciseContext,
        *,
        explanation_client: ExplanationClient,
        validator: AnswerValidator,
        transcriber: Optional[Transcriber] = None,
        memo: Optional[CorrectionMemo] = None,
        show_correction: Optional[ShowCorrectionHook] = None,
        is_authenticated: bool = True,
        lang: str = "en",
        transcript: Sequence[DialogueMessage] | None = None,
    ):
        self.session = DialogueSession.create(exercise, lang=lang, transcript=transcript)
        self.explanation_client = explanation_client
        self.validator = validator
        self.transcriber = transcriber
        self.memo = memo
        self.show_correction = show_correction
        self.is_authenticated = is_authenticated
        self._background: set[asyncio.Task] = set()

    # ---------------- gates ----------------
    @property
    def can_start(self) -> bool:
        s = self.session
        return (
            self.is_authenticated
            and not s.is_blocked
            and not s.is_busy
            and isinstance(s.state, NotStarted)
        )

    @property
    def can_submit(self) -> bool:
        s = self.session
        return not s.is_blocked and not s.is_busy and s.is_active

    @property
    def can_give_up(self) -> bool:
        return not self.session.is_busy and self.session.is_awaiting_retry

    # ---------------- actions ----------------
    async def start(self, text: str, mode: ExplainMode | str = ExplainMode.SOCRATIC) -> None:
        effects = transitions.begin_start(
            self.session, text, ExplainMode(mode), is_authenticated=self.is_authenticated
        )
        await self._perform(effects)

    async def submit_answer(self, answer: str) -> None:
        await self._perform(transitions.begin_submit(self.session, answer))

    async def submit(self, text: str) -> None:
        if self.session.is_active:
            await self.submit_answer(text)
        elif isinstance(self.session.state, NotStarted):
            await self.start(text)
        else:
            raise TransitionRejected("dialogue_over")

    def give_up(self) -> None:
        effects = transitions.give_up(
            self.session,
            official_correction_available=(
                self.show_correction is not None and self.session.exercise.has_official_correction
            ),
        )
        for effect in effects:
            if isinstance(effect, ShowOfficialCorrection):
                self.explanation_client.reset()
                self._call_hook(effect)

    async def ask_direct_help(self) -> None:
        await self._perform(transitions.begin_direct_help(self.session))

    def reset(self) -> None:
        self.explanation_client.reset()
        transitions.reset(self.session)

    async def start_with_help(self, mode: ExplainMode | str = ExplainMode.SOCRATIC) -> None:
        """Start for a student who has not written anything yet."""
        await self.start(t("start_help", self.session.lang), mode)

    async def new_question(self, text: str, mode: ExplainMode | str = ExplainMode.SOCRATIC) -> None:
        self.reset()
        await self.start(text, mode)

    def dismiss_error(self) -> None:
        transitions.dismiss_error(self.session)

    # ---------------- transcription ----------------
    async def transcribe(self, images: Sequence[ImagePayload]) -> str | None:
        """Transcribe images into text awaiting the student's verification.

        Nothing is added to the transcript here; the text only becomes a
        student message through :meth:`submit_verified_transcription`.
        """
        if self.transcriber is None:
            raise TransitionRejected("transcription_unavailable")
        if self.session.is_busy:
            raise TransitionRejected("busy")
        self.session.pending_transcription = None
        try:
            text = await self.transcriber.transcribe(images)
        except TranscriptionError as err:
            self.session.error = err
            return None
        self.session.error = None
        self.session.pending_transcription = text
        return text

    async def submit_verified_transcription(self, edited_text: str | None = None) -> None:
        if self.session.pending_transcription is None:
            raise TransitionRejected("no_transcription")
        text = self.session.pending_transcription if edited_text is None else edited_text
        await self.submit(text)
        self.session.pending_transcription = None

    def discard_transcription(self) -> None:
        self.session.pending_transcription = None

    # ---------------- effects ----------------
    async def _perform(self, effects: list[Effect]) -> None:
        queue = list(effects)
        while queue:
            effect = queue.pop(0)
            if isinstance(effect, CallExplain):
                queue.extend(await self._call_explain(effect))
            elif isinstance(effect, CallValidate):
                queue.extend(await self._call_validate(effect))
            elif isinstance(effect, RecordCorrection):
                self._schedule_record(effect)
            elif isinstance(effect, ShowOfficialCorrection):
                self._call_hook(effect)

    async def _call_explain(self, effect: CallExplain) -> list[Effect]:
        try:
            result = await self.explanation_client.explain(effect.prompt, effect.topic_id, effect.mode)
        except ServiceError as err:
            return transitions.apply_call_error(self.session, effect.token, err)
        return transitions.apply_explain_result(self.session, effect.token, result)

    async def _call_validate(self, effect: CallValidate) -> list[Effect]:
        try:
            result = await self.validator.validate(
                effect.student_answer,
                effect.current_prompt,
                effect.expected_keywords,
                effect.context,
            )
        except ValidationCallError as err:
            return transitions.apply_call_error(self.session, effect.token, err)
        except ValueError as exc:
            # a step the validator cannot check must not leave the call pending
            logger.error("validation_call_refused error=%s", exc)
            err = ValidationCallError(str(exc), cause=TransientError(str(exc)))
            return transitions.apply_call_error(self.session, effect.token, err)
        return transitions.apply_validation_result(self.session, effect.token, result)

    def _schedule_record(self, effect: RecordCorrection) -> None:
        if self.memo is None:
            return
        task = asyncio.create_task(self.memo.record(effect.exercise_id, effect.artifact))
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("background_task_failed error=%r", exc)

    def _call_hook(self, effect: ShowOfficialCorrection) -> None:
        if self.show_correction is None:
            return
        outcome: Any = self.show_correction(effect)
        if inspect.isawaitable(outcome):
            task = asyncio.ensure_future(outcome)
            self._background.add(task)
            task.add_done_callback(self._on_background_done)

    async def wait_background(self) -> None:
        """Wait for fire-and-forget work (proposed-correction writes) to settle."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
