"""Dialogue transitions.

Every function takes the session, mutates it, and returns the effects the
caller must perform (remote calls, the proposed-correction write, the
redirect to an official correction). Results of remote calls come back in
through the ``apply_*`` functions together with the token of the call; a
token that no longer matches ``session.pending`` means the call was
superseded and its result is dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Union

from .errors import (
    ConfigurationError,
    InvalidPayloadError,
    RateLimitedError,
    ServiceError,
    TransientError,
    TransitionRejected,
    TutorError,
    ValidationCallError,
)
from .i18n import t
from .normalize import norm_text
from .prompts import build_direct_help_prompt, build_explain_prompt
from .state import (
    Active,
    AwaitingRetry,
    DialogueSession,
    DirectAnswerGiven,
    Finished,
    NotStarted,
    PendingCall,
)
from .types import DialogueMessage, ExplainMode, ExplainResult, Role, ValidationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallExplain:
    token: int
    prompt: str
    topic_id: str
    mode: ExplainMode


@dataclass(frozen=True)
class CallValidate:
    token: int
    student_answer: str
    current_prompt: str
    expected_keywords: tuple[str, ...]
    context: tuple[DialogueMessage, ...]


@dataclass(frozen=True)
class RecordCorrection:
    exercise_id: str
    artifact: dict[str, Any]


@dataclass(frozen=True)
class ShowOfficialCorrection:
    exercise_id: str
    transcript: tuple[DialogueMessage, ...]


Effect = Union[CallExplain, CallValidate, RecordCorrection, ShowOfficialCorrection]

# a resend is refused while these blocks are set, so the message must not offer one
_VALIDATION_FAILURE_KEYS = {
    "rate_limited": "validation_rate_limited",
    "configuration": "validation_unavailable",
}


# ---------------- guards ----------------
def _require_idle(session: DialogueSession) -> None:
    if session.pending is not None:
        raise TransitionRejected("busy")


def _require_unblocked(session: DialogueSession) -> None:
    if session.disabled:
        raise TransitionRejected("disabled")
    if session.rate_limited:
        raise TransitionRejected("rate_limited")


def _require_text(text: str) -> str:
    cleaned = (text or "").strip()
    if not norm_text(cleaned):
        raise TransitionRejected("empty_input")
    return cleaned


def _take_pending(session: DialogueSession, token: int, *kinds: str) -> PendingCall | None:
    pending = session.pending
    if pending is None or pending.token != token or pending.kind not in kinds:
        logger.info(
            "stale_result_ignored token=%s current=%s",
            token,
            pending.token if pending else None,
        )
        return None
    session.pending = None
    return pending


# ---------------- helpers ----------------
def append_step_prompt(session: DialogueSession) -> bool:
    """Append the current step's prompt unless it is already the last message."""
    step = session.current_step
    if step is None:
        return False
    last = session.last_message
    if last is not None and last.role is Role.TUTOR and last.content == step.prompt_to_student:
        return False
    session.append(Role.TUTOR, step.prompt_to_student)
    return True


def _advance(session: DialogueSession, step_index: int) -> None:
    next_index = step_index + 1
    if next_index >= len(session.path):
        session.state = Finished(len(session.path))
        session.append(Role.SYSTEM, t("completed", session.lang))
        return
    session.state = Active(next_index)
    append_step_prompt(session)


def _record_correction(session: DialogueSession, result: ExplainResult) -> list[Effect]:
    if session.correction_recorded or session.exercise.has_official_correction:
        return []
    artifact = result.artifact()
    if artifact is None:
        return []
    session.correction_recorded = True
    return [RecordCorrection(session.exercise.exercise_id, artifact)]


# ---------------- transitions ----------------
def begin_start(
    session: DialogueSession,
    text: str,
    mode: ExplainMode = ExplainMode.SOCRATIC,
    *,
    is_authenticated: bool = True,
) -> list[Effect]:
    mode = ExplainMode(mode)
    if mode is ExplainMode.PLAN:
        raise ValueError("a dialogue starts in socratic or direct mode")
    if not is_authenticated:
        raise TransitionRejected("unauthenticated")
    _require_unblocked(session)
    _require_idle(session)
    if not isinstance(session.state, NotStarted):
        raise TransitionRejected("already_started")
    text = _require_text(text)

    last = session.last_message
    retrying = (
        last is not None
        and last.role is Role.STUDENT
        and last.content == text
        and session.draft == text
    )
    # a failed start leaves the student message unanswered; a resend reuses it
    if not retrying:
        session.append(Role.STUDENT, text)
    session.error = None
    session.draft = text
    session.video_chunk = None
    token = session.next_token()
    session.pending = PendingCall(token, "start", session.state, mode=mode)
    prompt = build_explain_prompt(session.exercise, text, mode)
    return [CallExplain(token, prompt, session.exercise.topic_id, mode)]


def _apply_start_result(session: DialogueSession, pending: PendingCall, result: ExplainResult) -> list[Effect]:
    if result.socratic_path and not all(norm_text(s.prompt_to_student) for s in result.socratic_path):
        session.pending = pending
        return apply_call_error(session, pending.token, InvalidPayloadError("the AI returned a step without a question"))
    if result.socratic_path:
        path = result.socratic_path
        session.path = path
        resume = result.starting_step_index or 0
        if resume >= len(path):
            session.state = Finished(len(path))
            session.append(Role.SYSTEM, t("already_solved", session.lang))
        else:
            session.state = Active(resume)
            append_step_prompt(session)
    elif result.explanation:
        session.state = DirectAnswerGiven()
        session.append(Role.TUTOR, result.explanation)
    else:
        session.pending = pending
        return apply_call_error(session, pending.token, TransientError("the AI returned an empty response"))
    session.draft = None
    session.video_chunk = result.video_chunk
    logger.info(
        "dialogue_started exercise_id=%s state=%s steps=%s",
        session.exercise.exercise_id,
        type(session.state).__name__,
        len(session.path) if session.path else 0,
    )
    return _record_correction(session, result)


def _apply_direct_help_result(
    session: DialogueSession, pending: PendingCall, result: ExplainResult
) -> list[Effect]:
    if not result.explanation:
        session.pending = pending
        return apply_call_error(session, pending.token, TransientError("the AI returned an empty response"))
    session.append(Role.TUTOR, result.explanation)
    if result.video_chunk is not None:
        session.video_chunk = result.video_chunk
    return _record_correction(session, result)


def apply_explain_result(session: DialogueSession, token: int, result: ExplainResult) -> list[Effect]:
    pending = _take_pending(session, token, "start", "direct_help")
    if pending is None:
        return []
    if pending.kind == "start":
        return _apply_start_result(session, pending, result)
    return _apply_direct_help_result(session, pending, result)


def begin_submit(session: DialogueSession, answer: str) -> list[Effect]:
    _require_unblocked(session)
    _require_idle(session)
    if not session.is_active:
        raise TransitionRejected("not_active")
    answer = _require_text(answer)

    step_index = session.current_step_index
    step = session.path[step_index]
    session.append(Role.STUDENT, answer)
    token = session.next_token()
    session.pending = PendingCall(token, "submit", session.state, step_index=step_index)
    session.state = Active(step_index)
    session.error = None
    session.draft = answer
    return [
        CallValidate(
            token,
            answer,
            step.prompt_to_student,
            step.expected_keywords,
            tuple(session.transcript),
        )
    ]


def apply_validation_result(session: DialogueSession, token: int, result: ValidationResult) -> list[Effect]:
    pending = _take_pending(session, token, "submit")
    if pending is None:
        return []
    step_index = pending.step_index
    step = session.path[step_index]
    session.draft = None
    if result.is_correct:
        default = step.feedback_on_correct_answer or t("default_feedback", session.lang)
        session.append(Role.TUTOR, result.feedback_or(default))
        _advance(session, step_index)
    else:
        default = step.hint_on_wrong_answer or t("default_hint", session.lang)
        session.append(Role.TUTOR, result.feedback_or(default))
        session.state = AwaitingRetry(step_index)
        session.wrong_answers += 1
    logger.info(
        "answer_applied exercise_id=%s step=%s is_correct=%s state=%s",
        session.exercise.exercise_id,
        step_index,
        result.is_correct,
        type(session.state).__name__,
    )
    return []


def apply_call_error(session: DialogueSession, token: int, error: TutorError) -> list[Effect]:
    pending = _take_pending(session, token, "start", "submit", "direct_help")
    if pending is None:
        return []
    session.state = pending.prior_state
    cause: TutorError = error
    if isinstance(error, ValidationCallError) and error.cause is not None:
        cause = error.cause
    if isinstance(cause, ConfigurationError):
        session.disabled = True
    elif isinstance(cause, RateLimitedError):
        session.rate_limited = True
    if pending.kind == "submit":
        key = _VALIDATION_FAILURE_KEYS.get(getattr(cause, "kind", None), "validation_failed")
        session.append(Role.SYSTEM, t(key, session.lang, error=str(error)))
    session.error = error
    logger.warning(
        "transition_failed kind=%s error_kind=%s exercise_id=%s",
        pending.kind,
        getattr(cause, "kind", type(cause).__name__),
        session.exercise.exercise_id,
    )
    return []


def give_up(session: DialogueSession, *, official_correction_available: bool = False) -> list[Effect]:
    _require_idle(session)
    if not isinstance(session.state, AwaitingRetry):
        raise TransitionRejected("not_awaiting_retry")
    step_index = session.state.step_index
    if official_correction_available:
        session.append(Role.SYSTEM, t("redirect_correction", session.lang))
        effect = ShowOfficialCorrection(session.exercise.exercise_id, tuple(session.transcript))
        reset(session)
        return [effect]

    step = session.path[step_index]
    if step.expected_keywords:
        expected = t("reveal_separator", session.lang).join(step.expected_keywords)
        session.append(Role.SYSTEM, t("reveal", session.lang, expected=expected))
    else:
        session.append(Role.SYSTEM, t("reveal_empty", session.lang))
    session.revealed_steps.append(step_index)
    session.error = None
    _advance(session, step_index)
    return []


def begin_direct_help(session: DialogueSession) -> list[Effect]:
    _require_unblocked(session)
    _require_idle(session)
    step = session.current_step
    if step is None:
        raise TransitionRejected("not_active")
    token = session.next_token()
    session.pending = PendingCall(token, "direct_help", session.state, mode=ExplainMode.DIRECT)
    session.error = None
    prompt = build_direct_help_prompt(session.exercise, session.transcript, step.prompt_to_student)
    return [CallExplain(token, prompt, session.exercise.topic_id, ExplainMode.DIRECT)]


def reset(session: DialogueSession) -> list[Effect]:
    session.next_token()
    session.pending = None
    session.seed_transcript()
    session.path = None
    session.state = NotStarted()
    session.error = None
    session.draft = None
    session.pending_transcription = None
    session.video_chunk = None
    session.correction_recorded = False
    session.wrong_answers = 0
    session.revealed_steps = []
    return []


def dismiss_error(session: DialogueSession) -> None:
    if isinstance(session.error, ServiceError) and session.error.kind in ("configuration", "rate_limited"):
        return
    session.error = None
