from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol, Sequence

from .errors import InvalidPayloadError
from .normalize import norm_text
from .validation import validate_explain_payload

logger = logging.getLogger(__name__)


class Role(str, Enum):
    STUDENT = "student"
    TUTOR = "tutor"
    SYSTEM = "system"


class ExplainMode(str, Enum):
    PLAN = "plan"
    SOCRATIC = "socratic"
    DIRECT = "direct"


@dataclass(frozen=True)
class DialogueMessage:
    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "DialogueMessage":
        return cls(Role(raw["role"]), str(raw.get("content") or ""))


def _unique_texts(values: Any) -> tuple[str, ...]:
    out: list[str] = []
    seen: set[str] = set()
    for value in values or ():
        text = norm_text(str(value))
        if text and text not in seen:
            seen.add(text)
            out.append(text)
    return tuple(out)


@dataclass(frozen=True)
class SocraticStep:
    prompt_to_student: str
    # ordered and de-duplicated so a revealed answer reads the same every time
    expected_keywords: tuple[str, ...]
    hint_on_wrong_answer: str = ""
    feedback_on_correct_answer: str = ""
    student_response_prompt: str | None = None

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> "SocraticStep":
        return cls(
            prompt_to_student=str(raw.get("ia_question") or "").strip(),
            expected_keywords=_unique_texts(raw.get("expected_answer_keywords")),
            hint_on_wrong_answer=str(raw.get("hint_for_wrong_answer") or "").strip(),
            feedback_on_correct_answer=str(raw.get("positive_feedback") or "").strip(),
            student_response_prompt=(str(raw["student_response_prompt"]).strip() or None)
            if raw.get("student_response_prompt")
            else None,
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "ia_question": self.prompt_to_student,
            "expected_answer_keywords": list(self.expected_keywords),
            "hint_for_wrong_answer": self.hint_on_wrong_answer,
            "positive_feedback": self.feedback_on_correct_answer,
        }
        if self.student_response_prompt:
            payload["student_response_prompt"] = self.student_response_prompt
        return payload


SocraticPath = tuple[SocraticStep, ...]


@dataclass(frozen=True)
class StepPlan:
    steps: tuple[str, ...] = ()
    key_concepts: tuple[str, ...] = ()


@dataclass(frozen=True)
class VideoChunk:
    source_id: str
    excerpt_text: str
    start_offset_seconds: float = 0.0

    @classmethod
    def from_payload(cls, raw: Any) -> Optional["VideoChunk"]:
        if not isinstance(raw, dict):
            return None
        source_id = raw.get("video_id") or raw.get("source_id")
        if not source_id:
            return None
        try:
            offset = float(raw.get("start_time_seconds") or 0)
        except (TypeError, ValueError):
            offset = 0.0
        return cls(
            source_id=str(source_id),
            excerpt_text=str(raw.get("chunk_text") or raw.get("excerpt_text") or ""),
            start_offset_seconds=max(0.0, offset),
        )


@dataclass(frozen=True)
class ExplainResult:
    plan: StepPlan | None = None
    socratic_path: SocraticPath | None = None
    starting_step_index: int | None = None
    explanation: str | None = None
    video_chunk: VideoChunk | None = None

    @property
    def has_content(self) -> bool:
        return bool(self.socratic_path) or bool(self.explanation) or self.plan is not None

    def artifact(self) -> dict[str, Any] | None:
        """Payload stored as a proposed correction, or None when there is nothing to keep."""
        if self.socratic_path:
            return {"socratic_path": [step.to_payload() for step in self.socratic_path]}
        if self.explanation:
            return {"explanation": self.explanation}
        return None

    def with_video_chunk(self, chunk: VideoChunk | None) -> "ExplainResult":
        if chunk is None:
            return self
        return ExplainResult(
            plan=self.plan,
            socratic_path=self.socratic_path,
            starting_step_index=self.starting_step_index,
            explanation=self.explanation,
            video_chunk=chunk,
        )

    @classmethod
    def from_payload(cls, payload: Any) -> "ExplainResult":
        issues = validate_explain_payload(payload)
        errors = [i for i in issues if i.severity == "error"]
        if errors:
            first = errors[0]
            where = f" (step {first.step_index})" if first.step_index is not None else ""
            raise InvalidPayloadError(f"invalid AI response: {first.message}{where}")
        for issue in issues:
            logger.warning(
                "explain_payload_warning step=%s message=%s", issue.step_index, issue.message
            )

        plan = None
        raw_plan = payload.get("plan")
        if isinstance(raw_plan, dict):
            plan = StepPlan(
                steps=tuple(str(s) for s in raw_plan.get("steps") or [] if s),
                key_concepts=tuple(str(c) for c in raw_plan.get("key_concepts") or [] if c),
            )
        path = None
        raw_path = payload.get("socratic_path")
        if raw_path:
            path = tuple(SocraticStep.from_payload(step) for step in raw_path)
        explanation = payload.get("explanation")
        if isinstance(explanation, str):
            explanation = explanation.strip() or None
        return cls(
            plan=plan,
            socratic_path=path,
            starting_step_index=payload.get("starting_step_index"),
            explanation=explanation,
            video_chunk=VideoChunk.from_payload(payload.get("videoChunk") or payload.get("video_chunk")),
        )


@dataclass(frozen=True)
class ValidationResult:
    is_correct: bool
    feedback: str | None = None

    def feedback_or(self, default: str) -> str:
        return self.feedback if self.feedback else default

    @classmethod
    def from_payload(cls, payload: Any) -> "ValidationResult":
        if not isinstance(payload, dict) or not isinstance(payload.get("is_correct"), bool):
            raise InvalidPayloadError("invalid AI response: is_correct must be a boolean")
        feedback = payload.get("feedback_message") or payload.get("feedback")
        feedback = str(feedback).strip() if feedback else None
        return cls(is_correct=payload["is_correct"], feedback=feedback or None)


@dataclass(frozen=True)
class ImagePayload:
    data: bytes
    mime_type: str = "image/jpeg"


@dataclass(frozen=True)
class ExerciseContext:
    exercise_id: str
    statement: str
    topic_id: str
    correction_snippet: str = ""
    full_correction: str | None = None

    @property
    def has_official_correction(self) -> bool:
        return bool(self.full_correction)


class ExplainService(Protocol):
    async def explain(self, prompt: str, topic_id: str, mode: ExplainMode) -> ExplainResult: ...


class AnswerValidationService(Protocol):
    async def validate_answer(
        self,
        student_answer: str,
        current_prompt: str,
        expected_keywords: Sequence[str],
        context: Sequence[DialogueMessage] | None = None,
    ) -> ValidationResult: ...


class TranscriptionService(Protocol):
    async def transcribe_image(self, image: ImagePayload) -> str: ...


class VideoLookup(Protocol):
    async def __call__(self, question: str, topic_id: str) -> VideoChunk | None: ...
