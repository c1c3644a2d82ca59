from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

from .errors import TutorError
from .i18n import t
from .types import (
    DialogueMessage,
    ExerciseContext,
    ExplainMode,
    Role,
    SocraticPath,
    SocraticStep,
    VideoChunk,
)


@dataclass(frozen=True)
class NotStarted:
    pass


@dataclass(frozen=True)
class Active:
    step_index: int


@dataclass(frozen=True)
class AwaitingRetry:
    step_index: int


@dataclass(frozen=True)
class Finished:
    step_index: int


@dataclass(frozen=True)
class DirectAnswerGiven:
    pass


DialogueState = Union[NotStarted, Active, AwaitingRetry, Finished, DirectAnswerGiven]


@dataclass(frozen=True)
class PendingCall:
    token: int
    kind: str  # start | submit | direct_help
    prior_state: DialogueState
    mode: ExplainMode | None = None
    step_index: int | None = None


@dataclass
class DialogueSession:
    exercise: ExerciseContext
    lang: str = "en"
    transcript: list[DialogueMessage] = field(default_factory=list)
    path: Optional[SocraticPath] = None
    state: DialogueState = field(default_factory=NotStarted)
    pending: Optional[PendingCall] = None
    token: int = 0

    # sticky for the lifetime of the session object, reset() keeps them
    disabled: bool = False
    rate_limited: bool = False

    error: Optional[TutorError] = None
    draft: Optional[str] = None
    pending_transcription: Optional[str] = None
    video_chunk: Optional[VideoChunk] = None
    correction_recorded: bool = False
    wrong_answers: int = 0
    revealed_steps: list[int] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        exercise: ExerciseContext,
        *,
        lang: str = "en",
        transcript: Sequence[DialogueMessage] | None = None,
    ) -> "DialogueSession":
        session = cls(exercise=exercise, lang=lang)
        if transcript:
            session.transcript = list(transcript)
        else:
            session.seed_transcript()
        return session

    def seed_transcript(self) -> None:
        self.transcript = [DialogueMessage(Role.TUTOR, t("opening", self.lang))]

    def next_token(self) -> int:
        self.token += 1
        return self.token

    def append(self, role: Role, content: str) -> DialogueMessage:
        msg = DialogueMessage(role, content)
        self.transcript.append(msg)
        return msg

    @property
    def last_message(self) -> DialogueMessage | None:
        return self.transcript[-1] if self.transcript else None

    @property
    def current_step_index(self) -> int:
        if isinstance(self.state, (Active, AwaitingRetry, Finished)):
            return self.state.step_index
        return 0

    @property
    def current_step(self) -> SocraticStep | None:
        if self.path is None or not isinstance(self.state, (Active, AwaitingRetry)):
            return None
        return self.path[self.state.step_index]

    @property
    def is_active(self) -> bool:
        return isinstance(self.state, (Active, AwaitingRetry))

    @property
    def is_finished(self) -> bool:
        return isinstance(self.state, Finished)

    @property
    def is_awaiting_retry(self) -> bool:
        return isinstance(self.state, AwaitingRetry)

    @property
    def is_busy(self) -> bool:
        return self.pending is not None

    @property
    def is_blocked(self) -> bool:
        return self.disabled or self.rate_limited
