from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .state import Active, AwaitingRetry, DialogueSession, DirectAnswerGiven, Finished
from .types import DialogueMessage, Role

_LABELS = {Role.STUDENT: "Student", Role.TUTOR: "Tutor", Role.SYSTEM: "System"}


@dataclass(frozen=True)
class SessionSummary:
    transcript: tuple[DialogueMessage, ...]
    outcome: str  # not_started | in_progress | finished | direct_answer
    steps_completed: int
    total_steps: int
    hints_given: int
    revealed_steps: tuple[int, ...]

    @property
    def student_turns(self) -> int:
        return sum(1 for m in self.transcript if m.role is Role.STUDENT)


def summarize(session: DialogueSession) -> SessionSummary:
    state = session.state
    total = len(session.path) if session.path else 0
    if isinstance(state, Finished):
        outcome, completed = "finished", total
    elif isinstance(state, (Active, AwaitingRetry)):
        outcome, completed = "in_progress", state.step_index
    elif isinstance(state, DirectAnswerGiven):
        outcome, completed = "direct_answer", 0
    else:
        outcome, completed = "not_started", 0
    return SessionSummary(
        transcript=tuple(session.transcript),
        outcome=outcome,
        steps_completed=completed,
        total_steps=total,
        hints_given=session.wrong_answers,
        revealed_steps=tuple(session.revealed_steps),
    )


def _safe_text(text: str) -> str:
    safe_chars: list[str] = []
    for char in text:
        if char in ("\n", "\t"):
            safe_chars.append(char)
            continue
        code = ord(char)
        if code < 32 or code == 127:
            safe_chars.append(f"\\x{code:02x}")
        else:
            safe_chars.append(char)
    return "".join(safe_chars)


def _format_block(prefix: str, text: str) -> str:
    lines = text.splitlines() or [""]
    indented = [f"{prefix}: {lines[0]}"]
    indent = " " * (len(prefix) + 2)
    for line in lines[1:]:
        indented.append(f"{indent}{line}")
    return "\n".join(indented)


def format_transcript(messages: Sequence[DialogueMessage]) -> str:
    return "\n".join(_format_block(_LABELS[m.role], _safe_text(m.content)) for m in messages)


def format_summary(summary: SessionSummary) -> str:
    header = (
        f"----- SESSION ({summary.outcome}, steps {summary.steps_completed}/{summary.total_steps}, "
        f"hints {summary.hints_given}) -----"
    )
    lines = [header]
    if summary.revealed_steps:
        lines.append(f"Revealed steps: {', '.join(str(i + 1) for i in summary.revealed_steps)}")
    lines.append(format_transcript(summary.transcript))
    return "\n".join(lines)
