from __future__ import annotations

from typing import Sequence

from .types import DialogueMessage, ExerciseContext, ExplainMode

# Prefix of the page markers written by the transcriber; its presence tells
# the reasoning service that the student's text is a transcribed draft.
PAGE_MARKER_PREFIX = "--- PAGE "

QUESTION_HEADER = "---STUDENT REQUEST---"

_SYSTEM_HEADER = (
    "CONTEXT: You are an expert, supportive math tutor for high-school students. "
    "Write math in LaTeX between $...$ delimiters."
)

_MISSIONS = {
    ExplainMode.PLAN: "Give a short plan of the steps needed and the key concepts involved.",
    ExplainMode.SOCRATIC: "Build a Socratic tutoring path that guides the student without revealing the answer.",
    ExplainMode.DIRECT: "Answer directly with a complete worked explanation.",
}

_DRAFT_MISSIONS = {
    ExplainMode.PLAN: "Assess all of the student's work, then give a short plan of the remaining steps.",
    ExplainMode.SOCRATIC: (
        "Assess all of the student's work and build a Socratic tutoring path. "
        "Set starting_step_index to the first step the work does not already complete."
    ),
    ExplainMode.DIRECT: "Assess all of the student's work and answer directly.",
}


def exercise_context_block(exercise: ExerciseContext) -> str:
    parts = ["---EXERCISE---", exercise.statement.strip()]
    if exercise.full_correction:
        parts += ["---OFFICIAL CORRECTION (base your guidance on it)---", exercise.full_correction.strip()]
    elif exercise.correction_snippet:
        parts += ["---HINT---", exercise.correction_snippet.strip()]
    return "\n".join(parts)


def build_explain_prompt(exercise: ExerciseContext, student_text: str, mode: ExplainMode) -> str:
    is_draft = PAGE_MARKER_PREFIX in student_text
    mission = (_DRAFT_MISSIONS if is_draft else _MISSIONS)[mode]
    return "\n".join(
        [
            _SYSTEM_HEADER,
            exercise_context_block(exercise),
            QUESTION_HEADER,
            student_text.strip(),
            "",
            f"MISSION: {mission}",
        ]
    )


def format_dialogue(messages: Sequence[DialogueMessage], *, limit: int = 12) -> str:
    recent = list(messages)[-limit:]
    return "\n".join(f"{m.role.value.upper()}: {m.content}" for m in recent)


def build_direct_help_prompt(
    exercise: ExerciseContext,
    transcript: Sequence[DialogueMessage],
    current_step_prompt: str,
) -> str:
    return "\n".join(
        [
            _SYSTEM_HEADER,
            exercise_context_block(exercise),
            "---DIALOGUE SO FAR---",
            format_dialogue(transcript),
            "---CURRENT QUESTION---",
            current_step_prompt,
            QUESTION_HEADER,
            "The student asks for a direct explanation of the current question.",
            "",
            f"MISSION: {_MISSIONS[ExplainMode.DIRECT]} Do not move on to later steps.",
        ]
    )


def build_validation_prompt(
    student_answer: str,
    current_prompt: str,
    expected_keywords: Sequence[str],
    context: Sequence[DialogueMessage] | None = None,
) -> str:
    context_block = ""
    if context:
        context_block = f"DIALOGUE SO FAR:\n{format_dialogue(context, limit=6)}\n\n"
    return (
        "CONTEXT: You are a math tutor grading a student's answer "
        "(it may come from an image transcription).\n"
        "MISSION: Decide whether the answer is conceptually correct. "
        "Be flexible about wording.\n\n"
        f"{context_block}"
        f'QUESTION ASKED: "{current_prompt}"\n'
        f'EXPECTED CONCEPTS/KEYWORDS: "{", ".join(expected_keywords)}"\n'
        f'STUDENT ANSWER: "{student_answer}"\n\n'
        'OUTPUT: only a JSON object {"is_correct": boolean, "feedback_message": string}. '
        "feedback_message is one or two encouraging sentences and must not reveal the answer."
    )


OCR_PROMPT = (
    "Transcribe the handwritten mathematics in this image as a single LaTeX string.\n"
    "- No outer delimiters such as $$...$$ or $...$.\n"
    "- Wrap natural-language text in \\text{...}.\n"
    "- Use \\\\ for line breaks matching the image.\n"
    "- No Markdown. Output raw LaTeX only."
)
