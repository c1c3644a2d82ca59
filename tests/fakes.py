import asyncio

from tutor.dialogue import DialogueStateMachine
from tutor.explain import ExplanationClient
from tutor.transcriber import Transcriber
from tutor.types import ExerciseContext, ExplainResult, SocraticStep, ValidationResult
from tutor.validator import AnswerValidator


def step(prompt, keywords, hint="", feedback=""):
    return SocraticStep(
        prompt_to_student=prompt,
        expected_keywords=tuple(keywords),
        hint_on_wrong_answer=hint,
        feedback_on_correct_answer=feedback,
    )


DERIVATIVE_STEP = step("What is f'(x)?", ["2x"], "Differentiate term by term", "Correct!")


def exercise(full_correction=None, snippet=""):
    return ExerciseContext(
        exercise_id="ex-1",
        statement="Let f(x) = x^2. Compute f'(x).",
        topic_id="derivatives",
        correction_snippet=snippet,
        full_correction=full_correction,
    )


def path_result(*steps, start=None):
    return ExplainResult(socratic_path=tuple(steps), starting_step_index=start)


class ScriptedExplainService:
    """Returns (or raises) the scripted responses in order.

    A response may be an ``asyncio.Event`` followed by the real response, in
    which case the call waits for the event before answering.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def explain(self, prompt, topic_id, mode):
        self.calls.append((prompt, topic_id, mode))
        response = self.responses.pop(0)
        if isinstance(response, tuple) and isinstance(response[0], asyncio.Event):
            gate, response = response
            await gate.wait()
        if isinstance(response, Exception):
            raise response
        return response


class ScriptedValidationService:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def validate_answer(self, student_answer, current_prompt, expected_keywords, context=None):
        self.calls.append((student_answer, current_prompt, list(expected_keywords), context))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class DictTranscriptionService:
    def __init__(self, texts, delays=None, error=None):
        self.texts = texts
        self.delays = delays or {}
        self.error = error
        self.calls = []

    async def transcribe_image(self, image):
        self.calls.append(image.data)
        await asyncio.sleep(self.delays.get(image.data, 0))
        if self.error is not None:
            raise self.error
        return self.texts[image.data]


class RecordingMemo:
    def __init__(self):
        self.records = []

    async def record(self, exercise_id, artifact):
        self.records.append((exercise_id, artifact))
        return True


def correct(feedback=None):
    return ValidationResult(is_correct=True, feedback=feedback)


def wrong(feedback=None):
    return ValidationResult(is_correct=False, feedback=feedback)


def make_machine(
    explain_service=None,
    validation_service=None,
    transcription_service=None,
    memo=None,
    full_correction=None,
    show_correction=None,
    **kwargs,
):
    return DialogueStateMachine(
        exercise(full_correction=full_correction),
        explanation_client=ExplanationClient(explain_service or ScriptedExplainService()),
        validator=AnswerValidator(validation_service or ScriptedValidationService()),
        transcriber=Transcriber(transcription_service) if transcription_service else None,
        memo=memo,
        show_correction=show_correction,
        **kwargs,
    )
