import asyncio

import pytest

from fakes import ScriptedValidationService, correct, wrong
from tutor.errors import RateLimitedError, TransientError, ValidationCallError
from tutor.types import DialogueMessage, Role, ValidationResult
from tutor.validator import AnswerValidator


def test_answer_is_latex_cleaned_and_keywords_normalised():
    async def _run():
        service = ScriptedValidationService(correct("Well done"))
        validator = AnswerValidator(service)
        context = [DialogueMessage(Role.TUTOR, "What is f'(x)?")]
        result = await validator.validate("\\(2x\\)", "  What is  f'(x)? ", ["2x", " 2x ", "x’"], context)
        assert result == ValidationResult(True, "Well done")
        answer, prompt, keywords, sent_context = service.calls[0]
        assert answer == "$2x$"
        assert prompt == "What is f'(x)?"
        assert keywords == ["2x", "x'"]
        assert sent_context == context
    asyncio.run(_run())


def test_empty_prompt_is_rejected():
    async def _run():
        validator = AnswerValidator(ScriptedValidationService())
        with pytest.raises(ValueError):
            await validator.validate("2x", "   ", ["2x"])
    asyncio.run(_run())


@pytest.mark.parametrize("error, kind", [
    (RateLimitedError("limit"), "rate_limited"),
    (TransientError("502"), "transient"),
    (TimeoutError("slow"), "transient"),
])
def test_failures_are_wrapped_with_their_cause(error, kind):
    async def _run():
        validator = AnswerValidator(ScriptedValidationService(error))
        with pytest.raises(ValidationCallError) as exc:
            await validator.validate("2x", "What is f'(x)?", ["2x"])
        assert exc.value.cause.kind == kind
    asyncio.run(_run())


def test_feedback_precedence():
    assert correct("Service says yes").feedback_or("Static") == "Service says yes"
    assert correct().feedback_or("Static") == "Static"
    assert wrong("").feedback_or("Hint") == "Hint"
