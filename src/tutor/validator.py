from __future__ import annotations

import logging
from typing import Sequence

from .errors import ValidationCallError, classify_api_error
from .normalize import clean_latex, norm_keywords, norm_text
from .types import AnswerValidationService, DialogueMessage, ValidationResult

logger = logging.getLogger(__name__)


class AnswerValidator:
    def __init__(self, service: AnswerValidationService):
        self._service = service

    async def validate(
        self,
        student_answer: str,
        current_prompt: str,
        expected_keywords: Sequence[str],
        dialogue_context: Sequence[DialogueMessage] | None = None,
    ) -> ValidationResult:
        prompt = norm_text(current_prompt)
        if not prompt:
            raise ValueError("current_prompt is required")
        answer = clean_latex(student_answer or "").strip()
        keywords = sorted(norm_keywords(expected_keywords))
        try:
            result = await self._service.validate_answer(
                answer,
                prompt,
                keywords,
                list(dialogue_context) if dialogue_context else None,
            )
        except Exception as exc:
            err = classify_api_error(exc)
            logger.warning("answer_validation_failed kind=%s error=%s", err.kind, err)
            raise ValidationCallError(str(err), cause=err) from exc
        logger.info(
            "answer_validated is_correct=%s service_feedback=%s",
            result.is_correct,
            bool(result.feedback),
        )
        return result
