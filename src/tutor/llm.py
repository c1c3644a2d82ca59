from __future__ import annotations
import asyncio
from dataclasses import dataclass
import json
import logging
from typing import Any, Optional, Sequence
from google import genai
from google.genai import types as genai_types

from .errors import ConfigurationError, InvalidPayloadError, classify_api_error
from .normalize import clean_latex
from .prompts import OCR_PROMPT, QUESTION_HEADER, build_validation_prompt
from .types import (
    DialogueMessage,
    ExplainMode,
    ExplainResult,
    ImagePayload,
    ValidationResult,
    VideoChunk,
    VideoLookup,
)
from .usage import UsageLimiter

logger = logging.getLogger(__name__)

_S = genai_types.Schema
_T = genai_types.Type

PLAN_SCHEMA = _S(
    type=_T.OBJECT,
    properties={
        "steps": _S(type=_T.ARRAY, items=_S(type=_T.STRING)),
        "key_concepts": _S(type=_T.ARRAY, items=_S(type=_T.STRING)),
    },
)

SOCRATIC_SCHEMA = _S(
    type=_T.OBJECT,
    properties={
        "socratic_path": _S(
            type=_T.ARRAY,
            items=_S(
                type=_T.OBJECT,
                properties={
                    "ia_question": _S(type=_T.STRING),
                    "student_response_prompt": _S(type=_T.STRING),
                    "expected_answer_keywords": _S(type=_T.ARRAY, items=_S(type=_T.STRING)),
                    "hint_for_wrong_answer": _S(type=_T.STRING),
                    "positive_feedback": _S(type=_T.STRING),
                },
                required=["ia_question", "expected_answer_keywords", "hint_for_wrong_answer", "positive_feedback"],
            ),
        ),
        "starting_step_index": _S(type=_T.INTEGER),
    },
    required=["socratic_path"],
)

ANSWER_SCHEMA = _S(
    type=_T.OBJECT,
    properties={
        "is_correct": _S(type=_T.BOOLEAN),
        "feedback_message": _S(type=_T.STRING),
    },
    required=["is_correct"],
)

def _student_question(prompt: str) -> str:
    _, sep, tail = prompt.partition(QUESTION_HEADER)
    if not sep:
        return ""
    return tail.split("\nMISSION:", 1)[0].strip()

def _parse_json(raw: str, *, what: str) -> Any:
    text = (raw or "").strip()
    if not text:
        raise InvalidPayloadError(f"empty AI response for {what}")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.warning("llm_bad_json what=%s raw_len=%s", what, len(text))
        raise InvalidPayloadError(f"the AI returned an invalid response format for {what}") from None

@dataclass
class GeminiTutorBackend:
    """Reasoning, answer-validation and OCR services backed by Gemini."""

    api_key: str | None
    model: str = "gemini-2.5-flash"
    usage: Optional[UsageLimiter] = None
    video_lookup: Optional[VideoLookup] = None

    def _client(self):
        if not self.api_key:
            raise ConfigurationError("the AI service is not configured (missing GEMINI_API_KEY)")
        return genai.Client(api_key=self.api_key)

    async def _generate(self, contents: Any, *, schema: _S | None = None) -> str:
        client = self._client()
        config = None
        if schema is not None:
            config = genai_types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=schema,
            )
        try:
            resp = await client.aio.models.generate_content(
                model=self.model, contents=contents, config=config
            )
        except Exception as exc:
            raise classify_api_error(exc) from exc
        return (resp.text or "").strip()

    async def _find_video_chunk(self, prompt: str, topic_id: str) -> VideoChunk | None:
        if self.video_lookup is None:
            return None
        question = _student_question(prompt)
        if not question:
            return None
        try:
            return await self.video_lookup(question, topic_id)
        except Exception:
            logger.exception("video_lookup_failed topic_id=%s", topic_id)
            return None

    async def _generate_explanation(self, prompt: str, mode: ExplainMode) -> ExplainResult:
        if mode is ExplainMode.PLAN:
            raw = await self._generate(prompt, schema=PLAN_SCHEMA)
            return ExplainResult.from_payload({"plan": _parse_json(raw, what="plan")})
        if mode is ExplainMode.SOCRATIC:
            raw = await self._generate(prompt, schema=SOCRATIC_SCHEMA)
            return ExplainResult.from_payload(_parse_json(raw, what="socratic path"))
        raw = await self._generate(prompt)
        if not raw:
            raise InvalidPayloadError("empty AI response for explanation")
        return ExplainResult(explanation=clean_latex(raw))

    async def explain(self, prompt: str, topic_id: str, mode: ExplainMode) -> ExplainResult:
        mode = ExplainMode(mode)
        logger.info(
            "llm_usage: explain model=%s mode=%s topic_id=%s prompt_len=%s",
            self.model,
            mode.value,
            topic_id,
            len(prompt),
        )
        self._client()
        if self.usage is not None:
            await self.usage.ensure_allowed("EXPLANATION")
        result, chunk = await asyncio.gather(
            self._generate_explanation(prompt, mode),
            self._find_video_chunk(prompt, topic_id),
        )
        if self.usage is not None:
            await self.usage.record("EXPLANATION")
        return result.with_video_chunk(chunk)

    async def validate_answer(
        self,
        student_answer: str,
        current_prompt: str,
        expected_keywords: Sequence[str],
        context: Sequence[DialogueMessage] | None = None,
    ) -> ValidationResult:
        logger.info(
            "llm_usage: validate_answer model=%s answer_len=%s keywords=%s context=%s",
            self.model,
            len(student_answer),
            len(expected_keywords),
            len(context or ()),
        )
        self._client()
        if self.usage is not None:
            await self.usage.ensure_allowed("SOCRATIC_VALIDATION")
        contents = build_validation_prompt(student_answer, current_prompt, expected_keywords, context)
        raw = await self._generate(contents, schema=ANSWER_SCHEMA)
        result = ValidationResult.from_payload(_parse_json(raw, what="answer validation"))
        if self.usage is not None:
            await self.usage.record("SOCRATIC_VALIDATION")
        return result

    async def transcribe_image(self, image: ImagePayload) -> str:
        logger.info(
            "llm_usage: transcribe_image model=%s mime_type=%s bytes=%s",
            self.model,
            image.mime_type,
            len(image.data),
        )
        part = genai_types.Part.from_bytes(data=image.data, mime_type=image.mime_type)
        raw = await self._generate([part, OCR_PROMPT])
        return clean_latex(raw)
