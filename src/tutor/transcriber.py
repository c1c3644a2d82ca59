from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from .errors import TranscriptionError, classify_api_error
from .prompts import PAGE_MARKER_PREFIX
from .types import ImagePayload, TranscriptionService
from .usage import UsageLimiter

logger = logging.getLogger(__name__)


def page_marker(page: int) -> str:
    return f"{PAGE_MARKER_PREFIX}{page} ---"


def combine_pages(texts: Sequence[str]) -> str:
    return "\n\n".join(f"{page_marker(i)}\n{text.strip()}" for i, text in enumerate(texts, start=1))


class Transcriber:
    def __init__(self, service: TranscriptionService, *, usage: Optional[UsageLimiter] = None):
        self._service = service
        self._usage = usage

    async def transcribe(self, images: Sequence[ImagePayload]) -> str:
        images = list(images or ())
        if not images:
            raise TranscriptionError("at least one image is required")
        if self._usage is not None:
            try:
                await self._usage.ensure_allowed("OCR", len(images))
            except Exception as exc:
                raise TranscriptionError(str(exc)) from exc

        logger.info("transcribe_started images=%s", len(images))
        try:
            texts = await asyncio.gather(*(self._service.transcribe_image(img) for img in images))
        except Exception as exc:
            err = classify_api_error(exc)
            logger.warning("transcribe_failed kind=%s error=%s", err.kind, err)
            raise TranscriptionError(f"image transcription failed: {err}") from exc

        if self._usage is not None:
            await self._usage.record("OCR", len(images))
        if not any((text or "").strip() for text in texts):
            raise TranscriptionError("no text could be extracted from the images; try sharper photos")
        return combine_pages([text or "" for text in texts])
