from __future__ import annotations

import logging

from .errors import ServiceError, classify_api_error
from .types import ExplainMode, ExplainResult, ExplainService

logger = logging.getLogger(__name__)


class ExplanationClient:
    """Single-request wrapper around the reasoning service.

    Mirrors what a view needs to render: the last ``result``, the last
    ``error`` and an ``is_loading`` flag. Starting a new request supersedes
    the previous one; a superseded request still returns (or raises) to its
    own caller but never touches the exposed state.
    """

    def __init__(self, service: ExplainService):
        self._service = service
        self._generation = 0
        self.result: ExplainResult | None = None
        self.error: ServiceError | None = None
        self.is_loading = False

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def reset(self) -> None:
        self._generation += 1
        self.result = None
        self.error = None
        self.is_loading = False

    async def explain(self, prompt: str, topic_id: str, mode: ExplainMode | str) -> ExplainResult:
        mode = ExplainMode(mode)
        self._generation += 1
        generation = self._generation
        self.result = None
        self.error = None
        self.is_loading = True
        try:
            result = await self._service.explain(prompt, topic_id, mode)
        except Exception as exc:
            err = classify_api_error(exc)
            if self._is_current(generation):
                self.error = err
                self.is_loading = False
            else:
                logger.info("explain_superseded_error generation=%s kind=%s", generation, err.kind)
            if err is exc:
                raise
            raise err from exc
        if self._is_current(generation):
            self.result = result
            self.is_loading = False
        else:
            logger.info("explain_superseded_result generation=%s", generation)
        return result
