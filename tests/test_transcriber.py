import asyncio

import pytest

from fakes import DictTranscriptionService
from tutor.errors import RateLimitedError, TranscriptionError
from tutor.transcriber import Transcriber, combine_pages, page_marker
from tutor.types import ImagePayload


class _Quota:
    def __init__(self, error=None):
        self.error = error
        self.checked = []
        self.recorded = []

    async def ensure_allowed(self, call_type, count=1):
        self.checked.append((call_type, count))
        if self.error is not None:
            raise self.error

    async def record(self, call_type, count=1):
        self.recorded.append((call_type, count))


def test_pages_keep_input_order():
    async def _run():
        # the first page finishes last
        service = DictTranscriptionService(
            {b"a": "x^2 + 1", b"b": "2x", b"c": " = 0 "},
            delays={b"a": 0.02, b"b": 0.01},
        )
        text = await Transcriber(service).transcribe([ImagePayload(b"a"), ImagePayload(b"b"), ImagePayload(b"c")])
        assert text == "--- PAGE 1 ---\nx^2 + 1\n\n--- PAGE 2 ---\n2x\n\n--- PAGE 3 ---\n= 0"
    asyncio.run(_run())


def test_page_marker_format():
    assert page_marker(3) == "--- PAGE 3 ---"
    assert combine_pages(["only"]) == "--- PAGE 1 ---\nonly"


def test_empty_input_is_an_error():
    async def _run():
        with pytest.raises(TranscriptionError):
            await Transcriber(DictTranscriptionService({})).transcribe([])
    asyncio.run(_run())


def test_all_empty_pages_is_an_error():
    async def _run():
        service = DictTranscriptionService({b"a": "", b"b": "  "})
        with pytest.raises(TranscriptionError):
            await Transcriber(service).transcribe([ImagePayload(b"a"), ImagePayload(b"b")])
    asyncio.run(_run())


def test_one_empty_page_is_kept():
    async def _run():
        service = DictTranscriptionService({b"a": "", b"b": "2x"})
        text = await Transcriber(service).transcribe([ImagePayload(b"a"), ImagePayload(b"b")])
        assert text == "--- PAGE 1 ---\n\n\n--- PAGE 2 ---\n2x"
    asyncio.run(_run())


def test_quota_checked_for_whole_batch():
    async def _run():
        quota = _Quota()
        service = DictTranscriptionService({b"a": "1", b"b": "2"})
        await Transcriber(service, usage=quota).transcribe([ImagePayload(b"a"), ImagePayload(b"b")])
        assert quota.checked == [("OCR", 2)]
        assert quota.recorded == [("OCR", 2)]
    asyncio.run(_run())


def test_quota_exceeded_sends_nothing():
    async def _run():
        quota = _Quota(RateLimitedError("1 left"))
        service = DictTranscriptionService({b"a": "1", b"b": "2"})
        with pytest.raises(TranscriptionError) as exc:
            await Transcriber(service, usage=quota).transcribe([ImagePayload(b"a"), ImagePayload(b"b")])
        assert isinstance(exc.value.__cause__, RateLimitedError)
        assert service.calls == []
        assert quota.recorded == []
    asyncio.run(_run())
