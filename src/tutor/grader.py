from __future__ import annotations
from dataclasses import dataclass
import logging
import re
from typing import Sequence
from .normalize import norm_answer_text, norm_cmp_text
from .types import DialogueMessage, ValidationResult

logger = logging.getLogger(__name__)

@dataclass
class KeywordMatch:
    matched: list[str]
    missing: list[str]

    @property
    def is_correct(self) -> bool:
        return not self.missing

def _levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    if len(a) < len(b):
        a, b = b, a
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i]
        for j, cb in enumerate(b, start=1):
            insert = cur[j - 1] + 1
            delete = prev[j] + 1
            replace = prev[j - 1] + (ca != cb)
            cur.append(min(insert, delete, replace))
        prev = cur
    return prev[-1]

def _is_close(a: str, b: str) -> bool:
    # short keywords are usually formulas ("2x", "x=3") where one character changes the meaning
    if not a or not b or min(len(a), len(b)) < 5:
        return False
    limit = 1 if max(len(a), len(b)) <= 8 else 2
    return _levenshtein(a, b) <= limit

# a digit, letter, minus or decimal point next to a keyword makes it part of another value
_VALUE_CHAR = r"[\w.\-]"

def _spaced_cmp_text(s: str) -> str:
    return norm_answer_text(s).replace("$", "").casefold()

def _contains_keyword(answer: str, kw_cmp: str) -> bool:
    body = r"\s*".join(re.escape(ch) for ch in kw_cmp)
    return re.search(rf"(?<!{_VALUE_CHAR}){body}(?!{_VALUE_CHAR})", answer) is not None

def match_keywords(answer: str, keywords: Sequence[str]) -> KeywordMatch:
    answer_spaced = _spaced_cmp_text(answer)
    answer_cmp = norm_cmp_text(answer)
    matched: list[str] = []
    missing: list[str] = []
    for kw in keywords:
        kw_cmp = norm_cmp_text(kw)
        if not kw_cmp:
            continue
        if _contains_keyword(answer_spaced, kw_cmp) or _is_close(answer_cmp, kw_cmp):
            matched.append(kw)
        else:
            missing.append(kw)
    return KeywordMatch(matched, missing)

class KeywordAnswerService:
    """Answer validation without a reasoning service.

    An answer is correct when every expected keyword occurs in it as a whole value (after
    normalisation) or the whole answer is a near-spelling of a long keyword.
    It returns no feedback, so the step's own hint/feedback text is shown.
    """

    async def validate_answer(
        self,
        student_answer: str,
        current_prompt: str,
        expected_keywords: Sequence[str],
        context: Sequence[DialogueMessage] | None = None,
    ) -> ValidationResult:
        if not norm_cmp_text(student_answer):
            return ValidationResult(is_correct=False)
        result = match_keywords(student_answer, expected_keywords)
        logger.debug(
            "keyword_grade matched=%s missing=%s", len(result.matched), len(result.missing)
        )
        return ValidationResult(is_correct=result.is_correct)
