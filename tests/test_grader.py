import asyncio

import pytest

from tutor.grader import KeywordAnswerService, match_keywords
from tutor.normalize import clean_latex, norm_answer_text, norm_cmp_text, norm_keywords, norm_text


def test_quote_normalization():
    assert norm_text("f’(x)") == norm_text("f'(x)")
    assert norm_text("  a \n b ") == "a b"


def test_norm_answer_text_trailing_punct():
    assert norm_answer_text("2x .") == "2x"
    assert norm_answer_text("x = 3,  ") == "x = 3"


def test_cmp_text_ignores_spacing_dollars_and_case():
    assert norm_cmp_text("$2 X$") == norm_cmp_text("2x")
    assert norm_cmp_text("−1") == "-1"


@pytest.mark.parametrize("raw, cleaned", [
    ("\\(x^2\\)", "$x^2$"),
    ("\\[x^2\\]", "$$x^2$$"),
    ("\\\\(x\\\\)", "$x$"),
    ("", ""),
])
def test_clean_latex_delimiters(raw, cleaned):
    assert clean_latex(raw) == cleaned


def test_norm_keywords_drops_blanks_and_duplicates():
    assert norm_keywords(["2x", " 2x ", ""]) == frozenset({"2x"})


@pytest.mark.parametrize("answer, verdict", [
    ("2x", True),
    ("f'(x) = 2x", True),
    ("$2 x$", True),
    ("3x", False),
    ("-2x", False),
    ("12x", False),
    ("2x.5", False),
    ("the derivative is 2x", True),
    ("", False),
])
def test_keyword_service_verdicts(answer, verdict):
    async def _run():
        result = await KeywordAnswerService().validate_answer(answer, "What is f'(x)?", ["2x"])
        assert result.is_correct is verdict
        assert result.feedback is None
    asyncio.run(_run())


def test_all_keywords_must_be_present():
    match = match_keywords("x = 1", ["x=1", "x=-1"])
    assert match.matched == ["x=1"]
    assert match.missing == ["x=-1"]
    assert not match.is_correct


def test_close_spelling_only_for_long_words():
    assert match_keywords("derivatve", ["derivative"]).is_correct
    assert not match_keywords("2y", ["2x"]).is_correct


def test_keyword_must_not_be_part_of_a_longer_number():
    assert not match_keywords("12", ["2"]).is_correct
    assert not match_keywords("x = 2.5", ["2"]).is_correct
    assert match_keywords("x = 2", ["2"]).is_correct
    assert match_keywords("x=-1 or x=1", ["x=1", "x=-1"]).is_correct
