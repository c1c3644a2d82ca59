from __future__ import annotations
import re
import unicodedata

_QUOTE_MAP = {
    "’": "'",
    "‘": "'",
    "“": "\"",
    "”": "\"",
    "−": "-",
    "×": "*",
}

# MathJax-style delimiters, most specific (double-escaped) first
_LATEX_DELIMITERS = (
    ("\\\\(", "$"),
    ("\\\\)", "$"),
    ("\\\\[", "$$"),
    ("\\\\]", "$$"),
    ("\\(", "$"),
    ("\\)", "$"),
    ("\\[", "$$"),
    ("\\]", "$$"),
)

def _nfkc_normalize(s: str) -> str:
    if not s:
        return ""
    s = unicodedata.normalize("NFKC", s)
    for src, dst in _QUOTE_MAP.items():
        s = s.replace(src, dst)
    return s

def norm_text(s: str) -> str:
    s = _nfkc_normalize(s or "")
    s = s.strip()
    s = re.sub(r"\s+", " ", s)
    return s

def norm_answer_text(s: str) -> str:
    s = norm_text(s)
    while s and s[-1] in ".!?,;":
        s = s[:-1]
    return s.strip()

def norm_cmp_text(s: str) -> str:
    """Comparison key for math answers: no whitespace, no `$`, casefolded."""
    normalized = norm_answer_text(s)
    normalized = normalized.replace("$", "")
    normalized = re.sub(r"\s+", "", normalized)
    return normalized.casefold()

def clean_latex(s: str) -> str:
    if not s:
        return ""
    cleaned = s
    for src, dst in _LATEX_DELIMITERS:
        cleaned = cleaned.replace(src, dst)
    cleaned = cleaned.replace("$$$", "$$").replace("$ $", "$$")
    return cleaned

def norm_keywords(keywords) -> frozenset[str]:
    out = set()
    for kw in keywords or ():
        text = norm_text(str(kw))
        if text:
            out.add(text)
    return frozenset(out)
