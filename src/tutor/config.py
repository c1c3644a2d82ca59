from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import Dict
from dotenv import load_dotenv

load_dotenv()

DEFAULT_USAGE_LIMITS: Dict[str, int] = {
    "EXPLANATION": 20,
    "SOCRATIC_VALIDATION": 60,
    "OCR": 30,
}

def _positive_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer") from None
    if value <= 0:
        raise RuntimeError(f"{name} must be positive")
    return value

@dataclass(frozen=True)
class Settings:
    gemini_api_key: str | None
    llm_model: str = "gemini-2.5-flash"
    database_url: str = "sqlite+aiosqlite:///./data/tutor.db"
    ui_lang: str = "en"  # en/fr
    usage_limits: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_USAGE_LIMITS))

def load_settings() -> Settings:
    load_dotenv()
    gemini_api_key = os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY") or None
    llm_model = os.getenv("LLM_MODEL", "gemini-2.5-flash").strip()
    database_url = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./data/tutor.db")
    ui_lang = os.getenv("UI_LANG", "en").strip().lower()
    if ui_lang not in {"en", "fr"}:
        raise RuntimeError("UI_LANG must be en or fr")

    usage_limits = {
        call_type: _positive_int(f"AI_LIMIT_{call_type}", default)
        for call_type, default in DEFAULT_USAGE_LIMITS.items()
    }

    return Settings(
        gemini_api_key=gemini_api_key,
        llm_model=llm_model or "gemini-2.5-flash",
        database_url=database_url,
        ui_lang=ui_lang,
        usage_limits=usage_limits,
    )
