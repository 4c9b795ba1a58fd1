from __future__ import annotations

import re
from typing import Dict, Optional

LANGUAGE_NAMES: Dict[str, str] = {
    "tr": "Turkish",
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "ja": "Japanese",
    "ko": "Korean",
    "zh": "Chinese",
}


# BCP 47-ish: primary language plus up to two subtags (zh, pt-BR, zh-Hant-TW)
LANGUAGE_CODE_RE = re.compile(r"[A-Za-z]{2,3}(-[A-Za-z0-9]{1,8}){0,2}")
MAX_LANGUAGE_CODE_LENGTH = 32


def is_valid_language_code(code: Optional[str]) -> bool:
    """True for codes safe to use in storage keys and database columns."""
    return bool(code) and len(code) <= MAX_LANGUAGE_CODE_LENGTH and LANGUAGE_CODE_RE.fullmatch(code) is not None


def get_language_name(code: str) -> str:
    """Human readable language name; unknown codes fall back to English."""
    return LANGUAGE_NAMES.get(code, "English")


def build_prompt(text: str, target_language: str) -> str:
    return (
        f"Translate the following text to {get_language_name(target_language)}.\n"
        "Keep the translation natural and appropriate for manga/comic context.\n"
        "Only return the translated text, nothing else.\n\n"
        f'Text: "{text}"'
    )


class GeminiTranslator:
    """Single-text translation through the Gemini text API."""

    def __init__(self, api_key: Optional[str], model_name: str = "gemini-2.5-flash-lite") -> None:
        self._api_key = api_key
        self._model_name = model_name
        self._client = None

    def ensure_ready(self) -> None:
        if self._client is not None:
            return
        if not self._api_key:
            raise RuntimeError("GOOGLE_API_KEY (or GEMINI_API_KEY) is required for translation via Gemini")
        try:
            from google import genai  # type: ignore
        except Exception as exc:  # noqa: BLE001
            raise RuntimeError("google-genai is required. Install it with: pip install google-genai") from exc
        self._client = genai.Client(api_key=self._api_key)

    def translate(self, text: str, target_language: str) -> str:
        self.ensure_ready()
        resp = self._client.models.generate_content(  # type: ignore[union-attr]
            model=self._model_name,
            contents=build_prompt(text, target_language),
        )
        translated = (resp.text or "").strip()
        if not translated:
            raise ValueError("empty translation response")
        return translated
