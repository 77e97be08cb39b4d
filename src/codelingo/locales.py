"""Mapping from human language names to translation locales."""

import re

DEFAULT_LOCALE = "en-US"

LANGUAGE_LOCALES: dict[str, str] = {
    "english": "en-US",
    "spanish": "es-ES",
    "french": "fr-FR",
    "german": "de-DE",
    "chinese": "zh-CN",
    "japanese": "ja-JP",
    "korean": "ko-KR",
    "arabic": "ar-SA",
    "hindi": "hi-IN",
    "portuguese": "pt-PT",
    "russian": "ru-RU",
    "italian": "it-IT",
}

# Clients sometimes send the editor language instead of a spoken one.
PROGRAMMING_LANGUAGES = frozenset(
    {"javascript", "typescript", "python", "java", "cpp", "c"}
)

_LOCALE_RE = re.compile(r"^[a-zA-Z]{2}(?:[-_][a-zA-Z0-9]{2,8})*$")


def to_locale(language: str | None) -> str:
    """Normalize a language name or locale code to a locale code.

    Known language names map to their locale (``"Spanish"`` -> ``"es-ES"``),
    strings that already look like a locale (``"pt-BR"``, ``"fr"``) are
    returned with a hyphen separator, anything else maps to ``en-US``.

    Examples
    --------
    >>> to_locale("spanish")
    'es-ES'
    >>> to_locale("python")
    'en-US'
    >>> to_locale("pt_BR")
    'pt-BR'
    """
    if not language:
        return DEFAULT_LOCALE
    key = language.strip().lower()
    if key in LANGUAGE_LOCALES:
        return LANGUAGE_LOCALES[key]
    if key in PROGRAMMING_LANGUAGES:
        return DEFAULT_LOCALE
    value = language.strip()
    if _LOCALE_RE.match(value):
        return value.replace("_", "-")
    return DEFAULT_LOCALE


def source_locale(language: str | None) -> str | None:
    """Normalize an optional source language; ``auto`` and empty mean detect."""
    if not language or language.strip().lower() == "auto":
        return None
    return to_locale(language)
