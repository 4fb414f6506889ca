"""Languages accepted by the primary transcription backend."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TranscriptionLanguage:
    code: str
    name: str


SUPPORTED_LANGUAGES = [
    TranscriptionLanguage("en", "English"),
    TranscriptionLanguage("es", "Spanish"),
    TranscriptionLanguage("fr", "French"),
    TranscriptionLanguage("de", "German"),
    TranscriptionLanguage("it", "Italian"),
    TranscriptionLanguage("pt", "Portuguese"),
    TranscriptionLanguage("hi", "Hindi"),
    TranscriptionLanguage("te", "Telugu"),
    TranscriptionLanguage("ja", "Japanese"),
    TranscriptionLanguage("zh", "Chinese"),
]


def find_language(code: str) -> Optional[TranscriptionLanguage]:
    """Look up a supported language by ISO-639-1 code (case-insensitive)."""
    code = (code or "").strip().lower()
    for language in SUPPORTED_LANGUAGES:
        if language.code == code:
            return language
    return None
