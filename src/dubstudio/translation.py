"""
Language helpers and translation result checks.
"""

from .errors import TranslationError
from .models import TranscriptResult, TranslationResult

LANGUAGE_NAMES = {
    "ru": "Russian",
    "de": "German",
    "fr": "French",
    "es": "Spanish",
    "it": "Italian",
    "pt": "Portuguese",
    "ja": "Japanese",
    "ko": "Korean",
    "zh": "Chinese",
    "ar": "Arabic",
    "fa": "Persian",
    "hi": "Hindi",
    "en": "English",
    "uk": "Ukrainian",
    "pl": "Polish",
    "nl": "Dutch",
    "sv": "Swedish",
    "no": "Norwegian",
    "da": "Danish",
    "fi": "Finnish",
    "tr": "Turkish",
    "he": "Hebrew",
    "th": "Thai",
    "vi": "Vietnamese",
}


def get_language_name(language_code: str) -> str:
    """Get human-readable language name from language code."""
    return LANGUAGE_NAMES.get(language_code.lower(), language_code.upper())


def check_translation(transcript: TranscriptResult, translation: TranslationResult) -> None:
    """Raise ``TranslationError`` unless the translation keeps every segment's timing."""
    src, dst = transcript.segments, translation.segments
    if len(src) != len(dst):
        raise TranslationError(
            f"Translation returned {len(dst)} segments for {len(src)} transcript segments"
        )
    for i, (a, b) in enumerate(zip(src, dst)):
        if a.start != b.start or a.end != b.end:
            raise TranslationError(
                f"Segment {i} timing changed during translation: "
                f"{a.start:.3f}-{a.end:.3f} -> {b.start:.3f}-{b.end:.3f}"
            )
