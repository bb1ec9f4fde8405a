"""
Pluggable providers for transcription, translation, voice synthesis and lip-sync.
"""

from .base import LipSyncProvider, SpeechSynthesisProvider, TranscriptionProvider, TranslationProvider
from .registry import ProviderRegistry, Providers, default_registry

__all__ = [
    "LipSyncProvider",
    "ProviderRegistry",
    "Providers",
    "SpeechSynthesisProvider",
    "TranscriptionProvider",
    "TranslationProvider",
    "default_registry",
]
