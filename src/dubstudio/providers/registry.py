"""
Name-based selection of provider implementations.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..config import Settings
from ..errors import ProviderConfigError
from .base import LipSyncProvider, SpeechSynthesisProvider, TranscriptionProvider, TranslationProvider

logger = logging.getLogger("dubstudio")

ROLES = ("transcription", "translation", "synthesis", "lipsync")

Factory = Callable[[Settings, dict[str, Any]], Any]


@dataclass
class Providers:
    transcriber: TranscriptionProvider
    translator: TranslationProvider
    synthesizer: SpeechSynthesisProvider
    lip_sync: LipSyncProvider


class ProviderRegistry:
    """Maps ``(role, name)`` to a factory ``(settings, options) -> provider``."""

    def __init__(self) -> None:
        self._factories: dict[str, dict[str, Factory]] = {role: {} for role in ROLES}

    def register(self, role: str, name: str, factory: Factory) -> None:
        if role not in self._factories:
            raise ValueError(f"Unknown provider role {role!r}")
        self._factories[role][name] = factory

    def names(self, role: str) -> list[str]:
        return sorted(self._factories[role])

    def create(self, role: str, name: str, settings: Settings, **options: Any) -> Any:
        try:
            factory = self._factories[role][name]
        except KeyError:
            raise ProviderConfigError(
                f"Unknown {role} provider {name!r}; available: {', '.join(self.names(role))}"
            ) from None
        provider = factory(settings, options)
        logger.debug(f"Using {role} provider {name}")
        return provider

    def build(
        self,
        settings: Settings,
        *,
        transcription: str = "openai",
        translation: str = "openai",
        synthesis: str = "openai",
        lipsync: str = "passthrough",
        **options: Any,
    ) -> Providers:
        return Providers(
            transcriber=self.create("transcription", transcription, settings, **options),
            translator=self.create("translation", translation, settings, **options),
            synthesizer=self.create("synthesis", synthesis, settings, **options),
            lip_sync=self.create("lipsync", lipsync, settings, **options),
        )


def _openai_transcriber(settings: Settings, options: dict[str, Any]):
    from .openai_provider import OpenAIWhisperTranscriber, make_client

    return OpenAIWhisperTranscriber(
        make_client(settings.openai_api_key),
        model=settings.whisper_model,
        language=options.get("source_language"),
    )


def _local_transcriber(settings: Settings, options: dict[str, Any]):
    from .local import FasterWhisperTranscriber

    return FasterWhisperTranscriber(
        model=settings.local_whisper_model, language=options.get("source_language")
    )


def _srt_transcriber(settings: Settings, options: dict[str, Any]):
    from .local import SubtitleFileTranscriber

    srt_path = options.get("segments_srt")
    if not srt_path:
        raise ProviderConfigError("The 'srt' transcription provider needs --segments-srt")
    return SubtitleFileTranscriber(srt_path, language=options.get("source_language") or "")


def _openai_translator(settings: Settings, options: dict[str, Any]):
    from .openai_provider import OpenAITranslator, make_client

    return OpenAITranslator(make_client(settings.openai_api_key), model=settings.translation_model)


def _openai_synthesizer(settings: Settings, options: dict[str, Any]):
    from .openai_provider import OpenAISpeechSynthesizer, make_client

    return OpenAISpeechSynthesizer(
        make_client(settings.openai_api_key),
        model=settings.tts_model,
        instructions=settings.tts_instructions,
        sample_rate=settings.sample_rate,
    )


def _elevenlabs_synthesizer(settings: Settings, options: dict[str, Any]):
    from .elevenlabs import ElevenLabsSynthesizer

    return ElevenLabsSynthesizer(
        settings.elevenlabs_api_key,
        default_voice=settings.elevenlabs_voice_id,
        model=settings.elevenlabs_model_id,
        sample_rate=settings.sample_rate,
    )


def _mock_transcriber(settings: Settings, options: dict[str, Any]):
    from .mock import MockTranscriber

    return MockTranscriber()


def _mock_translator(settings: Settings, options: dict[str, Any]):
    from .mock import MockTranslator

    return MockTranslator()


def _mock_synthesizer(settings: Settings, options: dict[str, Any]):
    from .mock import ToneSynthesizer

    return ToneSynthesizer(sample_rate=settings.sample_rate)


def _passthrough_lipsync(settings: Settings, options: dict[str, Any]):
    from .local import PassthroughLipSync

    return PassthroughLipSync()


def _mock_lipsync(settings: Settings, options: dict[str, Any]):
    from .mock import MockLipSync

    return MockLipSync()


def default_registry() -> ProviderRegistry:
    registry = ProviderRegistry()
    registry.register("transcription", "openai", _openai_transcriber)
    registry.register("transcription", "local", _local_transcriber)
    registry.register("transcription", "srt", _srt_transcriber)
    registry.register("transcription", "mock", _mock_transcriber)
    registry.register("translation", "openai", _openai_translator)
    registry.register("translation", "mock", _mock_translator)
    registry.register("synthesis", "openai", _openai_synthesizer)
    registry.register("synthesis", "elevenlabs", _elevenlabs_synthesizer)
    registry.register("synthesis", "mock", _mock_synthesizer)
    registry.register("lipsync", "passthrough", _passthrough_lipsync)
    registry.register("lipsync", "mock", _mock_lipsync)
    return registry
