"""
Capability interfaces for the external speech, translation and video collaborators.
"""

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from ..models import Segment, SynthesizedClip, TranscriptResult, TranslationResult


@runtime_checkable
class TranscriptionProvider(Protocol):
    name: str

    async def transcribe(self, audio: bytes, mime_type: str) -> TranscriptResult: ...


@runtime_checkable
class TranslationProvider(Protocol):
    name: str

    async def translate(self, transcript: TranscriptResult, target_lang: str) -> TranslationResult: ...


@runtime_checkable
class SpeechSynthesisProvider(Protocol):
    """
    Voice synthesis. ``synthesize_segment`` returns one clip for one segment;
    ``synthesize`` returns one clip per input segment, in input order.
    """

    name: str
    model: str
    sample_rate: int

    async def synthesize_segment(self, segment: Segment, voice_id: str | None) -> SynthesizedClip: ...

    async def synthesize(
        self, segments: Sequence[Segment], voice_id: str | None
    ) -> list[SynthesizedClip]:
        return [await self.synthesize_segment(seg, voice_id) for seg in segments]


@runtime_checkable
class LipSyncProvider(Protocol):
    name: str

    async def lip_sync(self, video: Path, audio_track: Path) -> Path: ...
