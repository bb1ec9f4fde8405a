"""
Deterministic offline providers for tests and dry runs.
"""

import math
from array import array
from collections.abc import Callable, Iterable, Sequence

from ..models import Segment, SynthesizedClip, TranscriptResult, TranslationResult
from .base import SpeechSynthesisProvider


class MockTranscriber:
    name = "mock"

    def __init__(self, segments: Sequence[Segment] | None = None, language: str = "en"):
        self.segments = tuple(segments or (Segment(start=0.0, end=2.0, text="Hello world."),))
        self.language = language
        self.calls = 0

    async def transcribe(self, audio: bytes, mime_type: str) -> TranscriptResult:
        self.calls += 1
        return TranscriptResult(
            full_text=" ".join(s.text for s in self.segments),
            segments=self.segments,
            language=self.language,
        )


class MockTranslator:
    """Tags every segment with the target language, keeping timings."""

    name = "mock"

    def __init__(self, translate_text: Callable[[str, str], str] | None = None):
        self.translate_text = translate_text or (lambda text, lang: f"[{lang}] {text}" if text else text)

    async def translate(self, transcript: TranscriptResult, target_lang: str) -> TranslationResult:
        segments = tuple(
            Segment(
                start=s.start,
                end=s.end,
                text=self.translate_text(s.text, target_lang),
                speaker=s.speaker,
            )
            for s in transcript.segments
        )
        return TranslationResult(
            original_text=transcript.full_text,
            translated_text=" ".join(s.text for s in segments if s.text),
            segments=segments,
            target_language=target_lang,
        )


def tone_samples(num_samples: int, sample_rate: int, freq: float = 440.0, amplitude: int = 8000) -> array:
    """Sine tone; the first sample of every clip is 0, the rest are mostly non-zero."""
    step = 2.0 * math.pi * freq / sample_rate
    return array("h", (int(amplitude * math.sin(step * n)) for n in range(num_samples)))


class ToneSynthesizer(SpeechSynthesisProvider):
    """
    Synthesizes a constant tone per segment.

    Clip length is ``duration`` seconds when given, otherwise the segment's
    own length. Segments whose text is in ``fail_texts`` raise ``RuntimeError``
    (``fail_times`` times, then succeed; ``None`` means always).
    """

    name = "mock"
    model = "tone"

    def __init__(
        self,
        sample_rate: int = 24000,
        duration: float | None = None,
        freq: float = 440.0,
        amplitude: int = 8000,
        fail_texts: Iterable[str] = (),
        fail_times: int | None = None,
        constant: int | None = None,
    ):
        self.sample_rate = sample_rate
        self.duration = duration
        self.freq = freq
        self.amplitude = amplitude
        self.fail_texts = set(fail_texts)
        self.fail_times = fail_times
        self.constant = constant
        self.calls: list[str] = []
        self._failures: dict[str, int] = {}

    async def synthesize_segment(self, segment: Segment, voice_id: str | None) -> SynthesizedClip:
        self.calls.append(segment.text)
        if segment.text in self.fail_texts:
            seen = self._failures.get(segment.text, 0)
            if self.fail_times is None or seen < self.fail_times:
                self._failures[segment.text] = seen + 1
                raise RuntimeError(f"synthesis failed for {segment.text!r}")
        seconds = self.duration if self.duration is not None else segment.end - segment.start
        n = round(seconds * self.sample_rate)
        if self.constant is not None:
            samples = array("h", [self.constant]) * n
        else:
            samples = tone_samples(n, self.sample_rate, self.freq, self.amplitude)
        return SynthesizedClip(samples=samples, start=segment.start, sample_rate=self.sample_rate)


class MockLipSync:
    name = "mock"

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = 0

    async def lip_sync(self, video, audio_track):
        self.calls += 1
        if self.fail:
            raise RuntimeError("lip-sync model unavailable")
        return video
