"""
Conversions between provider audio, pydub segments and synthesized clips.
"""

import io
from array import array

from pydub import AudioSegment

from .models import CHANNELS, SAMPLE_WIDTH, SynthesizedClip


def clip_from_audio(audio: AudioSegment, start: float, sample_rate: int) -> SynthesizedClip:
    """Normalize to mono 16-bit at ``sample_rate`` and wrap as a clip."""
    audio = audio.set_channels(CHANNELS).set_sample_width(SAMPLE_WIDTH).set_frame_rate(sample_rate)
    return SynthesizedClip(
        samples=array("h", audio.get_array_of_samples()), start=start, sample_rate=sample_rate
    )


def clip_from_bytes(data: bytes, fmt: str, start: float, sample_rate: int) -> SynthesizedClip:
    """Decode an encoded provider response (``wav``, ``mp3``, ...) into a clip."""
    return clip_from_audio(AudioSegment.from_file(io.BytesIO(data), format=fmt), start, sample_rate)


def clip_to_audio(clip: SynthesizedClip) -> AudioSegment:
    return AudioSegment(
        data=clip.samples.tobytes(),
        sample_width=SAMPLE_WIDTH,
        frame_rate=clip.sample_rate,
        channels=CHANNELS,
    )
