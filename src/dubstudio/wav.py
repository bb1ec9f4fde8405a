"""
Canonical 44-byte-header PCM WAV encoding.
"""

import struct
from dataclasses import dataclass
from pathlib import Path

from .models import SAMPLE_WIDTH, MasterAudioBuffer

HEADER_SIZE = 44
BITS_PER_SAMPLE = 16
PCM_FORMAT = 1

# RIFF, size, WAVE, "fmt ", fmt size, format, channels, rate, byte rate, block align, bits, data, size
_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


@dataclass(frozen=True)
class WavHeader:
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_length: int

    @property
    def duration(self) -> float:
        return self.data_length / float(self.byte_rate) if self.byte_rate else 0.0


def build_header(data_length: int, sample_rate: int, channels: int = 1) -> bytes:
    block_align = channels * SAMPLE_WIDTH
    return _HEADER.pack(
        b"RIFF",
        data_length + 36,
        b"WAVE",
        b"fmt ",
        16,
        PCM_FORMAT,
        channels,
        sample_rate,
        sample_rate * block_align,
        block_align,
        BITS_PER_SAMPLE,
        b"data",
        data_length,
    )


def encode_wav(buffer: MasterAudioBuffer) -> bytes:
    """Serialize the master track into a self-contained WAV file."""
    return build_header(len(buffer.pcm), buffer.sample_rate, buffer.channels) + buffer.pcm


def parse_wav_header(data: bytes) -> WavHeader:
    """Read back a canonical header written by ``encode_wav``."""
    if len(data) < HEADER_SIZE:
        raise ValueError(f"WAV data too short: {len(data)} bytes")
    (
        riff,
        _chunk_size,
        wave,
        fmt,
        fmt_size,
        audio_format,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits,
        data_tag,
        data_length,
    ) = _HEADER.unpack_from(data)
    if riff != b"RIFF" or wave != b"WAVE" or fmt != b"fmt " or data_tag != b"data":
        raise ValueError("Not a canonical PCM WAV header")
    if fmt_size != 16 or audio_format != PCM_FORMAT:
        raise ValueError(f"Unsupported WAV format (fmt size {fmt_size}, format {audio_format})")
    return WavHeader(
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits,
        data_length=data_length,
    )


def write_wav(buffer: MasterAudioBuffer, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(encode_wav(buffer))
    return path
