"""
Audio timeline assembly: place synthesized clips into one master track.
"""

import logging
import math
import sys
from array import array
from collections.abc import Sequence

from .errors import NoAudioProducedError
from .models import MasterAudioBuffer, Segment, SynthesizedClip

logger = logging.getLogger("dubstudio")


def timeline_length(
    segments: Sequence[Segment], sample_rate: int, media_duration: float | None = None
) -> tuple[float, int]:
    """Return ``(duration_seconds, num_samples)`` for the master track.

    A known media duration wins over the last segment end.
    """
    if media_duration is not None and media_duration > 0:
        duration = float(media_duration)
    else:
        duration = max((s.end for s in segments), default=0.0)
    return duration, math.ceil(duration * sample_rate)


def assemble_timeline(
    segments: Sequence[Segment],
    clips: Sequence[SynthesizedClip | None],
    sample_rate: int = 24000,
    media_duration: float | None = None,
) -> MasterAudioBuffer:
    """
    Build the master track from per-segment clips.

    Each clip is copied verbatim (no stretching) at ``floor(start * rate)`` and
    truncated at the end of the buffer. Clips are processed in ``start`` order,
    so where two clips overlap the later one wins. Segments without a clip stay
    silent; if no segment has a clip at all ``NoAudioProducedError`` is raised.
    """
    if len(segments) != len(clips):
        raise ValueError("Segments and clips must have identical lengths.")

    if all(clip is None for clip in clips):
        raise NoAudioProducedError("No audio produced: synthesis failed for every segment")

    duration, total = timeline_length(segments, sample_rate, media_duration)
    master = array("h", bytes(total * 2))

    order = sorted(range(len(segments)), key=lambda i: segments[i].start)
    missing: list[int] = []

    for i in order:
        seg, clip = segments[i], clips[i]
        if clip is None:
            missing.append(i)
            continue
        if clip.sample_rate != sample_rate:
            raise ValueError(
                f"Clip for segment {i} is {clip.sample_rate} Hz, master track is {sample_rate} Hz"
            )
        offset = math.floor(seg.start * sample_rate)
        if offset >= total:
            logger.warning(f"Segment {i} starts at {seg.start:.3f}s, past the end of the track; dropped")
            continue
        n = min(len(clip.samples), total - offset)
        master[offset : offset + n] = clip.samples[:n]
        if n < len(clip.samples):
            logger.debug(f"Segment {i} clip truncated by {len(clip.samples) - n} samples at track end")
        logger.debug(f"Placed segment {i} at {seg.start:.3f}s ({n} samples)")

    if missing:
        logger.warning(f"{len(missing)} segment(s) without audio left silent: {missing}")
    if sys.byteorder != "little":
        master.byteswap()
    return MasterAudioBuffer(pcm=master.tobytes(), sample_rate=sample_rate, duration=duration)
