"""
Rate-limited, per-segment voice synthesis with an on-disk clip cache.
"""

import hashlib
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path

from pydub import AudioSegment
from tqdm import tqdm

from .audio import clip_from_audio, clip_to_audio
from .cancellation import CancelToken
from .errors import JobCancelled, SynthesisSegmentError
from .io_ffmpeg import ensure_dir
from .models import Segment, SynthesizedClip
from .providers.base import SpeechSynthesisProvider
from .retry import RetryPolicy, call_with_retry

logger = logging.getLogger("dubstudio")


def _hash_for_cache(provider: str, model: str, voice: str, text: str) -> str:
    """Generate cache hash for TTS audio."""
    key = f"{provider}|{model}|{voice}|{text}".encode()
    return hashlib.sha1(key).hexdigest()[:12]


class ClipCache:
    """Synthesized clips stored as WAV, keyed by provider, model, voice and text."""

    def __init__(self, cache_dir: str | Path, provider: str, model: str, voice: str | None):
        self.cache_dir = Path(cache_dir)
        self.provider = provider
        self.model = model
        self.voice = voice or "default"
        ensure_dir(self.cache_dir)

    def path_for(self, text: str) -> Path:
        sig = _hash_for_cache(self.provider, self.model, self.voice, text)
        return self.cache_dir / f"{self.provider}_{sig}.wav"

    def load(self, segment: Segment, sample_rate: int) -> SynthesizedClip | None:
        path = self.path_for(segment.text)
        if not path.exists():
            return None
        try:
            return clip_from_audio(AudioSegment.from_wav(str(path)), segment.start, sample_rate)
        except Exception as e:
            logger.warning(f"Ignoring unreadable cached clip {path.name}: {e}")
            return None

    def store(self, segment: Segment, clip: SynthesizedClip) -> None:
        clip_to_audio(clip).export(str(self.path_for(segment.text)), format="wav")


@dataclass
class SynthesisReport:
    clips: list[SynthesizedClip | None]
    failures: list[SynthesisSegmentError] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)  # blank segments, not failures
    cached: int = 0


def _conform(clip: SynthesizedClip, segment: Segment, sample_rate: int) -> SynthesizedClip:
    if clip.sample_rate != sample_rate:
        logger.debug(f"Resampling clip {clip.sample_rate} Hz -> {sample_rate} Hz")
        return clip_from_audio(clip_to_audio(clip), segment.start, sample_rate)
    if clip.start != segment.start:
        return replace(clip, start=segment.start)
    return clip


async def synthesize_clips(
    provider: SpeechSynthesisProvider,
    segments: Sequence[Segment],
    voice_id: str | None,
    *,
    sample_rate: int,
    policy: RetryPolicy,
    cancel: CancelToken,
    min_interval: float = 0.2,
    cache: ClipCache | None = None,
    on_progress: Callable[[int, int], None] | None = None,
) -> SynthesisReport:
    """
    Request one clip per segment, one call at a time.

    Consecutive provider calls are at least ``min_interval`` seconds apart.
    A segment whose synthesis still fails after retries yields ``None`` and a
    ``SynthesisSegmentError`` in the report; the loop carries on.
    """
    report = SynthesisReport(clips=[])
    total = len(segments)
    last_call: float | None = None

    for i, seg in enumerate(tqdm(segments, desc=f"TTS {provider.name}", disable=total == 0)):
        cancel.raise_if_cancelled()
        clip: SynthesizedClip | None = None

        if not seg.text.strip():
            report.skipped.append(i)
        else:
            clip = cache.load(seg, sample_rate) if cache else None
            if clip is not None:
                report.cached += 1
            else:
                if last_call is not None:
                    await cancel.sleep(min_interval - (time.monotonic() - last_call))
                try:
                    clip = await call_with_retry(
                        lambda seg=seg: provider.synthesize_segment(seg, voice_id),
                        policy=policy,
                        label=f"TTS segment {i}",
                        cancel=cancel,
                    )
                    clip = _conform(clip, seg, sample_rate)
                except JobCancelled:
                    raise
                except Exception as e:
                    clip = None
                    err = SynthesisSegmentError(i, str(e))
                    logger.warning(f"TTS failed, leaving silence: {err}")
                    report.failures.append(err)
                finally:
                    # the interval runs from the end of one call to the start of the next
                    last_call = time.monotonic()
                if clip is not None and cache:
                    try:
                        cache.store(seg, clip)
                    except Exception as e:
                        logger.warning(f"Could not cache clip for segment {i}: {e}")

        report.clips.append(clip)
        if on_progress:
            on_progress(i + 1, total)

    if report.failures:
        logger.warning(
            f"TTS completed with {len(report.failures)} failed segments (rendered as silence): "
            f"{[f.index for f in report.failures]}"
        )
    return report
