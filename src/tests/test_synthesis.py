"""
Tests for per-segment synthesis.
"""

import asyncio
import time

from dubstudio import synthesis as synthesis_module
from dubstudio.cancellation import CancelToken
from dubstudio.models import Segment
from dubstudio.providers.mock import ToneSynthesizer
from dubstudio.retry import RetryPolicy
from dubstudio.synthesis import ClipCache, synthesize_clips

RATE = 8000
FAST = RetryPolicy(max_retries=1, base_delay=0.0)


def _run(provider, segments, **kwargs):
    kwargs.setdefault("min_interval", 0.0)
    return asyncio.run(
        synthesize_clips(provider, segments, None, sample_rate=RATE, policy=FAST, cancel=CancelToken(), **kwargs)
    )


def test_blank_segments_skipped_not_failed():
    synth = ToneSynthesizer(sample_rate=RATE)
    segments = [Segment(start=0.0, end=1.0, text="hi"), Segment(start=1.0, end=2.0, text="   ")]

    report = _run(synth, segments)

    assert report.skipped == [1]
    assert report.failures == []
    assert report.clips[1] is None
    assert synth.calls == ["hi"]


def test_failed_segment_reported_with_index():
    synth = ToneSynthesizer(sample_rate=RATE, fail_texts={"bad"})
    segments = [Segment(start=0.0, end=1.0, text="good"), Segment(start=1.0, end=2.0, text="bad")]

    report = _run(synth, segments)

    assert report.clips[0] is not None
    assert report.clips[1] is None
    assert [f.index for f in report.failures] == [1]
    assert synth.calls.count("bad") == 2


def test_calls_are_spaced_by_min_interval():
    synth = ToneSynthesizer(sample_rate=RATE, duration=0.01)
    segments = [Segment(start=float(i), end=i + 0.5, text=f"s{i}") for i in range(3)]

    started = time.monotonic()
    _run(synth, segments, min_interval=0.05)

    assert time.monotonic() - started >= 0.09


def test_progress_reported_per_segment():
    progress = []
    segments = [Segment(start=float(i), end=i + 0.5, text=f"s{i}") for i in range(3)]

    _run(ToneSynthesizer(sample_rate=RATE), segments, on_progress=lambda done, total: progress.append((done, total)))

    assert progress == [(1, 3), (2, 3), (3, 3)]


def test_clip_cache_reused(tmp_path):
    segments = [Segment(start=0.0, end=0.5, text="cached line")]
    first = ToneSynthesizer(sample_rate=RATE)
    second = ToneSynthesizer(sample_rate=RATE)

    report1 = _run(first, segments, cache=ClipCache(tmp_path, first.name, first.model, None))
    report2 = _run(second, segments, cache=ClipCache(tmp_path, second.name, second.model, None))

    assert second.calls == []
    assert report2.cached == 1
    assert report2.clips[0].samples == report1.clips[0].samples


def test_clip_resampled_to_track_rate():
    synth = ToneSynthesizer(sample_rate=16000)

    report = _run(synth, [Segment(start=0.0, end=1.0, text="x")])

    clip = report.clips[0]
    assert clip.sample_rate == RATE
    assert abs(len(clip.samples) - RATE) <= 1


class _SlowSynth(ToneSynthesizer):
    """Records when each call starts and ends."""

    def __init__(self, delay: float, **kwargs):
        super().__init__(**kwargs)
        self.delay = delay
        self.spans: list[tuple[float, float]] = []

    async def synthesize_segment(self, segment, voice_id):
        started = time.monotonic()
        await asyncio.sleep(self.delay)
        clip = await super().synthesize_segment(segment, voice_id)
        self.spans.append((started, time.monotonic()))
        return clip


def test_min_interval_counts_from_end_of_previous_call():
    """A slow provider still gets a pause between one call returning and the next starting."""
    synth = _SlowSynth(0.1, sample_rate=RATE, duration=0.01)
    segments = [Segment(start=float(i), end=i + 0.5, text=f"s{i}") for i in range(3)]

    _run(synth, segments, min_interval=0.05)

    gaps = [nxt[0] - prev[1] for prev, nxt in zip(synth.spans, synth.spans[1:])]
    assert len(gaps) == 2
    assert all(g >= 0.045 for g in gaps)


def test_cache_write_failure_keeps_clip(tmp_path):
    """An unwritable cache only costs the cache entry; the clip is still used."""
    synth = ToneSynthesizer(sample_rate=RATE)
    cache = ClipCache(tmp_path / "cache", synth.name, synth.model, None)
    (tmp_path / "cache").rmdir()

    report = _run(synth, [Segment(start=0.0, end=0.5, text="hello")], cache=cache)

    assert report.failures == []
    assert report.clips[0] is not None
    assert len(report.clips[0].samples) == RATE // 2


def test_conform_failure_is_a_segment_failure(monkeypatch):
    def broken_conform(clip, segment, sample_rate):
        raise ValueError("cannot resample")

    monkeypatch.setattr(synthesis_module, "_conform", broken_conform)
    synth = ToneSynthesizer(sample_rate=RATE)
    segments = [Segment(start=0.0, end=0.5, text="a"), Segment(start=1.0, end=1.5, text="b")]

    report = _run(synth, segments)

    assert report.clips == [None, None]
    assert [f.index for f in report.failures] == [0, 1]
    assert "cannot resample" in str(report.failures[0])
