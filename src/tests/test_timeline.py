"""
Tests for timeline assembly.
"""

from array import array

import pytest

from dubstudio.errors import NoAudioProducedError
from dubstudio.models import Segment, SynthesizedClip
from dubstudio.timeline import assemble_timeline, timeline_length

RATE = 1000


def _clip(value: int, seconds: float, start: float = 0.0) -> SynthesizedClip:
    return SynthesizedClip(samples=array("h", [value]) * round(seconds * RATE), start=start, sample_rate=RATE)


def test_length_prefers_media_duration():
    segments = [Segment(start=0.0, end=2.0, text="a")]

    assert timeline_length(segments, RATE) == (2.0, 2000)
    assert timeline_length(segments, RATE, media_duration=10.0) == (10.0, 10000)
    assert timeline_length(segments, 24000, media_duration=0.00001)[1] == 1


def test_clips_placed_at_segment_start():
    """Each clip starts at floor(start * rate); gaps are silent."""
    segments = [Segment(start=0.5, end=1.0, text="a"), Segment(start=2.0, end=2.5, text="b")]
    clips = [_clip(100, 0.5, 0.5), _clip(200, 0.5, 2.0)]

    buf = assemble_timeline(segments, clips, RATE, media_duration=3.0)
    samples = buf.samples

    assert buf.num_samples == 3000
    assert buf.duration == 3.0
    assert set(samples[:500]) == {0}
    assert set(samples[500:1000]) == {100}
    assert set(samples[1000:2000]) == {0}
    assert set(samples[2000:2500]) == {200}
    assert set(samples[2500:]) == {0}


def test_later_clip_overwrites_overlap():
    """Clip A [0,3) and clip B from 2 s: B's samples win from 2 s onward."""
    segments = [Segment(start=2.0, end=5.0, text="B"), Segment(start=0.0, end=3.0, text="A")]
    clips = [_clip(2, 3.0, 2.0), _clip(1, 3.0, 0.0)]

    samples = assemble_timeline(segments, clips, RATE).samples

    assert len(samples) == 5000
    assert set(samples[:2000]) == {1}
    assert set(samples[2000:5000]) == {2}


def test_clip_truncated_at_track_end():
    segments = [Segment(start=1.0, end=2.0, text="long")]
    clips = [_clip(7, 5.0, 1.0)]

    buf = assemble_timeline(segments, clips, RATE, media_duration=2.0)

    assert buf.num_samples == 2000
    assert set(buf.samples[1000:]) == {7}


def test_missing_clip_leaves_silence():
    segments = [Segment(start=0.0, end=1.0, text="ok"), Segment(start=1.0, end=2.0, text="failed")]
    clips = [_clip(5, 1.0), None]

    samples = assemble_timeline(segments, clips, RATE).samples

    assert set(samples[:1000]) == {5}
    assert set(samples[1000:]) == {0}


def test_all_clips_missing_raises():
    segments = [Segment(start=0.0, end=1.0, text="x")]

    with pytest.raises(NoAudioProducedError):
        assemble_timeline(segments, [None], RATE)


def test_assembly_is_deterministic():
    segments = [Segment(start=0.0, end=1.0, text="a"), Segment(start=0.25, end=1.5, text="b")]
    clips = [_clip(3, 1.0), _clip(-4, 1.25, 0.25)]

    first = assemble_timeline(segments, clips, RATE)
    second = assemble_timeline(segments, clips, RATE)

    assert first.pcm == second.pcm


def test_mismatched_inputs_rejected():
    segments = [Segment(start=0.0, end=1.0, text="a")]

    with pytest.raises(ValueError):
        assemble_timeline(segments, [], RATE)
    with pytest.raises(ValueError):
        assemble_timeline(
            segments,
            [SynthesizedClip(samples=array("h", [1]), start=0.0, sample_rate=RATE * 2)],
            RATE,
        )
