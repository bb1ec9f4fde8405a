"""
Tests for SRT utilities.
"""

import os
import tempfile

from dubstudio.models import Segment
from dubstudio.srt_utils import format_timestamp, parse_srt, parse_srt_text, write_srt


def test_write_and_parse_srt():
    """Test SRT write/parse roundtrip."""
    segments = [
        Segment(start=0.0, end=2.5, text="Hello world."),
        Segment(start=2.5, end=5.0, text="This is a test."),
        Segment(start=5.0, end=7.5, text="Goodbye!"),
    ]

    with tempfile.NamedTemporaryFile(mode="w", suffix=".srt", delete=False) as f:
        srt_path = f.name

    try:
        write_srt(segments, srt_path)
        parsed_segments = parse_srt(srt_path)

        assert len(parsed_segments) == 3
        assert parsed_segments[0].text == "Hello world."
        assert parsed_segments[1].text == "This is a test."
        assert parsed_segments[2].text == "Goodbye!"
        assert parsed_segments[0].start == 0.0
        assert parsed_segments[0].end == 2.5
    finally:
        os.unlink(srt_path)


def test_format_timestamp():
    assert format_timestamp(0.0) == "00:00:00,000"
    assert format_timestamp(3661.5) == "01:01:01,500"


def test_parse_skips_invalid_cues():
    """Cues whose end is not after the start are dropped."""
    raw = (
        "1\n00:00:01,000 --> 00:00:02,000\nFirst\n\n"
        "2\n00:00:05,000 --> 00:00:04,000\nBackwards\n\n"
        "3\nnot a timing line\nGarbage\n\n"
        "4\n00:00:06,000 --> 00:00:07,250\nMulti\nline\n"
    )
    segments = parse_srt_text(raw)

    assert [s.text for s in segments] == ["First", "Multi line"]
    assert segments[1].end == 7.25


def test_wrap_lines():
    """Test text wrapping functionality."""
    from dubstudio.srt_utils import wrap_lines

    text = "This is a very long line that should be wrapped into multiple lines"
    wrapped = wrap_lines(text, max_chars=20, max_lines=3)
    lines = wrapped.split("\n")

    assert len(lines) <= 3
    for line in lines:
        assert len(line) <= 20
