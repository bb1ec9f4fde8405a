"""
Tests for muxing the dubbed track into the video.
"""

import asyncio
import shutil
import subprocess

import pytest

from dubstudio import muxer as muxer_module
from dubstudio.errors import MuxingError
from dubstudio.models import MasterAudioBuffer
from dubstudio.muxer import MediaMuxer
from dubstudio.wav import parse_wav_header, write_wav

RATE = 8000


def _wav(tmp_path, seconds: float):
    pcm = bytes(round(seconds * RATE) * 2)
    return write_wav(MasterAudioBuffer(pcm=pcm, sample_rate=RATE, duration=seconds), tmp_path / "dub.wav")


def _video(tmp_path):
    path = tmp_path / "in.mp4"
    path.write_bytes(b"video")
    return path


@pytest.fixture
def fake_tools(monkeypatch):
    """ffprobe reports 2 s for everything; ffmpeg records the fitted audio it was given."""
    seen = {}

    async def fake_probe(path, ffprobe="ffprobe", cancel=None):
        return 2.0

    async def fake_run(cmd, *, check=True, cancel=None):
        seen["cmd"] = cmd
        audio_in = cmd[cmd.index("-i", cmd.index("-i") + 1) + 1]
        with open(audio_in, "rb") as f:
            seen["audio_header"] = parse_wav_header(f.read())
        return ""

    monkeypatch.setattr(muxer_module, "probe_duration", fake_probe)
    monkeypatch.setattr(muxer_module, "run_async", fake_run)
    return seen


def test_target_duration_policies():
    assert MediaMuxer().target_duration(10.0, 8.0) == 8.0
    assert MediaMuxer().target_duration(10.0, 12.0) == 10.0
    assert MediaMuxer(policy="video").target_duration(10.0, 8.0) == 10.0


def test_unknown_policy_rejected():
    with pytest.raises(ValueError):
        MediaMuxer(policy="longest")


def test_shortest_policy_cuts_to_audio(tmp_path, fake_tools):
    out = tmp_path / "out.mp4"
    result = asyncio.run(MediaMuxer().mux(_video(tmp_path), _wav(tmp_path, 1.5), out))

    cmd = fake_tools["cmd"]
    assert cmd[cmd.index("-t") + 1] == "1.500"
    assert cmd[cmd.index("-c:v") + 1] == "copy"
    assert cmd[-1] == str(out)
    assert result.path == str(out)


def test_video_policy_pads_audio(tmp_path, fake_tools):
    """1.5 s of audio against a 2 s video is padded with silence to 2 s."""
    asyncio.run(MediaMuxer(policy="video").mux(_video(tmp_path), _wav(tmp_path, 1.5), tmp_path / "out.mp4"))

    assert fake_tools["audio_header"].duration == pytest.approx(2.0, abs=0.001)
    cmd = fake_tools["cmd"]
    assert cmd[cmd.index("-t") + 1] == "2.000"


def test_video_policy_trims_audio(tmp_path, fake_tools):
    asyncio.run(MediaMuxer(policy="video").mux(_video(tmp_path), _wav(tmp_path, 3.0), tmp_path / "out.mp4"))

    assert fake_tools["audio_header"].duration == pytest.approx(2.0, abs=0.001)


def test_missing_input_raises(tmp_path, fake_tools):
    with pytest.raises(MuxingError):
        asyncio.run(MediaMuxer().mux(tmp_path / "missing.mp4", _wav(tmp_path, 1.0), tmp_path / "out.mp4"))


def test_ffmpeg_failure_becomes_muxing_error(tmp_path, monkeypatch, fake_tools):
    async def failing_run(cmd, *, check=True, cancel=None):
        raise RuntimeError("Command failed with code 1")

    monkeypatch.setattr(muxer_module, "run_async", failing_run)

    with pytest.raises(MuxingError, match="ffmpeg could not combine"):
        asyncio.run(MediaMuxer().mux(_video(tmp_path), _wav(tmp_path, 1.0), tmp_path / "out.mp4"))


@pytest.mark.skipif(
    shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None, reason="ffmpeg not installed"
)
def test_real_ffmpeg_output_matches_video_length(tmp_path):
    video = tmp_path / "src.mp4"
    subprocess.run(
        [
            "ffmpeg", "-y", "-v", "error",
            "-f", "lavfi", "-i", "testsrc=duration=2:size=64x64:rate=10",
            "-c:v", "mpeg4", str(video),
        ],
        check=True,
    )
    wav = _wav(tmp_path, 1.0)

    result = asyncio.run(
        MediaMuxer(policy="video", audio_codec="aac").mux(video, wav, tmp_path / "dubbed.mp4")
    )

    assert result.duration == pytest.approx(2.0, abs=0.25)
