"""
Combine the dubbed master track with the source video's picture track.
"""

import logging
import tempfile
from pathlib import Path

from pydub import AudioSegment

from .cancellation import CancelToken
from .errors import JobCancelled, MuxingError
from .io_ffmpeg import ensure_dir, probe_duration, run_async
from .models import VideoArtifact
from .wav import HEADER_SIZE, parse_wav_header

logger = logging.getLogger("dubstudio")

MUX_POLICIES = ("shortest", "video")
DURATION_TOLERANCE = 0.001  # seconds


class MediaMuxer:
    """
    Mux a WAV track into a video without re-encoding the picture.

    ``policy="shortest"``: output lasts ``min(video, audio)``; the picture is
    cut, never extended. ``policy="video"``: audio is padded with silence or
    trimmed to the exact video duration.
    """

    def __init__(
        self,
        policy: str = "shortest",
        ffmpeg: str = "ffmpeg",
        ffprobe: str = "ffprobe",
        audio_codec: str | None = None,
    ) -> None:
        if policy not in MUX_POLICIES:
            raise ValueError(f"Unknown mux policy {policy!r}; expected one of {MUX_POLICIES}")
        self.policy = policy
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe
        self.audio_codec = audio_codec

    def target_duration(self, video_s: float, audio_s: float) -> float:
        if self.policy == "video":
            return video_s
        return min(video_s, audio_s)

    async def mux(
        self,
        video_path: str | Path,
        audio_path: str | Path,
        output_path: str | Path,
        cancel: CancelToken | None = None,
    ) -> VideoArtifact:
        video_path, audio_path, output_path = Path(video_path), Path(audio_path), Path(output_path)
        for p in (video_path, audio_path):
            if not p.is_file():
                raise MuxingError(f"Muxing input not found: {p}")

        try:
            with open(audio_path, "rb") as f:
                header = parse_wav_header(f.read(HEADER_SIZE))
        except (OSError, ValueError) as e:
            raise MuxingError(f"Unreadable audio track {audio_path}: {e}") from e

        try:
            video_s = await probe_duration(video_path, self.ffprobe, cancel=cancel)
        except JobCancelled:
            raise
        except (OSError, RuntimeError) as e:
            raise MuxingError(f"Could not probe video {video_path}: {e}") from e
        if video_s <= 0:
            raise MuxingError(f"Video has no readable duration: {video_path}")

        audio_s = header.duration
        target = self.target_duration(video_s, audio_s)
        logger.info(f"[dur] video = {video_s:.3f}s, audio = {audio_s:.3f}s, output = {target:.3f}s")

        ensure_dir(output_path.parent)
        with tempfile.TemporaryDirectory(prefix="dubstudio-mux-") as tmp:
            track = self._fit_audio(audio_path, audio_s, target, Path(tmp))
            cmd = [
                self.ffmpeg,
                "-y",
                "-i",
                str(video_path),
                "-i",
                str(track),
                "-map",
                "0:v:0",
                "-map",
                "1:a:0",
                "-c:v",
                "copy",
            ]
            if self.audio_codec:
                cmd += ["-c:a", self.audio_codec]
            cmd += ["-t", f"{target:.3f}", str(output_path)]
            try:
                await run_async(cmd, cancel=cancel)
            except JobCancelled:
                raise
            except (OSError, RuntimeError) as e:
                raise MuxingError(
                    f"ffmpeg could not combine {video_path.name} and {audio_path.name}: {e}"
                ) from e

        try:
            out_s = await probe_duration(output_path, self.ffprobe, cancel=cancel)
        except JobCancelled:
            raise
        except (OSError, RuntimeError) as e:
            raise MuxingError(f"Muxed output is unreadable: {e}") from e
        logger.info(f"Muxed -> {output_path} ({out_s:.3f}s)")
        return VideoArtifact(path=str(output_path), duration=out_s or target)

    def _fit_audio(self, audio_path: Path, audio_s: float, target: float, tmp: Path) -> Path:
        """Trim or pad the WAV to ``target`` seconds; returns the original path when it already fits."""
        diff = audio_s - target
        if abs(diff) <= DURATION_TOLERANCE:
            return audio_path
        try:
            track = AudioSegment.from_wav(str(audio_path))
        except Exception as e:
            raise MuxingError(f"Could not decode audio track {audio_path}: {e}") from e
        if diff > 0:
            logger.info(f"[dur] trimming audio by {diff:.3f}s")
            track = track.get_sample_slice(0, round(target * track.frame_rate))
        else:
            pad_ms = int(round(-diff * 1000))
            logger.info(f"[dur] padding audio by {pad_ms / 1000:.3f}s to match video")
            track = track + AudioSegment.silent(duration=pad_ms, frame_rate=track.frame_rate)
        fitted = tmp / "fitted.wav"
        track.export(str(fitted), format="wav")
        return fitted
