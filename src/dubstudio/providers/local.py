"""
Offline providers: faster-whisper transcription, subtitle-file transcripts and
a pass-through lip-sync stage.
"""

import asyncio
import logging
import mimetypes
import os
import tempfile
from pathlib import Path

from ..errors import ProviderConfigError
from ..models import Segment, TranscriptResult
from ..srt_utils import parse_srt

logger = logging.getLogger("dubstudio")


class FasterWhisperTranscriber:
    """Transcribe locally with faster-whisper (CPU, int8)."""

    name = "local"

    def __init__(self, model: str = "base", language: str | None = None, beam_size: int = 1):
        self.model = model
        self.language = language
        self.beam_size = beam_size
        self._whisper = None

    def _load(self):
        if self._whisper is None:
            try:
                from faster_whisper import WhisperModel
            except ImportError as e:
                raise ProviderConfigError(
                    "faster-whisper is not installed. Install with: pip install 'dubstudio[local]'"
                ) from e
            self._whisper = WhisperModel(self.model, device="cpu", compute_type="int8")
        return self._whisper

    def _transcribe_file(self, path: str) -> TranscriptResult:
        logger.info(
            f"Transcribing locally with faster-whisper ({self.model}, language: {self.language or 'auto'}) …"
        )
        segments_iter, info = self._load().transcribe(
            path,
            language=self.language,
            vad_filter=True,
            beam_size=self.beam_size,
            word_timestamps=False,
        )
        out: list[Segment] = []
        for s in segments_iter:
            start, end = float(s.start), float(s.end)
            if end <= start:
                continue
            out.append(Segment(start=start, end=end, text=str(s.text).strip()))
        return TranscriptResult(
            full_text=" ".join(s.text for s in out if s.text),
            segments=tuple(out),
            language=getattr(info, "language", None) or self.language or "",
        )

    async def transcribe(self, audio: bytes, mime_type: str) -> TranscriptResult:
        suffix = mimetypes.guess_extension(mime_type or "") or ".bin"
        fd, path = tempfile.mkstemp(prefix="dubstudio-stt-", suffix=suffix)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(audio)
            return await asyncio.to_thread(self._transcribe_file, path)
        finally:
            Path(path).unlink(missing_ok=True)


class SubtitleFileTranscriber:
    """Use an existing, reviewed SRT in place of speech recognition."""

    name = "srt"

    def __init__(self, srt_path: str, language: str = ""):
        self.srt_path = srt_path
        self.language = language

    async def transcribe(self, audio: bytes, mime_type: str) -> TranscriptResult:
        if not os.path.exists(self.srt_path):
            raise FileNotFoundError(f"SRT not found: {self.srt_path}")
        segments = parse_srt(self.srt_path)
        logger.info(f"Loaded SRT -> {self.srt_path} ({len(segments)} segments)")
        return TranscriptResult(
            full_text=" ".join(s.text for s in segments if s.text),
            segments=tuple(segments),
            language=self.language,
        )


class PassthroughLipSync:
    """No lip-sync model: the source picture is used unchanged."""

    name = "passthrough"

    async def lip_sync(self, video: Path, audio_track: Path) -> Path:
        logger.info(f"Lip-sync pass-through for {Path(video).name}")
        return Path(video)
