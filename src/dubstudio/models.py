"""
Data models for the dubbing pipeline.
"""

import sys
from array import array
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

SAMPLE_WIDTH = 2  # bytes, 16-bit signed PCM
CHANNELS = 1


@dataclass(frozen=True)
class Segment:
    """A single transcribed segment with timing and text."""

    start: float  # seconds
    end: float  # seconds
    text: str
    speaker: str | None = None

    def __post_init__(self) -> None:
        if self.start < 0 or self.start >= self.end:
            raise ValueError(f"Invalid segment timing: start={self.start}, end={self.end}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Segment":
        return cls(
            start=float(data["start"]),
            end=float(data["end"]),
            text=str(data.get("text", "")),
            speaker=data.get("speaker"),
        )


@dataclass(frozen=True)
class TranscriptResult:
    """Transcription output, produced once per job."""

    full_text: str
    segments: tuple[Segment, ...]
    language: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TranscriptResult":
        return cls(
            full_text=data.get("full_text", ""),
            segments=tuple(Segment.from_dict(s) for s in data.get("segments", [])),
            language=data.get("language", ""),
        )


@dataclass(frozen=True)
class TranslationResult:
    """Translated transcript; same cardinality and timestamps as the source."""

    original_text: str
    translated_text: str
    segments: tuple[Segment, ...]
    target_language: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TranslationResult":
        return cls(
            original_text=data.get("original_text", ""),
            translated_text=data.get("translated_text", ""),
            segments=tuple(Segment.from_dict(s) for s in data.get("segments", [])),
            target_language=data.get("target_language", ""),
        )


@dataclass(frozen=True)
class SynthesizedClip:
    """Mono 16-bit PCM for one segment, placed at the segment's start."""

    samples: array
    start: float
    sample_rate: int

    @property
    def duration(self) -> float:
        return len(self.samples) / float(self.sample_rate)


@dataclass(frozen=True)
class MasterAudioBuffer:
    """The assembled master track. Samples are immutable little-endian PCM."""

    pcm: bytes
    sample_rate: int
    duration: float
    channels: int = CHANNELS

    @property
    def num_samples(self) -> int:
        return len(self.pcm) // SAMPLE_WIDTH

    @property
    def samples(self) -> memoryview:
        """Read-only view of the samples as signed 16-bit ints."""
        if sys.byteorder != "little":
            swapped = array("h", self.pcm)
            swapped.byteswap()
            return memoryview(swapped.tobytes()).cast("h")
        return memoryview(self.pcm).cast("h")


@dataclass(frozen=True)
class AudioArtifact:
    """Standalone encoded audio file."""

    path: str
    duration: float
    sample_rate: int


@dataclass(frozen=True)
class VideoArtifact:
    """Video file deliverable (lip-synced or muxed)."""

    path: str
    duration: float


class JobStatus(str, Enum):
    IDLE = "IDLE"
    UPLOADING = "UPLOADING"
    TRANSCRIBING = "TRANSCRIBING"
    TRANSLATING = "TRANSLATING"
    DUBBING = "DUBBING"
    LIPSYNCING = "LIPSYNCING"
    MUXING = "MUXING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


SELECTABLE_STEPS = (
    JobStatus.TRANSCRIBING,
    JobStatus.TRANSLATING,
    JobStatus.DUBBING,
    JobStatus.LIPSYNCING,
)


@dataclass(frozen=True)
class LogEntry:
    message: str
    time: str  # HH:MM:SS
    level: str = "info"

    @classmethod
    def create(cls, message: str, level: str = "info") -> "LogEntry":
        return cls(message=message, time=datetime.now().strftime("%H:%M:%S"), level=level)


@dataclass(frozen=True)
class JobState:
    """
    Snapshot of one dubbing job.

    The pipeline replaces the whole snapshot on every mutation; observers
    and persistence only ever see frozen instances.
    """

    id: str
    status: JobStatus = JobStatus.IDLE
    progress: float = 0.0
    step_progress: float = 0.0
    logs: tuple[LogEntry, ...] = ()
    start_time: float | None = None
    end_time: float | None = None
    media_duration: float = 0.0
    target_lang: str = ""
    voice_id: str | None = None
    selected_steps: tuple[JobStatus, ...] = ()
    source_path: str | None = None
    transcript: TranscriptResult | None = None
    translation: TranslationResult | None = None
    dubbed_audio: AudioArtifact | None = None
    lip_synced_video: VideoArtifact | None = None
    final_video: VideoArtifact | None = None
    subtitles_path: str | None = None

    def update(self, *, logs: list[LogEntry] | None = None, **changes: Any) -> "JobState":
        """Return a new snapshot with ``changes`` applied and ``logs`` appended."""
        if logs:
            changes["logs"] = self.logs + tuple(logs)
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["selected_steps"] = [s.value for s in self.selected_steps]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JobState":
        def _opt(key: str, factory):
            value = data.get(key)
            return factory(value) if value is not None else None

        return cls(
            id=data["id"],
            status=JobStatus(data.get("status", JobStatus.IDLE.value)),
            progress=float(data.get("progress", 0.0)),
            step_progress=float(data.get("step_progress", 0.0)),
            logs=tuple(LogEntry(**entry) for entry in data.get("logs", [])),
            start_time=data.get("start_time"),
            end_time=data.get("end_time"),
            media_duration=float(data.get("media_duration", 0.0)),
            target_lang=data.get("target_lang", ""),
            voice_id=data.get("voice_id"),
            selected_steps=tuple(JobStatus(s) for s in data.get("selected_steps", [])),
            source_path=data.get("source_path"),
            transcript=_opt("transcript", TranscriptResult.from_dict),
            translation=_opt("translation", TranslationResult.from_dict),
            dubbed_audio=_opt("dubbed_audio", lambda d: AudioArtifact(**d)),
            lip_synced_video=_opt("lip_synced_video", lambda d: VideoArtifact(**d)),
            final_video=_opt("final_video", lambda d: VideoArtifact(**d)),
            subtitles_path=data.get("subtitles_path"),
        )


@dataclass
class RunConfig:
    """Parameters of a single pipeline run."""

    target_lang: str
    selected_steps: list[JobStatus]
    voice_id: str | None = None
    job_id: str | None = None
    media_duration: float | None = None
