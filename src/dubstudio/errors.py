"""
Exceptions raised by the dubbing pipeline.
"""


class DubbingError(Exception):
    """Base class for pipeline errors."""


class UploadError(DubbingError):
    """Input media could not be read."""


class TranscriptionError(DubbingError):
    """Transcription failed after retries were exhausted."""


class TranslationError(DubbingError):
    """Translation failed after retries were exhausted."""


class SynthesisSegmentError(DubbingError):
    """Synthesis failed for a single segment. Recoverable: the segment stays silent."""

    def __init__(self, index: int, message: str) -> None:
        super().__init__(f"Segment {index}: {message}")
        self.index = index


class NoAudioProducedError(DubbingError):
    """Every segment's synthesis failed, the master track would be pure silence."""


class LipSyncError(DubbingError):
    """Lip-sync provider failed."""


class MuxingError(DubbingError):
    """Audio and video could not be combined."""


class ProviderConfigError(DubbingError):
    """Unknown provider name or missing provider credentials."""


class JobCancelled(DubbingError):
    """The run was cancelled, usually because a newer job superseded it."""
