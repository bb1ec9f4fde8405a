"""
The dubbing job state machine.

A run walks ``UPLOADING -> TRANSCRIBING -> TRANSLATING -> DUBBING ->
LIPSYNCING -> MUXING`` restricted to the selected steps, ending in
``COMPLETED`` or ``FAILED``. Every mutation produces a new frozen ``JobState``
that is saved through the injected repository and handed to ``on_update``.
"""

import asyncio
import logging
import re
import time
from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path
from typing import TypeVar

from .cancellation import CancelToken
from .errors import (
    DubbingError,
    JobCancelled,
    LipSyncError,
    MuxingError,
    TranscriptionError,
    TranslationError,
    UploadError,
)
from .io_ffmpeg import ensure_dir, extract_audio, probe_duration
from .models import (
    SELECTABLE_STEPS,
    AudioArtifact,
    JobState,
    JobStatus,
    LogEntry,
    RunConfig,
    VideoArtifact,
)
from .muxer import MediaMuxer
from .persistence import JobRepository
from .progress import ProgressEstimator
from .providers import Providers
from .retry import RetryPolicy, call_with_retry
from .srt_utils import write_srt
from .synthesis import ClipCache, synthesize_clips
from .timeline import assemble_timeline
from .translation import check_translation, get_language_name
from .wav import write_wav

logger = logging.getLogger("dubstudio")

T = TypeVar("T")

# Share of the overall progress bar per step; the full plan adds up to 98.
STEP_WEIGHTS = {
    JobStatus.UPLOADING: 10.0,
    JobStatus.TRANSCRIBING: 20.0,
    JobStatus.TRANSLATING: 20.0,
    JobStatus.DUBBING: 30.0,
    JobStatus.LIPSYNCING: 10.0,
    JobStatus.MUXING: 8.0,
}
LAST_STEP_CEILING = 98.0
DEFAULT_DURATION = 30.0  # seconds, used for estimates when the media duration is unknown
SPEECH_MIME_TYPE = "audio/wav"  # speech sent to the transcriber is extracted mono PCM

_LEVELS = {"info": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}
_SAFE_ID_RE = re.compile(r"[^A-Za-z0-9._-]")


def plan_steps(selected: Iterable[JobStatus]) -> list[JobStatus]:
    """
    Steps that will actually run, in pipeline order.

    A selected step is dropped when the step producing its input was not
    selected. Muxing is implied by dubbing.
    """
    selected = set(selected)
    plan = [JobStatus.UPLOADING]
    transcript = translation = audio = False
    if JobStatus.TRANSCRIBING in selected:
        plan.append(JobStatus.TRANSCRIBING)
        transcript = True
    if JobStatus.TRANSLATING in selected and transcript:
        plan.append(JobStatus.TRANSLATING)
        translation = True
    if JobStatus.DUBBING in selected and translation:
        plan.append(JobStatus.DUBBING)
        audio = True
    if JobStatus.LIPSYNCING in selected and audio:
        plan.append(JobStatus.LIPSYNCING)
    if audio:
        plan.append(JobStatus.MUXING)
    return plan


def progress_floors(plan: list[JobStatus]) -> dict[JobStatus, float]:
    """Global progress reached when each planned step finishes."""
    total = sum(STEP_WEIGHTS[s] for s in plan)
    floors: dict[JobStatus, float] = {}
    acc = 0.0
    for step in plan:
        acc += STEP_WEIGHTS[step]
        floors[step] = round(LAST_STEP_CEILING * acc / total, 2)
    return floors


def estimate_seconds(step: JobStatus, media_duration: float) -> float:
    """Rough wall-clock estimate of a step, fed to the progress estimator."""
    d = media_duration if media_duration > 0 else DEFAULT_DURATION
    if step is JobStatus.UPLOADING:
        return 1.2
    if step is JobStatus.TRANSCRIBING:
        return max(5.0, d * 0.5)
    if step is JobStatus.TRANSLATING:
        return 3.0 + d * 0.2
    if step is JobStatus.DUBBING:
        return max(8.0, d * 1.2)
    if step is JobStatus.LIPSYNCING:
        return 4.0
    return max(3.0, d * 0.3)


def _read_source(path: Path) -> bytes:
    try:
        data = path.read_bytes()
    except OSError as e:
        raise UploadError(f"Could not read {path}: {e}") from e
    if not data:
        raise UploadError(f"Input file is empty: {path}")
    return data


class DubbingPipeline:
    """
    Runs exactly one job. Start a new job with a new instance.

    Providers, persistence and the muxer are injected; nothing here knows
    which concrete implementation sits behind them.
    """

    def __init__(
        self,
        providers: Providers,
        repository: JobRepository,
        *,
        workdir: str | Path = ".work",
        sample_rate: int = 24000,
        retry_policy: RetryPolicy | None = None,
        tts_min_interval: float = 0.2,
        muxer: MediaMuxer | None = None,
        cancel: CancelToken | None = None,
        on_update: Callable[[JobState], None] | None = None,
        progress_interval: float = 0.2,
        clip_cache: bool = True,
    ) -> None:
        self.providers = providers
        self.repository = repository
        self.workdir = Path(workdir)
        self.sample_rate = sample_rate
        self.retry_policy = retry_policy or RetryPolicy()
        self.tts_min_interval = tts_min_interval
        self.muxer = muxer or MediaMuxer()
        self.cancel = cancel or CancelToken()
        self.on_update = on_update
        self.progress_interval = progress_interval
        self.clip_cache = clip_cache
        self.state: JobState | None = None
        self._floors: dict[JobStatus, float] = {}
        self._plan: list[JobStatus] = []

    # -- state -----------------------------------------------------------

    def _update(self, logs: list[LogEntry] | None = None, **changes) -> JobState:
        self.cancel.raise_if_cancelled()
        if "progress" in changes:
            changes["progress"] = max(self.state.progress, changes["progress"])
        self.state = self.state.update(logs=logs, **changes)
        for entry in logs or ():
            logger.log(_LEVELS.get(entry.level, logging.INFO), f"[{self.state.id}] {entry.message}")
        self.repository.save_job(self.state)
        if self.on_update:
            self.on_update(self.state)
        return self.state

    def _step_range(self, step: JobStatus) -> tuple[float, float]:
        idx = self._plan.index(step)
        prev = self._floors[self._plan[idx - 1]] if idx > 0 else 0.0
        return prev, self._floors[step]

    def _set_step_progress(self, step: JobStatus, percent: float) -> None:
        if self.cancel.cancelled or self.state.status is not step:
            return
        low, high = self._step_range(step)
        self._update(step_progress=percent, progress=low + (high - low) * percent / 100.0)

    def _begin(self, step: JobStatus, message: str) -> None:
        self._update(status=step, step_progress=0.0, logs=[LogEntry.create(message)])

    def _finish(self, step: JobStatus, message: str, level: str = "info", **artifacts) -> None:
        self._update(
            progress=self._floors[step],
            step_progress=100.0,
            logs=[LogEntry.create(message, level)],
            **artifacts,
        )

    def _prerequisite_met(self, step: JobStatus) -> bool:
        s = self.state
        if step is JobStatus.TRANSLATING:
            return s.transcript is not None
        if step is JobStatus.DUBBING:
            return s.translation is not None
        if step in (JobStatus.LIPSYNCING, JobStatus.MUXING):
            return s.dubbed_audio is not None
        return True

    async def _estimated(self, step: JobStatus, awaitable_factory: Callable[[], Awaitable[T]]) -> T:
        """Await a provider call with retry while the progress estimator ticks."""
        estimator = ProgressEstimator(
            lambda v: self._set_step_progress(step, v),
            estimate_seconds(step, self.state.media_duration),
            interval=self.progress_interval,
        )
        async with estimator:
            return await call_with_retry(
                awaitable_factory, policy=self.retry_policy, label=step.value.lower(), cancel=self.cancel
            )

    # -- run -------------------------------------------------------------

    async def run(self, source: str | Path, config: RunConfig) -> JobState:
        if self.state is not None:
            raise RuntimeError("A DubbingPipeline instance runs a single job; create a new one")
        selected = list(dict.fromkeys(config.selected_steps))
        if not selected:
            raise ValueError("At least one pipeline step must be selected")
        unknown = [s for s in selected if s not in SELECTABLE_STEPS]
        if unknown:
            raise ValueError(f"Steps cannot be selected: {[s.value for s in unknown]}")

        source = Path(source)
        job_id = config.job_id or f"JOB-{int(time.time() * 1000)}"
        self._plan = plan_steps(selected)
        self._floors = progress_floors(self._plan)
        job_dir = self.workdir / _SAFE_ID_RE.sub("_", job_id)

        self.state = JobState(id=job_id)
        try:
            self._update(
                status=JobStatus.UPLOADING,
                progress=0.0,
                step_progress=0.0,
                start_time=time.time(),
                target_lang=config.target_lang,
                voice_id=config.voice_id,
                selected_steps=tuple(selected),
                source_path=str(source),
                logs=[
                    LogEntry.create("Processing started..."),
                    LogEntry.create(f"File detected: {source.name}"),
                ],
            )
            ensure_dir(job_dir)
            await self._upload(source, config)

            for step in self._plan[1:]:
                if not self._prerequisite_met(step):
                    logger.debug(f"Skipping {step.value}: prerequisite missing")
                    continue
                if step is JobStatus.TRANSCRIBING:
                    await self._transcribe(source, job_dir)
                elif step is JobStatus.TRANSLATING:
                    await self._translate(config.target_lang, job_dir)
                elif step is JobStatus.DUBBING:
                    await self._dub(config.voice_id, job_dir)
                elif step is JobStatus.LIPSYNCING:
                    await self._lip_sync(source)
                elif step is JobStatus.MUXING:
                    await self._mux(source, job_dir)

            self._update(
                status=JobStatus.COMPLETED,
                progress=100.0,
                step_progress=100.0,
                end_time=time.time(),
                logs=[LogEntry.create("Processing finished successfully. Output is ready.")],
            )
        except JobCancelled as e:
            logger.info(f"[{job_id}] Run stopped: {e}")
        except Exception as e:
            self._fail(e)
        return self.state

    def _fail(self, error: Exception) -> None:
        if self.cancel.cancelled:
            return
        if not isinstance(error, DubbingError):
            logger.exception("Unexpected pipeline error")
        self._update(
            status=JobStatus.FAILED,
            end_time=time.time(),
            logs=[LogEntry.create(f"Processing failed ({type(error).__name__}): {error}", "error")],
        )

    async def _probe_media_duration(self, source: Path) -> float:
        try:
            return await probe_duration(source, self.muxer.ffprobe, cancel=self.cancel)
        except (OSError, RuntimeError) as e:
            logger.warning(f"Could not probe media duration of {source.name}: {e}")
            return 0.0

    # -- steps -----------------------------------------------------------

    async def _upload(self, source: Path, config: RunConfig) -> None:
        estimator = ProgressEstimator(
            lambda v: self._set_step_progress(JobStatus.UPLOADING, v),
            estimate_seconds(JobStatus.UPLOADING, 0.0),
            interval=self.progress_interval,
        )
        async with estimator:
            data = await self.cancel.guard(asyncio.to_thread(_read_source, source))
        self.repository.save_blob(f"{self.state.id}_original", data)

        duration = config.media_duration or 0.0
        if duration <= 0:
            duration = await self._probe_media_duration(source)
        estimate = duration if duration > 0 else DEFAULT_DURATION
        self._finish(
            JobStatus.UPLOADING,
            "File loaded into the working buffer.",
            media_duration=duration,
        )
        self._update(logs=[LogEntry.create(f"Estimated total processing time: ~{round(estimate * 1.8)}s")])

    async def _extract_speech(self, source: Path, job_dir: Path) -> bytes:
        wav_path = job_dir / "source_audio.wav"
        try:
            await extract_audio(source, wav_path, ffmpeg=self.muxer.ffmpeg, cancel=self.cancel)
            return wav_path.read_bytes()
        except (OSError, RuntimeError) as e:
            raise TranscriptionError(f"Could not extract the audio track of {source.name}: {e}") from e

    async def _transcribe(self, source: Path, job_dir: Path) -> None:
        self._begin(JobStatus.TRANSCRIBING, "Converting speech to text (STT)...")
        audio = await self._extract_speech(source, job_dir)
        transcriber = self.providers.transcriber
        try:
            transcript = await self._estimated(
                JobStatus.TRANSCRIBING, lambda: transcriber.transcribe(audio, SPEECH_MIME_TYPE)
            )
        except JobCancelled:
            raise
        except Exception as e:
            raise TranscriptionError(f"Transcription failed: {e}") from e
        if all(not s.text.strip() for s in transcript.segments):
            raise TranscriptionError("Transcription returned empty text.")
        lang = transcript.language or "unknown language"
        self._finish(
            JobStatus.TRANSCRIBING,
            f"Transcription complete: {len(transcript.segments)} segments ({lang}).",
            transcript=transcript,
        )

    async def _translate(self, target_lang: str, job_dir: Path) -> None:
        self._begin(JobStatus.TRANSLATING, f"Translating to {get_language_name(target_lang)}...")
        transcript = self.state.transcript
        translator = self.providers.translator
        try:
            translation = await self._estimated(
                JobStatus.TRANSLATING, lambda: translator.translate(transcript, target_lang)
            )
        except JobCancelled:
            raise
        except Exception as e:
            raise TranslationError(f"Translation failed: {e}") from e
        check_translation(transcript, translation)

        srt_path = job_dir / f"subs_{target_lang}.srt"
        write_srt(translation.segments, str(srt_path))
        self._finish(
            JobStatus.TRANSLATING,
            f"Translation complete; subtitles saved to {srt_path.name}.",
            translation=translation,
            subtitles_path=str(srt_path),
        )

    async def _dub(self, voice_id: str | None, job_dir: Path) -> None:
        self._begin(JobStatus.DUBBING, "Synthesizing the dubbed voice track...")
        synthesizer = self.providers.synthesizer
        segments = self.state.translation.segments
        cache = (
            ClipCache(self.workdir / "clip_cache", synthesizer.name, synthesizer.model, voice_id)
            if self.clip_cache
            else None
        )
        report = await synthesize_clips(
            synthesizer,
            segments,
            voice_id,
            sample_rate=self.sample_rate,
            policy=self.retry_policy,
            cancel=self.cancel,
            min_interval=self.tts_min_interval,
            cache=cache,
            on_progress=lambda done, total: self._set_step_progress(
                JobStatus.DUBBING, min(99.0, 100.0 * done / total)
            ),
        )
        if report.failures:
            self._update(
                logs=[
                    LogEntry.create(f"Synthesis failed, segment left silent: {f}", "warning")
                    for f in report.failures
                ]
            )

        media = self.state.media_duration
        buffer = assemble_timeline(segments, report.clips, self.sample_rate, media if media > 0 else None)
        wav_path = write_wav(buffer, job_dir / "dubbed.wav")
        self.repository.save_blob(f"{self.state.id}_audio", wav_path.read_bytes())

        placed = sum(1 for c in report.clips if c is not None)
        self._finish(
            JobStatus.DUBBING,
            f"Dubbed voice track ready: {placed}/{len(segments)} segments, {buffer.duration:.2f}s.",
            dubbed_audio=AudioArtifact(
                path=str(wav_path), duration=buffer.duration, sample_rate=buffer.sample_rate
            ),
        )

    async def _lip_sync(self, source: Path) -> None:
        self._begin(JobStatus.LIPSYNCING, "Synchronizing lip movement...")
        lip_sync = self.providers.lip_sync
        audio = Path(self.state.dubbed_audio.path)
        try:
            video = await self._estimated(JobStatus.LIPSYNCING, lambda: lip_sync.lip_sync(source, audio))
        except JobCancelled:
            raise
        except Exception as e:
            raise LipSyncError(f"Lip-sync failed: {e}") from e
        self._finish(
            JobStatus.LIPSYNCING,
            "Lip-sync finished.",
            lip_synced_video=VideoArtifact(path=str(video), duration=self.state.media_duration),
        )

    async def _mux(self, source: Path, job_dir: Path) -> None:
        self._begin(JobStatus.MUXING, "Combining the dubbed audio with the video...")
        video = Path(self.state.lip_synced_video.path) if self.state.lip_synced_video else source
        audio = Path(self.state.dubbed_audio.path)
        output = job_dir / f"dubbed{source.suffix or '.mp4'}"
        try:
            final = await self._estimated(
                JobStatus.MUXING, lambda: self.muxer.mux(video, audio, output, cancel=self.cancel)
            )
        except (JobCancelled, MuxingError):
            raise
        except Exception as e:
            raise MuxingError(f"Muxing failed: {e}") from e
        self._finish(
            JobStatus.MUXING,
            f"Final video ready: {Path(final.path).name} ({final.duration:.2f}s).",
            final_video=final,
        )


class JobSupervisor:
    """
    Owns the in-flight pipeline. Starting a job cancels the previous run so
    its retries, timers and subprocesses stop before the new one proceeds.
    """

    def __init__(self, pipeline_factory: Callable[..., DubbingPipeline]) -> None:
        self.pipeline_factory = pipeline_factory
        self.current: DubbingPipeline | None = None

    def cancel_current(self, reason: str = "cancelled") -> None:
        if self.current is not None:
            self.current.cancel.cancel(reason)

    async def start(self, source: str | Path, config: RunConfig) -> JobState:
        self.cancel_current("superseded by a new job")
        pipeline = self.pipeline_factory(cancel=CancelToken())
        self.current = pipeline
        try:
            return await pipeline.run(source, config)
        finally:
            if self.current is pipeline:
                self.current = None
