"""
Command-line interface for the dubbing studio.
"""

import argparse
import asyncio
import logging
import shutil
import sys

from .config import Settings, load_env
from .errors import DubbingError
from .models import JobState, JobStatus, RunConfig
from .muxer import MUX_POLICIES, MediaMuxer
from .persistence import FileJobRepository
from .pipeline import DubbingPipeline, JobSupervisor
from .providers import default_registry
from .retry import RetryPolicy

logger = logging.getLogger("dubstudio")

STEP_NAMES = {
    "transcribe": JobStatus.TRANSCRIBING,
    "translate": JobStatus.TRANSLATING,
    "dub": JobStatus.DUBBING,
    "lipsync": JobStatus.LIPSYNCING,
}


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def parse_steps(raw: str) -> list[JobStatus]:
    """``"transcribe,translate,dub"`` -> statuses; ``all`` selects every step."""
    names = [n.strip().lower() for n in raw.split(",") if n.strip()]
    if names == ["all"]:
        return list(STEP_NAMES.values())
    steps = []
    for name in names:
        if name not in STEP_NAMES:
            raise argparse.ArgumentTypeError(
                f"unknown step {name!r}; choose from {', '.join(STEP_NAMES)} or 'all'"
            )
        steps.append(STEP_NAMES[name])
    if not steps:
        raise argparse.ArgumentTypeError("at least one step is required")
    return steps


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    registry = default_registry()
    ap = argparse.ArgumentParser(description="Video dubbing studio")

    # IO
    ap.add_argument("--input_video", help="Source video to dub")
    ap.add_argument("--workdir", default=None, help="Working directory (default: $DUBSTUDIO_WORKDIR or .work)")
    ap.add_argument("--output", default=None, help="Copy the final video here when the job completes")

    # Job
    ap.add_argument("--target-lang", default="en", help="Target language code (e.g. 'es', 'de', 'fa')")
    ap.add_argument(
        "--steps",
        type=parse_steps,
        default=list(STEP_NAMES.values())[:3],
        help="Comma-separated steps: transcribe,translate,dub,lipsync or 'all' (default: transcribe,translate,dub)",
    )
    ap.add_argument("--voice", default=None, help="Voice id for the TTS provider")
    ap.add_argument("--job-id", default=None, help="Explicit job id (default: JOB-<timestamp>)")
    ap.add_argument("--source-language", default=None, help="Source language hint for STT")

    # Providers
    ap.add_argument("--stt", choices=registry.names("transcription"), default="openai")
    ap.add_argument("--translator", choices=registry.names("translation"), default="openai")
    ap.add_argument("--tts", choices=registry.names("synthesis"), default="openai")
    ap.add_argument("--lipsync", choices=registry.names("lipsync"), default="passthrough")
    ap.add_argument("--segments-srt", default=None, help="SRT used by --stt srt instead of speech recognition")

    # Muxing
    ap.add_argument(
        "--mux-policy",
        choices=MUX_POLICIES,
        default=None,
        help="shortest: cut to the shorter stream; video: fit audio to the video length",
    )

    # Job store
    ap.add_argument("--list-jobs", action="store_true", help="List stored jobs and exit")
    ap.add_argument("--delete-job", default=None, metavar="JOB_ID", help="Delete a stored job and its blobs")

    # Logging
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    args = ap.parse_args(argv)
    if not (args.list_jobs or args.delete_job) and not args.input_video:
        ap.error("--input_video is required")
    return args


def _print_job(job: JobState) -> None:
    status = job.status.value if job.status.is_terminal else f"{job.status.value} (interrupted)"
    print(f"{job.id}\t{status}\t{job.progress:.0f}%\t{job.target_lang}\t{job.source_path or ''}")


def _report(job: JobState) -> None:
    logger.info(f"Job {job.id}: {job.status.value} ({job.progress:.0f}%)")
    if job.subtitles_path:
        logger.info(f"Subtitles -> {job.subtitles_path}")
    if job.dubbed_audio:
        logger.info(f"Dubbed audio -> {job.dubbed_audio.path} ({job.dubbed_audio.duration:.2f}s)")
    if job.final_video:
        logger.info(f"Final video -> {job.final_video.path} ({job.final_video.duration:.2f}s)")


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    load_env()
    args = parse_args(argv)
    setup_logging(args.verbose)

    settings = Settings.from_env()
    if args.workdir:
        settings.workdir = args.workdir
    if args.mux_policy:
        settings.mux_policy = args.mux_policy

    repository = FileJobRepository(settings.workdir)

    if args.list_jobs:
        for job in sorted(repository.load_all_jobs(), key=lambda j: j.start_time or 0.0):
            _print_job(job)
        return 0
    if args.delete_job:
        repository.delete_job(args.delete_job)
        logger.info(f"Deleted job {args.delete_job}")
        return 0

    try:
        providers = default_registry().build(
            settings,
            transcription=args.stt,
            translation=args.translator,
            synthesis=args.tts,
            lipsync=args.lipsync,
            source_language=args.source_language,
            segments_srt=args.segments_srt,
        )
        muxer = MediaMuxer(policy=settings.mux_policy, audio_codec=settings.mux_audio_codec)
    except (DubbingError, ValueError) as e:
        logger.error(str(e))
        return 2

    policy = RetryPolicy(max_retries=settings.max_retries, base_delay=settings.retry_base_delay)

    def make_pipeline(cancel):
        return DubbingPipeline(
            providers,
            repository,
            workdir=settings.workdir,
            sample_rate=settings.sample_rate,
            retry_policy=policy,
            tts_min_interval=settings.tts_min_interval,
            muxer=muxer,
            cancel=cancel,
        )

    config = RunConfig(
        target_lang=args.target_lang,
        selected_steps=args.steps,
        voice_id=args.voice or (settings.elevenlabs_voice_id if args.tts == "elevenlabs" else None),
        job_id=args.job_id,
    )
    supervisor = JobSupervisor(make_pipeline)
    try:
        job = asyncio.run(supervisor.start(args.input_video, config))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130

    _report(job)
    if job.status is JobStatus.FAILED:
        return 1
    if args.output and job.final_video:
        shutil.copyfile(job.final_video.path, args.output)
        logger.info(f"Done (final video -> {args.output})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
