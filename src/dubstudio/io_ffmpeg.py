"""
ffmpeg/ffprobe process helpers.
"""

import asyncio
import logging
from pathlib import Path

from .cancellation import CancelToken

logger = logging.getLogger("dubstudio")

FFPROBE_DURATION_ARGS = [
    "-v",
    "error",
    "-show_entries",
    "format=duration",
    "-of",
    "default=noprint_wrappers=1:nokey=1",
]


async def run_async(
    cmd: list[str], *, check: bool = True, cancel: CancelToken | None = None
) -> str:
    """
    Run a command without blocking the event loop and return its combined output.

    The child process is started once and always reaped: if the call is
    cancelled (token or task cancellation) the process is killed before returning.
    """
    logger.debug("Running: %s", " ".join(map(str, cmd)))
    proc = await asyncio.create_subprocess_exec(
        *map(str, cmd), stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.STDOUT
    )
    try:
        if cancel is not None:
            out, _ = await cancel.guard(proc.communicate())
        else:
            out, _ = await proc.communicate()
    finally:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
    text = out.decode("utf-8", errors="replace")
    if proc.returncode != 0 and check:
        logger.error("Command failed with code %d: %s", proc.returncode, text)
        msg = f"Command failed with code {proc.returncode}"
        raise RuntimeError(msg)
    return text


def ensure_dir(path: str | Path) -> None:
    """Ensure directory exists."""
    if path:
        Path(path).mkdir(parents=True, exist_ok=True)


def _parse_duration(out: str) -> float:
    try:
        return float(out.strip())
    except ValueError:
        return 0.0


async def probe_duration(
    path: str | Path, ffprobe: str = "ffprobe", cancel: CancelToken | None = None
) -> float:
    """Media duration in seconds via ffprobe, 0.0 when unknown; raises when ffprobe itself fails."""
    out = await run_async([ffprobe, *FFPROBE_DURATION_ARGS, str(path)], cancel=cancel)
    return _parse_duration(out)


async def extract_audio(
    input_video: str | Path,
    out_wav: str | Path,
    sample_rate: int = 16000,
    ffmpeg: str = "ffmpeg",
    cancel: CancelToken | None = None,
) -> Path:
    """Extract the audio track of a video as mono 16-bit PCM WAV."""
    out_wav = Path(out_wav)
    ensure_dir(out_wav.parent)
    cmd = [
        ffmpeg,
        "-y",
        "-i",
        str(input_video),
        "-vn",
        "-acodec",
        "pcm_s16le",
        "-ar",
        str(sample_rate),
        "-ac",
        "1",
        str(out_wav),
    ]
    await run_async(cmd, cancel=cancel)
    return out_wav
