"""
Runtime settings loaded from the environment (and ``.env``).
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger("dubstudio")


def load_env() -> None:
    """Load ``.env`` from the project root, falling back to the current directory."""
    project_root = Path(__file__).parent.parent.parent
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, float(default)))


@dataclass
class Settings:
    openai_api_key: str | None = None
    elevenlabs_api_key: str | None = None
    elevenlabs_voice_id: str | None = None
    sample_rate: int = 24000
    workdir: str = ".work"
    max_retries: int = 3
    retry_base_delay: float = 1.0
    tts_min_interval: float = 0.2
    mux_policy: str = "shortest"
    mux_audio_codec: str | None = None
    whisper_model: str = "whisper-1"
    local_whisper_model: str = "base"
    translation_model: str = "gpt-4o-mini"
    tts_model: str = "gpt-4o-mini-tts"
    tts_instructions: str | None = None
    elevenlabs_model_id: str = "eleven_multilingual_v2"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            elevenlabs_api_key=os.getenv("ELEVENLABS_API_KEY"),
            elevenlabs_voice_id=os.getenv("ELEVENLABS_VOICE_ID"),
            sample_rate=_env_int("DUBSTUDIO_SAMPLE_RATE", 24000),
            workdir=os.getenv("DUBSTUDIO_WORKDIR", ".work"),
            max_retries=_env_int("DUBSTUDIO_MAX_RETRIES", 3),
            retry_base_delay=_env_float("DUBSTUDIO_RETRY_BASE_DELAY", 1.0),
            tts_min_interval=_env_float("DUBSTUDIO_TTS_MIN_INTERVAL", 0.2),
            mux_policy=os.getenv("DUBSTUDIO_MUX_POLICY", "shortest"),
            mux_audio_codec=os.getenv("DUBSTUDIO_MUX_AUDIO_CODEC") or None,
            whisper_model=os.getenv("DUBSTUDIO_WHISPER_MODEL", "whisper-1"),
            local_whisper_model=os.getenv("DUBSTUDIO_LOCAL_WHISPER_MODEL", "base"),
            translation_model=os.getenv("DUBSTUDIO_TRANSLATION_MODEL", "gpt-4o-mini"),
            tts_model=os.getenv("DUBSTUDIO_TTS_MODEL", "gpt-4o-mini-tts"),
            tts_instructions=os.getenv("OPENAI_TTS_INSTRUCTIONS"),
            elevenlabs_model_id=os.getenv("DUBSTUDIO_ELEVENLABS_MODEL", "eleven_multilingual_v2"),
        )
