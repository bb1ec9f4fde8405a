"""
ElevenLabs text-to-speech over HTTP.
"""

import logging

import httpx

from ..audio import clip_from_bytes
from ..errors import ProviderConfigError
from ..models import Segment, SynthesizedClip
from .base import SpeechSynthesisProvider

logger = logging.getLogger("dubstudio")

API_BASE = "https://api.elevenlabs.io/v1"
USER_AGENT = "dubstudio/0.1"
HTTP_OK = 200


class ElevenLabsSynthesizer(SpeechSynthesisProvider):
    name = "elevenlabs"

    def __init__(
        self,
        api_key: str | None,
        default_voice: str | None = None,
        model: str = "eleven_multilingual_v2",
        sample_rate: int = 24000,
        timeout: float = 60.0,
    ):
        if not api_key:
            raise ProviderConfigError("ELEVENLABS_API_KEY is not set.")
        self.api_key = api_key
        self.default_voice = default_voice
        self.model = model
        self.sample_rate = sample_rate
        self.timeout = timeout

    def _headers(self, accept: str) -> dict[str, str]:
        return {
            "xi-api-key": self.api_key,
            "accept": accept,
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }

    async def pick_default_voice(self) -> str | None:
        """Auto-pick first available ElevenLabs voice."""
        async with httpx.AsyncClient(timeout=30.0) as client:
            r = await client.get(f"{API_BASE}/voices", headers=self._headers("application/json"))
        if r.status_code != HTTP_OK:
            logger.warning("Could not fetch voices list (%d)", r.status_code)
            return None
        voices = r.json().get("voices", []) or []
        if voices and isinstance(voices, list):
            vid = voices[0].get("voice_id")
            return str(vid) if vid else None
        return None

    async def synthesize_segment(self, segment: Segment, voice_id: str | None) -> SynthesizedClip:
        voice = voice_id or self.default_voice
        if not voice:
            voice = await self.pick_default_voice()
            if not voice:
                raise ProviderConfigError(
                    "ElevenLabs voice_id not provided. Set ELEVENLABS_VOICE_ID or pass --voice."
                )
            logger.info(f"Using ElevenLabs voice_id (auto): {voice}")
            self.default_voice = voice

        payload = {
            "text": segment.text,
            "model_id": self.model,
            "voice_settings": {"stability": 0.5, "similarity_boost": 0.75},
        }
        async with httpx.AsyncClient(follow_redirects=True, timeout=self.timeout) as client:
            r = await client.post(
                f"{API_BASE}/text-to-speech/{voice}", json=payload, headers=self._headers("audio/mpeg")
            )
        ctype = r.headers.get("content-type", "")
        if r.status_code != HTTP_OK or not ctype.startswith(("audio/", "application/octet-stream")):
            raise RuntimeError(f"ElevenLabs TTS failed: {r.status_code} {r.text[:300]}")
        return clip_from_bytes(r.content, "mp3", segment.start, self.sample_rate)
