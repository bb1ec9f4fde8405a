"""
OpenAI-backed transcription (Whisper), translation (GPT) and speech synthesis.
"""

import logging
import mimetypes
import re
from typing import Any

from openai import AsyncOpenAI

from ..audio import clip_from_bytes
from ..errors import ProviderConfigError
from ..models import Segment, SynthesizedClip, TranscriptResult, TranslationResult
from ..translation import get_language_name
from .base import SpeechSynthesisProvider

logger = logging.getLogger("dubstudio")

_NUMBERED_LINE_RE = re.compile(r"^\s*\[(\d+)\]\s*:\s*(.*)$")
_AUDIO_SUFFIXES = {"audio/wav": ".wav", "audio/x-wav": ".wav"}

TRANSLATOR_SYSTEM_PROMPT = (
    "You are a professional dubbing translator. Translate each numbered line so it "
    "can be spoken aloud in roughly the same time as the original. Always provide "
    "accurate, natural translations."
)


def make_client(api_key: str | None) -> AsyncOpenAI:
    if not api_key:
        raise ProviderConfigError("OPENAI_API_KEY is not set. Put it in .env or environment.")
    return AsyncOpenAI(api_key=api_key)


def _field(obj: Any, key: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def segments_from_response(resp: Any) -> list[Segment]:
    """Extract valid timed segments from a ``verbose_json`` transcription response."""
    out: list[Segment] = []
    for seg in _field(resp, "segments") or []:
        start = float(_field(seg, "start", 0.0))
        end = float(_field(seg, "end", 0.0))
        text = str(_field(seg, "text", "")).strip()
        if start < 0 or end <= start:
            logger.warning(f"Dropping segment with invalid timing {start:.3f}-{end:.3f}: {text[:40]!r}")
            continue
        out.append(Segment(start=start, end=end, text=text))
    return out


def parse_numbered_lines(content: str) -> dict[int, str]:
    """Parse ``[n]: text`` lines returned by the translator."""
    translation_map: dict[int, str] = {}
    for line in content.splitlines():
        m = _NUMBERED_LINE_RE.match(line)
        if m:
            translation_map[int(m.group(1))] = m.group(2).strip()
    return translation_map


class OpenAIWhisperTranscriber:
    name = "openai"

    def __init__(self, client: AsyncOpenAI, model: str = "whisper-1", language: str | None = None):
        self.client = client
        self.model = model
        self.language = language

    async def transcribe(self, audio: bytes, mime_type: str) -> TranscriptResult:
        ext = _AUDIO_SUFFIXES.get(mime_type) or mimetypes.guess_extension(mime_type or "") or ".mp4"
        kwargs: dict[str, Any] = {
            "model": self.model,
            "file": (f"upload{ext}", audio, mime_type or "application/octet-stream"),
            "response_format": "verbose_json",
        }
        if self.language:
            kwargs["language"] = self.language
        logger.info(f"Transcribing with {self.model} (language: {self.language or 'auto'}) …")
        resp = await self.client.audio.transcriptions.create(**kwargs)
        segments = segments_from_response(resp)
        full_text = str(_field(resp, "text", "") or " ".join(s.text for s in segments)).strip()
        language = str(_field(resp, "language", "") or self.language or "")
        return TranscriptResult(full_text=full_text, segments=tuple(segments), language=language)


class OpenAITranslator:
    name = "openai"

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4o-mini", batch_size: int = 20):
        self.client = client
        self.model = model
        self.batch_size = batch_size

    async def _complete(self, prompt: str) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": TRANSLATOR_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=0.1,
            max_tokens=4000,
        )
        return (response.choices[0].message.content or "").strip()

    async def _translate_batch(self, texts: list[str], target: str, source: str) -> list[str]:
        numbered = "\n".join(f"[{j}]: {t}" for j, t in enumerate(texts))
        prompt = f"""Translate the following numbered texts from {source} to {target}.
Each text is numbered with [number]: format. Translate each one separately.
Maintain the original tone, style, and meaning. Keep technical terms accurate.
Return the translations in the same numbered format, one per line.

Texts to translate:
{numbered}"""
        translation_map = parse_numbered_lines(await self._complete(prompt))
        out: list[str] = []
        for j, text in enumerate(texts):
            if j in translation_map:
                out.append(translation_map[j])
                continue
            logger.warning(f"Line [{j}] missing from batch translation; translating it alone")
            single = await self._complete(
                f"Translate the following text from {source} to {target}. "
                f"Return only the translated text.\n\n{text}"
            )
            out.append(single or text)
        return out

    async def translate(self, transcript: TranscriptResult, target_lang: str) -> TranslationResult:
        target = get_language_name(target_lang)
        source = get_language_name(transcript.language) if transcript.language else "the source language"
        segments = list(transcript.segments)
        translated: list[Segment] = []
        for i in range(0, len(segments), self.batch_size):
            batch = segments[i : i + self.batch_size]
            logger.info(f"Translating batch {i // self.batch_size + 1} ({len(batch)} segments) to {target}...")
            spoken = [k for k, s in enumerate(batch) if s.text.strip()]
            texts = (
                await self._translate_batch([batch[k].text for k in spoken], target, source)
                if spoken
                else []
            )
            lookup = dict(zip(spoken, texts))
            for k, seg in enumerate(batch):
                translated.append(
                    Segment(start=seg.start, end=seg.end, text=lookup.get(k, seg.text), speaker=seg.speaker)
                )
        return TranslationResult(
            original_text=transcript.full_text,
            translated_text=" ".join(s.text for s in translated if s.text),
            segments=tuple(translated),
            target_language=target_lang,
        )


class OpenAISpeechSynthesizer(SpeechSynthesisProvider):
    name = "openai"

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o-mini-tts",
        default_voice: str = "alloy",
        instructions: str | None = None,
        sample_rate: int = 24000,
    ):
        self.client = client
        self.model = model
        self.default_voice = default_voice
        self.instructions = instructions
        self.sample_rate = sample_rate

    async def synthesize_segment(self, segment: Segment, voice_id: str | None) -> SynthesizedClip:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "voice": voice_id or self.default_voice,
            "input": segment.text,
            "response_format": "wav",
        }
        if self.instructions:
            kwargs["instructions"] = self.instructions
        response = await self.client.audio.speech.create(**kwargs)
        return clip_from_bytes(response.content, "wav", segment.start, self.sample_rate)
