"""
Text-to-speech: voice selection table and async synthesis backends.
"""

import base64
import logging
from typing import Protocol

import httpx
from openai import AsyncOpenAI

from .errors import GenerationError
from .models import VoiceConfig

logger = logging.getLogger("dubsync")

MAX_TTS_CHARS = 4000

DEFAULT_VOICE = VoiceConfig(language_code="en-US", name="en-US-Neural2-F")

# (language name, ISO code) -> voice
_VOICE_TABLE: list[tuple[str, str, VoiceConfig]] = [
    ("hindi", "hi", VoiceConfig("hi-IN", "hi-IN-Neural2-A")),
    ("tamil", "ta", VoiceConfig("ta-IN", "ta-IN-Wavenet-B")),
    ("bengali", "bn", VoiceConfig("bn-IN", "bn-IN-Wavenet-A")),
    ("kannada", "kn", VoiceConfig("kn-IN", "kn-IN-Wavenet-A")),
    ("telugu", "te", VoiceConfig("te-IN", "te-IN-Standard-A")),
    ("english", "en", VoiceConfig("en-IN", "en-IN-Neural2-A")),
]


def voice_for_language(language: str | None) -> VoiceConfig:
    """Pick a voice for a language name or code; never fails."""
    lang = (language or "").strip().lower()
    if not lang:
        return DEFAULT_VOICE
    for name, code, voice in _VOICE_TABLE:
        if name in lang or lang == code:
            return voice
    return DEFAULT_VOICE


def clip_tts_text(text: str) -> str:
    if len(text) > MAX_TTS_CHARS:
        logger.warning(
            "Text too long (%d chars), truncating to %d chars", len(text), MAX_TTS_CHARS
        )
        return text[:MAX_TTS_CHARS]
    return text


class SpeechSynthesizer(Protocol):
    """Request {text, voice} -> encoded audio bytes."""

    mime_type: str

    async def synthesize(self, text: str, voice: VoiceConfig) -> bytes: ...


class GoogleSpeechSynthesizer:
    """Google Cloud Text-to-Speech over its REST API."""

    mime_type = "audio/mp3"
    url = "https://texttospeech.googleapis.com/v1/text:synthesize"

    def __init__(self, api_key: str, http: httpx.AsyncClient | None = None) -> None:
        if not api_key:
            raise RuntimeError("GOOGLE_TTS_API_KEY is not set.")
        self.api_key = api_key
        self.http = http or httpx.AsyncClient(follow_redirects=True, timeout=60.0)

    async def synthesize(self, text: str, voice: VoiceConfig) -> bytes:
        payload = {
            "input": {"text": clip_tts_text(text)},
            "voice": {"languageCode": voice.language_code, "name": voice.name},
            "audioConfig": {"audioEncoding": "MP3"},
        }
        r = await self.http.post(
            self.url,
            params={"key": self.api_key},
            json=payload,
            headers={"User-Agent": "dubsync/0.1"},
        )
        if r.status_code != 200:
            raise GenerationError(f"Google TTS failed: {r.status_code} {r.text[:300]}")
        content = r.json().get("audioContent")
        if not content:
            return b""
        return base64.b64decode(content)

    async def aclose(self) -> None:
        await self.http.aclose()


class OpenAISpeechSynthesizer:
    """OpenAI speech endpoint; the target language is passed as a speaking instruction."""

    mime_type = "audio/mp3"

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4o-mini-tts", voice: str = "alloy") -> None:
        if client is None:
            raise RuntimeError("OpenAI client is not initialized (missing OPENAI_API_KEY)")
        self.client = client
        self.model = model
        self.voice = voice

    async def synthesize(self, text: str, voice: VoiceConfig) -> bytes:
        response = await self.client.audio.speech.create(
            model=self.model,
            voice=self.voice,
            input=clip_tts_text(text),
            response_format="mp3",
            instructions=f"Speak naturally, as a native speaker of {voice.language_code}.",
        )
        return response.content


def to_data_uri(audio: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(audio).decode('ascii')}"


def from_data_uri(uri: str) -> tuple[str, bytes]:
    """Split a base64 data URI into (mime type, payload)."""
    header, sep, body = uri.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise ValueError("Not a base64 data URI")
    return header[len("data:") : -len(";base64")], base64.b64decode(body)
