"""
Speech-to-text + translation backend behind the transcription model boundary.
"""

import asyncio
import logging
import os
import tempfile
from typing import Protocol

import httpx
from openai import AsyncOpenAI

from .errors import GenerationError
from .io_ffmpeg import ensure_dir, extract_audio
from .timecode import format_timecode
from .translation import translate_segments

logger = logging.getLogger("dubsync")


class TranscriptionModel(Protocol):
    """Request {media_url, target_language} -> {"segments": [{start, end, text}]}."""

    async def transcribe(self, media_url: str, target_language: str) -> dict: ...


def quantize_segments(raw: list[tuple[float, float, str]]) -> list[dict]:
    """Snap float-second segments onto whole-second "MM:SS" slots.

    Segments that collapse to zero length are merged into the previous one.
    """
    out: list[dict] = []
    cursor = 0
    for start, end, text in raw:
        text = text.strip()
        if not text:
            continue
        s = max(cursor, int(round(start)))
        e = int(round(end))
        if e <= s:
            if out:
                out[-1]["text"] = f"{out[-1]['text']} {text}"
                continue
            e = s + 1
        out.append({"start": s, "end": e, "text": text})
        cursor = e
    return [
        {"start": format_timecode(seg["start"]), "end": format_timecode(seg["end"]), "text": seg["text"]}
        for seg in out
    ]


async def download_media(url: str, out_path: str, timeout: float = 60.0) -> None:
    """Stream a remote media file to disk."""
    headers = {"User-Agent": "dubsync/0.1"}
    async with httpx.AsyncClient(follow_redirects=True, timeout=timeout) as client:
        async with client.stream("GET", url, headers=headers) as r:
            if r.status_code != 200:
                raise GenerationError(f"Could not download media ({r.status_code}): {url}")
            with open(out_path, "wb") as f:
                async for chunk in r.aiter_bytes():
                    f.write(chunk)


def _segments_from_response(resp) -> list[tuple[float, float, str]]:
    segs = getattr(resp, "segments", None)
    if segs is None and isinstance(resp, dict):
        segs = resp.get("segments")
    out: list[tuple[float, float, str]] = []
    for seg in segs or []:
        if isinstance(seg, dict):
            out.append((float(seg.get("start", 0.0)), float(seg.get("end", 0.0)), str(seg.get("text", ""))))
        else:
            out.append(
                (
                    float(getattr(seg, "start", 0.0)),
                    float(getattr(seg, "end", 0.0)),
                    str(getattr(seg, "text", "")),
                )
            )
    return out


class OpenAITranscriptionModel:
    """Whisper transcription followed by GPT translation into the target language."""

    def __init__(
        self,
        client: AsyncOpenAI,
        workdir: str = ".work",
        whisper_model: str = "whisper-1",
        translate_model: str = "gpt-4o-mini",
    ) -> None:
        self.client = client
        self.workdir = workdir
        self.whisper_model = whisper_model
        self.translate_model = translate_model

    async def transcribe(self, media_url: str, target_language: str) -> dict:
        ensure_dir(self.workdir)
        with tempfile.TemporaryDirectory(dir=self.workdir) as tmp:
            media_path = os.path.join(tmp, "source.media")
            wav_path = os.path.join(tmp, "extracted.wav")

            logger.info(f"Downloading {media_url} …")
            await download_media(media_url, media_path)
            await asyncio.to_thread(extract_audio, media_path, wav_path, 16000)

            with open(wav_path, "rb") as f:
                logger.info(f"Transcribing with {self.whisper_model} …")
                resp = await self.client.audio.transcriptions.create(
                    model=self.whisper_model,
                    file=f,
                    response_format="verbose_json",
                )

        raw = [seg for seg in _segments_from_response(resp) if seg[2].strip()]
        if not raw:
            # no timestamps: hand back whatever text came so validation can reject it
            text = getattr(resp, "text", None)
            return {"segments": [], "text": text or ""}

        translated = await translate_segments(
            self.client, [text for _, _, text in raw], target_language, model=self.translate_model
        )
        merged = [(start, end, text) for (start, end, _), text in zip(raw, translated)]
        return {"segments": quantize_segments(merged)}

    async def aclose(self) -> None:
        await self.client.close()
