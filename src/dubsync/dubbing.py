"""
Dub generation: one synthesized clip per transcript segment.
"""

import asyncio
import logging

from tqdm.asyncio import tqdm

from .errors import GenerationError, ValidationError
from .models import DubSegment, TranscriptSegment
from .tts import SpeechSynthesizer, to_data_uri, voice_for_language

logger = logging.getLogger("dubsync")


async def generate_dub_audio(
    synthesizer: SpeechSynthesizer,
    segments: list[TranscriptSegment],
    target_language: str,
    *,
    max_concurrent: int = 5,
    timeout: float = 60.0,
) -> list[DubSegment]:
    """Synthesize every segment; fails as a whole if any clip is missing."""
    if not segments:
        raise ValidationError("Cannot dub an empty transcript.")

    voice = voice_for_language(target_language)
    logger.info(
        "Generating audio for %d segments in %s using voice %s",
        len(segments),
        target_language,
        voice.name,
    )
    semaphore = asyncio.Semaphore(max_concurrent)

    async def synth_one(i: int, seg: TranscriptSegment) -> DubSegment:
        text = seg.text.strip()
        if not text:
            raise ValidationError(f"Segment {i} has no text to synthesize.")
        async with semaphore:
            try:
                audio = await synthesizer.synthesize(text, voice)
            except GenerationError:
                raise
            except Exception as e:
                logger.error(f"TTS failed for segment {i} ('{text[:50]}...'): {e}")
                raise GenerationError("Failed to generate audio. Please try again.") from e
        if not audio:
            raise GenerationError(f"Speech synthesis returned no audio for segment {i}.")
        return DubSegment(
            start=seg.start,
            end=seg.end,
            text=seg.text,
            audio_data_uri=to_data_uri(audio, synthesizer.mime_type),
        )

    tasks = [asyncio.ensure_future(synth_one(i, seg)) for i, seg in enumerate(segments)]
    try:
        return await asyncio.wait_for(
            tqdm.gather(*tasks, desc=f"TTS {target_language}"), timeout
        )
    except asyncio.TimeoutError:
        raise GenerationError(
            f"Audio generation timed out after {timeout:.0f}s. Please try again."
        ) from None
    finally:
        for t in tasks:
            if not t.done():
                t.cancel()
