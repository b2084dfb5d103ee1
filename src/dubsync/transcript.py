"""
Transcript generation: call the transcription model and validate its segments.
"""

import asyncio
import logging

from .errors import GenerationError, ValidationError
from .models import TranscriptSegment
from .stt import TranscriptionModel
from .timecode import format_timecode, is_timecode, parse_timecode

logger = logging.getLogger("dubsync")


def normalize_transcript_response(response: object) -> list[TranscriptSegment]:
    """Validate a raw model response and return ordered, non-overlapping segments."""
    if not isinstance(response, dict):
        raise ValidationError("Transcription model returned an unexpected response.")

    raw_segments = response.get("segments")
    if not raw_segments:
        if response.get("text") or response.get("transcript"):
            raise ValidationError(
                "Transcription model returned plain text without timestamps. Please retry."
            )
        raise ValidationError("Transcription model returned no segments.")
    if not isinstance(raw_segments, list):
        raise ValidationError("Transcription model returned malformed segments.")

    parsed: list[tuple[int, int, str]] = []
    for i, raw in enumerate(raw_segments):
        if not isinstance(raw, dict):
            raise ValidationError(f"Segment {i} is not an object.")
        start, end = raw.get("start"), raw.get("end")
        if not is_timecode(start) or not is_timecode(end):
            raise ValidationError(f"Segment {i} has malformed timestamps: {start!r} -> {end!r}")
        text = str(raw.get("text") or "").strip()
        if not text:
            raise ValidationError(f"Segment {i} has empty text.")
        start_s, end_s = parse_timecode(start), parse_timecode(end)
        if start_s >= end_s:
            raise ValidationError(f"Segment {i} starts at or after its end ({start} -> {end}).")
        parsed.append((start_s, end_s, text))

    parsed.sort(key=lambda p: p[0])

    out: list[TranscriptSegment] = []
    prev_end = 0
    for i, (start_s, end_s, text) in enumerate(parsed):
        if out and start_s < prev_end:
            prev = out[-1]
            prev_start = parse_timecode(prev.start)
            if start_s <= prev_start:
                raise ValidationError(
                    f"Segment {i} overlaps the previous segment completely ({prev.start})."
                )
            logger.warning(
                "Segment %d overlaps previous (%s > %s); clamping previous end",
                i,
                format_timecode(prev_end),
                format_timecode(start_s),
            )
            prev.end = format_timecode(start_s)
        out.append(
            TranscriptSegment(start=format_timecode(start_s), end=format_timecode(end_s), text=text)
        )
        prev_end = end_s
    return out


async def generate_transcript(
    model: TranscriptionModel,
    file_url: str,
    target_language: str,
    *,
    timeout: float = 60.0,
) -> list[TranscriptSegment]:
    """Transcribe and translate ``file_url`` into ``target_language`` segments."""
    logger.info("Generating %s transcript for %s …", target_language, file_url)
    try:
        response = await asyncio.wait_for(model.transcribe(file_url, target_language), timeout)
    except asyncio.TimeoutError:
        raise GenerationError(
            f"Transcript generation timed out after {timeout:.0f}s. Please try again."
        ) from None
    except GenerationError:
        raise
    except Exception as e:
        logger.error(f"Transcription model call failed: {e}")
        raise GenerationError("Failed to generate transcript. Please try again.") from e

    segments = normalize_transcript_response(response)
    logger.info("Transcript ready: %d segments (%s)", len(segments), target_language)
    return segments
