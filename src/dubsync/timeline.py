"""
Offline rendering of a dubbing into a single audio track aligned to the video.
"""

import io
import logging
import os

from pydub import AudioSegment

from .config import ReconcileStrategy
from .io_ffmpeg import ensure_dir, time_stretch_wav_ffmpeg
from .models import Dubbing
from .sync import DEFAULT_MAX_RATE, plan_reconciliation, prepare_segments
from .tts import from_data_uri

logger = logging.getLogger("dubsync")


def decode_clip(data_uri: str) -> AudioSegment:
    """Decode a base64 audio data URI into a pydub segment."""
    mime, payload = from_data_uri(data_uri)
    fmt = mime.split("/")[-1] or None
    if fmt == "mpeg":
        fmt = "mp3"
    return AudioSegment.from_file(io.BytesIO(payload), format=fmt)


def clip_duration_seconds(data_uri: str) -> float:
    return len(decode_clip(data_uri)) / 1000.0


def _speed_up(clip: AudioSegment, rate: float, tmp_dir: str, tag: str) -> AudioSegment:
    in_wav = os.path.join(tmp_dir, f"{tag}_in.wav")
    out_wav = os.path.join(tmp_dir, f"{tag}_fit.wav")
    clip.export(in_wav, format="wav")
    time_stretch_wav_ffmpeg(in_wav, out_wav, rate)
    return AudioSegment.from_wav(out_wav)


def render_dub_track(
    dubbing: Dubbing,
    tmp_dir: str,
    *,
    max_rate: float = DEFAULT_MAX_RATE,
    sample_rate: int = 24000,
    total_ms: int | None = None,
) -> AudioSegment:
    """Lay every dub clip into its slot, sped up to fit where needed.

    Clips still overflowing after the rate cap are cut at the next slot start.
    """
    ensure_dir(tmp_dir)
    segments = prepare_segments(dubbing.segments)

    timeline = AudioSegment.silent(duration=0, frame_rate=sample_rate)
    cursor_ms = 0
    for i, seg in enumerate(segments):
        start_ms = seg.start_time * 1000
        if start_ms > cursor_ms:
            timeline += AudioSegment.silent(duration=start_ms - cursor_ms, frame_rate=sample_rate)
            cursor_ms = start_ms

        try:
            clip = decode_clip(seg.audio_data_uri).set_frame_rate(sample_rate)
        except Exception as e:
            logger.warning(f"Failed to decode audio for segment {seg.index}: {e}")
            continue

        plan = plan_reconciliation(
            seg.slot_duration, len(clip) / 1000.0, ReconcileStrategy.SPEED_UP, max_rate
        )
        if plan.playback_rate > 1.0:
            clip = _speed_up(clip, plan.playback_rate, tmp_dir, f"seg_{seg.index:04d}")
            clip = clip.set_frame_rate(sample_rate)

        limit_ms = None
        if i + 1 < len(segments):
            limit_ms = segments[i + 1].start_time * 1000 - cursor_ms
        if limit_ms is not None and len(clip) > limit_ms:
            logger.warning(f"segment {seg.index} overflow {len(clip) - limit_ms}ms trimmed")
            clip = clip[:limit_ms]

        timeline += clip
        cursor_ms += len(clip)

    if total_ms is not None and total_ms > 0:
        if len(timeline) < total_ms:
            timeline += AudioSegment.silent(duration=total_ms - len(timeline), frame_rate=sample_rate)
        elif len(timeline) > total_ms:
            timeline = timeline[:total_ms]

    logger.info(f"[dur] dub track = {len(timeline)/1000:.3f}s ({len(segments)} segments)")
    return timeline
