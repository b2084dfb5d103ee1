"""
ffmpeg/ffprobe helpers for audio extraction, tempo fitting, and muxing.
"""

import json
import logging
import subprocess
from pathlib import Path

logger = logging.getLogger("dubsync")

MIN_ATEMPO = 0.5
MAX_ATEMPO = 2.0


def run(cmd: list[str], *, check: bool = True) -> str:
    """Run a command and return its combined output."""
    logger.debug("Running: %s", " ".join(map(str, cmd)))
    proc = subprocess.run(
        cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True, check=False
    )
    if proc.returncode != 0 and check:
        logger.error("Command failed with code %d: %s", proc.returncode, proc.stdout)
        raise RuntimeError(f"Command failed with code {proc.returncode}: {cmd[0]}")
    return proc.stdout


def ensure_dir(path: str) -> None:
    if path:
        Path(path).mkdir(parents=True, exist_ok=True)


def atempo_chain(ratio: float) -> list[float]:
    """Split a tempo ratio into atempo steps within 0.5..2.0.

    ratio > 1.0 speeds up (shorter), ratio < 1.0 slows down (longer).
    """
    if ratio <= 0:
        ratio = 1.0
    steps: list[float] = []
    r = ratio
    while r < MIN_ATEMPO or r > MAX_ATEMPO:
        step = MIN_ATEMPO if r < 1.0 else MAX_ATEMPO
        steps.append(step)
        r /= step
    steps.append(r)
    return steps


def ffmpeg(*args: str) -> str:
    """Run ffmpeg quietly, overwriting outputs."""
    return run(["ffmpeg", "-hide_banner", "-loglevel", "error", "-y", *args])


def time_stretch_wav_ffmpeg(in_wav: str, out_wav: str, ratio: float) -> None:
    """Change playback tempo of a wav file by ``ratio`` without changing pitch."""
    filt = ",".join(f"atempo={s:.6f}" for s in atempo_chain(ratio))
    ffmpeg("-i", in_wav, "-filter:a", filt, out_wav)


def extract_audio(input_video: str, out_wav: str, sample_rate: int = 16000) -> None:
    """Mono 16-bit PCM for speech recognition."""
    ensure_dir(str(Path(out_wav).parent))
    ffmpeg("-i", input_video, "-vn", "-ac", "1", "-ar", str(sample_rate), "-c:a", "pcm_s16le", out_wav)


def mux_audio_to_video(input_video: str, audio_wav: str, output_video: str) -> None:
    """Swap in ``audio_wav`` as the only audio track; video is stream-copied."""
    ffmpeg(
        "-i", input_video,
        "-i", audio_wav,
        "-map", "0:v:0",
        "-map", "1:a:0",
        "-c:v", "copy",
        "-shortest",
        output_video,
    )


def media_duration_seconds(path: str) -> float:
    out = run(["ffprobe", "-v", "error", "-print_format", "json", "-show_format", path])
    try:
        return float(json.loads(out)["format"]["duration"])
    except (ValueError, KeyError, TypeError):
        logger.warning("ffprobe reported no duration for %s", path)
        return 0.0


def get_video_duration_ms(input_video: str) -> int:
    return int(media_duration_seconds(input_video) * 1000)
