"""
Runtime settings read from the environment (and an optional .env file).
"""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv


class ReconcileStrategy(str, Enum):
    """How a dub clip longer than its video slot is made to fit."""

    SPEED_UP = "speed-up"
    PAUSE_RESUME = "pause-resume"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def load_env() -> None:
    """Load .env from the project root if present, else from the CWD."""
    project_root = Path(__file__).parent.parent.parent
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()


@dataclass
class Settings:
    openai_api_key: str | None = None
    google_tts_api_key: str | None = None
    tts_provider: str = "google"
    whisper_model: str = "whisper-1"
    translate_model: str = "gpt-4o-mini"
    tts_model: str = "gpt-4o-mini-tts"
    tts_voice: str = "alloy"
    generation_timeout: float = 60.0
    max_concurrent: int = 5
    max_playback_rate: float = 2.5
    reconcile_strategy: ReconcileStrategy = ReconcileStrategy.SPEED_UP
    store_dir: str = ".dubsync"
    workdir: str = ".work"

    @classmethod
    def from_env(cls) -> "Settings":
        provider = os.getenv("DUBSYNC_TTS_PROVIDER", "google").strip().lower()
        if provider not in ("google", "openai"):
            raise ValueError(f"DUBSYNC_TTS_PROVIDER must be 'google' or 'openai', got {provider!r}")
        strategy_raw = os.getenv("DUBSYNC_RECONCILE_STRATEGY", ReconcileStrategy.SPEED_UP.value)
        try:
            strategy = ReconcileStrategy(strategy_raw.strip().lower())
        except ValueError:
            raise ValueError(
                f"DUBSYNC_RECONCILE_STRATEGY must be one of "
                f"{[s.value for s in ReconcileStrategy]}, got {strategy_raw!r}"
            ) from None
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            google_tts_api_key=os.getenv("GOOGLE_TTS_API_KEY"),
            tts_provider=provider,
            whisper_model=os.getenv("DUBSYNC_WHISPER_MODEL", "whisper-1"),
            translate_model=os.getenv("DUBSYNC_TRANSLATE_MODEL", "gpt-4o-mini"),
            tts_model=os.getenv("DUBSYNC_TTS_MODEL", "gpt-4o-mini-tts"),
            tts_voice=os.getenv("DUBSYNC_TTS_VOICE", "alloy"),
            generation_timeout=_env_float("DUBSYNC_GENERATION_TIMEOUT", 60.0),
            max_concurrent=_env_int("DUBSYNC_MAX_CONCURRENT", 5),
            max_playback_rate=_env_float("DUBSYNC_MAX_PLAYBACK_RATE", 2.5),
            reconcile_strategy=strategy,
            store_dir=os.getenv("DUBSYNC_STORE_DIR", ".dubsync"),
            workdir=os.getenv("DUBSYNC_WORKDIR", ".work"),
        )
