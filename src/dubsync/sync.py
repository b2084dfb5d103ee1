"""
Playback synchronizer: keeps dub audio clips in step with a muted source video.

The synchronizer is driven entirely by the video element's time-update
notifications. On every sample it resolves which dub segment owns the current
position, loads that segment's clip into the audio element, and reconciles the
clip's natural duration with the segment's video slot once the duration is
known (either by raising the playback rate or by holding the video until the
clip finishes).

Each audio load is tagged with the identity of the segment it was started for;
metadata/ended/error callbacks that arrive for a segment that is no longer the
loaded one are ignored.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Protocol

from .config import ReconcileStrategy
from .errors import PlaybackWarning
from .models import DubSegment
from .timecode import parse_timecode, segment_index_at

logger = logging.getLogger("dubsync")

DEFAULT_MAX_RATE = 2.5


class VideoElement(Protocol):
    current_time: float
    paused: bool
    muted: bool

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def add_event_listener(self, name: str, callback: Callable[[], None]) -> None: ...

    def remove_event_listener(self, name: str, callback: Callable[[], None]) -> None: ...


class AudioElement(Protocol):
    src: str
    duration: float
    playback_rate: float
    on_loaded_metadata: Callable[[], None] | None
    on_ended: Callable[[], None] | None
    on_error: Callable[[], None] | None

    def play(self) -> None: ...

    def pause(self) -> None: ...


class SyncState(Enum):
    IDLE = "idle"
    SEEKING = "seeking"
    SEGMENT_ACTIVE = "segment_active"
    SEGMENT_ENDED = "segment_ended"


@dataclass(frozen=True)
class TimedSegment:
    index: int
    start_time: int
    end_time: int
    text: str
    audio_data_uri: str

    @property
    def key(self) -> tuple[int, int]:
        return (self.index, self.start_time)

    @property
    def slot_duration(self) -> int:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class ReconcilePlan:
    playback_rate: float
    video_hold: float  # seconds the video must wait for the clip


def plan_reconciliation(
    slot_duration: float,
    audio_duration: float,
    strategy: ReconcileStrategy = ReconcileStrategy.SPEED_UP,
    max_rate: float = DEFAULT_MAX_RATE,
) -> ReconcilePlan:
    """Fit a clip of ``audio_duration`` into a slot of ``slot_duration`` seconds."""
    if slot_duration <= 0 or not audio_duration or audio_duration <= slot_duration:
        return ReconcilePlan(playback_rate=1.0, video_hold=0.0)
    if audio_duration == float("inf"):
        # streaming/unknown length
        return ReconcilePlan(playback_rate=1.0, video_hold=0.0)
    if strategy is ReconcileStrategy.PAUSE_RESUME:
        return ReconcilePlan(playback_rate=1.0, video_hold=audio_duration - slot_duration)
    return ReconcilePlan(playback_rate=min(audio_duration / slot_duration, max_rate), video_hold=0.0)


def prepare_segments(dub_segments: Iterable[DubSegment]) -> list[TimedSegment]:
    """Parse timecodes once and sort by start; unusable segments are dropped."""
    parsed = []
    for seg in dub_segments:
        start, end = parse_timecode(seg.start), parse_timecode(seg.end)
        if not seg.audio_data_uri:
            logger.warning("Dub segment %s-%s has no audio; skipping", seg.start, seg.end)
            continue
        if end <= start:
            logger.warning("Dub segment %s-%s has an empty slot; skipping", seg.start, seg.end)
            continue
        parsed.append((start, end, seg))
    parsed.sort(key=lambda p: p[0])
    return [
        TimedSegment(
            index=i,
            start_time=start,
            end_time=end,
            text=seg.text,
            audio_data_uri=seg.audio_data_uri,
        )
        for i, (start, end, seg) in enumerate(parsed)
    ]


class PlaybackSynchronizer:
    def __init__(
        self,
        video: VideoElement,
        audio: AudioElement,
        segments: list[TimedSegment],
        *,
        strategy: ReconcileStrategy = ReconcileStrategy.SPEED_UP,
        max_rate: float = DEFAULT_MAX_RATE,
        on_warning: Callable[[PlaybackWarning], None] | None = None,
    ) -> None:
        self.video = video
        self.audio = audio
        self.segments = segments
        self.strategy = strategy
        self.max_rate = max_rate
        self.on_warning = on_warning
        self._starts = [s.start_time for s in segments]
        self._ends = [s.end_time for s in segments]
        self._resolved: TimedSegment | None = None  # owner of the last sample
        self._loaded: TimedSegment | None = None  # segment whose clip is in the audio element
        self._phase = SyncState.IDLE
        self._plan: ReconcilePlan | None = None
        self._video_held = False
        self._closed = False
        self._unmuted_for_fallback = False

    @property
    def state(self) -> SyncState:
        if self._resolved is None:
            return SyncState.IDLE
        return self._phase

    @property
    def active_index(self) -> int | None:
        return self._resolved.index if self._resolved is not None else None

    @property
    def current_text(self) -> str:
        return self._resolved.text if self._resolved is not None else ""

    @property
    def plan(self) -> ReconcilePlan | None:
        return self._plan

    @property
    def video_held(self) -> bool:
        return self._video_held

    @property
    def closed(self) -> bool:
        return self._closed

    def on_time_update(self, t: float) -> None:
        if self._closed:
            return
        if self._video_held:
            # a paused element may still fire timeupdate; see _release_video
            return

        if self._should_hold(t):
            logger.debug("Holding video at %.2fs until segment %d audio ends", t, self._loaded.index)
            self._video_held = True
            self.video.pause()
            return

        i = segment_index_at(self._starts, self._ends, t)
        if i is None:
            # trailing audio is left to finish on its own
            self._resolved = None
            return

        seg = self.segments[i]
        self._resolved = seg
        if self._loaded is not None and self._loaded.key == seg.key:
            return
        self._activate(seg)

    def on_seeked(self, t: float) -> None:
        """Position jumped; the slot under ``t`` replays from its start."""
        if self._closed:
            return
        self._unload()
        self._resolved = None
        self._release_video()
        self.on_time_update(t)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._release_video()
        self._unload()
        self._resolved = None
        logger.debug("Synchronizer closed")

    def _should_hold(self, t: float) -> bool:
        return (
            self.strategy is ReconcileStrategy.PAUSE_RESUME
            and not self._video_held
            and self._loaded is not None
            and self._phase is SyncState.SEGMENT_ACTIVE
            and t >= self._loaded.end_time
        )

    def _unload(self) -> None:
        self.audio.on_loaded_metadata = None
        self.audio.on_ended = None
        self.audio.on_error = None
        self.audio.pause()
        self._loaded = None
        self._plan = None
        self._phase = SyncState.IDLE

    def _activate(self, seg: TimedSegment) -> None:
        logger.debug("Activating segment %d (%ds-%ds)", seg.index, seg.start_time, seg.end_time)
        self._unload()
        self._loaded = seg
        self._phase = SyncState.SEEKING
        self.audio.on_loaded_metadata = partial(self._handle_loaded, seg.key)
        self.audio.on_ended = partial(self._handle_ended, seg.key)
        self.audio.on_error = partial(self._handle_error, seg.key)
        self.audio.playback_rate = 1.0
        self.audio.src = seg.audio_data_uri

    def _is_stale(self, key: tuple[int, int]) -> bool:
        if self._closed or self._loaded is None or self._loaded.key != key:
            logger.debug("Ignoring stale audio event for segment %s", key[0])
            return True
        return False

    def _handle_loaded(self, key: tuple[int, int]) -> None:
        if self._is_stale(key):
            return
        seg = self._loaded
        plan = plan_reconciliation(
            seg.slot_duration, self.audio.duration or 0.0, self.strategy, self.max_rate
        )
        self._plan = plan
        if plan.playback_rate != 1.0:
            logger.debug(
                "Segment %d audio %.2fs > slot %ds; playing at %.2fx",
                seg.index,
                self.audio.duration,
                seg.slot_duration,
                plan.playback_rate,
            )
        self.audio.playback_rate = plan.playback_rate
        try:
            self.audio.play()
        except Exception as e:
            self._phase = SyncState.SEGMENT_ENDED
            self._warn(f"Audio play failed for segment {seg.index}: {e}")
            self._fall_back_to_source_audio()
            self._release_video()
            return
        if self._unmuted_for_fallback:
            self.video.muted = True
            self._unmuted_for_fallback = False
        self._phase = SyncState.SEGMENT_ACTIVE

    def _handle_ended(self, key: tuple[int, int]) -> None:
        if self._is_stale(key):
            return
        self._phase = SyncState.SEGMENT_ENDED
        self._release_video()

    def _handle_error(self, key: tuple[int, int]) -> None:
        if self._is_stale(key):
            return
        self._phase = SyncState.SEGMENT_ENDED
        self._warn(f"Audio element error for segment {self._loaded.index}")
        self._release_video()

    def _fall_back_to_source_audio(self) -> None:
        """Dub audio is blocked; let the video's own soundtrack through."""
        if self.video.muted:
            self.video.muted = False
            self._unmuted_for_fallback = True

    def _release_video(self) -> None:
        if not self._video_held:
            return
        self._video_held = False
        try:
            self.video.play()
        except Exception as e:
            self._warn(f"Could not resume video: {e}")

    def _warn(self, message: str) -> None:
        logger.warning(message)
        if self.on_warning is not None:
            self.on_warning(PlaybackWarning(message))


def attach_sync(
    video: VideoElement,
    audio: AudioElement,
    dub_segments: Iterable[DubSegment],
    *,
    strategy: ReconcileStrategy = ReconcileStrategy.SPEED_UP,
    max_rate: float = DEFAULT_MAX_RATE,
    on_warning: Callable[[PlaybackWarning], None] | None = None,
) -> Callable[[], None]:
    """Attach a synchronizer to a video/audio element pair; returns ``detach``."""
    sync = PlaybackSynchronizer(
        video,
        audio,
        prepare_segments(dub_segments),
        strategy=strategy,
        max_rate=max_rate,
        on_warning=on_warning,
    )
    was_muted = video.muted
    if sync.segments:
        video.muted = True

    def on_time_update() -> None:
        sync.on_time_update(video.current_time)

    def on_seeked() -> None:
        sync.on_seeked(video.current_time)

    video.add_event_listener("timeupdate", on_time_update)
    video.add_event_listener("seeked", on_seeked)

    def detach() -> None:
        if sync.closed:
            return
        video.remove_event_listener("timeupdate", on_time_update)
        video.remove_event_listener("seeked", on_seeked)
        sync.close()
        video.muted = was_muted

    detach.synchronizer = sync
    return detach
