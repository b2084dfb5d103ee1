"""
Tests for the playback synchronizer state machine.
"""

import pytest

from dubsync.config import ReconcileStrategy
from dubsync.errors import PlaybackWarning
from dubsync.models import DubSegment
from dubsync.sync import (
    PlaybackSynchronizer,
    SyncState,
    attach_sync,
    plan_reconciliation,
    prepare_segments,
)
from fakes import FakeAudio, FakeVideo

A = "data:audio/mp3;base64,QQ=="
B = "data:audio/mp3;base64,Qg=="
C = "data:audio/mp3;base64,Qw=="

DUBS = [
    DubSegment("0:05", "0:10", "दुनिया", audio_data_uri=B),
    DubSegment("0:00", "0:05", "नमस्ते", audio_data_uri=A),
    DubSegment("0:12", "0:15", "फिर", audio_data_uri=C),
]


def make_sync(strategy=ReconcileStrategy.SPEED_UP, audio=None, warnings=None):
    video = FakeVideo()
    audio = audio or FakeAudio()
    sync = PlaybackSynchronizer(
        video,
        audio,
        prepare_segments(DUBS),
        strategy=strategy,
        on_warning=warnings.append if warnings is not None else None,
    )
    return sync, video, audio


def test_prepare_segments_sorts_and_drops_unusable():
    segs = prepare_segments(
        DUBS
        + [
            DubSegment("0:20", "0:20", "empty slot", audio_data_uri=A),
            DubSegment("0:30", "0:35", "no audio", audio_data_uri=""),
        ]
    )
    assert [(s.index, s.start_time, s.end_time) for s in segs] == [(0, 0, 5), (1, 5, 10), (2, 12, 15)]


def test_plan_reconciliation():
    """Speed-up caps at 2.5x; pause/resume holds the video for the overflow."""
    assert plan_reconciliation(5, 4).playback_rate == 1.0
    assert plan_reconciliation(5, 5).playback_rate == 1.0
    assert plan_reconciliation(5, 8).playback_rate == pytest.approx(1.6)
    assert plan_reconciliation(5, 8).video_hold == 0.0
    assert plan_reconciliation(2, 10).playback_rate == 2.5
    assert plan_reconciliation(2, 10, max_rate=3.0).playback_rate == 3.0

    pause = plan_reconciliation(5, 8, ReconcileStrategy.PAUSE_RESUME)
    assert pause.playback_rate == 1.0
    assert pause.video_hold == pytest.approx(3.0)

    assert plan_reconciliation(0, 8).playback_rate == 1.0
    assert plan_reconciliation(5, 0).playback_rate == 1.0
    assert plan_reconciliation(5, float("inf")).playback_rate == 1.0


def test_resolves_segments_and_gaps():
    """Each sample resolves to at most one segment; gaps resolve to none."""
    sync, _, _ = make_sync()
    seen = []
    for t in [0, 4.9, 5, 9.99, 10, 11.5, 12, 14.9, 15, 100]:
        sync.on_time_update(t)
        seen.append(sync.active_index)
    assert seen == [0, 0, 1, 1, None, None, 2, 2, None, None]


def test_activation_loads_audio_and_plays_after_metadata():
    sync, _, audio = make_sync()
    sync.on_time_update(1)
    assert audio.src == A
    assert sync.state is SyncState.SEEKING
    assert audio.played == []

    audio.load(duration=3.0)
    assert audio.played == [A]
    assert audio.playback_rate == 1.0
    assert sync.state is SyncState.SEGMENT_ACTIVE
    assert sync.current_text == "नमस्ते"

    audio.end()
    assert sync.state is SyncState.SEGMENT_ENDED


def test_same_segment_is_a_noop():
    sync, _, audio = make_sync()
    sync.on_time_update(1)
    audio.load(duration=3.0)
    handler = audio.on_ended
    sync.on_time_update(2)
    sync.on_time_update(3)
    assert audio.played == [A]
    assert audio.on_ended is handler


def test_leaving_a_window_does_not_stop_audio():
    sync, _, audio = make_sync()
    sync.on_time_update(9)
    audio.load(duration=3.0)
    pauses = audio.pause_count
    sync.on_time_update(10.5)
    assert sync.state is SyncState.IDLE
    assert audio.pause_count == pauses
    assert audio.src == B


def test_speed_up_strategy_sets_rate():
    """An 8s clip in a 5s slot plays at 1.6x without touching the video."""
    sync, video, audio = make_sync()
    sync.on_time_update(0)
    audio.load(duration=8.0)
    assert audio.playback_rate == pytest.approx(1.6)
    assert 8.0 / audio.playback_rate <= 5.0
    assert video.events == []


def test_speed_up_rate_is_capped():
    sync, _, audio = make_sync()
    sync.on_time_update(12)
    audio.load(duration=30.0)
    assert audio.playback_rate == 2.5


def test_pause_resume_strategy_holds_video_until_audio_ends():
    """Video pauses at the slot end and resumes only after the clip ends."""
    sync, video, audio = make_sync(strategy=ReconcileStrategy.PAUSE_RESUME)
    sync.on_time_update(0)
    audio.load(duration=8.0)
    assert audio.playback_rate == 1.0
    assert sync.plan.video_hold == pytest.approx(3.0)

    for t in [1, 2, 3, 4, 4.9]:
        sync.on_time_update(t)
    assert video.events == []

    # slot over, clip still playing: hold instead of switching to segment 1
    sync.on_time_update(5.0)
    assert video.events == ["pause"]
    assert sync.video_held
    assert audio.src == A
    assert sync.active_index == 0

    audio.end()
    assert video.events == ["pause", "play"]
    assert not sync.video_held

    sync.on_time_update(5.1)
    assert sync.active_index == 1
    assert audio.src == B


def test_pause_resume_does_not_hold_short_clips():
    sync, video, audio = make_sync(strategy=ReconcileStrategy.PAUSE_RESUME)
    sync.on_time_update(0)
    audio.load(duration=3.0)
    audio.end()
    sync.on_time_update(5)
    assert video.events == []
    assert sync.active_index == 1


def test_stale_load_never_plays():
    """A load finishing after a newer activation is discarded."""
    sync, _, audio = make_sync()
    sync.on_time_update(1)
    stale_loaded = audio.on_loaded_metadata
    stale_ended = audio.on_ended

    sync.on_time_update(6)
    assert audio.src == B

    audio.duration = 3.0
    stale_loaded()
    stale_ended()
    assert audio.played == []
    assert sync.state is SyncState.SEEKING

    audio.load(duration=3.0)
    assert audio.played == [B]


def test_blocked_autoplay_degrades_gracefully():
    """play() failures warn and never freeze the video."""
    warnings = []
    audio = FakeAudio(block_play=True)
    sync, video, _ = make_sync(strategy=ReconcileStrategy.PAUSE_RESUME, audio=audio, warnings=warnings)
    sync.on_time_update(0)
    audio.load(duration=8.0)

    assert len(warnings) == 1
    assert isinstance(warnings[0], PlaybackWarning)
    assert sync.state is SyncState.SEGMENT_ENDED
    sync.on_time_update(5)
    assert "pause" not in video.events
    assert sync.active_index == 1


def test_audio_error_releases_held_video():
    warnings = []
    sync, video, audio = make_sync(strategy=ReconcileStrategy.PAUSE_RESUME, warnings=warnings)
    sync.on_time_update(0)
    audio.load(duration=8.0)
    sync.on_time_update(5)
    assert video.paused

    audio.on_error()
    assert not video.paused
    assert len(warnings) == 1


def test_seek_replays_segment_and_releases_hold():
    sync, video, audio = make_sync(strategy=ReconcileStrategy.PAUSE_RESUME)
    sync.on_time_update(0)
    audio.load(duration=8.0)
    sync.on_time_update(5)
    assert sync.video_held

    sync.on_seeked(2)
    assert not sync.video_held
    assert video.events == ["pause", "play"]
    assert sync.active_index == 0
    assert sync.state is SyncState.SEEKING
    audio.load(duration=3.0)
    assert audio.played == [A, A]


def test_close_stops_audio_and_ignores_events():
    sync, _, audio = make_sync()
    sync.on_time_update(0)
    pending = audio.on_loaded_metadata
    sync.close()

    assert audio.on_loaded_metadata is None
    assert audio.pause_count >= 1
    pending()
    sync.on_time_update(6)
    assert audio.played == []
    assert audio.src == A


def test_attach_and_detach():
    video, audio = FakeVideo(), FakeAudio()
    detach = attach_sync(video, audio, DUBS)
    assert video.muted
    assert len(video.listeners["timeupdate"]) == 1

    video.emit("timeupdate", 6)
    assert audio.src == B
    video.emit("seeked", 1)
    assert audio.src == A

    detach()
    detach()
    assert not video.muted
    assert video.listeners["timeupdate"] == []
    assert video.listeners["seeked"] == []
    video.emit("timeupdate", 13)
    assert audio.src == A


def test_attach_without_segments_leaves_video_audible():
    video, audio = FakeVideo(), FakeAudio()
    detach = attach_sync(video, audio, [])
    video.emit("timeupdate", 3)
    assert not video.muted
    assert audio.src == ""
    detach()


def test_held_video_ignores_time_updates():
    """A timeupdate fired by the hold's own pause() must not switch segments."""
    video, audio = FakeVideo(emit_on_state_change=True), FakeAudio()
    detach = attach_sync(video, audio, DUBS, strategy=ReconcileStrategy.PAUSE_RESUME)
    sync = detach.synchronizer

    video.emit("timeupdate", 0)
    audio.load(duration=8.0)
    pauses = audio.pause_count

    video.emit("timeupdate", 5.0)
    video.emit("timeupdate", 5.0)
    assert sync.video_held
    assert audio.src == A
    assert audio.pause_count == pauses
    assert sync.active_index == 0

    # resuming fires timeupdate too; now the next slot takes over
    audio.end()
    assert not sync.video_held
    assert audio.src == B
    audio.load(duration=3.0)
    assert audio.played == [A, B]
    detach()


def test_detach_resumes_held_video():
    video, audio = FakeVideo(emit_on_state_change=True), FakeAudio()
    detach = attach_sync(video, audio, DUBS, strategy=ReconcileStrategy.PAUSE_RESUME)
    video.emit("timeupdate", 0)
    audio.load(duration=8.0)
    video.emit("timeupdate", 5.0)
    assert video.paused

    detach()
    assert not video.paused
    assert video.events == ["pause", "play"]
    assert audio.src == A


def test_blocked_autoplay_unmutes_source_video():
    """With dub audio blocked the original soundtrack is heard instead."""
    video, audio = FakeVideo(), FakeAudio(block_play=True)
    detach = attach_sync(video, audio, DUBS)
    assert video.muted

    video.emit("timeupdate", 0)
    audio.load(duration=3.0)
    assert not video.muted

    audio.block_play = False
    video.emit("timeupdate", 6)
    audio.load(duration=3.0)
    assert audio.played == [B]
    assert video.muted

    detach()
    assert not video.muted
