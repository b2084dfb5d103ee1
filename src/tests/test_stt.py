"""
Tests for whole-second quantization of model segments.
"""

from dubsync.stt import quantize_segments


def test_quantize_rounds_to_seconds():
    raw = [(0.2, 4.6, " नमस्ते "), (4.6, 9.8, "दुनिया")]
    assert quantize_segments(raw) == [
        {"start": "0:00", "end": "0:05", "text": "नमस्ते"},
        {"start": "0:05", "end": "0:10", "text": "दुनिया"},
    ]


def test_collapsed_segments_merge_into_previous():
    raw = [(0.0, 3.2, "one"), (3.2, 3.4, "two"), (3.4, 7.0, "three")]
    assert quantize_segments(raw) == [
        {"start": "0:00", "end": "0:03", "text": "one two"},
        {"start": "0:03", "end": "0:07", "text": "three"},
    ]


def test_blank_and_leading_zero_length():
    raw = [(0.1, 0.3, "hi"), (0.5, 2.0, "  "), (1.0, 2.4, "there")]
    assert quantize_segments(raw) == [
        {"start": "0:00", "end": "0:01", "text": "hi"},
        {"start": "0:01", "end": "0:02", "text": "there"},
    ]


def test_long_videos_use_minutes():
    raw = [(59.6, 125.0, "later")]
    assert quantize_segments(raw) == [{"start": "1:00", "end": "2:05", "text": "later"}]
