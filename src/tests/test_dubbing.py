"""
Tests for dub generation and the voice table.
"""

import asyncio
import base64

import pytest

from dubsync.dubbing import generate_dub_audio
from dubsync.errors import GenerationError, ValidationError
from dubsync.models import TranscriptSegment
from dubsync.tts import DEFAULT_VOICE, clip_tts_text, from_data_uri, to_data_uri, voice_for_language
from fakes import FakeSynthesizer

SEGMENTS = [
    TranscriptSegment(start="0:00", end="0:05", text="नमस्ते"),
    TranscriptSegment(start="0:05", end="0:10", text="दुनिया"),
    TranscriptSegment(start="0:12", end="0:15", text="फिर मिलेंगे"),
]


def test_generate_dub_audio_keeps_order_and_slots():
    """One clip per segment, same order, slot bounds copied unchanged."""
    synth = FakeSynthesizer()
    dubbed = asyncio.run(generate_dub_audio(synth, SEGMENTS, "Hindi", max_concurrent=2))

    assert [(d.start, d.end, d.text) for d in dubbed] == [(s.start, s.end, s.text) for s in SEGMENTS]
    for d in dubbed:
        mime, payload = from_data_uri(d.audio_data_uri)
        assert mime == "audio/mp3"
        assert payload == f"audio:{d.text}".encode()
    assert {voice.language_code for _, voice in synth.calls} == {"hi-IN"}


def test_missing_audio_fails_whole_operation():
    """A single empty clip fails the dubbing instead of returning a partial result."""
    synth = FakeSynthesizer(empty_for={"दुनिया"})
    with pytest.raises(GenerationError, match="no audio"):
        asyncio.run(generate_dub_audio(synth, SEGMENTS, "Hindi"))


def test_synthesis_exception_becomes_generation_error():
    synth = FakeSynthesizer(error=ConnectionError("tts down"))
    with pytest.raises(GenerationError):
        asyncio.run(generate_dub_audio(synth, SEGMENTS, "Hindi"))


def test_timeout_becomes_generation_error():
    synth = FakeSynthesizer(delay=1.0)
    with pytest.raises(GenerationError, match="timed out"):
        asyncio.run(generate_dub_audio(synth, SEGMENTS, "Hindi", timeout=0.01))


def test_empty_input_is_rejected():
    with pytest.raises(ValidationError):
        asyncio.run(generate_dub_audio(FakeSynthesizer(), [], "Hindi"))


def test_voice_for_language_is_case_insensitive_and_total():
    """Lookup matches names and codes; unknown languages fall back to the default."""
    assert voice_for_language("Hindi").name == "hi-IN-Neural2-A"
    assert voice_for_language("  HINDI ").language_code == "hi-IN"
    assert voice_for_language("hi").language_code == "hi-IN"
    assert voice_for_language("Tamil").name == "ta-IN-Wavenet-B"
    assert voice_for_language("bengali").language_code == "bn-IN"
    assert voice_for_language("Kannada").language_code == "kn-IN"
    assert voice_for_language("te").language_code == "te-IN"
    assert voice_for_language("English").language_code == "en-IN"
    assert voice_for_language("Klingon") == DEFAULT_VOICE
    assert voice_for_language("") == DEFAULT_VOICE
    assert voice_for_language(None) == DEFAULT_VOICE


def test_data_uri_helpers():
    uri = to_data_uri(b"\x00\x01", "audio/wav")
    assert uri == "data:audio/wav;base64," + base64.b64encode(b"\x00\x01").decode()
    assert from_data_uri(uri) == ("audio/wav", b"\x00\x01")
    with pytest.raises(ValueError):
        from_data_uri("https://example.com/a.mp3")


def test_long_text_is_truncated():
    assert len(clip_tts_text("x" * 5000)) == 4000
    assert clip_tts_text("short") == "short"
