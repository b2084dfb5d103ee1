"""
Tests for segment translation, the LRU cache and quiz question translation.
"""

import asyncio
import json
from types import SimpleNamespace

import pytest

from dubsync.errors import GenerationError
from dubsync.translation import LRUCache, QuestionTranslator, translate_segments


class FakeCompletions:
    def __init__(self, contents=None, error=None):
        self.contents = list(contents or [])
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        content = self.contents.pop(0)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def fake_client(contents=None, error=None):
    completions = FakeCompletions(contents, error)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def test_translate_segments_keeps_count_and_order():
    client, completions = fake_client(['["नमस्ते", " दुनिया "]'])
    lines = asyncio.run(translate_segments(client, ["Hello", "World"], "Hindi"))
    assert lines == ["नमस्ते", "दुनिया"]
    assert "Hindi" in completions.calls[0]["messages"][0]["content"]


def test_translate_segments_accepts_wrapped_json():
    client, _ = fake_client(['Here you go:\n["एक"]\n'])
    assert asyncio.run(translate_segments(client, ["One"], "Hindi")) == ["एक"]


def test_translate_segments_rejects_count_mismatch():
    client, _ = fake_client(['["एक"]'])
    with pytest.raises(GenerationError, match="count"):
        asyncio.run(translate_segments(client, ["One", "Two"], "Hindi"))


def test_translate_segments_rejects_non_json():
    client, _ = fake_client(["no idea"])
    with pytest.raises(GenerationError):
        asyncio.run(translate_segments(client, ["One"], "Hindi"))


def test_translate_nothing_makes_no_call():
    client, completions = fake_client()
    assert asyncio.run(translate_segments(client, [], "Hindi")) == []
    assert completions.calls == []


def test_lru_cache_evicts_least_recently_used():
    cache = LRUCache(maxsize=2)
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.get("a") == 1  # "b" is now the oldest
    cache.set("c", 3)
    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3
    assert len(cache) == 2


def test_lru_cache_ttl():
    now = [0.0]
    cache = LRUCache(maxsize=4, ttl=10.0, clock=lambda: now[0])
    cache.set("k", "v")
    now[0] = 9.0
    assert cache.get("k") == "v"
    now[0] = 20.0
    assert cache.get("k", "gone") == "gone"
    assert len(cache) == 0


def test_lru_cache_rejects_bad_size():
    with pytest.raises(ValueError):
        LRUCache(maxsize=0)


ANSWERS = [{"id": "a1", "text": "Four"}, {"id": "a2", "text": "Five"}]


def test_question_translation_is_cached_per_language():
    reply = json.dumps(
        {
            "translatedQuestion": "दो और दो कितने होते हैं?",
            "translatedAnswers": [{"id": "a1", "text": "चार"}],
        },
        ensure_ascii=False,
    )
    client, completions = fake_client([reply])
    translator = QuestionTranslator(client, LRUCache())

    async def scenario():
        first = await translator.translate("q1", "What is 2+2?", ANSWERS, "Hindi")
        second = await translator.translate("q1", "What is 2+2?", ANSWERS, "Hindi")
        return first, second

    first, second = asyncio.run(scenario())
    assert first is second
    assert len(completions.calls) == 1
    assert completions.calls[0]["response_format"] == {"type": "json_object"}
    assert first.question_text == "दो और दो कितने होते हैं?"
    # answers missing from the reply keep their original text
    assert first.answers == {"a1": "चार", "a2": "Five"}


def test_english_is_returned_untouched():
    client, completions = fake_client()
    translator = QuestionTranslator(client, LRUCache())
    result = asyncio.run(translator.translate("q1", "What is 2+2?", ANSWERS, "English"))
    assert result.question_text == "What is 2+2?"
    assert result.answers == {"a1": "Four", "a2": "Five"}
    assert completions.calls == []


def test_question_translation_failure_falls_back_to_original():
    client, completions = fake_client(error=ConnectionError("rate limited"))
    cache = LRUCache()
    translator = QuestionTranslator(client, cache)
    result = asyncio.run(translator.translate("q1", "What is 2+2?", ANSWERS, "Tamil"))
    assert result.question_text == "What is 2+2?"
    assert len(completions.calls) == 1
    # failures are not cached
    assert len(cache) == 0
