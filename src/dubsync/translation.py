"""
Translation with GPT: transcript segments and quiz question/answer sets.
"""

import json
import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any

from openai import AsyncOpenAI

from .errors import GenerationError

logger = logging.getLogger("dubsync")

SEGMENT_SYSTEM_PROMPT = (
    "You are an expert transcriber and translator for educational video. "
    "Translate every line into {language}. "
    "If a line is already in {language}, return it in {language} anyway; never return an empty line. "
    "Use the native script of {language} (for example Devanagari for Hindi, Tamil script for Tamil), "
    "never a Latin transliteration. "
    "Keep the number and order of lines exactly the same; each line is one spoken sentence. "
    "Return ONLY a JSON array of strings."
)


def _parse_json_array(content: str) -> list:
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        start = content.find("[")
        end = content.rfind("]")
        if start == -1 or end == -1:
            raise GenerationError("Translation model did not return valid JSON") from None
        try:
            data = json.loads(content[start : end + 1])
        except json.JSONDecodeError:
            raise GenerationError("Translation model did not return valid JSON") from None
    if not isinstance(data, list):
        raise GenerationError("Translation model did not return a JSON array")
    return data


async def translate_segments(
    client: AsyncOpenAI,
    texts: list[str],
    target_language: str,
    model: str = "gpt-4o-mini",
) -> list[str]:
    """Translate segment texts into ``target_language``, preserving count and order."""
    if not texts:
        return []

    logger.info(f"Translating {len(texts)} segments to {target_language} using {model}...")
    chat = await client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": SEGMENT_SYSTEM_PROMPT.format(language=target_language)},
            {"role": "user", "content": json.dumps(texts, ensure_ascii=False)},
        ],
        temperature=0.3,
    )
    lines = _parse_json_array(chat.choices[0].message.content or "")
    if len(lines) != len(texts):
        raise GenerationError(
            f"Segment count changed during translation: {len(texts)} -> {len(lines)}"
        )
    return [str(line).strip() for line in lines]


class LRUCache:
    """Bounded mapping with least-recently-used eviction and an optional TTL."""

    def __init__(
        self,
        maxsize: int = 256,
        ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        self.maxsize = maxsize
        self.ttl = ttl
        self._clock = clock
        self._data: OrderedDict[Hashable, tuple[float, Any]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: Hashable, default: Any = None) -> Any:
        item = self._data.get(key)
        if item is None:
            return default
        stored_at, value = item
        if self.ttl is not None and self._clock() - stored_at > self.ttl:
            del self._data[key]
            return default
        self._data.move_to_end(key)
        return value

    def set(self, key: Hashable, value: Any) -> None:
        self._data[key] = (self._clock(), value)
        self._data.move_to_end(key)
        while len(self._data) > self.maxsize:
            self._data.popitem(last=False)


@dataclass
class TranslatedQuestion:
    question_text: str
    answers: dict[str, str]  # answer id -> text


class QuestionTranslator:
    """Translates a quiz question and its answers, memoized per (question, language)."""

    def __init__(self, client: AsyncOpenAI, cache: LRUCache, model: str = "gpt-4o-mini") -> None:
        self.client = client
        self.cache = cache
        self.model = model

    async def translate(
        self,
        question_id: str,
        question: str,
        answers: list[dict[str, str]],
        target_language: str,
    ) -> TranslatedQuestion:
        original = TranslatedQuestion(
            question_text=question, answers={a["id"]: a["text"] for a in answers}
        )
        if target_language.strip().lower() == "english":
            return original

        key = (question_id, target_language)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        payload = {"question": question, "answers": answers}
        try:
            chat = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "system",
                        "content": (
                            "You are a translation expert specializing in STEM terminology. "
                            f"Translate the JSON object from English to {target_language}. "
                            "Keep every answer id unchanged. Respond with a JSON object of the form "
                            '{"translatedQuestion": str, "translatedAnswers": [{"id": str, "text": str}]}. '
                            "Return ONLY the JSON object."
                        ),
                    },
                    {"role": "user", "content": json.dumps(payload, ensure_ascii=False)},
                ],
                temperature=0.1,
                response_format={"type": "json_object"},
            )
            data = json.loads(chat.choices[0].message.content or "")
            translated = TranslatedQuestion(
                question_text=str(data["translatedQuestion"]),
                answers={
                    **original.answers,
                    **{str(a["id"]): str(a["text"]) for a in data["translatedAnswers"]},
                },
            )
        except Exception as e:
            logger.error(f"Question translation failed ({question_id}, {target_language}): {e}")
            return original

        self.cache.set(key, translated)
        return translated
