"""Bounded content generators for practice material."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

from loguru import logger

from app.core.prompts.evaluator_prompts import (
    EXAMPLES_SYSTEM_PROMPT,
    EXAMPLES_USER_PROMPT,
    SCENE_SYSTEM_PROMPT,
    SCENE_USER_PROMPT,
    SUGGESTION_SYSTEM_PROMPT,
    SUGGESTION_USER_PROMPT,
    TASK_GENERATION_SYSTEM_PROMPT,
    VOCAB_LIST_SYSTEM_PROMPT,
)
from app.services.llm_service import ChatTurn, LLMProviderError
from app.utils.exceptions import LLMServiceError
from app.utils.parsing import first_line, tolerant_decode

MIN_VOCAB_ITEMS = 5
MAX_VOCAB_ITEMS = 30
VOCAB_AVOID_WINDOW = 60
TASK_AVOID_WINDOW = 8
SUGGESTION_HISTORY_WINDOW = 6
SCENE_TEMPERATURE = 1.0
DEFAULT_LEARNER_ROLE = "guest/customer"


class SupportsCompletion(Protocol):
    async def complete(self, turns: Sequence[ChatTurn], *, temperature: Optional[float] = ...) -> str:
        ...


class TranscriptLine(Protocol):
    role: str
    content: str


@dataclass(frozen=True)
class VocabItem:
    word: str
    translation: str


def clamp_vocab_count(count: float) -> int:
    """Clamp a requested list size into the supported range."""

    if math.isnan(count):
        return MIN_VOCAB_ITEMS
    if math.isinf(count):
        return MAX_VOCAB_ITEMS if count > 0 else MIN_VOCAB_ITEMS
    return max(MIN_VOCAB_ITEMS, min(MAX_VOCAB_ITEMS, math.floor(count)))


def _avoid_list(values: Optional[Sequence[str]], window: int) -> str:
    if not values:
        return "None"
    return "\n".join(f"- {value}" for value in list(values)[-window:])


def _vocab_items(payload: Dict[str, Any]) -> List[VocabItem]:
    items = payload.get("items")
    if not isinstance(items, list):
        raise TypeError("items must be a list")
    return [
        VocabItem(word=item["word"], translation=item["translation"])
        for item in items
        if isinstance(item, dict) and isinstance(item.get("word"), str) and isinstance(item.get("translation"), str)
    ]


def _example_lines(payload: Dict[str, Any]) -> List[str]:
    lines = payload.get("lines")
    if not isinstance(lines, list):
        raise TypeError("lines must be a list")
    return [line for line in lines if isinstance(line, str)]


class ContentGenerator:
    """Generate tasks, vocabulary, hints, scenes and example sentences.

    None of these touch session state. Provider failures surface as
    :class:`LLMServiceError`; malformed JSON resolves to an empty result.
    """

    def __init__(self, *, llm_service: SupportsCompletion) -> None:
        self.llm_service = llm_service

    async def _complete(self, turns: List[ChatTurn], *, purpose: str, temperature: Optional[float] = None) -> str:
        try:
            return await self.llm_service.complete(turns, temperature=temperature)
        except LLMProviderError as exc:
            logger.warning("Generation failed", purpose=purpose, error=str(exc), status=exc.status_code)
            raise LLMServiceError(f"Failed to generate {purpose}") from exc

    async def generate_task(
        self,
        *,
        scenario_title: str,
        language: str,
        scenario_subtitle: Optional[str] = None,
        role_guide: Optional[str] = None,
        user_role: Optional[str] = None,
        difficulty: Optional[str] = None,
        previous_tasks: Optional[Sequence[str]] = None,
    ) -> str:
        lines = [
            f"Scenario: {scenario_title}",
            f"Scenario detail: {scenario_subtitle}" if scenario_subtitle else "",
            f"Role guide: {role_guide}" if role_guide else "",
            f"Learner role: {user_role or DEFAULT_LEARNER_ROLE}",
            f"Difficulty: {difficulty}" if difficulty else "",
            f"Avoid tasks:\n{_avoid_list(previous_tasks, TASK_AVOID_WINDOW)}",
        ]
        turns = [
            {"role": "system", "content": TASK_GENERATION_SYSTEM_PROMPT},
            {"role": "user", "content": "\n".join(line for line in lines if line)},
        ]
        task = first_line(await self._complete(turns, purpose="task"))
        logger.info("Task generated", scenario=scenario_title, language=language)
        return task

    async def generate_vocab_list(
        self,
        *,
        language: str,
        count: float,
        existing: Optional[Sequence[str]] = None,
        scenario_title: Optional[str] = None,
        scenario_detail: Optional[str] = None,
        role_guide: Optional[str] = None,
        user_role: Optional[str] = None,
    ) -> List[VocabItem]:
        safe_count = clamp_vocab_count(count)
        lines = [
            f"Target language: {language}",
            f"Scenario: {scenario_title}" if scenario_title else "",
            f"Scenario detail: {scenario_detail}" if scenario_detail else "",
            f"Role guide: {role_guide}" if role_guide else "",
            f"Learner role: {user_role}" if user_role else "",
            f"Avoid words:\n{_avoid_list(existing, VOCAB_AVOID_WINDOW)}",
        ]
        turns = [
            {"role": "system", "content": VOCAB_LIST_SYSTEM_PROMPT.format(count=safe_count)},
            {"role": "user", "content": "\n".join(line for line in lines if line)},
        ]
        reply = await self._complete(turns, purpose="vocabulary")
        items = tolerant_decode(reply, _vocab_items, [], source="vocab_list")[:safe_count]
        logger.info("Vocabulary list generated", language=language, requested=safe_count, returned=len(items))
        return items

    async def generate_suggestion(
        self,
        *,
        language: str,
        scenario: Optional[str],
        messages: Optional[Sequence[TranscriptLine]] = None,
    ) -> str:
        if messages:
            history = "\n".join(
                f"{line.role}: {line.content}" for line in list(messages)[-SUGGESTION_HISTORY_WINDOW:]
            )
        else:
            history = "No conversation started yet"
        turns = [
            {"role": "system", "content": SUGGESTION_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": SUGGESTION_USER_PROMPT.format(language=language, scenario=scenario, history=history),
            },
        ]
        return first_line(await self._complete(turns, purpose="suggestion"))

    async def generate_scene(self, *, scenario: str, language: str) -> str:
        turns = [
            {"role": "system", "content": SCENE_SYSTEM_PROMPT},
            {"role": "user", "content": SCENE_USER_PROMPT.format(scenario=scenario)},
        ]
        reply = await self._complete(turns, purpose="scene", temperature=SCENE_TEMPERATURE)
        logger.debug("Scene generated", scenario=scenario, language=language)
        return first_line(reply) or reply.strip()

    async def generate_examples(self, *, language: str, word: str) -> List[str]:
        turns = [
            {"role": "system", "content": EXAMPLES_SYSTEM_PROMPT},
            {"role": "user", "content": EXAMPLES_USER_PROMPT.format(language=language, word=word)},
        ]
        reply = await self._complete(turns, purpose="examples")
        return tolerant_decode(reply, _example_lines, [], source="examples")


__all__ = [
    "ContentGenerator",
    "MAX_VOCAB_ITEMS",
    "MIN_VOCAB_ITEMS",
    "VocabItem",
    "clamp_vocab_count",
]
