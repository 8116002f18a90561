"""LLM-backed judges run against a session transcript."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional, Protocol, Sequence

from loguru import logger

from app.core.prompts.evaluator_prompts import (
    FEEDBACK_SYSTEM_PROMPT,
    FEEDBACK_USER_PROMPT,
    TASK_CHECK_SYSTEM_PROMPT,
)
from app.services.llm_service import ChatTurn, LLMProviderError
from app.utils.parsing import tolerant_decode

TASK_CHECK_WINDOW = 20


class SupportsCompletion(Protocol):
    """Protocol satisfied by the LLM service."""

    async def complete(self, turns: Sequence[ChatTurn], *, temperature: Optional[float] = ...) -> str:
        ...


class TranscriptLine(Protocol):
    role: str
    content: str


@dataclass(frozen=True)
class FeedbackResult:
    """Outcome of a grammar and naturalness check."""

    status: Literal["ok", "corrected"]
    corrected: str = ""


FEEDBACK_OK = FeedbackResult(status="ok", corrected="")


def _feedback_from_payload(payload: Dict[str, Any]) -> FeedbackResult:
    status = payload.get("status")
    if status not in ("ok", "corrected"):
        raise ValueError(f"unknown feedback status {status!r}")
    corrected = payload.get("corrected") or ""
    if not isinstance(corrected, str):
        raise TypeError("corrected must be a string")
    return FeedbackResult(status=status, corrected=corrected.strip())


def _completed_from_payload(payload: Dict[str, Any]) -> bool:
    completed = payload.get("completed")
    if not isinstance(completed, bool):
        raise TypeError("completed must be a boolean")
    return completed


class FeedbackEvaluator:
    """Judge the learner's last message; any failure means "ok"."""

    def __init__(self, *, llm_service: SupportsCompletion) -> None:
        self.llm_service = llm_service

    def build_turns(self, language: str, message: str, previous_assistant: str = "") -> list[ChatTurn]:
        return [
            {"role": "system", "content": FEEDBACK_SYSTEM_PROMPT.format(language=language)},
            {
                "role": "user",
                "content": FEEDBACK_USER_PROMPT.format(
                    previous=previous_assistant.strip() or "(none)", message=message.strip()
                ),
            },
        ]

    async def evaluate(self, language: str, message: str, previous_assistant: str = "") -> FeedbackResult:
        turns = self.build_turns(language, message, previous_assistant)
        try:
            reply = await self.llm_service.complete(turns)
        except LLMProviderError as exc:
            logger.warning("Feedback evaluation unavailable", error=str(exc), status=exc.status_code)
            return FEEDBACK_OK
        result = tolerant_decode(reply, _feedback_from_payload, FEEDBACK_OK, source="feedback")
        logger.debug("Feedback evaluated", status=result.status)
        return result


class TaskCompletionEvaluator:
    """Decide whether the learner fully completed the practice task.

    Only an explicit ``{"completed": true}`` counts; malformed replies and
    provider errors both resolve to ``False``.
    """

    def __init__(self, *, llm_service: SupportsCompletion, window: int = TASK_CHECK_WINDOW) -> None:
        self.llm_service = llm_service
        self.window = window

    def build_turns(
        self,
        *,
        task: str,
        language: str,
        messages: Sequence[TranscriptLine],
        scenario_title: str | None = None,
        role_guide: str | None = None,
    ) -> list[ChatTurn]:
        history = "\n".join(f"{line.role}: {line.content}" for line in list(messages)[-self.window :])
        lines = [
            f"Scenario: {scenario_title or 'Unknown'}",
            f"Role guide: {role_guide}" if role_guide else "",
            f"Target language: {language}",
            f"Task: {task}",
            "Conversation:",
            history,
        ]
        return [
            {"role": "system", "content": TASK_CHECK_SYSTEM_PROMPT},
            {"role": "user", "content": "\n".join(line for line in lines if line)},
        ]

    async def evaluate(
        self,
        *,
        task: str,
        language: str,
        messages: Sequence[TranscriptLine],
        scenario_title: str | None = None,
        role_guide: str | None = None,
    ) -> bool:
        turns = self.build_turns(
            task=task,
            language=language,
            messages=messages,
            scenario_title=scenario_title,
            role_guide=role_guide,
        )
        try:
            reply = await self.llm_service.complete(turns)
        except LLMProviderError as exc:
            logger.warning("Task check unavailable", error=str(exc), status=exc.status_code)
            return False
        completed = tolerant_decode(reply, _completed_from_payload, False, source="task_check")
        logger.debug("Task completion evaluated", completed=completed)
        return completed


__all__ = [
    "FEEDBACK_OK",
    "FeedbackEvaluator",
    "FeedbackResult",
    "SupportsCompletion",
    "TaskCompletionEvaluator",
]
