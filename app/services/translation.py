"""Single-word translation backed by the per-session cache."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from loguru import logger

from app.core.prompts.evaluator_prompts import TRANSLATION_SYSTEM_PROMPT
from app.services.llm_service import ChatTurn, LLMProviderError
from app.services.session_store import Session, SessionStore, normalize_word
from app.utils.exceptions import LLMServiceError, ValidationError

CONTEXT_RADIUS = 50

_SURROUNDING_QUOTES = re.compile(r"^[\"']|[\"']$")
_LEADING_BULLET = re.compile(r"^[*\-]\s*")
_PUNCTUATION = re.compile(r"[.,!?;:]")


class SupportsConstrainedCompletion(Protocol):
    async def complete_constrained(self, turns: Sequence[ChatTurn]) -> str:
        ...


@dataclass(frozen=True)
class TranslationResult:
    translation: str
    cached: bool


def context_snippet(word: str, sentence: Optional[str], radius: int = CONTEXT_RADIUS) -> Optional[str]:
    """Cut ``sentence`` down to ``radius`` characters either side of ``word``."""

    if not sentence:
        return None
    index = sentence.lower().find(word.lower())
    if index == -1:
        return None
    start = max(0, index - radius)
    end = min(len(sentence), index + len(word) + radius)
    return sentence[start:end]


def clean_translation(raw: str, word: str) -> str:
    """Reduce a model reply to a bare gloss, falling back to the word itself."""

    lines = (raw or "").splitlines()
    first = lines[0].strip() if lines else ""
    cleaned = _SURROUNDING_QUOTES.sub("", first)
    cleaned = _LEADING_BULLET.sub("", cleaned)
    cleaned = _PUNCTUATION.split(cleaned)[0].strip()
    return cleaned or first or word


class WordTranslator:
    """Translate words to English, consulting the session cache first."""

    def __init__(self, *, store: SessionStore, llm_service: SupportsConstrainedCompletion) -> None:
        self.store = store
        self.llm_service = llm_service

    def build_turns(self, word: str, sentence: Optional[str] = None) -> list[ChatTurn]:
        snippet = context_snippet(word, sentence)
        text = f'Word: "{word}"'
        if snippet is not None:
            text += f'\nContext sentence: "{snippet}"'
        return [
            {"role": "system", "content": TRANSLATION_SYSTEM_PROMPT},
            {"role": "user", "content": text},
        ]

    async def translate(self, session: Session, word: str, sentence: Optional[str] = None) -> TranslationResult:
        clean_word = (word or "").strip()
        if not clean_word:
            raise ValidationError("Missing word")

        key = normalize_word(clean_word)
        cached = self.store.get_translation(session, key)
        if cached:
            logger.debug("Translation cache hit", session_id=session.id, word=key)
            return TranslationResult(translation=cached, cached=True)

        try:
            raw = await self.llm_service.complete_constrained(self.build_turns(clean_word, sentence))
        except LLMProviderError as exc:
            logger.warning("Translation failed", session_id=session.id, error=str(exc), status=exc.status_code)
            raise LLMServiceError("Translation failed", details={"word": clean_word}) from exc

        translation = clean_translation(raw, clean_word)
        self.store.set_translation(session, key, translation)
        logger.info("Translation cached", session_id=session.id, word=key)
        return TranslationResult(translation=translation, cached=False)


__all__ = ["TranslationResult", "WordTranslator", "clean_translation", "context_snippet"]
