"""In-memory registry of roleplay chat sessions."""
from __future__ import annotations

import json
import threading
import unicodedata
import uuid
from collections.abc import Iterable, MutableMapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage, Storage
from limits.strategies import FixedWindowRateLimiter
from loguru import logger

from app.config import settings
from app.core.conversation.generator import ConversationHistoryMessage, ConversationRole

FeedbackStatus = Literal["none", "pending", "ok", "corrected", "error"]

DEFAULT_SCENARIO_PRESET = "Cafe"
MAX_LANGUAGE_LENGTH = 50

_LEGACY_DIFFICULTIES = {0: "easy", 1: "medium", 2: "hard"}


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


DEFAULT_DIFFICULTY = Difficulty.EASY


def coerce_difficulty(value: Any) -> Difficulty:
    """Map any input onto a valid difficulty.

    Legacy clients sent 0/1/2; anything unrecognised becomes the default.
    """

    if isinstance(value, Difficulty):
        return value
    if isinstance(value, bool):
        return DEFAULT_DIFFICULTY
    if isinstance(value, (int, float)) and float(value).is_integer():
        legacy = _LEGACY_DIFFICULTIES.get(int(value))
        return Difficulty(legacy) if legacy else DEFAULT_DIFFICULTY
    if isinstance(value, str):
        try:
            return Difficulty(value.strip().lower())
        except ValueError:
            return DEFAULT_DIFFICULTY
    return DEFAULT_DIFFICULTY


def is_plausible_language(value: Any) -> bool:
    """Return True when ``value`` could name a language."""

    if not isinstance(value, str):
        return False
    trimmed = value.strip()
    if len(trimmed) < 2 or len(trimmed) > MAX_LANGUAGE_LENGTH:
        return False
    lower = trimmed.lower()
    if lower.isdigit() or "http" in lower or "://" in lower:
        return False
    return True


def normalize_word(word: str) -> str:
    """Cache key for a word: lowercase, NFKC, letters/marks/digits/'/- only."""

    composed = unicodedata.normalize("NFKC", unicodedata.normalize("NFKC", word).lower())
    kept = "".join(char for char in composed if _keep_in_word(char))
    return unicodedata.normalize("NFC", kept)


def _keep_in_word(char: str) -> bool:
    if char in "'-":
        return True
    category = unicodedata.category(char)
    return category[0] in ("L", "M") or category == "Nd"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class Message:
    """One recorded turn of a session transcript."""

    role: ConversationRole
    content: str
    timestamp: datetime = field(default_factory=_now)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    feedback_status: FeedbackStatus = "none"
    feedback_correction: str = ""


@dataclass(slots=True)
class Session:
    """Server-side conversational state for one practice run."""

    id: str
    language: str | None = None
    scenario_preset: str = DEFAULT_SCENARIO_PRESET
    scenario_custom: str = ""
    scenario_role: str = ""
    scenario_start: str = ""
    difficulty: Difficulty | None = DEFAULT_DIFFICULTY
    task: str | None = None
    task_completed: bool = False
    continuation_pending: bool = False
    task_recheck: bool = False
    messages: list[Message] = field(default_factory=list)
    translation_cache: dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_now)

    def last_message(self, role: ConversationRole | None = None) -> Message | None:
        for message in reversed(self.messages):
            if role is None or message.role == role:
                return message
        return None


@dataclass(slots=True)
class ContextUpdate:
    """Client-supplied overrides; ``None`` means "not provided"."""

    language: Any = None
    scenario_preset: str | None = None
    scenario_custom: str | None = None
    scenario_role: str | None = None
    scenario_start: str | None = None
    task: str | None = None
    difficulty: Any = None


@dataclass(frozen=True, slots=True)
class ReconciliationPolicy:
    """How a client-held transcript is merged into the server history.

    Version 1: the client copy replaces the server copy only when it is
    strictly longer; on a tie the server copy is kept. History never shrinks.
    """

    version: int = 1

    def prefer_client(self, server_length: int, client_length: int) -> bool:
        return client_length > server_length


class SessionStore:
    """Volatile session registry with serialized per-session history writes."""

    def __init__(
        self,
        backing: MutableMapping[str, Session] | None = None,
        *,
        max_messages: int | None = None,
        history_window: int | None = None,
        rate_window_seconds: int | None = None,
        ip_limit: int | None = None,
        session_limit: int | None = None,
        rate_storage: Storage | None = None,
        reconciliation: ReconciliationPolicy | None = None,
    ) -> None:
        self._sessions: MutableMapping[str, Session] = backing if backing is not None else {}
        self.max_messages = max_messages or settings.SESSION_MAX_MESSAGES
        self.history_window = history_window or settings.SESSION_HISTORY_WINDOW
        self.rate_window_seconds = rate_window_seconds or settings.RATE_LIMIT_WINDOW_SECONDS
        self.ip_limit = ip_limit or settings.RATE_LIMIT_IP_REQUESTS
        self.session_limit = session_limit or settings.RATE_LIMIT_SESSION_REQUESTS
        self.reconciliation = reconciliation or ReconciliationPolicy()
        self._registry_lock = threading.Lock()
        self._session_locks: dict[str, threading.Lock] = {}
        self._limiter = FixedWindowRateLimiter(rate_storage or MemoryStorage())
        self._ip_limit_item = RateLimitItemPerSecond(self.ip_limit, self.rate_window_seconds)
        self._session_limit_item = RateLimitItemPerSecond(self.session_limit, self.rate_window_seconds)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @staticmethod
    def generate_id() -> str:
        return f"sess_{uuid.uuid4().hex}"

    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._session_locks.get(session_id)
            if lock is None:
                lock = self._session_locks[session_id] = threading.Lock()
            return lock

    def create(self, requested_id: str | None = None) -> Session:
        """Register a fresh session under ``requested_id`` or a generated id."""

        session_id = requested_id or self.generate_id()
        session = Session(id=session_id)
        with self._registry_lock:
            self._sessions[session_id] = session
        logger.info("Session created", session_id=session_id, requested=bool(requested_id))
        return session

    def get(self, session_id: str | None) -> Session | None:
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def get_or_create(self, session_id: str | None = None) -> Session:
        """Return the session or recreate it under the same id."""

        if session_id:
            with self._registry_lock:
                existing = self._sessions.get(session_id)
                if existing is not None:
                    return existing
                session = Session(id=session_id)
                self._sessions[session_id] = session
            logger.info("Session repaired", session_id=session_id, total=len(self._sessions))
            return session
        return self.create()

    def persist(self) -> None:
        """No-op: sessions are a volatile cache and are never written to disk."""

    def load_snapshot(self, path: Path) -> int:
        """Import sessions from a legacy JSON snapshot, returning the count loaded."""

        if not path.exists():
            return 0
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable session snapshot", path=str(path), error=str(exc))
            return 0
        if not isinstance(raw, dict):
            return 0

        loaded = 0
        for session_id, payload in raw.items():
            if not isinstance(payload, dict):
                continue
            session = Session(id=str(session_id))
            if is_plausible_language(payload.get("language")):
                session.language = payload["language"].strip()
            if isinstance(payload.get("scenarioPreset"), str):
                session.scenario_preset = payload["scenarioPreset"]
            for key, attr in (
                ("scenarioCustom", "scenario_custom"),
                ("scenarioRole", "scenario_role"),
                ("scenarioStart", "scenario_start"),
            ):
                value = payload.get(key)
                setattr(session, attr, value if isinstance(value, str) else "")
            session.task = payload["task"] if isinstance(payload.get("task"), str) else None
            session.difficulty = coerce_difficulty(payload.get("difficulty"))
            session.messages = list(_coerce_messages(payload.get("messages") or []))[-self.max_messages :]
            cache = payload.get("translationCache")
            if isinstance(cache, dict):
                session.translation_cache = {
                    str(key): value for key, value in cache.items() if isinstance(value, str)
                }
            with self._registry_lock:
                self._sessions[session.id] = session
            loaded += 1
        logger.info("Session snapshot imported", path=str(path), sessions=loaded)
        return loaded

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------
    def apply_context(self, session: Session, update: ContextUpdate) -> None:
        """Apply independently validated overrides; bad values are ignored."""

        if update.language is not None:
            if is_plausible_language(update.language):
                session.language = update.language.strip()
            else:
                logger.debug("Ignoring implausible language", session_id=session.id)
        if update.scenario_preset is not None:
            session.scenario_preset = update.scenario_preset
        if update.scenario_custom is not None:
            session.scenario_custom = update.scenario_custom
        if update.scenario_role is not None:
            session.scenario_role = update.scenario_role
        if update.scenario_start is not None:
            session.scenario_start = update.scenario_start
        if update.task is not None and update.task != session.task:
            session.task = update.task
            session.task_completed = False
        if update.difficulty is not None:
            session.difficulty = coerce_difficulty(update.difficulty)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def append_turn(self, session: Session, role: ConversationRole, text: str) -> Message:
        """Append one turn, dropping the oldest turns beyond the retention cap."""

        message = Message(role=role, content=text)
        with self._lock_for(session.id):
            messages = [*session.messages, message]
            if len(messages) > self.max_messages:
                messages = messages[-self.max_messages :]
            session.messages = messages
        return message

    def reconcile_history(self, session: Session, client_messages: Iterable[Any]) -> bool:
        """Adopt the client's transcript when the policy prefers it."""

        normalized = list(_coerce_messages(client_messages))
        if not normalized:
            return False
        with self._lock_for(session.id):
            if not self.reconciliation.prefer_client(len(session.messages), len(normalized)):
                return False
            session.messages = normalized[-self.max_messages :]
        logger.info(
            "Adopted client transcript",
            session_id=session.id,
            length=len(normalized),
            policy=self.reconciliation.version,
        )
        return True

    def recent_history(self, session: Session, window: int | None = None) -> list[ConversationHistoryMessage]:
        """Return the last ``window`` turns in chronological order."""

        size = self.history_window if window is None else window
        if size <= 0:
            return []
        return [
            ConversationHistoryMessage(role=message.role, content=message.content)
            for message in session.messages[-size:]
        ]

    # ------------------------------------------------------------------
    # Translation cache
    # ------------------------------------------------------------------
    def get_translation(self, session: Session, normalized_word: str) -> str | None:
        return session.translation_cache.get(normalized_word)

    def set_translation(self, session: Session, normalized_word: str, value: str) -> None:
        session.translation_cache[normalized_word] = value

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------
    def check_rate_limit(self, ip_key: str, session_key: str | None = None) -> bool:
        """Count one request against the IP and (optionally) session buckets."""

        ip_ok = self._limiter.hit(self._ip_limit_item, "ip", ip_key)
        session_ok = self._limiter.hit(self._session_limit_item, "session", session_key) if session_key else True
        return ip_ok and session_ok


def _coerce_messages(raw: Iterable[Any]) -> Iterable[Message]:
    for item in raw:
        if not isinstance(item, dict):
            continue
        role = item.get("role")
        content = item.get("content")
        if role not in ("user", "assistant") or not isinstance(content, str):
            continue
        yield Message(role=role, content=content)


__all__ = [
    "ContextUpdate",
    "DEFAULT_DIFFICULTY",
    "DEFAULT_SCENARIO_PRESET",
    "Difficulty",
    "Message",
    "ReconciliationPolicy",
    "Session",
    "SessionStore",
    "coerce_difficulty",
    "is_plausible_language",
    "normalize_word",
]
