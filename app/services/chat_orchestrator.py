"""Per-turn orchestration of roleplay chat replies.

A turn moves through context merge, dispatch, streaming, persistence and
fan-out. The model stream is consumed by a producer task owned by the
background registry, so the reply is recorded even when the client that
asked for it goes away mid-stream.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, List, Optional, Sequence

from loguru import logger

from app.core.conversation.generator import TurnKind, build_turns, resolve_turn_kind
from app.core.conversation.prompts import CONTINUATION_MARKER, role_guide, scenario_description
from app.services.background import BackgroundTasks
from app.services.evaluators import FeedbackEvaluator, TaskCompletionEvaluator
from app.services.llm_service import ChatTurn, LLMProviderError, LLMService
from app.services.session_store import ContextUpdate, Message, Session, SessionStore
from app.utils.exceptions import RateLimitError, ValidationError

APOLOGY_TEXT = "Network error. Try again."


class TurnOutcome(str, Enum):
    STREAMED_OK = "streamed_ok"
    STREAMED_WITH_FALLBACK = "streamed_with_fallback"
    FAILED = "failed"


@dataclass
class TurnRequest:
    """Everything a client sends with one chat turn."""

    session_id: Optional[str]
    message: str = ""
    turn_kind: Optional[TurnKind] = None
    start: bool = False
    context: ContextUpdate = field(default_factory=ContextUpdate)
    client_messages: Optional[Sequence[Any]] = None
    client_ip: str = "unknown"


@dataclass
class TurnResult:
    """Terminal state of a turn after the reply was recorded."""

    session_id: str
    kind: TurnKind
    outcome: TurnOutcome
    text: str
    wants_continuation: bool = False
    interrupted: bool = False
    error: Optional[str] = None


class ContinuationMarkerFilter:
    """Strip the continuation marker from a stream of fragments.

    Text that could still turn out to be the start of the marker (and any
    whitespace right before it) is held back until the next fragment or
    :meth:`finish` decides.
    """

    def __init__(self, marker: str = CONTINUATION_MARKER) -> None:
        self.marker = marker
        self.found = False
        self._pending = ""

    def _holdback(self, text: str) -> int:
        partial = 0
        for size in range(min(len(self.marker) - 1, len(text)), 0, -1):
            if self.marker.startswith(text[-size:]):
                partial = size
                break
        body = text[: len(text) - partial]
        return partial + len(body) - len(body.rstrip())

    def feed(self, fragment: str) -> str:
        self._pending += fragment
        released: List[str] = []
        index = self._pending.find(self.marker)
        while index != -1:
            self.found = True
            released.append(self._pending[:index].rstrip())
            self._pending = self._pending[index + len(self.marker) :]
            index = self._pending.find(self.marker)
        hold = self._holdback(self._pending)
        cut = len(self._pending) - hold
        released.append(self._pending[:cut])
        self._pending = self._pending[cut:]
        return "".join(released)

    def finish(self) -> str:
        remainder, self._pending = self._pending, ""
        return remainder.rstrip() if self.found else remainder


class TurnStream:
    """Handle between the producer task and the HTTP response."""

    def __init__(self, session_id: str, kind: TurnKind) -> None:
        self.session_id = session_id
        self.kind = kind
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue()
        self._started = asyncio.Event()
        self._result: asyncio.Future[TurnResult] = asyncio.get_running_loop().create_future()
        self.chunks_pushed = 0

    def push(self, chunk: str) -> None:
        self.chunks_pushed += 1
        self._queue.put_nowait(chunk)
        self._started.set()

    def finish(self, result: TurnResult) -> None:
        if not self._result.done():
            self._result.set_result(result)
        self._close()

    def fail(self, exc: BaseException) -> None:
        if not self._result.done():
            self._result.set_exception(exc)
        self._close()

    def _close(self) -> None:
        self._queue.put_nowait(None)
        self._started.set()

    async def wait_started(self) -> Optional[TurnResult]:
        """Wait for the first chunk; return the result if the turn ended without any."""

        await self._started.wait()
        if self._result.done() and self.chunks_pushed == 0:
            return self._result.result()
        return None

    async def chunks(self) -> AsyncIterator[str]:
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                return
            yield chunk

    async def result(self) -> TurnResult:
        return await asyncio.shield(self._result)


class ChatOrchestrator:
    """Drive a chat turn from request to recorded reply and background checks."""

    def __init__(
        self,
        *,
        store: SessionStore,
        llm_service: LLMService,
        background: BackgroundTasks,
        feedback_evaluator: Optional[FeedbackEvaluator] = None,
        task_evaluator: Optional[TaskCompletionEvaluator] = None,
    ) -> None:
        self.store = store
        self.llm_service = llm_service
        self.background = background
        self.feedback_evaluator = feedback_evaluator or FeedbackEvaluator(llm_service=llm_service)
        self.task_evaluator = task_evaluator or TaskCompletionEvaluator(llm_service=llm_service)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    async def start_turn(self, request: TurnRequest) -> TurnStream:
        """Validate and prepare a turn, then launch its producer.

        Raises :class:`RateLimitError` or :class:`ValidationError` before any
        model call. Rate limiting happens before the session is touched.
        """

        if not self.store.check_rate_limit(request.client_ip, request.session_id or None):
            raise RateLimitError("Rate limited", details={"ip": request.client_ip, "session_id": request.session_id})

        session = self.store.get_or_create(request.session_id or None)
        self.store.apply_context(session, request.context)
        if request.client_messages:
            self.store.reconcile_history(session, request.client_messages)

        message = (request.message or "").strip()
        kind = resolve_turn_kind(request.turn_kind, message, request.start)

        if not session.language:
            raise ValidationError("Language not set", details={"session_id": session.id})
        if kind is TurnKind.USER and not message:
            raise ValidationError("Empty message", details={"session_id": session.id})
        if kind is TurnKind.CONTINUE:
            if not session.continuation_pending:
                raise ValidationError("No continuation pending", details={"session_id": session.id})
            session.continuation_pending = False
        elif kind is TurnKind.USER:
            session.continuation_pending = False
            self._record_user_message(session, message)

        turns = build_turns(session, self.store.recent_history(session), kind)
        stream = TurnStream(session.id, kind)
        self.background.spawn(self._produce(session, kind, turns, stream), name=f"chat-turn:{session.id}")
        logger.info("Chat turn started", session_id=session.id, kind=kind.value, history=len(session.messages))
        return stream

    async def run_turn(self, request: TurnRequest) -> TurnResult:
        """Run a turn to completion, discarding the streamed chunks."""

        stream = await self.start_turn(request)
        async for _ in stream.chunks():
            pass
        return await stream.result()

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------
    def _record_user_message(self, session: Session, message: str) -> None:
        last = session.messages[-1] if session.messages else None
        if last is not None and last.role == "user" and last.content.strip() == message:
            logger.debug("Skipping duplicate user message", session_id=session.id)
            return
        self.store.append_turn(session, "user", message)

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------
    async def _produce(self, session: Session, kind: TurnKind, turns: List[ChatTurn], stream: TurnStream) -> None:
        try:
            result = await self._stream_reply(session, kind, turns, stream)
        except BaseException as exc:
            stream.fail(exc)
            raise
        stream.finish(result)
        if kind is not TurnKind.START:
            self._dispatch_fan_out(session)

    async def _stream_reply(
        self, session: Session, kind: TurnKind, turns: List[ChatTurn], stream: TurnStream
    ) -> TurnResult:
        marker = ContinuationMarkerFilter()
        emitted: List[str] = []
        outcome = TurnOutcome.STREAMED_OK
        interrupted = False
        error: Optional[str] = None

        def emit(text: str) -> None:
            if not emitted:
                text = text.lstrip()
            if text:
                emitted.append(text)
                stream.push(text)

        try:
            async for fragment in self.llm_service.stream_complete(turns):
                emit(marker.feed(fragment))
            emit(marker.finish())
        except LLMProviderError as exc:
            error = str(exc)
            if emitted:
                # Text already delivered is kept as the reply.
                interrupted = True
                emit(marker.finish())
                logger.warning("Stream interrupted after partial reply", session_id=session.id, error=error)
            else:
                logger.warning("Stream failed before any content", session_id=session.id, error=error)

        if not emitted:
            marker = ContinuationMarkerFilter()
            outcome = TurnOutcome.STREAMED_WITH_FALLBACK
            try:
                reply = await self.llm_service.complete(turns)
            except LLMProviderError as exc:
                error = str(exc)
                logger.error("Fallback completion failed", session_id=session.id, error=error)
                reply = ""
            emit(marker.feed(reply))
            emit(marker.finish())

        text = "".join(emitted)
        wants_continuation = False
        if not text.strip():
            text = APOLOGY_TEXT
            outcome = TurnOutcome.FAILED
            error = error or "Empty reply"
        elif marker.found and kind is TurnKind.USER:
            wants_continuation = True

        self.store.append_turn(session, "assistant", text)
        session.continuation_pending = wants_continuation
        self.store.persist()
        logger.info(
            "Chat turn persisted",
            session_id=session.id,
            kind=kind.value,
            outcome=outcome.value,
            wants_continuation=wants_continuation,
            length=len(text),
        )
        return TurnResult(
            session_id=session.id,
            kind=kind,
            outcome=outcome,
            text=text,
            wants_continuation=wants_continuation,
            interrupted=interrupted,
            error=error,
        )

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------
    def _dispatch_fan_out(self, session: Session) -> None:
        target = session.last_message("user")
        if target is not None and target.feedback_status == "none" and session.language:
            target.feedback_status = "pending"
            previous = self._assistant_before(session, target)
            self.background.spawn(
                self._run_feedback(session.language, target, previous),
                name="feedback",
                key=f"feedback:{target.id}",
            )

        task = session.task
        if task and not session.task_completed:
            # A check already in flight picks this up once it finishes.
            session.task_recheck = True
            self.background.spawn(
                self._run_task_check(session),
                name="task-check",
                key=f"task:{session.id}",
                default=False,
            )

    @staticmethod
    def _assistant_before(session: Session, target: Message) -> str:
        seen_target = False
        for message in reversed(session.messages):
            if message is target:
                seen_target = True
            elif seen_target and message.role == "assistant":
                return message.content
        return ""

    async def _run_feedback(self, language: str, target: Message, previous: str) -> None:
        try:
            result = await self.feedback_evaluator.evaluate(language, target.content, previous)
        except Exception:
            target.feedback_status = "error"
            raise
        target.feedback_status = result.status
        target.feedback_correction = result.corrected

    async def _run_task_check(self, session: Session) -> bool:
        completed = False
        while session.task_recheck and session.task and not session.task_completed:
            session.task_recheck = False
            task = session.task
            completed = await self.task_evaluator.evaluate(
                task=task,
                language=session.language or "",
                messages=list(session.messages),
                scenario_title=scenario_description(session),
                role_guide=role_guide(session),
            )
            if completed and session.task == task:
                session.task_completed = True
                logger.info("Task completed", session_id=session.id)
        return completed


__all__ = [
    "APOLOGY_TEXT",
    "ChatOrchestrator",
    "ContinuationMarkerFilter",
    "TurnOutcome",
    "TurnRequest",
    "TurnResult",
    "TurnStream",
]
