"""Shared API dependencies."""
from __future__ import annotations

from fastapi import Depends, Request

from app.services.background import BackgroundTasks
from app.services.chat_orchestrator import ChatOrchestrator
from app.services.evaluators import FeedbackEvaluator, TaskCompletionEvaluator
from app.services.generators import ContentGenerator
from app.services.llm_service import LLMService
from app.services.session_store import SessionStore
from app.services.translation import WordTranslator

_session_store_singleton: SessionStore | None = None
_llm_service_singleton: LLMService | None = None
_background_tasks_singleton: BackgroundTasks | None = None


def get_session_store() -> SessionStore:
    """Return the process-wide session registry."""

    global _session_store_singleton
    if _session_store_singleton is None:
        _session_store_singleton = SessionStore()
    return _session_store_singleton


def get_llm_service() -> LLMService:
    """Return a cached LLM service instance.

    A missing credential does not fail here; every call fails fast instead.
    """

    global _llm_service_singleton
    if _llm_service_singleton is None:
        _llm_service_singleton = LLMService()
    return _llm_service_singleton


def get_background_tasks() -> BackgroundTasks:
    global _background_tasks_singleton
    if _background_tasks_singleton is None:
        _background_tasks_singleton = BackgroundTasks()
    return _background_tasks_singleton


def get_client_ip(request: Request) -> str:
    """Resolve the caller's address, preferring the first forwarded hop."""

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_feedback_evaluator(llm_service: LLMService = Depends(get_llm_service)) -> FeedbackEvaluator:
    return FeedbackEvaluator(llm_service=llm_service)


def get_task_evaluator(llm_service: LLMService = Depends(get_llm_service)) -> TaskCompletionEvaluator:
    return TaskCompletionEvaluator(llm_service=llm_service)


def get_word_translator(
    store: SessionStore = Depends(get_session_store),
    llm_service: LLMService = Depends(get_llm_service),
) -> WordTranslator:
    return WordTranslator(store=store, llm_service=llm_service)


def get_content_generator(llm_service: LLMService = Depends(get_llm_service)) -> ContentGenerator:
    return ContentGenerator(llm_service=llm_service)


def get_chat_orchestrator(
    store: SessionStore = Depends(get_session_store),
    llm_service: LLMService = Depends(get_llm_service),
    background: BackgroundTasks = Depends(get_background_tasks),
    feedback_evaluator: FeedbackEvaluator = Depends(get_feedback_evaluator),
    task_evaluator: TaskCompletionEvaluator = Depends(get_task_evaluator),
) -> ChatOrchestrator:
    """Assemble the chat orchestrator with the shared store and task registry."""

    return ChatOrchestrator(
        store=store,
        llm_service=llm_service,
        background=background,
        feedback_evaluator=feedback_evaluator,
        task_evaluator=task_evaluator,
    )
