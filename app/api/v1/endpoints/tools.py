"""Feedback, task check and translation endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.deps import (
    get_client_ip,
    get_feedback_evaluator,
    get_session_store,
    get_task_evaluator,
    get_word_translator,
)
from app.schemas import (
    CheckTaskRequest,
    CheckTaskResponse,
    FeedbackRequest,
    FeedbackResponse,
    TranslateRequest,
    TranslateResponse,
)
from app.services.evaluators import FeedbackEvaluator, TaskCompletionEvaluator
from app.services.session_store import SessionStore
from app.services.translation import WordTranslator
from app.utils.exceptions import RateLimitError, ValidationError


router = APIRouter(tags=["tools"])


@router.post("/feedback", response_model=FeedbackResponse)
async def request_feedback(
    payload: FeedbackRequest,
    *,
    store: SessionStore = Depends(get_session_store),
    evaluator: FeedbackEvaluator = Depends(get_feedback_evaluator),
    client_ip: str = Depends(get_client_ip),
) -> FeedbackResponse:
    """Judge one learner message against the previous partner line."""

    session = store.get(payload.session_id)
    if session is None:
        # Lost sessions skip feedback instead of being recreated.
        return FeedbackResponse(status="ok", corrected="")
    if not session.language:
        raise ValidationError("Language not set", details={"session_id": session.id})
    if not store.check_rate_limit(client_ip, session.id):
        raise RateLimitError("Rate limited", details={"ip": client_ip, "session_id": session.id})
    message = payload.message.strip()
    if not message:
        raise ValidationError("Empty message", details={"session_id": session.id})

    result = await evaluator.evaluate(session.language, message, payload.previous_assistant)
    return FeedbackResponse(status=result.status, corrected=result.corrected)


@router.post("/check-task", response_model=CheckTaskResponse)
async def check_task(
    payload: CheckTaskRequest,
    *,
    evaluator: TaskCompletionEvaluator = Depends(get_task_evaluator),
) -> CheckTaskResponse:
    if not payload.task or not payload.language or payload.messages is None:
        raise ValidationError("Missing task, language, or messages")
    completed = await evaluator.evaluate(
        task=payload.task,
        language=payload.language,
        messages=payload.messages,
        scenario_title=payload.scenario_title,
        role_guide=payload.role_guide,
    )
    return CheckTaskResponse(completed=completed)


@router.post("/translate", response_model=TranslateResponse)
async def translate_word(
    payload: TranslateRequest,
    *,
    store: SessionStore = Depends(get_session_store),
    translator: WordTranslator = Depends(get_word_translator),
    client_ip: str = Depends(get_client_ip),
) -> TranslateResponse:
    """Translate a word, answering from the session cache when possible."""

    if not store.check_rate_limit(client_ip, payload.session_id or None):
        raise RateLimitError("Rate limited", details={"ip": client_ip, "session_id": payload.session_id})
    session = store.get_or_create(payload.session_id or None)
    result = await translator.translate(session, payload.word, payload.sentence)
    return TranslateResponse(translation=result.translation, cached=result.cached)
