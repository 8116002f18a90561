"""Session management endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.deps import get_client_ip, get_session_store
from app.schemas import (
    DifficultyUpdateRequest,
    DifficultyUpdateResponse,
    ScenarioUpdateRequest,
    ScenarioUpdateResponse,
    SessionContextRequest,
    SessionContextResponse,
    SessionCreateResponse,
    SessionMessageListResponse,
    SessionMessageRead,
    SessionSummary,
)
from app.services.session_store import ContextUpdate, Session, SessionStore
from app.utils.exceptions import RateLimitError, SessionNotFoundError


router = APIRouter(prefix="/sessions", tags=["sessions"])


def _resolve_session(store: SessionStore, session_id: str) -> Session:
    session = store.get(session_id)
    if session is None:
        raise SessionNotFoundError("Session not found", details={"session_id": session_id})
    return session


def _enforce_rate_limit(store: SessionStore, client_ip: str, session_id: str) -> None:
    if not store.check_rate_limit(client_ip, session_id):
        raise RateLimitError("Rate limited", details={"ip": client_ip, "session_id": session_id})


@router.post("/new", response_model=SessionCreateResponse)
def create_session(*, store: SessionStore = Depends(get_session_store)) -> SessionCreateResponse:
    """Create a fresh session with default scenario state."""

    session = store.create()
    return SessionCreateResponse(session_id=session.id, session=SessionSummary.from_session(session))


@router.post("/context", response_model=SessionContextResponse)
def update_session_context(
    payload: SessionContextRequest,
    *,
    store: SessionStore = Depends(get_session_store),
) -> SessionContextResponse:
    """Create or repair a session and apply the supplied context."""

    created = store.get(payload.session_id) is None
    session = store.get_or_create(payload.session_id)
    store.apply_context(session, payload.to_context_update())
    store.persist()
    return SessionContextResponse(
        session_id=session.id,
        created=created,
        session=SessionSummary.from_session(session),
    )


@router.post("/difficulty", response_model=DifficultyUpdateResponse)
def update_difficulty(
    payload: DifficultyUpdateRequest,
    *,
    store: SessionStore = Depends(get_session_store),
    client_ip: str = Depends(get_client_ip),
) -> DifficultyUpdateResponse:
    session = _resolve_session(store, payload.session_id)
    _enforce_rate_limit(store, client_ip, session.id)
    if payload.difficulty is not None:
        store.apply_context(session, ContextUpdate(difficulty=payload.difficulty))
    difficulty = session.difficulty.value if session.difficulty is not None else None
    return DifficultyUpdateResponse(difficulty=difficulty)


@router.post("/scenario", response_model=ScenarioUpdateResponse)
def update_scenario(
    payload: ScenarioUpdateRequest,
    *,
    store: SessionStore = Depends(get_session_store),
    client_ip: str = Depends(get_client_ip),
) -> ScenarioUpdateResponse:
    session = _resolve_session(store, payload.session_id)
    _enforce_rate_limit(store, client_ip, session.id)
    store.apply_context(
        session,
        ContextUpdate(scenario_preset=payload.scenario_preset, scenario_custom=payload.scenario_custom),
    )
    return ScenarioUpdateResponse(
        scenario_preset=session.scenario_preset,
        scenario_custom=session.scenario_custom,
    )


@router.get("/{session_id}", response_model=SessionSummary)
def get_session(session_id: str, *, store: SessionStore = Depends(get_session_store)) -> SessionSummary:
    return SessionSummary.from_session(_resolve_session(store, session_id))


@router.get("/{session_id}/messages", response_model=SessionMessageListResponse)
def list_session_messages(
    session_id: str,
    *,
    store: SessionStore = Depends(get_session_store),
) -> SessionMessageListResponse:
    session = _resolve_session(store, session_id)
    return SessionMessageListResponse(
        session_id=session.id,
        messages=[SessionMessageRead.from_message(message) for message in session.messages],
    )
