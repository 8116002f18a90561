"""Pytest fixtures for service and API tests."""

from __future__ import annotations

from collections.abc import Callable, Generator
from typing import Any, Sequence

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api import deps
from app.main import create_app
from app.services.background import BackgroundTasks
from app.services.chat_orchestrator import ChatOrchestrator
from app.services.llm_service import LLMProviderError, LLMStreamError
from app.services.session_store import SessionStore


class StubLLMService:
    """Deterministic stand-in for the LLM gateway that records every call."""

    provider_name = "stub"

    def __init__(self) -> None:
        self.stream_chunks: list[str] = ["Bonjour ! ", "Que désirez-vous ?"]
        self.stream_fail_at: int | None = None
        self.complete_reply = "Très bien."
        self.complete_error: LLMProviderError | None = None
        self.constrained_reply = "house"
        self.responder: Callable[[list[dict[str, str]]], str] | None = None
        self.stream_calls = 0
        self.complete_calls = 0
        self.constrained_calls = 0
        self.stream_turns: list[list[dict[str, str]]] = []
        self.complete_turns: list[list[dict[str, str]]] = []
        self.temperatures: list[float | None] = []

    async def _stream(self, turns: Sequence[dict[str, str]]):
        self.stream_calls += 1
        self.stream_turns.append(list(turns))
        for index, chunk in enumerate(self.stream_chunks):
            if self.stream_fail_at == index:
                raise LLMStreamError("stream broke", fragments_yielded=index)
            yield chunk
        if self.stream_fail_at is not None and self.stream_fail_at >= len(self.stream_chunks):
            raise LLMStreamError("stream broke", fragments_yielded=len(self.stream_chunks))

    def stream_complete(self, turns: Sequence[dict[str, str]]):
        return self._stream(turns)

    async def complete(self, turns: Sequence[dict[str, str]], *, temperature: float | None = None) -> str:
        self.complete_calls += 1
        self.complete_turns.append(list(turns))
        self.temperatures.append(temperature)
        if self.complete_error is not None:
            raise self.complete_error
        if self.responder is not None:
            return self.responder(list(turns))
        return self.complete_reply

    def route_by_system_prompt(self, replies: dict[str, str]) -> None:
        """Answer ``complete`` calls based on a phrase in the system prompt."""

        def responder(turns: list[dict[str, Any]]) -> str:
            system = turns[0]["content"]
            for phrase, reply in replies.items():
                if phrase in system:
                    return reply
            return self.complete_reply

        self.responder = responder

    async def complete_constrained(self, turns: Sequence[dict[str, str]]) -> str:
        self.constrained_calls += 1
        if self.complete_error is not None:
            raise self.complete_error
        return self.constrained_reply


@pytest.fixture()
def stub_llm() -> StubLLMService:
    return StubLLMService()


@pytest.fixture()
def store() -> SessionStore:
    return SessionStore({}, max_messages=200, history_window=24)


@pytest.fixture()
def background() -> BackgroundTasks:
    return BackgroundTasks()


@pytest.fixture()
def orchestrator(store: SessionStore, stub_llm: StubLLMService, background: BackgroundTasks) -> ChatOrchestrator:
    return ChatOrchestrator(store=store, llm_service=stub_llm, background=background)  # type: ignore[arg-type]


@pytest.fixture()
def app(store: SessionStore, stub_llm: StubLLMService, background: BackgroundTasks) -> FastAPI:
    application = create_app()
    application.dependency_overrides[deps.get_session_store] = lambda: store
    application.dependency_overrides[deps.get_llm_service] = lambda: stub_llm
    application.dependency_overrides[deps.get_background_tasks] = lambda: background
    return application


@pytest.fixture()
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client
