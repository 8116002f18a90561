"""Pydantic models for session workflows."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.services.session_store import ContextUpdate, Message, Session


class CamelModel(BaseModel):
    """Base model exposing camelCase field names on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SessionContextFields(CamelModel):
    """Optional scenario context a client may push with any request."""

    language: Any = Field(None, description="Target practice language; ignored when implausible")
    scenario_preset: str | None = None
    scenario_custom: str | None = None
    scenario_role: str | None = Field(None, description="Override for the built-in role guide")
    scenario_start: str | None = Field(None, description="Override for the built-in opening line")
    task: str | None = None
    difficulty: Any = Field(None, description="easy, medium or hard; legacy 0/1/2 are accepted")

    def to_context_update(self) -> ContextUpdate:
        return ContextUpdate(
            language=self.language,
            scenario_preset=self.scenario_preset,
            scenario_custom=self.scenario_custom,
            scenario_role=self.scenario_role,
            scenario_start=self.scenario_start,
            task=self.task,
            difficulty=self.difficulty,
        )


class SessionContextRequest(SessionContextFields):
    """Payload for creating or updating a session's context."""

    session_id: str | None = None


class DifficultyUpdateRequest(CamelModel):
    session_id: str
    difficulty: Any = None


class ScenarioUpdateRequest(CamelModel):
    session_id: str
    scenario_preset: str | None = None
    scenario_custom: str | None = None


class SessionMessageRead(CamelModel):
    """Serialized transcript entry."""

    id: str
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime
    feedback_status: str = "none"
    feedback_correction: str = ""

    @classmethod
    def from_message(cls, message: Message) -> "SessionMessageRead":
        return cls(
            id=message.id,
            role=message.role,
            content=message.content,
            timestamp=message.timestamp,
            feedback_status=message.feedback_status,
            feedback_correction=message.feedback_correction,
        )


class SessionSummary(CamelModel):
    """Snapshot of a session's scenario state."""

    id: str
    language: str | None
    scenario_preset: str
    scenario_custom: str
    scenario_role: str
    scenario_start: str
    difficulty: str | None
    task: str | None
    task_completed: bool
    continuation_pending: bool
    message_count: int
    created_at: datetime

    @classmethod
    def from_session(cls, session: Session) -> "SessionSummary":
        return cls(
            id=session.id,
            language=session.language,
            scenario_preset=session.scenario_preset,
            scenario_custom=session.scenario_custom,
            scenario_role=session.scenario_role,
            scenario_start=session.scenario_start,
            difficulty=session.difficulty.value if session.difficulty is not None else None,
            task=session.task,
            task_completed=session.task_completed,
            continuation_pending=session.continuation_pending,
            message_count=len(session.messages),
            created_at=session.created_at,
        )


class SessionCreateResponse(CamelModel):
    session_id: str
    session: SessionSummary


class SessionContextResponse(CamelModel):
    session_id: str
    created: bool
    session: SessionSummary


class SessionMessageListResponse(CamelModel):
    session_id: str
    messages: list[SessionMessageRead]


class DifficultyUpdateResponse(CamelModel):
    ok: bool = True
    difficulty: str | None


class ScenarioUpdateResponse(CamelModel):
    ok: bool = True
    scenario_preset: str
    scenario_custom: str
