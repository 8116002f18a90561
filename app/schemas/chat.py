"""Pydantic models for chat turns and the practice tools."""
from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, Field

from app.core.conversation.generator import TurnKind
from app.schemas.session import CamelModel, SessionContextFields


class TranscriptMessage(CamelModel):
    role: str
    content: str


class ChatTurnRequest(SessionContextFields):
    """Payload for one chat turn, with optional context overrides."""

    session_id: str | None = None
    message: str = ""
    turn_kind: TurnKind | None = Field(None, description="start, continue or user; inferred when omitted")
    start: bool = Field(False, description="Legacy flag for a scene start")
    messages: list[Any] | None = Field(None, description="Client-held transcript used for reconciliation")
    stream_format: Literal["text", "ndjson"] = "text"


class ChatErrorResponse(CamelModel):
    reply: str
    error: str


class FeedbackRequest(CamelModel):
    session_id: str
    message: str = ""
    previous_assistant: str = Field(
        "",
        validation_alias=AliasChoices("previousAssistant", "previousAssistantText", "previous_assistant"),
    )


class FeedbackResponse(CamelModel):
    status: Literal["ok", "corrected"]
    corrected: str = ""


class CheckTaskRequest(CamelModel):
    task: str | None = None
    language: str | None = None
    scenario_title: str | None = None
    role_guide: str | None = None
    messages: list[TranscriptMessage] | None = None


class CheckTaskResponse(CamelModel):
    completed: bool


class TranslateRequest(CamelModel):
    session_id: str | None = None
    word: str = ""
    sentence: str | None = None


class TranslateResponse(CamelModel):
    translation: str
    cached: bool


class GenerateTaskRequest(CamelModel):
    scenario_title: str | None = None
    scenario_subtitle: str | None = None
    role_guide: str | None = None
    user_role: str | None = None
    language: str | None = None
    difficulty: str | None = None
    previous_tasks: list[str] | None = None


class GenerateTaskResponse(CamelModel):
    task: str


class VocabListRequest(CamelModel):
    language: str | None = None
    count: float | None = None
    existing: list[str] | None = None
    scenario_title: str | None = None
    scenario_detail: str | None = None
    role_guide: str | None = None
    user_role: str | None = None


class VocabItemRead(CamelModel):
    word: str
    translation: str


class VocabListResponse(CamelModel):
    items: list[VocabItemRead]


class SuggestionRequest(CamelModel):
    session_id: str | None = None
    scenario: str | None = None
    messages: list[TranscriptMessage] | None = None


class SuggestionResponse(CamelModel):
    suggestion: str


class SceneRequest(CamelModel):
    scenario: str | None = None
    language: str | None = None


class SceneResponse(CamelModel):
    scene_description: str


class ExamplesRequest(CamelModel):
    language: str | None = None
    word: str | None = None


class ExamplesResponse(CamelModel):
    lines: list[str]


class ScenarioRead(CamelModel):
    id: str
    title: str
    subtitle: str
    role_guide: str
    start_prompt: str


class ScenarioListResponse(CamelModel):
    scenarios: list[ScenarioRead]
