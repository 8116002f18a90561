"""Pydantic schemas package."""

from app.schemas.chat import (
    ChatErrorResponse,
    ChatTurnRequest,
    CheckTaskRequest,
    CheckTaskResponse,
    ExamplesRequest,
    ExamplesResponse,
    FeedbackRequest,
    FeedbackResponse,
    GenerateTaskRequest,
    GenerateTaskResponse,
    ScenarioListResponse,
    ScenarioRead,
    SceneRequest,
    SceneResponse,
    SuggestionRequest,
    SuggestionResponse,
    TranscriptMessage,
    TranslateRequest,
    TranslateResponse,
    VocabItemRead,
    VocabListRequest,
    VocabListResponse,
)
from app.schemas.session import (
    CamelModel,
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

__all__ = [
    "CamelModel",
    "ChatErrorResponse",
    "ChatTurnRequest",
    "CheckTaskRequest",
    "CheckTaskResponse",
    "DifficultyUpdateRequest",
    "DifficultyUpdateResponse",
    "ExamplesRequest",
    "ExamplesResponse",
    "FeedbackRequest",
    "FeedbackResponse",
    "GenerateTaskRequest",
    "GenerateTaskResponse",
    "ScenarioListResponse",
    "ScenarioRead",
    "ScenarioUpdateRequest",
    "ScenarioUpdateResponse",
    "SceneRequest",
    "SceneResponse",
    "SessionContextRequest",
    "SessionContextResponse",
    "SessionCreateResponse",
    "SessionMessageListResponse",
    "SessionMessageRead",
    "SessionSummary",
    "SuggestionRequest",
    "SuggestionResponse",
    "TranscriptMessage",
    "TranslateRequest",
    "TranslateResponse",
    "VocabItemRead",
    "VocabListRequest",
    "VocabListResponse",
]
