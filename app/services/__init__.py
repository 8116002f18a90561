"""Service layer package."""

from app.services.background import BackgroundTasks
from app.services.chat_orchestrator import ChatOrchestrator
from app.services.evaluators import FeedbackEvaluator, TaskCompletionEvaluator
from app.services.generators import ContentGenerator
from app.services.llm_service import LLMService
from app.services.session_store import SessionStore
from app.services.translation import WordTranslator

__all__ = [
    "BackgroundTasks",
    "ChatOrchestrator",
    "ContentGenerator",
    "FeedbackEvaluator",
    "LLMService",
    "SessionStore",
    "TaskCompletionEvaluator",
    "WordTranslator",
]
