"""Conversation domain helpers."""

from app.core.conversation.generator import (
    ConversationHistoryMessage,
    ConversationRole,
    TurnKind,
    build_turns,
    resolve_turn_kind,
)
from app.core.conversation.prompts import (
    CONTINUATION_MARKER,
    CONTINUE_INSTRUCTION,
    opening_line,
    role_guide,
    scenario_description,
    start_instruction,
    system_instruction,
)
from app.core.conversation.scenarios import Scenario, get_scenario, list_scenarios

__all__ = [
    "CONTINUATION_MARKER",
    "CONTINUE_INSTRUCTION",
    "ConversationHistoryMessage",
    "ConversationRole",
    "Scenario",
    "TurnKind",
    "build_turns",
    "get_scenario",
    "list_scenarios",
    "opening_line",
    "resolve_turn_kind",
    "role_guide",
    "scenario_description",
    "start_instruction",
    "system_instruction",
]
