"""Conversation turn assembly utilities."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Literal, Sequence

from app.core.conversation.prompts import CONTINUE_INSTRUCTION, start_instruction, system_instruction

if TYPE_CHECKING:  # pragma: no cover
    from app.services.llm_service import ChatTurn
    from app.services.session_store import Session

ConversationRole = Literal["user", "assistant"]

# Legacy in-band markers still accepted from older clients.
LEGACY_START_SENTINEL = "__AI_START__"
LEGACY_CONTINUE_SENTINEL = "__AI_CONTINUE__"


class TurnKind(str, Enum):
    """How a chat request should be answered."""

    START = "start"
    CONTINUE = "continue"
    USER = "user"


@dataclass(slots=True)
class ConversationHistoryMessage:
    """Minimal representation of a conversation message."""

    role: ConversationRole
    content: str


def resolve_turn_kind(explicit: TurnKind | str | None, message: str, start: bool = False) -> TurnKind:
    """Pick the turn kind from the explicit field, the ``start`` flag, then legacy sentinels."""

    if explicit:
        return TurnKind(explicit)
    if start or message.startswith(LEGACY_START_SENTINEL):
        return TurnKind.START
    if message == LEGACY_CONTINUE_SENTINEL:
        return TurnKind.CONTINUE
    return TurnKind.USER


def build_turns(
    session: "Session",
    history: Sequence[ConversationHistoryMessage],
    kind: TurnKind,
) -> list["ChatTurn"]:
    """Build the ordered completion request for one turn.

    Scene starts send only the system prompt and the opening instruction;
    other turns send the recent history, with a nudge appended for
    continuations.
    """

    turns: list["ChatTurn"] = [{"role": "system", "content": system_instruction(session)}]
    if kind is TurnKind.START:
        turns.append({"role": "user", "content": start_instruction(session)})
        return turns

    turns.extend({"role": message.role, "content": message.content} for message in history)
    if kind is TurnKind.CONTINUE:
        turns.append({"role": "user", "content": CONTINUE_INSTRUCTION})
    return turns


__all__ = [
    "ConversationHistoryMessage",
    "ConversationRole",
    "LEGACY_CONTINUE_SENTINEL",
    "LEGACY_START_SENTINEL",
    "TurnKind",
    "build_turns",
    "resolve_turn_kind",
]
