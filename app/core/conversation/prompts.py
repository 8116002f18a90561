"""Prompt templates that guide roleplay conversations."""
from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List

from loguru import logger

from app.core.conversation.scenarios import (
    CUSTOM_PRESET,
    GENERIC_OPENING,
    PRESET_OPENINGS,
    PRESET_ROLE_GUIDES,
    find_scenario_by_title,
)

if TYPE_CHECKING:  # pragma: no cover
    from app.services.session_store import Session

DEFAULT_LANGUAGE = "English"

# Marker the model appends when it wants to keep talking without waiting for the user.
CONTINUATION_MARKER = "[[NEXT]]"

CONTINUE_INSTRUCTION = "Continue the scene with the next natural step. Keep it concise."

DIFFICULTY_GUIDES: Dict[str, str] = {
    "easy": (
        "ALWAYS use complete, grammatically correct sentences. Never use sentence fragments or incomplete "
        "thoughts. Use proper subject-verb agreement and basic sentence structure. Keep vocabulary simple and "
        "sentences short, but ensure every response is a complete, proper sentence that could appear in a "
        "textbook. Prefer the most common, everyday words; avoid rare or advanced vocabulary."
    ),
    "medium": (
        "Use medium-length sentences with natural, common vocabulary. Keep conversations understandable but "
        "engaging. Prefer everyday words over rare terms. Ask relevant questions."
    ),
    "hard": (
        "Use longer, more in-depth conversations with varied vocabulary and occasional idioms, but still prefer "
        "common, everyday words. Maintain natural pacing and ask thoughtful, engaging questions."
    ),
}

UNSET_DIFFICULTY_GUIDE = (
    "Use natural, conversational language appropriate for language learners. Provide clear and understandable "
    "responses while gradually introducing more complex vocabulary and structures."
)

ROLEPLAY_RULES: List[str] = [
    "Keep responses concise by default (1-2 sentences). Avoid long monologues unless the user asks for more detail.",
    "Keep the conversation moving: end most replies with a short, relevant question.",
    "Do not correct the user's language or explain grammar unless they explicitly ask.",
    "Prefer the most common words and phrases used in daily life; avoid rare, academic, or poetic vocabulary.",
    "Use standard, neutral, everyday phrasing a native speaker would use; avoid literal translations from English.",
    "Help the user complete the task naturally without explicitly calling it a task or giving meta instructions.",
    "Avoid formal honorifics or ceremonial wording unless the user uses it first.",
    "Avoid old-fashioned or overly polite set phrases; use modern, common service language.",
    "Avoid slang, quirky expressions, or regionalisms; keep it simple and widely understood.",
    "Track what the user has already ordered or answered; do not ask for the same item twice. Ask only for missing details.",
    "CRITICAL: You are a REAL PERSON in this scenario. Never mention or imply you are AI, a language model, or an assistant.",
    "If the user says something absurd, confusing, or impossible - pretend it's normal and continue the conversation naturally.",
    "Make up reasonable details, lie convincingly, and stay in character NO MATTER WHAT to keep the role-play going.",
    "Respond as a real human would - with personality, emotions, and natural reactions.",
    "If confused, improvise creatively while staying in character - never break the illusion.",
    "IMPORTANT: Any scene descriptions or context shown are JUST INSTRUCTIONS for what the USER should practice. "
    "They are NOT part of the conversation. Do not reference them, acknowledge them, or treat them as dialogue. "
    "Focus only on natural conversation with the user.",
    f"If you naturally need to say one more thing before the user answers, end your reply with {CONTINUATION_MARKER} "
    "and nothing after it. Do this rarely.",
]


def _clean(value: str | None) -> str:
    return (value or "").strip()


def scenario_description(session: "Session") -> str:
    """Return the scenario text the roleplay is set in."""

    preset = _clean(session.scenario_preset)
    custom = _clean(session.scenario_custom)
    if preset == CUSTOM_PRESET and custom:
        return custom
    if custom:
        return f"{preset}: {custom}" if preset else custom
    return preset


def role_guide(session: "Session") -> str:
    """Return the role guidance: override, built-in preset, catalog entry, then generic."""

    override = _clean(session.scenario_role)
    if override:
        return override
    preset = session.scenario_preset
    if preset in PRESET_ROLE_GUIDES:
        return PRESET_ROLE_GUIDES[preset]
    if preset != CUSTOM_PRESET:
        scenario = find_scenario_by_title(preset)
        if scenario is not None:
            return scenario.role_guide
    custom = _clean(session.scenario_custom)
    if custom:
        return (
            f"Role: pick the most realistic role for this situation ({custom}). "
            "Start with a natural opener that fits that role."
        )
    return "Role: casual conversation partner. Ask what situation the user wants to practice."


def opening_line(session: "Session") -> str:
    """Return the instruction for how the partner opens a scene."""

    override = _clean(session.scenario_start)
    if override:
        return override
    preset = session.scenario_preset
    if preset in PRESET_OPENINGS:
        return PRESET_OPENINGS[preset]
    if preset != CUSTOM_PRESET:
        scenario = find_scenario_by_title(preset)
        if scenario is not None:
            return scenario.start_prompt
    return GENERIC_OPENING


def difficulty_guide(session: "Session") -> str:
    difficulty = session.difficulty
    key = getattr(difficulty, "value", difficulty)
    return DIFFICULTY_GUIDES.get(key, UNSET_DIFFICULTY_GUIDE) if key else UNSET_DIFFICULTY_GUIDE


def session_language(session: "Session") -> str:
    return _clean(session.language) or DEFAULT_LANGUAGE


def system_instruction(session: "Session") -> str:
    """Compose the full system prompt for a session snapshot.

    Order: identity and language constraint, scenario immersion, role guide,
    current task, difficulty style guide, then the fixed roleplay rules.
    """

    language = session_language(session)
    scenario = scenario_description(session)
    if scenario:
        immersion = (
            f"You are fully immersed in this scenario: {scenario}. Act as a real person in this situation - use "
            "appropriate behavior, emotions, and responses. Stay completely in character throughout the "
            "conversation. Respond naturally as someone actually in that situation would."
        )
    else:
        immersion = "You are having a casual conversation. Ask what situation the user wants to practice."

    task = _clean(session.task)
    parts = [
        f"You are a native speaker in {language}. Respond ONLY in {language}.",
        immersion,
        role_guide(session),
        f"Current task: {task}." if task else "",
        difficulty_guide(session),
        *ROLEPLAY_RULES,
    ]
    prompt = " ".join(part for part in parts if part)
    logger.debug("Built system prompt", session_id=session.id, language=language, preset=session.scenario_preset)
    return prompt


def start_instruction(session: "Session") -> str:
    """Instruction appended for the very first turn of a scene."""

    return " ".join(
        [opening_line(session), "Keep it realistic and concise.", f"Use {session_language(session)} only."]
    )


__all__ = [
    "CONTINUATION_MARKER",
    "CONTINUE_INSTRUCTION",
    "DEFAULT_LANGUAGE",
    "ROLEPLAY_RULES",
    "difficulty_guide",
    "opening_line",
    "role_guide",
    "scenario_description",
    "session_language",
    "start_instruction",
    "system_instruction",
]
