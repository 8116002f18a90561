"""Practice content generation endpoints.

None of these mutate session state.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.deps import get_content_generator, get_session_store
from app.core.conversation.scenarios import list_scenarios
from app.schemas import (
    ExamplesRequest,
    ExamplesResponse,
    GenerateTaskRequest,
    GenerateTaskResponse,
    ScenarioListResponse,
    ScenarioRead,
    SceneRequest,
    SceneResponse,
    SuggestionRequest,
    SuggestionResponse,
    VocabItemRead,
    VocabListRequest,
    VocabListResponse,
)
from app.services.generators import ContentGenerator
from app.services.session_store import SessionStore
from app.utils.exceptions import SessionNotFoundError, ValidationError


router = APIRouter(tags=["generation"])


@router.post("/generate-task", response_model=GenerateTaskResponse)
async def generate_task(
    payload: GenerateTaskRequest,
    *,
    generator: ContentGenerator = Depends(get_content_generator),
) -> GenerateTaskResponse:
    if not payload.scenario_title or not payload.language:
        raise ValidationError("Missing scenarioTitle or language")
    task = await generator.generate_task(
        scenario_title=payload.scenario_title,
        language=payload.language,
        scenario_subtitle=payload.scenario_subtitle,
        role_guide=payload.role_guide,
        user_role=payload.user_role,
        difficulty=payload.difficulty,
        previous_tasks=payload.previous_tasks,
    )
    return GenerateTaskResponse(task=task)


@router.post("/generate-vocab-list", response_model=VocabListResponse)
async def generate_vocab_list(
    payload: VocabListRequest,
    *,
    generator: ContentGenerator = Depends(get_content_generator),
) -> VocabListResponse:
    """Generate a scenario-biased vocabulary list; the count is clamped."""

    if not payload.language or payload.count is None:
        raise ValidationError("Missing language or count")
    items = await generator.generate_vocab_list(
        language=payload.language,
        count=payload.count,
        existing=payload.existing,
        scenario_title=payload.scenario_title,
        scenario_detail=payload.scenario_detail,
        role_guide=payload.role_guide,
        user_role=payload.user_role,
    )
    return VocabListResponse(items=[VocabItemRead(word=item.word, translation=item.translation) for item in items])


@router.post("/generate-suggestion", response_model=SuggestionResponse)
async def generate_suggestion(
    payload: SuggestionRequest,
    *,
    store: SessionStore = Depends(get_session_store),
    generator: ContentGenerator = Depends(get_content_generator),
) -> SuggestionResponse:
    session = store.get(payload.session_id)
    if session is None:
        raise SessionNotFoundError("Session not found", details={"session_id": payload.session_id})
    if not session.language:
        raise ValidationError("Language not set", details={"session_id": session.id})
    suggestion = await generator.generate_suggestion(
        language=session.language,
        scenario=payload.scenario,
        messages=payload.messages,
    )
    return SuggestionResponse(suggestion=suggestion)


@router.post("/generate-scene", response_model=SceneResponse)
async def generate_scene(
    payload: SceneRequest,
    *,
    generator: ContentGenerator = Depends(get_content_generator),
) -> SceneResponse:
    if not payload.scenario or not payload.language:
        raise ValidationError("Missing scenario or language")
    scene = await generator.generate_scene(scenario=payload.scenario, language=payload.language)
    return SceneResponse(scene_description=scene)


@router.post("/generate-examples", response_model=ExamplesResponse)
async def generate_examples(
    payload: ExamplesRequest,
    *,
    generator: ContentGenerator = Depends(get_content_generator),
) -> ExamplesResponse:
    if not payload.language or not payload.word:
        raise ValidationError("Missing language or word")
    lines = await generator.generate_examples(language=payload.language, word=payload.word)
    return ExamplesResponse(lines=lines)


@router.get("/scenarios", response_model=ScenarioListResponse)
def get_scenarios() -> ScenarioListResponse:
    """List the built-in scenario catalog."""

    return ScenarioListResponse(
        scenarios=[
            ScenarioRead(
                id=scenario.id,
                title=scenario.title,
                subtitle=scenario.subtitle,
                role_guide=scenario.role_guide,
                start_prompt=scenario.start_prompt,
            )
            for scenario in list_scenarios()
        ]
    )
