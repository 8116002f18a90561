import asyncio

import httpx
import pytest

from app.core.conversation import TurnKind
from app.services.background import BackgroundTasks
from app.services.chat_orchestrator import (
    APOLOGY_TEXT,
    ChatOrchestrator,
    ContinuationMarkerFilter,
    TurnOutcome,
    TurnRequest,
)
from app.services.llm_service import LLMProviderError, LLMService, OpenAIProvider
from app.services.session_store import ContextUpdate, SessionStore
from app.utils.exceptions import RateLimitError, ValidationError

FRENCH_CAFE = ContextUpdate(language="French", scenario_preset="Cafe")


def filter_all(fragments):
    marker = ContinuationMarkerFilter()
    text = "".join(marker.feed(fragment) for fragment in fragments) + marker.finish()
    return text, marker.found


@pytest.mark.asyncio
async def test_start_turn_records_single_assistant_message(orchestrator, store, stub_llm):
    session = store.create()
    result = await orchestrator.run_turn(
        TurnRequest(session_id=session.id, start=True, context=FRENCH_CAFE)
    )

    assert result.kind is TurnKind.START
    assert result.outcome is TurnOutcome.STREAMED_OK
    assert result.text == "Bonjour ! Que désirez-vous ?"
    assert [message.role for message in session.messages] == ["assistant"]
    assert session.messages[0].content == result.text
    assert stub_llm.stream_turns[0][-1]["content"].endswith("Use French only.")


@pytest.mark.asyncio
async def test_history_is_capped_across_many_turns(stub_llm):
    store = SessionStore({}, max_messages=6, history_window=24)
    orchestrator = ChatOrchestrator(store=store, llm_service=stub_llm, background=BackgroundTasks())

    for index in range(8):
        await orchestrator.run_turn(
            TurnRequest(session_id="capped", message=f"message {index}", context=FRENCH_CAFE)
        )

    session = store.get("capped")
    assert len(session.messages) == 6
    contents = [message.content for message in session.messages]
    assert "message 0" not in contents
    assert "message 7" in contents


@pytest.mark.asyncio
async def test_stream_failure_on_first_chunk_falls_back(orchestrator, store, stub_llm):
    stub_llm.stream_fail_at = 0
    stub_llm.complete_reply = "  Voilà votre café. "

    result = await orchestrator.run_turn(
        TurnRequest(session_id="fallback", message="Un café, s'il vous plaît", context=FRENCH_CAFE)
    )

    assert result.outcome is TurnOutcome.STREAMED_WITH_FALLBACK
    assert result.text == "Voilà votre café. "
    assert store.get("fallback").messages[-1].content == result.text
    assert stub_llm.complete_calls >= 1


@pytest.mark.asyncio
async def test_empty_stream_falls_back(orchestrator, stub_llm):
    stub_llm.stream_chunks = []

    result = await orchestrator.run_turn(
        TurnRequest(session_id="empty", message="Bonjour", context=FRENCH_CAFE)
    )

    assert result.outcome is TurnOutcome.STREAMED_WITH_FALLBACK
    assert result.text == "Très bien."


@pytest.mark.asyncio
async def test_mid_stream_failure_keeps_partial_reply(orchestrator, store, stub_llm):
    stub_llm.stream_fail_at = 1

    result = await orchestrator.run_turn(
        TurnRequest(session_id="partial", start=True, context=FRENCH_CAFE)
    )

    assert result.outcome is TurnOutcome.STREAMED_OK
    assert result.interrupted is True
    assert result.text == "Bonjour ! "
    assert stub_llm.complete_calls == 0
    assert store.get("partial").messages[-1].content == "Bonjour ! "


@pytest.mark.asyncio
async def test_total_failure_records_apology(orchestrator, store, stub_llm):
    stub_llm.stream_fail_at = 0
    stub_llm.complete_error = LLMProviderError("down", status_code=503)

    result = await orchestrator.run_turn(
        TurnRequest(session_id="down", start=True, context=FRENCH_CAFE)
    )

    assert result.outcome is TurnOutcome.FAILED
    assert result.text == APOLOGY_TEXT
    assert result.error
    assert store.get("down").messages[-1].content == APOLOGY_TEXT


def unreachable_llm_service() -> LLMService:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    provider = OpenAIProvider(
        api_key="test-key",
        model="gpt-4o-mini",
        base_url="https://llm.test/v1",
        max_retries=1,
        transport=httpx.MockTransport(handler),
    )
    return LLMService(provider)


@pytest.mark.asyncio
async def test_unreachable_provider_records_apology(store, background):
    orchestrator = ChatOrchestrator(store=store, llm_service=unreachable_llm_service(), background=background)

    result = await orchestrator.run_turn(
        TurnRequest(session_id="offline", message="Bonjour", context=FRENCH_CAFE)
    )
    await background.drain()

    assert result.outcome is TurnOutcome.FAILED
    assert result.text == APOLOGY_TEXT
    assert "connection refused" in result.error
    session = store.get("offline")
    assert [(message.role, message.content) for message in session.messages] == [
        ("user", "Bonjour"),
        ("assistant", APOLOGY_TEXT),
    ]
    assert session.last_message("user").feedback_status == "ok"


@pytest.mark.asyncio
async def test_task_check_reruns_for_turn_sent_while_checking(store, stub_llm, background):
    started = asyncio.Event()
    release = asyncio.Event()
    transcripts = []

    class GatedTaskEvaluator:
        async def evaluate(self, *, task, language, messages, scenario_title=None, role_guide=None):
            transcripts.append([message.content for message in messages])
            if len(transcripts) == 1:
                started.set()
                await release.wait()
            return any("deux croissants" in message.content for message in messages)

    orchestrator = ChatOrchestrator(
        store=store,
        llm_service=stub_llm,
        background=background,
        task_evaluator=GatedTaskEvaluator(),  # type: ignore[arg-type]
    )
    context = ContextUpdate(language="French", scenario_preset="Cafe", task="Order two croissants")

    await orchestrator.run_turn(TurnRequest(session_id="overlap", message="Bonjour", context=context))
    await asyncio.wait_for(started.wait(), timeout=1)
    await orchestrator.run_turn(TurnRequest(session_id="overlap", message="Je voudrais deux croissants"))
    release.set()
    await background.drain()

    assert len(transcripts) == 2
    assert "Je voudrais deux croissants" not in transcripts[0]
    assert "Je voudrais deux croissants" in transcripts[1]
    assert store.get("overlap").task_completed is True


@pytest.mark.asyncio
async def test_empty_message_is_rejected_before_any_model_call(orchestrator, store, stub_llm):
    with pytest.raises(ValidationError):
        await orchestrator.start_turn(TurnRequest(session_id="quiet", message="   ", context=FRENCH_CAFE))

    assert store.get("quiet").messages == []
    assert stub_llm.stream_calls == 0


@pytest.mark.asyncio
async def test_missing_language_is_rejected(orchestrator, stub_llm):
    with pytest.raises(ValidationError):
        await orchestrator.start_turn(TurnRequest(session_id="nolang", start=True))
    assert stub_llm.stream_calls == 0


@pytest.mark.asyncio
async def test_rate_limit_rejects_without_mutation(stub_llm):
    store = SessionStore({}, ip_limit=1, session_limit=100)
    orchestrator = ChatOrchestrator(store=store, llm_service=stub_llm, background=BackgroundTasks())
    await orchestrator.run_turn(TurnRequest(session_id="busy", message="Salut", context=FRENCH_CAFE))
    before = [message.content for message in store.get("busy").messages]

    with pytest.raises(RateLimitError):
        await orchestrator.start_turn(
            TurnRequest(
                session_id="busy",
                message="Encore",
                context=ContextUpdate(language="Spanish", task="Pay"),
            )
        )

    session = store.get("busy")
    assert [message.content for message in session.messages] == before
    assert session.language == "French"
    assert session.task is None
    assert stub_llm.stream_calls == 1


@pytest.mark.asyncio
async def test_duplicate_user_message_is_not_recorded_twice(orchestrator, store):
    transcript = [
        {"role": "assistant", "content": "Bonjour !"},
        {"role": "user", "content": "Un café"},
    ]

    await orchestrator.run_turn(
        TurnRequest(session_id="dup", message="Un café", context=FRENCH_CAFE, client_messages=transcript)
    )

    contents = [message.content for message in store.get("dup").messages]
    assert contents.count("Un café") == 1
    assert [message.role for message in store.get("dup").messages] == ["assistant", "user", "assistant"]


@pytest.mark.asyncio
async def test_stale_server_history_is_replaced_by_longer_transcript(orchestrator, store, stub_llm):
    session = store.create("stale")
    store.append_turn(session, "assistant", "Old greeting")
    transcript = [
        {"role": "assistant", "content": "Bonjour !"},
        {"role": "user", "content": "Bonjour"},
        {"role": "assistant", "content": "Que désirez-vous ?"},
    ]

    await orchestrator.run_turn(
        TurnRequest(session_id="stale", message="Un thé", context=FRENCH_CAFE, client_messages=transcript)
    )

    sent = [turn["content"] for turn in stub_llm.stream_turns[0][1:]]
    assert sent == ["Bonjour !", "Bonjour", "Que désirez-vous ?", "Un thé"]


def test_marker_filter_strips_marker_split_across_fragments():
    assert filter_all(["Voilà. [[NE", "XT]]"]) == ("Voilà.", True)
    assert filter_all(["Voilà.", " [", "[NEXT]", "]"]) == ("Voilà.", True)
    assert filter_all(["Prix: [10] euros"]) == ("Prix: [10] euros", False)
    assert filter_all(["Bonjour ", "[["]) == ("Bonjour [[", False)


@pytest.mark.asyncio
async def test_continuation_flow(orchestrator, store, stub_llm):
    stub_llm.stream_chunks = ["Je vous apporte ça. ", "[[NEXT]]"]

    first = await orchestrator.run_turn(
        TurnRequest(session_id="cont", message="Un croissant", context=FRENCH_CAFE)
    )
    session = store.get("cont")
    assert first.wants_continuation is True
    assert first.text == "Je vous apporte ça."
    assert session.continuation_pending is True

    stub_llm.stream_chunks = ["Et voilà votre croissant. [[NEXT]]"]
    second = await orchestrator.run_turn(TurnRequest(session_id="cont", turn_kind=TurnKind.CONTINUE))
    assert second.kind is TurnKind.CONTINUE
    assert second.wants_continuation is False
    assert second.text == "Et voilà votre croissant."
    assert session.continuation_pending is False
    assert stub_llm.stream_turns[-1][-1]["content"].startswith("Continue the scene")

    with pytest.raises(ValidationError):
        await orchestrator.start_turn(TurnRequest(session_id="cont", turn_kind=TurnKind.CONTINUE))


@pytest.mark.asyncio
async def test_user_turn_clears_pending_continuation(orchestrator, store, stub_llm):
    stub_llm.stream_chunks = ["Un instant. [[NEXT]]"]
    await orchestrator.run_turn(TurnRequest(session_id="reset", message="Bonjour", context=FRENCH_CAFE))
    assert store.get("reset").continuation_pending is True

    stub_llm.stream_chunks = ["D'accord."]
    await orchestrator.run_turn(TurnRequest(session_id="reset", message="Merci"))
    assert store.get("reset").continuation_pending is False


@pytest.mark.asyncio
async def test_fan_out_records_feedback_and_task_completion(orchestrator, store, stub_llm, background):
    stub_llm.route_by_system_prompt(
        {
            "language coach helping learners": '{"status": "corrected", "corrected": "Je **veux** un café"}',
            "strict evaluator of task completion": '{"completed": true}',
        }
    )
    context = ContextUpdate(language="French", scenario_preset="Cafe", task="Order a coffee")

    await orchestrator.run_turn(TurnRequest(session_id="fan", message="Je veut un café", context=context))
    await background.drain()

    session = store.get("fan")
    user_message = session.last_message("user")
    assert user_message.feedback_status == "corrected"
    assert user_message.feedback_correction == "Je **veux** un café"
    assert session.task_completed is True

    checks_before = stub_llm.complete_calls
    await orchestrator.run_turn(TurnRequest(session_id="fan", message="Merci"))
    await background.drain()
    # Completed task is not checked again; only feedback for the new message runs.
    assert stub_llm.complete_calls == checks_before + 1


@pytest.mark.asyncio
async def test_malformed_task_verdict_never_awards_completion(orchestrator, store, stub_llm, background):
    stub_llm.complete_reply = "not json at all"
    context = ContextUpdate(language="French", task="Order a coffee")

    await orchestrator.run_turn(TurnRequest(session_id="strict", message="Un café", context=context))
    await background.drain()

    session = store.get("strict")
    assert session.task_completed is False
    assert session.last_message("user").feedback_status == "ok"


@pytest.mark.asyncio
async def test_feedback_failure_marks_error_and_is_contained(store, stub_llm, background):
    class ExplodingFeedback:
        async def evaluate(self, language, message, previous_assistant=""):
            raise RuntimeError("boom")

    orchestrator = ChatOrchestrator(
        store=store,
        llm_service=stub_llm,
        background=background,
        feedback_evaluator=ExplodingFeedback(),  # type: ignore[arg-type]
    )

    result = await orchestrator.run_turn(TurnRequest(session_id="boom", message="Salut", context=FRENCH_CAFE))
    await background.drain()

    assert result.outcome is TurnOutcome.STREAMED_OK
    assert store.get("boom").last_message("user").feedback_status == "error"


@pytest.mark.asyncio
async def test_start_turn_skips_fan_out(orchestrator, store, stub_llm, background):
    context = ContextUpdate(language="French", task="Order a coffee")
    await orchestrator.run_turn(TurnRequest(session_id="quiet-start", start=True, context=context))
    await background.drain()

    assert stub_llm.complete_calls == 0


@pytest.mark.asyncio
async def test_background_dedupes_by_key(background):
    release = asyncio.Event()
    runs = []

    async def job(label):
        runs.append(label)
        await release.wait()
        return label

    first = background.spawn(job("first"), name="check", key="task:s1")
    second = background.spawn(job("second"), name="check", key="task:s1")
    other = background.spawn(job("other"), name="check", key="task:s2")

    assert first is not None and other is not None
    assert second is None
    assert background.is_running("task:s1")

    release.set()
    await background.drain()
    assert sorted(runs) == ["first", "other"]
    assert len(background) == 0
    assert not background.is_running("task:s1")


@pytest.mark.asyncio
async def test_background_failure_resolves_to_default(background):
    async def broken():
        raise ValueError("bad")

    task = background.spawn(broken(), name="broken", default=False)
    assert await task is False


@pytest.mark.asyncio
async def test_reply_is_recorded_when_consumer_stops_reading(orchestrator, store, stub_llm, background):
    stream = await orchestrator.start_turn(
        TurnRequest(session_id="gone", message="Bonjour", context=FRENCH_CAFE)
    )
    await stream.wait_started()
    await background.drain()

    messages = store.get("gone").messages
    assert messages[-1].role == "assistant"
    assert messages[-1].content == "Bonjour ! Que désirez-vous ?"
