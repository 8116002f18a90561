import json
import time

import pytest

from app.services.session_store import (
    DEFAULT_DIFFICULTY,
    ContextUpdate,
    Difficulty,
    SessionStore,
    coerce_difficulty,
    is_plausible_language,
    normalize_word,
)


def test_create_defaults_and_requested_id(store: SessionStore):
    session = store.create()
    assert session.id.startswith("sess_")
    assert session.language is None
    assert session.task is None
    assert session.difficulty is DEFAULT_DIFFICULTY
    assert session.messages == []

    requested = store.create("client-123")
    assert requested.id == "client-123"
    assert store.get("client-123") is requested


def test_get_is_pure(store: SessionStore):
    assert store.get("missing") is None
    assert "missing" not in store
    assert len(store) == 0


def test_get_or_create_is_idempotent(store: SessionStore):
    first = store.get_or_create("abc")
    second = store.get_or_create("abc")

    assert first is second
    assert len(store) == 1
    assert store.get_or_create(None).id != "abc"


def test_injected_backing_map_is_used():
    backing: dict = {}
    store = SessionStore(backing)
    session = store.create("shared")
    assert backing["shared"] is session


def test_retention_cap_keeps_most_recent_turns():
    store = SessionStore({}, max_messages=5)
    session = store.create()
    for index in range(12):
        store.append_turn(session, "user" if index % 2 == 0 else "assistant", f"turn {index}")
        assert len(session.messages) <= 5

    assert [message.content for message in session.messages] == [f"turn {index}" for index in range(7, 12)]


def test_recent_history_window(store: SessionStore):
    session = store.create()
    for index in range(5):
        store.append_turn(session, "user", f"m{index}")

    history = store.recent_history(session, 3)
    assert [entry.content for entry in history] == ["m2", "m3", "m4"]
    assert len(session.messages) == 5
    assert store.recent_history(session, 0) == []


def test_reconcile_only_grows_history(store: SessionStore):
    session = store.create()
    store.append_turn(session, "assistant", "Bonjour")
    store.append_turn(session, "user", "Salut")

    tie = [{"role": "assistant", "content": "X"}, {"role": "user", "content": "Y"}]
    assert store.reconcile_history(session, tie) is False
    assert session.messages[0].content == "Bonjour"

    longer = tie + [{"role": "assistant", "content": "Z"}, {"role": "bogus", "content": "skip"}, "junk"]
    assert store.reconcile_history(session, longer) is True
    assert [message.content for message in session.messages] == ["X", "Y", "Z"]


def test_apply_context_validates_each_field(store: SessionStore):
    session = store.create()
    store.apply_context(session, ContextUpdate(language="French", scenario_preset="Restaurant", difficulty=2))
    assert session.language == "French"
    assert session.scenario_preset == "Restaurant"
    assert session.difficulty is Difficulty.HARD

    store.apply_context(session, ContextUpdate(language="https://evil.example", difficulty="nonsense"))
    assert session.language == "French"
    assert session.difficulty is DEFAULT_DIFFICULTY


def test_task_change_resets_completion(store: SessionStore):
    session = store.create()
    store.apply_context(session, ContextUpdate(task="Order a tea"))
    session.task_completed = True

    store.apply_context(session, ContextUpdate(task="Order a tea"))
    assert session.task_completed is True

    store.apply_context(session, ContextUpdate(task="Pay by card"))
    assert session.task_completed is False


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("easy", Difficulty.EASY),
        (" MEDIUM ", Difficulty.MEDIUM),
        ("hard", Difficulty.HARD),
        (0, Difficulty.EASY),
        (1, Difficulty.MEDIUM),
        (2.0, Difficulty.HARD),
        (7, DEFAULT_DIFFICULTY),
        (True, DEFAULT_DIFFICULTY),
        (None, DEFAULT_DIFFICULTY),
        ("expert", DEFAULT_DIFFICULTY),
        ({"level": 1}, DEFAULT_DIFFICULTY),
        (float("nan"), DEFAULT_DIFFICULTY),
    ],
)
def test_coerce_difficulty_is_total(value, expected):
    assert coerce_difficulty(value) is expected


@pytest.mark.parametrize(
    ("value", "plausible"),
    [
        ("French", True),
        ("  es  ", True),
        ("", False),
        ("x", False),
        ("12345", False),
        ("http://example.com", False),
        ("a" * 51, False),
        (42, False),
    ],
)
def test_language_plausibility(value, plausible):
    assert is_plausible_language(value) is plausible


@pytest.mark.parametrize("word", ["Café", "CAFÉ!", "l'été", "week-end", "ﬁn", "Straße", "x²", "  maison. "])
def test_normalize_word_is_idempotent(word):
    once = normalize_word(word)
    assert normalize_word(once) == once


def test_normalize_word_equivalences():
    assert normalize_word("Café") == normalize_word("café")
    assert normalize_word("CAFÉ!") == "café"
    assert normalize_word("L'été,") == "l'été"
    assert normalize_word("week-end") == "week-end"
    assert normalize_word("Maison") == normalize_word("maison?")


def test_translation_cache_is_per_session(store: SessionStore):
    first = store.create()
    second = store.create()
    store.set_translation(first, "maison", "house")

    assert store.get_translation(first, "maison") == "house"
    assert store.get_translation(second, "maison") is None


def test_rate_limit_exact_limit_and_rollover():
    store = SessionStore({}, rate_window_seconds=1, ip_limit=3, session_limit=100)

    assert [store.check_rate_limit("1.2.3.4") for _ in range(3)] == [True, True, True]
    assert store.check_rate_limit("1.2.3.4") is False
    assert store.check_rate_limit("5.6.7.8") is True

    time.sleep(1.1)
    assert store.check_rate_limit("1.2.3.4") is True
    assert store.check_rate_limit("1.2.3.4") is True


def test_rate_limit_counters_are_per_store():
    first = SessionStore({}, ip_limit=1, session_limit=100)
    second = SessionStore({}, ip_limit=1, session_limit=100)

    assert first.check_rate_limit("1.2.3.4") is True
    assert first.check_rate_limit("1.2.3.4") is False
    assert second.check_rate_limit("1.2.3.4") is True


def test_rate_limit_combines_ip_and_session_buckets():
    store = SessionStore({}, ip_limit=100, session_limit=2)

    assert store.check_rate_limit("ip-a", "sess") is True
    assert store.check_rate_limit("ip-b", "sess") is True
    assert store.check_rate_limit("ip-c", "sess") is False
    assert store.check_rate_limit("ip-c", "other") is True


def test_load_snapshot_coerces_legacy_values(tmp_path, store: SessionStore):
    snapshot = tmp_path / "sessions.json"
    snapshot.write_text(
        json.dumps(
            {
                "old": {
                    "language": "Spanish",
                    "scenarioPreset": "Restaurant",
                    "scenarioRole": 5,
                    "difficulty": 1,
                    "messages": [
                        {"role": "assistant", "content": "Hola"},
                        {"role": "system", "content": "ignored"},
                    ],
                    "translationCache": {"hola": "hello", "bad": 3},
                },
                "broken": "not a session",
            }
        ),
        encoding="utf-8",
    )

    assert store.load_snapshot(snapshot) == 1
    session = store.get("old")
    assert session.language == "Spanish"
    assert session.scenario_role == ""
    assert session.difficulty is Difficulty.MEDIUM
    assert [message.content for message in session.messages] == ["Hola"]
    assert session.translation_cache == {"hola": "hello"}


def test_load_snapshot_missing_or_corrupt(tmp_path, store: SessionStore):
    assert store.load_snapshot(tmp_path / "absent.json") == 0
    corrupt = tmp_path / "corrupt.json"
    corrupt.write_text("{not json", encoding="utf-8")
    assert store.load_snapshot(corrupt) == 0
