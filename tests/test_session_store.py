# tests/test_session_store.py

from __future__ import annotations

import json
from pathlib import Path

from merlin.session.storage import JsonFileStorage, MemoryStorage
from merlin.session.store import SessionEvent, SessionStore, User


def test_save_and_load_roundtrip_through_file(tmp_path: Path) -> None:
    path = tmp_path / "sub" / "session.json"
    store = SessionStore(JsonFileStorage(path))
    store.save("tok-1", {"email": "ada@example.com", "name": "Ada", "role": "admin"}, refresh_token="r-1")

    restored = SessionStore(JsonFileStorage(path)).load()

    assert restored is not None
    assert restored.token == "tok-1"
    assert restored.refresh_token == "r-1"
    assert restored.user == User(email="ada@example.com", name="Ada", role="admin")
    assert json.loads(path.read_text("utf-8"))["access_token"] == "tok-1"


def test_corrupt_file_reads_as_empty(tmp_path: Path) -> None:
    path = tmp_path / "session.json"
    path.write_text("{not json", "utf-8")

    store = SessionStore(JsonFileStorage(path))

    assert store.load() is None
    assert not store.is_authenticated


def test_corrupt_user_clears_everything() -> None:
    storage = MemoryStorage({"access_token": "tok", "user": "{broken"})
    store = SessionStore(storage)

    assert store.load() is None
    assert storage.get("access_token") is None
    assert storage.get("user") is None


def test_user_without_token_is_wiped() -> None:
    storage = MemoryStorage({"user": json.dumps({"email": "a@b.c", "name": "A"})})
    store = SessionStore(storage)

    assert store.load() is None
    assert storage.get("user") is None


def test_token_without_user_is_a_valid_session() -> None:
    store = SessionStore(MemoryStorage({"access_token": "tok"}))

    session = store.load()

    assert session is not None
    assert session.user is None
    assert store.token == "tok"


def test_load_emits_nothing() -> None:
    store = SessionStore(MemoryStorage({"user": "[]"}))
    events: list[SessionEvent] = []
    store.subscribe(SessionEvent.SESSION_INVALIDATED, lambda e, _s: events.append(e))

    store.load()

    assert events == []


def test_update_token_keeps_user_and_notifies(session_store: SessionStore) -> None:
    session_store.save("old", {"email": "ada@example.com", "name": "Ada"}, refresh_token="r")
    seen = []
    session_store.subscribe(SessionEvent.TOKEN_REFRESHED, lambda e, s: seen.append((e, s)))

    session = session_store.update_token("new")

    assert session.token == "new"
    assert session.user is not None and session.user.name == "Ada"
    assert session.refresh_token == "r"
    assert seen == [(SessionEvent.TOKEN_REFRESHED, session)]


def test_clear_emits_invalidated(session_store: SessionStore, storage: MemoryStorage) -> None:
    session_store.save("tok", None)
    events: list[SessionEvent] = []
    session_store.subscribe(SessionEvent.SESSION_INVALIDATED, lambda e, _s: events.append(e))

    session_store.clear()

    assert events == [SessionEvent.SESSION_INVALIDATED]
    assert session_store.current() is None
    assert storage.get("access_token") is None


def test_clear_without_notify_is_silent(session_store: SessionStore) -> None:
    session_store.save("tok", None)
    events: list[SessionEvent] = []
    session_store.subscribe(SessionEvent.SESSION_INVALIDATED, lambda e, _s: events.append(e))

    session_store.clear(notify=False)

    assert events == []


def test_unsubscribe_and_failing_listener(session_store: SessionStore) -> None:
    calls: list[str] = []

    def broken(_e, _s) -> None:
        raise RuntimeError("listener bug")

    session_store.subscribe(SessionEvent.SESSION_INVALIDATED, broken)
    unsubscribe = session_store.subscribe(SessionEvent.SESSION_INVALIDATED, lambda _e, _s: calls.append("a"))
    session_store.subscribe(SessionEvent.SESSION_INVALIDATED, lambda _e, _s: calls.append("b"))

    session_store.clear()
    unsubscribe()
    session_store.clear()

    assert calls == ["a", "b", "b"]


def test_update_user_is_noop_when_logged_out(session_store: SessionStore, storage: MemoryStorage) -> None:
    session_store.update_user({"email": "x@y.z", "name": "X"})

    assert storage.get("user") is None
    assert session_store.current() is None
