# tests/test_http_client.py

from __future__ import annotations

import asyncio

import httpx
import pytest

from merlin.core.errors import AuthError, NetworkError
from merlin.http.client import AuthenticatedClient
from merlin.http.refresh import RefreshState
from merlin.session.store import SessionEvent, SessionStore

from .fakes import FakeApi


def _client(session: SessionStore, api: FakeApi) -> AuthenticatedClient:
    return AuthenticatedClient(session, client=api.client())


@pytest.mark.asyncio
async def test_attaches_bearer_token(session_store: SessionStore, fake_api: FakeApi) -> None:
    session_store.save("fresh-token", {"email": "ada@example.com", "name": "Ada"})
    client = _client(session_store, fake_api)

    assert await client.get("/tasks") == {"tasks": []}
    assert fake_api.requests[0].headers["Authorization"] == "Bearer fresh-token"
    assert fake_api.refresh_calls == 0
    await client.aclose()


@pytest.mark.asyncio
async def test_no_token_is_not_an_error(session_store: SessionStore, fake_api: FakeApi) -> None:
    client = _client(session_store, fake_api)

    assert await client.get("/public") == {"ok": True}
    assert "Authorization" not in fake_api.requests[0].headers
    await client.aclose()


@pytest.mark.asyncio
async def test_concurrent_401s_share_one_refresh(session_store: SessionStore, fake_api: FakeApi) -> None:
    fake_api.refresh_user = {"email": "ada@example.com", "name": "Ada Lovelace"}
    session_store.save("stale-token", {"email": "ada@example.com", "name": "Ada"})
    refreshed: list[str | None] = []
    session_store.subscribe(
        SessionEvent.TOKEN_REFRESHED,
        lambda _e, s: refreshed.append(s.token if s else None),
    )
    client = _client(session_store, fake_api)

    results = await asyncio.gather(*(client.get("/tasks") for _ in range(5)))

    assert results == [{"tasks": []}] * 5
    assert fake_api.refresh_calls == 1
    assert refreshed == ["fresh-token"]
    assert session_store.token == "fresh-token"
    current = session_store.current()
    assert current is not None and current.user is not None
    assert current.user.name == "Ada Lovelace"
    assert client.refresh_coordinator.state is RefreshState.IDLE
    await client.aclose()


@pytest.mark.asyncio
async def test_refresh_failure_rejects_everyone_and_clears_session(
    session_store: SessionStore, storage, fake_api: FakeApi
) -> None:
    fake_api.refresh_ok = False
    session_store.save("stale-token", {"email": "ada@example.com", "name": "Ada"}, refresh_token="r1")
    invalidated: list[SessionEvent] = []
    session_store.subscribe(SessionEvent.SESSION_INVALIDATED, lambda e, _s: invalidated.append(e))
    client = _client(session_store, fake_api)

    results = await asyncio.gather(*(client.get("/tasks") for _ in range(3)), return_exceptions=True)

    assert all(isinstance(r, AuthError) for r in results)
    assert fake_api.refresh_calls == 1
    assert invalidated == [SessionEvent.SESSION_INVALIDATED]
    assert session_store.current() is None
    assert storage.get("access_token") is None
    assert storage.get("user") is None
    assert storage.get("refresh_token") is None
    assert client.refresh_coordinator.state is RefreshState.IDLE
    await client.aclose()


@pytest.mark.asyncio
async def test_refresh_sends_persisted_refresh_token(session_store: SessionStore, fake_api: FakeApi) -> None:
    session_store.save("stale-token", None, refresh_token="long-lived")
    client = _client(session_store, fake_api)

    await client.get("/tasks")

    refresh_req = next(r for r in fake_api.requests if r.url.path == "/auth/refresh")
    assert b"long-lived" in refresh_req.content
    assert "Authorization" not in refresh_req.headers
    await client.aclose()


@pytest.mark.asyncio
async def test_still_401_after_refresh_raises_auth_error(session_store: SessionStore) -> None:
    api = FakeApi()

    async def handler(request: httpx.Request) -> httpx.Response:
        api.requests.append(request)
        if request.url.path == "/auth/refresh":
            api.refresh_calls += 1
            return httpx.Response(200, json={"access_token": "useless"})
        return httpx.Response(401, json={"error": "nope"})

    session_store.save("stale-token", None)
    client = AuthenticatedClient(
        session_store,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://api.test"),
    )

    with pytest.raises(AuthError):
        await client.get("/tasks")
    assert api.refresh_calls == 1
    assert api.paths() == ["/tasks", "/auth/refresh", "/tasks"]
    await client.aclose()


@pytest.mark.asyncio
async def test_non_401_errors_propagate_without_retry(session_store: SessionStore, fake_api: FakeApi) -> None:
    session_store.save("fresh-token", None)
    client = _client(session_store, fake_api)

    with pytest.raises(NetworkError) as info:
        await client.get("/boom")

    assert info.value.status == 500
    assert info.value.message == "database on fire"
    assert fake_api.paths() == ["/boom"]
    assert fake_api.refresh_calls == 0
    await client.aclose()


@pytest.mark.asyncio
async def test_transport_failure_is_network_error(session_store: SessionStore) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = AuthenticatedClient(
        session_store,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://api.test"),
    )

    with pytest.raises(NetworkError) as info:
        await client.get("/tasks")
    assert info.value.status == 0
    await client.aclose()


@pytest.mark.asyncio
async def test_refresh_on_401_disabled_skips_refresh(session_store: SessionStore, fake_api: FakeApi) -> None:
    client = _client(session_store, fake_api)

    with pytest.raises(AuthError) as info:
        await client.post("/auth/login", json={"email": "x", "password": "bad"}, refresh_on_401=False)

    assert info.value.message == "Invalid credentials"
    assert fake_api.refresh_calls == 0
    await client.aclose()


@pytest.mark.asyncio
async def test_explicit_refresh_joins_running_refresh(session_store: SessionStore, fake_api: FakeApi) -> None:
    session_store.save("stale-token", None)
    client = _client(session_store, fake_api)

    tokens = await asyncio.gather(client.refresh_session(), client.refresh_session())

    assert tokens == ["fresh-token", "fresh-token"]
    assert fake_api.refresh_calls == 1
    await client.aclose()


class _LateApi:
    """`/slow` holds its response until `release` is set; `/fast` answers at once."""

    def __init__(self, *, refresh_ok: bool) -> None:
        self.refresh_ok = refresh_ok
        self.refresh_calls = 0
        self.slow_started = asyncio.Event()
        self.release = asyncio.Event()

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/refresh":
            self.refresh_calls += 1
            if not self.refresh_ok:
                return httpx.Response(401, json={"error": "refresh token expired"})
            return httpx.Response(200, json={"access_token": "t2"})
        if request.url.path == "/slow" and not self.release.is_set():
            self.slow_started.set()
            await self.release.wait()
        if request.headers.get("Authorization") != "Bearer t2":
            return httpx.Response(401, json={"error": "token expired"})
        return httpx.Response(200, json={"path": request.url.path})

    def client(self, session: SessionStore) -> AuthenticatedClient:
        transport = httpx.MockTransport(self.handler)
        return AuthenticatedClient(session, client=httpx.AsyncClient(transport=transport, base_url="http://api.test"))


@pytest.mark.asyncio
async def test_late_401_after_refresh_reuses_new_token(session_store: SessionStore) -> None:
    api = _LateApi(refresh_ok=True)
    session_store.save("t1", None)
    client = api.client(session_store)

    slow = asyncio.create_task(client.get("/slow"))
    await api.slow_started.wait()
    assert await client.get("/fast") == {"path": "/fast"}

    api.release.set()
    assert await slow == {"path": "/slow"}
    assert api.refresh_calls == 1
    await client.aclose()


@pytest.mark.asyncio
async def test_late_401_after_failed_refresh_does_not_refresh_again(session_store: SessionStore) -> None:
    api = _LateApi(refresh_ok=False)
    session_store.save("t1", None)
    invalidated: list[SessionEvent] = []
    session_store.subscribe(SessionEvent.SESSION_INVALIDATED, lambda e, _s: invalidated.append(e))
    client = api.client(session_store)

    slow = asyncio.create_task(client.get("/slow"))
    await api.slow_started.wait()
    with pytest.raises(AuthError):
        await client.get("/fast")

    api.release.set()
    with pytest.raises(AuthError):
        await slow
    assert api.refresh_calls == 1
    assert invalidated == [SessionEvent.SESSION_INVALIDATED]
    await client.aclose()


@pytest.mark.asyncio
async def test_failed_refresh_without_session_is_silent(session_store: SessionStore, fake_api: FakeApi) -> None:
    fake_api.refresh_ok = False
    invalidated: list[SessionEvent] = []
    session_store.subscribe(SessionEvent.SESSION_INVALIDATED, lambda e, _s: invalidated.append(e))
    client = _client(session_store, fake_api)

    with pytest.raises(AuthError):
        await client.get("/tasks")

    assert fake_api.refresh_calls == 1
    assert invalidated == []
    await client.aclose()
