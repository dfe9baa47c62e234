# src/merlin/http/client.py

"""
Authenticated HTTP client for the task/auth API.

- Attaches the bearer token from the session store to every request.
- Recovers from 401 with a transparent token refresh; concurrent 401s share
  one refresh through the RefreshCoordinator.
- Everything that is not a 401 propagates as NetworkError, without retries.

The client never navigates anywhere: on unrecoverable auth failure it clears
the session (which emits SESSION_INVALIDATED) and raises AuthError. Whoever
owns the UI decides what to show.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.errors import AuthError, NetworkError
from ..session.store import SessionStore
from .refresh import RefreshCoordinator

logger = logging.getLogger(__name__)

REFRESH_PATH = "/auth/refresh"


def _error_message(response: httpx.Response) -> str:
    """Best-effort human message from an error response."""
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for key in ("error", "message", "detail"):
            val = data.get(key)
            if isinstance(val, str) and val.strip():
                return val.strip()
    return response.reason_phrase or f"HTTP {response.status_code}"


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class AuthenticatedClient:
    def __init__(
        self,
        session: SessionStore,
        *,
        base_url: str = "",
        client: httpx.AsyncClient | None = None,
        timeout: httpx.Timeout | float | None = None,
        coordinator: RefreshCoordinator | None = None,
    ) -> None:
        self._session = session
        self._refresh = coordinator or RefreshCoordinator()
        # Cookies on the shared client carry the refresh credential.
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout if timeout is not None else 20.0,
            headers={"Content-Type": "application/json"},
        )

    @property
    def session(self) -> SessionStore:
        return self._session

    @property
    def refresh_coordinator(self) -> RefreshCoordinator:
        return self._refresh

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> AuthenticatedClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ---- public API ----

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        refresh_on_401: bool = True,
    ) -> Any:
        """
        Send a request and return the decoded body.

        Raises AuthError when the session cannot be (re)established and
        NetworkError for any other failure.
        """
        sent_token = self._session.token
        response = await self._send(method, path, json=json, params=params, token=sent_token)

        if response.status_code != 401:
            return self._unwrap(response)

        if not refresh_on_401:
            raise AuthError(_error_message(response))

        token = await self._recover_token(sent_token, original=response)
        retried = await self._send(method, path, json=json, params=params, token=token)
        if retried.status_code == 401:
            raise AuthError(_error_message(retried))
        return self._unwrap(retried)

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def refresh_session(self) -> str:
        """
        Refresh the access token now.

        If a refresh is already running, wait for it instead of starting a
        second one.
        """
        if self._refresh.is_refreshing:
            return await self._refresh.enqueue()
        return await self._run_refresh()

    # ---- internals ----

    async def _recover_token(self, sent_token: str | None, *, original: httpx.Response) -> str:
        if self._refresh.is_refreshing:
            logger.debug("401 during refresh; queueing request (queued=%d)", self._refresh.pending_count)
            return await self._refresh.enqueue()

        current = self._session.token
        if current and current != sent_token:
            # Someone refreshed while this request was on the wire.
            return current
        if sent_token and current is None:
            # The session ended while this request was on the wire.
            raise AuthError(_error_message(original), status=original.status_code)

        try:
            return await self._run_refresh()
        except AuthError as exc:
            raise AuthError(_error_message(original), status=original.status_code) from exc

    async def _run_refresh(self) -> str:
        had_session = self._session.is_authenticated
        self._refresh.begin()
        try:
            try:
                token, user, refresh_token = await self._call_refresh_endpoint()
            except Exception as exc:
                error = exc if isinstance(exc, AuthError) else AuthError(f"Session refresh failed: {exc}")
                logger.warning("Session refresh failed: %s", error)
                self._refresh.settle(error=error)
                # Nothing to invalidate when there was no session to begin with.
                self._session.clear(notify=had_session)
                if error is exc:
                    raise
                raise error from exc

            self._session.update_token(token, user, refresh_token)
            self._refresh.settle(token=token)
            logger.info("Session token refreshed")
            return token
        finally:
            if self._refresh.is_refreshing:
                # Cancelled mid-refresh: never leave the coordinator stuck.
                self._refresh.settle(error=AuthError("Session refresh aborted"))

    async def _call_refresh_endpoint(self) -> tuple[str, dict[str, Any] | None, str | None]:
        current = self._session.current()
        body: dict[str, Any] = {}
        if current is not None and current.refresh_token:
            body["refresh_token"] = current.refresh_token

        response = await self._send("POST", REFRESH_PATH, json=body, params=None, token=None)
        if response.status_code >= 400:
            raise AuthError(_error_message(response), status=response.status_code)

        data = _decode_body(response)
        if not isinstance(data, dict):
            raise AuthError("Refresh response is not an object")
        token = data.get("access_token")
        if not isinstance(token, str) or not token:
            raise AuthError("Refresh response has no access_token")

        user = data.get("user")
        new_refresh = data.get("refresh_token")
        return (
            token,
            user if isinstance(user, dict) else None,
            new_refresh if isinstance(new_refresh, str) and new_refresh else None,
        )

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json: Any,
        params: dict[str, Any] | None,
        token: str | None,
    ) -> httpx.Response:
        headers: dict[str, str] = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            return await self._client.request(method, path, json=json, params=params, headers=headers)
        except httpx.HTTPError as exc:
            logger.info("%s %s failed: %s", method, path, exc.__class__.__name__)
            raise NetworkError(0, f"Network error: {exc.__class__.__name__}") from exc

    @staticmethod
    def _unwrap(response: httpx.Response) -> Any:
        if response.status_code >= 400:
            raise NetworkError(response.status_code, _error_message(response))
        return _decode_body(response)
