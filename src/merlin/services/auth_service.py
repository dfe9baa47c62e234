# src/merlin/services/auth_service.py

from __future__ import annotations

import logging
from typing import Any

from ..core.errors import AuthError
from ..http.client import AuthenticatedClient
from ..session.store import Session, SessionStore

logger = logging.getLogger(__name__)

_TOKEN_FIELDS = {"access_token", "refresh_token", "token_type", "expires_in"}


def _user_from_login(data: dict[str, Any]) -> dict[str, Any] | None:
    """
    The login response either nests the user ({"user": {...}}) or spreads its
    fields next to the token. Accept both.
    """
    user = data.get("user")
    if isinstance(user, dict):
        return user
    fields = {k: v for k, v in data.items() if k not in _TOKEN_FIELDS}
    return fields or None


class AuthService:
    """Login / register / logout on top of the HTTP client and session store."""

    def __init__(self, http: AuthenticatedClient, session: SessionStore) -> None:
        self._http = http
        self._session = session

    async def login(self, email: str, password: str) -> Session:
        # A 401 here means bad credentials, not an expired token.
        data = await self._http.post(
            "/auth/login",
            json={"email": email, "password": password},
            refresh_on_401=False,
        )
        if not isinstance(data, dict):
            raise AuthError("Unexpected login response")

        token = data.get("access_token")
        if not isinstance(token, str) or not token:
            raise AuthError("Login response has no access_token")

        refresh_token = data.get("refresh_token")
        session = self._session.save(
            token,
            _user_from_login(data),
            refresh_token if isinstance(refresh_token, str) else None,
        )
        logger.info("Logged in as %s", email)
        return session

    async def register(self, data: dict[str, Any]) -> Any:
        return await self._http.post("/auth/register", json=dict(data), refresh_on_401=False)

    async def refresh(self) -> str:
        return await self._http.refresh_session()

    def logout(self) -> None:
        self._session.clear()
        logger.info("Logged out")
