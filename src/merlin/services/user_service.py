# src/merlin/services/user_service.py

from __future__ import annotations

from typing import Any

from ..http.client import AuthenticatedClient
from ..session.store import SessionStore


class UserService:
    """Profile endpoints (/users/)."""

    def __init__(self, http: AuthenticatedClient, session: SessionStore) -> None:
        self._http = http
        self._session = session

    async def get_user(self) -> Any:
        return await self._http.get("/users/")

    async def update_user(self, data: dict[str, Any]) -> Any:
        updated = await self._http.put("/users/", json=dict(data))
        if isinstance(updated, dict):
            user = updated.get("user", updated)
            if isinstance(user, dict) and user.get("email"):
                self._session.update_user(user)
        return updated

    async def delete_user(self) -> Any:
        result = await self._http.delete("/users/")
        self._session.clear()
        return result

    async def change_password(self, old_password: str, new_password: str) -> Any:
        return await self._http.put(
            "/users/change-password",
            json={"old_password": old_password, "new_password": new_password},
        )
