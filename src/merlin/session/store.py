# src/merlin/session/store.py

"""
Session store.

Holds the current token + user, keeps them in sync with persistent storage,
and lets other components subscribe to two events:

- TOKEN_REFRESHED: the HTTP client obtained a new access token
- SESSION_INVALIDATED: logout, or the session could not be refreshed

Writers: the login/logout flow and the HTTP client (on refresh).
Readers: every outbound request.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any

from ..core.ports import KeyValueStorage

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
USER_KEY = "user"


class SessionEvent(StrEnum):
    TOKEN_REFRESHED = "token_refreshed"
    SESSION_INVALIDATED = "session_invalidated"


@dataclass(frozen=True, slots=True)
class User:
    email: str
    name: str
    role: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> User:
        known = {"email", "name", "role"}
        role = data.get("role")
        return cls(
            email=str(data.get("email") or ""),
            name=str(data.get("name") or ""),
            role=str(role) if role is not None else None,
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_mapping(self) -> dict[str, Any]:
        out: dict[str, Any] = dict(self.extra)
        out["email"] = self.email
        out["name"] = self.name
        if self.role is not None:
            out["role"] = self.role
        return out


@dataclass(frozen=True, slots=True)
class Session:
    token: str
    user: User | None = None
    refresh_token: str | None = None


SessionListener = Callable[[SessionEvent, Session | None], None]


class SessionStore:
    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage
        self._session: Session | None = None
        self._listeners: dict[SessionEvent, list[SessionListener]] = {e: [] for e in SessionEvent}

    # ---- reads ----

    def current(self) -> Session | None:
        return self._session

    @property
    def token(self) -> str | None:
        return self._session.token if self._session is not None else None

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    # ---- lifecycle ----

    def load(self) -> Session | None:
        """
        Restore the session from storage.

        Corrupt data (unparseable user, user without token) is wiped and the
        store starts logged out. No event is emitted: nothing was invalidated,
        there simply was no usable session.
        """
        token = self._storage.get(ACCESS_TOKEN_KEY)
        raw_user = self._storage.get(USER_KEY)
        refresh_token = self._storage.get(REFRESH_TOKEN_KEY)

        if not token:
            if raw_user or refresh_token:
                logger.warning("Persisted session has no access token; clearing it.")
                self._wipe()
            self._session = None
            return None

        user: User | None = None
        if raw_user:
            try:
                data = json.loads(raw_user)
                if not isinstance(data, dict):
                    raise ValueError("user is not an object")
                user = User.from_mapping(data)
            except ValueError:
                logger.warning("Persisted user data is corrupt; clearing session.")
                self._wipe()
                self._session = None
                return None

        self._session = Session(token=token, user=user, refresh_token=refresh_token or None)
        logger.info("Session restored (user=%s)", user.email if user else "?")
        return self._session

    def save(
        self,
        token: str,
        user: User | Mapping[str, Any] | None,
        refresh_token: str | None = None,
    ) -> Session:
        """Persist a fresh session (login). Replaces whatever was there."""
        if not token:
            raise ValueError("token must be a non-empty string")
        if user is not None and not isinstance(user, User):
            user = User.from_mapping(user)

        self._storage.set(ACCESS_TOKEN_KEY, token)
        if user is not None:
            self._storage.set(USER_KEY, json.dumps(user.to_mapping(), ensure_ascii=False))
        else:
            self._storage.delete(USER_KEY)
        if refresh_token:
            self._storage.set(REFRESH_TOKEN_KEY, refresh_token)
        else:
            self._storage.delete(REFRESH_TOKEN_KEY)

        self._session = Session(token=token, user=user, refresh_token=refresh_token)
        return self._session

    def update_token(
        self,
        token: str,
        user: User | Mapping[str, Any] | None = None,
        refresh_token: str | None = None,
    ) -> Session:
        """
        Store a refreshed token, keeping the known user (and refresh token)
        unless new ones are provided, then emit TOKEN_REFRESHED.
        """
        if not token:
            raise ValueError("token must be a non-empty string")
        if user is not None and not isinstance(user, User):
            user = User.from_mapping(user)

        prev = self._session
        self._storage.set(ACCESS_TOKEN_KEY, token)
        if user is not None:
            self._storage.set(USER_KEY, json.dumps(user.to_mapping(), ensure_ascii=False))
        if refresh_token:
            self._storage.set(REFRESH_TOKEN_KEY, refresh_token)

        if prev is None:
            self._session = Session(token=token, user=user, refresh_token=refresh_token)
        else:
            self._session = replace(
                prev,
                token=token,
                user=user if user is not None else prev.user,
                refresh_token=refresh_token or prev.refresh_token,
            )

        self._emit(SessionEvent.TOKEN_REFRESHED, self._session)
        return self._session

    def update_user(self, user: User | Mapping[str, Any]) -> None:
        """Replace the stored user (profile edits). No-op when logged out."""
        if self._session is None:
            return
        if not isinstance(user, User):
            user = User.from_mapping(user)
        self._storage.set(USER_KEY, json.dumps(user.to_mapping(), ensure_ascii=False))
        self._session = replace(self._session, user=user)

    def clear(self, *, notify: bool = True) -> None:
        """Forget the session everywhere and emit SESSION_INVALIDATED."""
        self._wipe()
        self._session = None
        if notify:
            self._emit(SessionEvent.SESSION_INVALIDATED, None)

    def _wipe(self) -> None:
        for key in (ACCESS_TOKEN_KEY, USER_KEY, REFRESH_TOKEN_KEY):
            self._storage.delete(key)

    # ---- subscriptions ----

    def subscribe(self, event: SessionEvent, listener: SessionListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        listeners = self._listeners[SessionEvent(event)]
        listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in listeners:
                listeners.remove(listener)

        return _unsubscribe

    def _emit(self, event: SessionEvent, session: Session | None) -> None:
        for listener in list(self._listeners[event]):
            try:
                listener(event, session)
            except Exception:
                logger.exception("Session listener failed (event=%s)", event.value)
