# src/merlin/http/refresh.py

"""
Process-wide session refresh coordinator.

At most one refresh call may be in flight. Requests that hit 401 while a
refresh is running park a future here and get the outcome when it settles:
the new token, or the error that ended the refresh.

Everything runs on one event loop, so a state flag plus a list of futures is
enough; there is no lock.
"""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum

logger = logging.getLogger(__name__)


class RefreshState(StrEnum):
    IDLE = "idle"
    REFRESHING = "refreshing"


class RefreshCoordinator:
    def __init__(self) -> None:
        self._state = RefreshState.IDLE
        self._pending: list[asyncio.Future[str]] = []

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def is_refreshing(self) -> bool:
        return self._state is RefreshState.REFRESHING

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def begin(self) -> None:
        if self._state is RefreshState.REFRESHING:
            raise RuntimeError("a refresh is already in progress")
        self._state = RefreshState.REFRESHING
        logger.debug("Session refresh started")

    def enqueue(self) -> asyncio.Future[str]:
        """Park a caller until the in-flight refresh settles."""
        if self._state is not RefreshState.REFRESHING:
            raise RuntimeError("no refresh in progress")
        fut: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        self._pending.append(fut)
        return fut

    def settle(self, *, token: str | None = None, error: BaseException | None = None) -> None:
        """
        Leave REFRESHING and release every parked caller in enqueue order:
        with `token` on success, with `error` otherwise.

        The state goes back to IDLE before any future is resolved.
        """
        if (token is None) == (error is None):
            raise ValueError("settle() needs exactly one of token or error")

        pending, self._pending = self._pending, []
        self._state = RefreshState.IDLE

        for fut in pending:
            if fut.done():
                # Waiter was cancelled while parked.
                continue
            if error is not None:
                fut.set_exception(error)
            else:
                fut.set_result(token)  # type: ignore[arg-type]

        logger.debug(
            "Session refresh settled (%s), released %d queued request(s)",
            "ok" if error is None else "failed",
            len(pending),
        )
