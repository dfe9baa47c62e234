# src/merlin/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (session/HTTP/services/LLM),
- builds the assistant with its dashboard callbacks.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import httpx

from ..config import get_settings
from ..core.assistant import TaskAssistant
from ..core.errors import MerlinError
from ..core.ports import LLMClient
from ..core.state import AppState, refresh_tasks
from ..http.client import AuthenticatedClient
from ..llm.client import OpenRouterLLMClient
from ..llm.offline import OfflineLLMClient
from ..services.auth_service import AuthService
from ..services.user_service import UserService
from ..session.storage import JsonFileStorage
from ..session.store import SessionStore
from ..tasks.task_api import TaskApi

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.session_path.parent.mkdir(parents=True, exist_ok=True)


def build_llm_client(settings) -> LLMClient:
    try:
        return OpenRouterLLMClient(settings)
    except MerlinError as e:
        # Fallback for demos / local runs without external services.
        logger.info("LLM unavailable (%s); using offline client", e)
        return OfflineLLMClient()


def create_initial_state(
    *,
    settings=None,
    notify: Callable[[str], None] | None = None,
    http_client: httpx.AsyncClient | None = None,
    llm: LLMClient | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the network clients) injectable makes the app easier
    to test and avoids hidden global config reads.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    session = SessionStore(JsonFileStorage(settings.session_path))
    session.load()

    timeout = httpx.Timeout(
        connect=settings.http_connect_timeout,
        read=settings.http_read_timeout,
        write=10.0,
        pool=settings.http_connect_timeout,
    )
    http = AuthenticatedClient(session, base_url=settings.api_url, client=http_client, timeout=timeout)
    tasks_api = TaskApi(http)

    state = AppState(
        settings=settings,
        session=session,
        http=http,
        auth=AuthService(http, session),
        users=UserService(http, session),
        tasks_api=tasks_api,
        llm=llm or build_llm_client(settings),
    )

    async def _on_tasks_changed() -> None:
        await refresh_tasks(state)

    state.assistant = TaskAssistant(
        state.llm,
        tasks_api,
        on_tasks_changed=_on_tasks_changed,
        notify=notify,
    )
    return state
