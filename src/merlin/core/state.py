# src/merlin/core/state.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..http.client import AuthenticatedClient
from ..services.auth_service import AuthService
from ..services.user_service import UserService
from ..session.store import SessionStore
from ..tasks.task_api import TaskApi
from ..tasks.task_models import Task
from .assistant import TaskAssistant
from .errors import AuthError, HttpError, ParseError
from .ports import LLMClient

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    settings: Any

    session: SessionStore
    http: AuthenticatedClient
    auth: AuthService
    users: UserService
    tasks_api: TaskApi
    llm: LLMClient
    assistant: TaskAssistant | None = None

    # Last task list fetched from the API (the dashboard's view of the world).
    tasks: list[Task] = field(default_factory=list)


async def refresh_tasks(state: AppState) -> list[Task]:
    """
    Re-fetch the task list into state.tasks.

    Failures keep the previous list; an expired session empties it.
    """
    try:
        state.tasks = await state.tasks_api.list_tasks()
    except AuthError:
        state.tasks = []
        raise
    except (HttpError, ParseError):
        logger.exception("Failed to load tasks")
        raise
    logger.debug("Loaded %d task(s)", len(state.tasks))
    return state.tasks
