# src/merlin/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import cast

from ..core.errors import AuthError, HttpError, ParseError
from ..core.state import AppState, refresh_tasks
from ..tasks.analytics import DateWindow, compute_analytics, format_report
from ..tasks.summary import generate_task_summary
from ..tasks.task_models import Task, TaskStatus

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                return await cast(CommandHandler3, handler)(state, args, emit)
            return await cast(CommandHandler2, handler)(state, args)
        except AuthError as e:
            logger.info("/%s: auth error: %s", name, e.message)
            return f"Not logged in or session expired ({e.message}). Use /login <email> <password>."
        except HttpError as e:
            logger.info("/%s: http error: %s", name, e)
            return f"Request failed: {e.message}"
        except ParseError as e:
            logger.warning("/%s: unexpected response: %s", name, e)
            return "The server returned data in an unexpected format."

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        lines.append("  /exit - Quit.")
        lines.append("Anything else is sent to the assistant.")
        return "\n".join(lines)


registry = CommandRegistry()


def _format_task_line(t: Task) -> str:
    mark = {"done": "x", "in-progress": "~"}.get(t.status, " ")
    desc = f" - {t.description}" if t.description else ""
    return f"[{mark}] {t.id}: {t.title}{desc} ({t.status})"


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str]) -> str:
    session = state.session.current()
    who = "logged out"
    if session is not None:
        who = f"logged in as {session.user.email}" if session.user else "logged in"
    models = ", ".join(list(getattr(state.settings, "llm_models", []) or []))
    return (
        "Status:\n"
        f"  API: {getattr(state.settings, 'api_url', '?')}\n"
        f"  Session: {who}\n"
        f"  Assistant: {state.llm.__class__.__name__}\n"
        f"  Models (priority -> fallback): {models}"
    )


async def cmd_login(state: AppState, args: list[str]) -> str:
    if len(args) != 2:
        return "Usage: /login <email> <password>"
    try:
        session = await state.auth.login(args[0], args[1])
    except AuthError:
        return "Invalid login."
    await refresh_tasks(state)
    name = session.user.name if session.user and session.user.name else args[0]
    return f"Welcome, {name}. {len(state.tasks)} task(s) loaded."


async def cmd_register(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /register <email> <password> [name]"
    data = {"email": args[0], "password": args[1]}
    if len(args) > 2:
        data["name"] = " ".join(args[2:])
    await state.auth.register(data)
    return "Account created. Use /login to sign in."


async def cmd_logout(state: AppState, args: list[str]) -> str:
    state.auth.logout()
    state.tasks = []
    return "Logged out."


async def cmd_whoami(state: AppState, args: list[str]) -> str:
    session = state.session.current()
    if session is None:
        return "Not logged in."
    if session.user is None:
        return "Logged in (no profile cached)."
    role = f" [{session.user.role}]" if session.user.role else ""
    return f"{session.user.name} <{session.user.email}>{role}"


async def cmd_tasks(state: AppState, args: list[str]) -> str:
    tasks = await refresh_tasks(state)
    if not tasks:
        return "No tasks yet. Create one with /add <title>."
    lines = [f"{len(tasks)} {'item' if len(tasks) == 1 else 'items'}:"]
    lines.extend(_format_task_line(t) for t in tasks)
    return "\n".join(lines)


async def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <title>                 -> create a task
    /add <title> | <description> -> create a task with a description
    """
    raw = " ".join(args).strip()
    if not raw:
        return "Usage: /add <title> [| description]"
    title, _, description = raw.partition("|")
    await state.tasks_api.create_task(title.strip(), description.strip())
    await refresh_tasks(state)
    return f"Created: {title.strip()}"


def _status_command(name: str, status: TaskStatus) -> Callable[[AppState, list[str]], Awaitable[str]]:
    async def _cmd(state: AppState, args: list[str]) -> str:
        if len(args) != 1:
            return f"Usage: /{name} <id>"
        await state.tasks_api.set_status(args[0], status)
        await refresh_tasks(state)
        return f"Task {args[0]} -> {status.value}"

    return _cmd


async def cmd_rm(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /rm <id>"
    await state.tasks_api.delete_task(args[0])
    await refresh_tasks(state)
    return f"Deleted task {args[0]}."


async def cmd_summary(state: AppState, args: list[str]) -> str:
    return generate_task_summary(await refresh_tasks(state))


async def cmd_stats(state: AppState, args: list[str]) -> str:
    """
    /stats                      -> default window (settings)
    /stats today|last7days|thismonth
    /stats 2024-01-01 2024-01-31
    """
    try:
        if args:
            window = DateWindow.parse(args)
        else:
            window = DateWindow.parse([getattr(state.settings, "analytics_default_window", "last7days")])
        tasks = await refresh_tasks(state)
        report = compute_analytics(tasks, window)
    except ValueError as e:
        return f"Bad window ({e}). Usage: /stats [today|last7days|thismonth|<start> <end>]"
    return format_report(report)


async def cmd_profile(state: AppState, args: list[str]) -> str:
    """
    /profile             -> show profile from the server
    /profile name <new>  -> rename
    """
    if not args:
        user = await state.users.get_user()
        if not isinstance(user, dict):
            return str(user)
        return "\n".join(f"  {k}: {v}" for k, v in user.items())

    if args[0].lower() == "name" and len(args) > 1:
        await state.users.update_user({"name": " ".join(args[1:])})
        return "Profile updated successfully."

    return "Usage: /profile | /profile name <new name>"


async def cmd_passwd(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) != 2:
        return "Usage: /passwd <old> <new>"
    if emit:
        emit("Changing password...")
    await state.users.change_password(args[0], args[1])
    return "Password changed successfully."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show session and assistant configuration.")
registry.register("login", cmd_login, help_text="Sign in: /login <email> <password>.")
registry.register("register", cmd_register, help_text="Create an account: /register <email> <password> [name].")
registry.register("logout", cmd_logout, help_text="Sign out and forget the stored session.")
registry.register("whoami", cmd_whoami, help_text="Show the signed-in user.")
registry.register("tasks", cmd_tasks, help_text="List tasks.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Create a task: /add <title> [| description].")
registry.register("start", _status_command("start", TaskStatus.IN_PROGRESS), help_text="Mark a task in progress: /start <id>.")
registry.register("done", _status_command("done", TaskStatus.DONE), help_text="Mark a task done: /done <id>.")
registry.register("todo", _status_command("todo", TaskStatus.TODO), help_text="Move a task back to todo: /todo <id>.")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <id>.", aliases=["delete"])
registry.register("summary", cmd_summary, help_text="Short productivity summary.")
registry.register("stats", cmd_stats, help_text="Analytics: /stats [today|last7days|thismonth|<start> <end>].")
registry.register("profile", cmd_profile, help_text="Show or edit profile: /profile [name <new name>].")
registry.register("passwd", cmd_passwd, help_text="Change password: /passwd <old> <new>.")
