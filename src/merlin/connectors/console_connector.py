# src/merlin/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.errors import AuthError, HttpError
from ..core.state import AppState, refresh_tasks
from ..session.store import Session, SessionEvent

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def _on_session_invalidated(event: SessionEvent, session: Session | None) -> None:
    print_ts("[AUTH] Your session has ended. Use /login <email> <password> to sign in again.")


def _on_token_refreshed(event: SessionEvent, session: Session | None) -> None:
    logger.debug("Session token refreshed (user=%s)", session.user.email if session and session.user else "?")


async def _initial_load(state: AppState) -> None:
    if not state.session.is_authenticated:
        print_ts("[AUTH] Not logged in. Use /login <email> <password>.")
        return
    try:
        await refresh_tasks(state)
        print_ts(f"[TASKS] {len(state.tasks)} task(s) loaded.")
    except AuthError:
        # SESSION_INVALIDATED already told the user what to do.
        pass
    except HttpError as e:
        print_ts(f"[TASKS] Failed to load tasks: {e.message}")


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    app_name = str(getattr(state.settings, "app_name", "merlin"))
    print_ts("[CONSOLE] Type /help for commands, or just ask the assistant. Use /exit to quit.\n")

    unsubscribe = [
        state.session.subscribe(SessionEvent.SESSION_INVALIDATED, _on_session_invalidated),
        state.session.subscribe(SessionEvent.TOKEN_REFRESHED, _on_token_refreshed),
    ]

    try:
        await _initial_load(state)

        while True:
            try:
                user_input = (await asyncio.to_thread(input, ">>> You: ")).strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            try:
                cmd_response = await command_registry.handle(state, user_input, emit=print_ts)
            except Exception:
                logger.exception("Command handler crashed.")
                cmd_response = "Internal error while handling a command."

            if cmd_response is not None:
                print_ts(cmd_response)
                continue

            assistant = state.assistant
            if assistant is None:
                print_ts("[AI] Assistant is not available.")
                continue

            reply = await assistant.send(user_input, state.tasks)
            if reply is None:
                print_ts("[AI] Still working on the previous message...")
                continue
            print_ts(f"<<< {app_name}: {reply.text}\n")
    finally:
        for unsub in unsubscribe:
            unsub()

    logger.info("Console connector finished.")
