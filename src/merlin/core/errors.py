# src/merlin/core/errors.py

"""
Error taxonomy.

- HttpError and its subclasses come out of the HTTP client.
  AuthError means "the session is not (or no longer) valid";
  NetworkError is everything else, including transport failures (status=0).
- ParseError is raised at the service boundary when a payload has no
  recognized shape.
- ToolDispatchError and ModelError belong to the assistant; neither is allowed
  to escape a chat turn.
"""

from __future__ import annotations


class MerlinError(Exception):
    """Base class for all application errors."""


class HttpError(MerlinError):
    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"HTTP {status}: {message}" if status else message)
        self.status = status
        self.message = message


class AuthError(HttpError):
    def __init__(self, message: str = "Not authenticated", status: int = 401) -> None:
        super().__init__(status, message)


class NetworkError(HttpError):
    pass


class ParseError(MerlinError):
    pass


class ToolDispatchError(MerlinError):
    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(f"{tool_name}: {message}")
        self.tool_name = tool_name
        self.message = message


class ModelError(MerlinError):
    pass
