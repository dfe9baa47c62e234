# src/merlin/llm/client.py

from __future__ import annotations

import json
import logging
import time
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from ..core.errors import ModelError
from ..core.ports import ChatMessage, ModelReply, ToolCall

logger = logging.getLogger(__name__)

# model -> retry_at (monotonic)
_BAD_MODELS: dict[str, float] = {}


def _is_auth_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError))


def _is_rate_limit_error(exc: Exception) -> bool:
    return isinstance(exc, openai.RateLimitError)


def _is_connection_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.APIConnectionError, httpx.TransportError)):
        return True
    return isinstance(exc, TimeoutError)


def _is_not_found_error(exc: Exception) -> bool:
    # OpenAI-compatible gateways use 404 for "model not available here".
    return isinstance(exc, openai.NotFoundError)


def friendly_llm_error_message(err: Exception) -> str:
    msg = str(err).strip() or "LLM error."
    if "LLM API key is not set" in msg:
        return "Assistant is not configured (missing API key). Set MERLIN_LLM_API_KEY in .env."
    if "LLM model list is empty" in msg:
        return "Assistant is not configured (no models). Set MERLIN_LLM_MODELS in .env."
    return msg


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        val = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("LLM: tool arguments are not valid JSON; using {}")
        return {}
    return val if isinstance(val, dict) else {}


def parse_completion(response: Any) -> ModelReply:
    """Turn a chat.completions response into a ModelReply."""
    try:
        message = response.choices[0].message
    except (AttributeError, IndexError, TypeError) as e:
        raise ModelError("Model returned no choices.") from e

    text = getattr(message, "content", None) or ""
    calls: list[ToolCall] = []
    for tc in getattr(message, "tool_calls", None) or []:
        fn = getattr(tc, "function", None)
        name = getattr(fn, "name", None) if fn is not None else None
        if not name:
            continue
        calls.append(ToolCall(name=name, args=_parse_arguments(getattr(fn, "arguments", None)), id=getattr(tc, "id", None)))
    return ModelReply(text=text, tool_calls=tuple(calls))


class OpenRouterLLMClient:
    """
    OpenAI-compatible tool-calling client.

    Behavior:
    - Tries models in the order from settings (MERLIN_LLM_MODELS).
    - 404 (model not available) -> remember for an hour, try next.
    - Rate limit / network issues -> try next.
    - Auth issues -> fail fast (no retries across models).
    """

    def __init__(self, settings: Any, *, client: AsyncOpenAI | None = None) -> None:
        api_key = getattr(settings, "llm_api_key", None)
        base_url = str(getattr(settings, "llm_base_url", "") or "")
        self._models: list[str] = [m.strip() for m in (getattr(settings, "llm_models", None) or []) if m.strip()]
        self._headers: dict[str, str] = dict(getattr(settings, "extra_headers", None) or {})

        if client is None:
            if not api_key or not str(api_key).strip():
                raise ModelError("LLM API key is not set. Set MERLIN_LLM_API_KEY in your .env.")
            if not base_url.strip():
                raise ModelError("LLM base URL is not set. Set MERLIN_LLM_BASE_URL in your .env.")
            timeout = httpx.Timeout(
                connect=float(getattr(settings, "llm_connect_timeout", 5.0)),
                read=float(getattr(settings, "llm_read_timeout", 30.0)),
                write=10.0,
                pool=float(getattr(settings, "llm_connect_timeout", 5.0)),
            )
            # No SDK retries: fall through to the next model instead.
            client = AsyncOpenAI(base_url=base_url, api_key=str(api_key), timeout=timeout, max_retries=0)
        self._client = client

    @property
    def models(self) -> list[str]:
        return list(self._models)

    async def complete(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None = None,
    ) -> ModelReply:
        if not self._models:
            raise ModelError("LLM model list is empty. Set MERLIN_LLM_MODELS in your .env.")

        last_error: Exception | None = None
        now = time.monotonic()

        for model in self._models:
            retry_at = _BAD_MODELS.get(model)
            if retry_at is not None and retry_at > now:
                continue

            logger.info("LLM: trying model=%s (tools=%d)", model, len(tools or []))
            t0 = time.monotonic()
            kwargs: dict[str, Any] = {
                "model": model,
                "messages": messages,
                "extra_headers": self._headers or None,
            }
            if tools:
                kwargs["tools"] = tools

            try:
                response = await self._client.chat.completions.create(**kwargs)
                reply = parse_completion(response)
            except Exception as e:
                last_error = e

                if _is_auth_error(e):
                    raise ModelError("LLM authentication failed. Check MERLIN_LLM_API_KEY.") from e

                if _is_not_found_error(e):
                    _BAD_MODELS[model] = time.monotonic() + 3600.0
                    logger.info("LLM: model not available (404): %s", model)
                    continue

                if _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                    continue

                if _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                    continue

                logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)
                continue

            logger.info(
                "LLM: model=%s answered in %.2fs (tool_calls=%d)",
                model,
                time.monotonic() - t0,
                len(reply.tool_calls),
            )
            return reply

        if last_error is not None:
            if _is_rate_limit_error(last_error):
                raise ModelError("LLM is rate-limited. Try again later.") from last_error
            if _is_connection_error(last_error):
                raise ModelError("LLM network/timeout error. Try again later or change models.") from last_error
            raise ModelError("All LLM models failed.") from last_error

        raise ModelError("All LLM models failed.")
