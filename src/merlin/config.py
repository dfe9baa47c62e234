# src/merlin/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time (the LLM key is optional: without it the
  assistant runs against the offline client).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "MERLIN"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Task / auth API ----
    api_url: str
    http_connect_timeout: float
    http_read_timeout: float

    # ---- LLM (OpenAI-compatible) ----
    llm_api_key: str | None
    llm_base_url: str
    llm_models: list[str]
    llm_connect_timeout: float
    llm_read_timeout: float
    extra_headers: dict[str, str]

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    session_path: Path

    # ---- Dashboard ----
    analytics_default_window: str

    @staticmethod
    def from_env() -> Settings:
        app_name = _env(_k("APP_NAME"), "merlin").strip() or "merlin"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        api_url = _env(_k("API_URL"), "http://localhost:8000").rstrip("/")

        llm_api_key = _first_env(_k("LLM_API_KEY"), "OPENROUTER_API_KEY", default=None)
        llm_base_url = _env(_k("LLM_BASE_URL"), "https://openrouter.ai/api/v1")
        llm_models = _env_list(
            _k("LLM_MODELS"),
            [
                "google/gemini-2.0-flash-001",
                "openai/gpt-4o-mini",
            ],
        )

        extra_headers = {"X-Title": app_name}
        referer = _env(_k("HTTP_REFERER")).strip()
        if referer:
            extra_headers["HTTP-Referer"] = referer

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/merlin"))
        session_path = _env_path(_k("SESSION_PATH"), data_dir / "session.json")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            api_url=api_url,
            http_connect_timeout=_env_float(_k("HTTP_CONNECT_TIMEOUT_SECONDS"), 5.0),
            http_read_timeout=_env_float(_k("HTTP_READ_TIMEOUT_SECONDS"), 20.0),
            llm_api_key=llm_api_key,
            llm_base_url=llm_base_url,
            llm_models=llm_models,
            llm_connect_timeout=_env_float(_k("LLM_CONNECT_TIMEOUT_SECONDS"), 5.0),
            llm_read_timeout=_env_float(_k("LLM_READ_TIMEOUT_SECONDS"), 30.0),
            extra_headers=extra_headers,
            data_dir=data_dir,
            session_path=session_path,
            analytics_default_window=_env(_k("ANALYTICS_DEFAULT_WINDOW"), "last7days").strip().lower(),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
