# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from merlin.session.storage import MemoryStorage
from merlin.session.store import SessionStore

from .fakes import FakeApi


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the bootstrap and commands.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment and any local .env.
    """
    return SimpleNamespace(
        app_name="merlin-test",
        api_url="http://api.test",
        http_connect_timeout=1.0,
        http_read_timeout=1.0,
        llm_api_key=None,
        llm_base_url="",
        llm_models=["fake/model"],
        extra_headers={},
        data_dir=tmp_path,
        session_path=tmp_path / "session.json",
        analytics_default_window="last7days",
    )


@pytest.fixture()
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture()
def session_store(storage: MemoryStorage) -> SessionStore:
    return SessionStore(storage)


@pytest.fixture()
def fake_api() -> FakeApi:
    return FakeApi()
