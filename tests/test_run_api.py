"""Tests for the server entry point's startup exits."""
import importlib
import logging

import pytest

import web.run_api
from vault.errors import StorageError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.delenv("CONFIG_FILE", raising=False)
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.chdir(tmp_path)


def test_import_leaves_logging_alone(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
    importlib.reload(web.run_api)
    assert calls == []


def test_bad_database_url_exits_with_config_code(monkeypatch):
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: None)
    monkeypatch.setenv("DATABASE_URL", "not a url at all")
    with pytest.raises(SystemExit) as exc:
        web.run_api.main()
    assert exc.value.code == web.run_api.EXIT_CONFIG


def test_database_failure_exits_with_database_code(monkeypatch):
    async def _fail(settings):
        raise StorageError("database unreachable")

    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: None)
    monkeypatch.setattr(web.run_api, "_init_users", _fail)
    with pytest.raises(SystemExit) as exc:
        web.run_api.main()
    assert exc.value.code == web.run_api.EXIT_DATABASE
