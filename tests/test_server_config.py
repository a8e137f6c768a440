import asyncio
import json
import logging

import pytest
from pydantic import AnyUrl

from helpdesk_mcp_server import server
from helpdesk_mcp_server.client import Desk365Client
from helpdesk_mcp_server.exceptions import SupportConfigurationError
from helpdesk_mcp_server.models import ValidationResult

ALL_ENV_VARS = list(server.REQUIRED_ENV_VARS) + list(server.OPTIONAL_ENV_VARS)


@pytest.fixture(autouse=True)
def reset_client_cache(monkeypatch):
    # Ensure each test starts with a clean client/settings cache.
    server._reset_client_cache_for_tests()
    for key in ALL_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    yield
    server._reset_client_cache_for_tests()


def _set_required_env(monkeypatch):
    monkeypatch.setenv("DESK365_API_URL", "https://acme.desk365.io/apis")
    monkeypatch.setenv("DESK365_API_KEY", "token")


def test_get_settings_returns_expected(monkeypatch):
    _set_required_env(monkeypatch)

    settings = server.get_settings()

    assert settings["DESK365_API_URL"] == "https://acme.desk365.io/apis"
    assert settings["DESK365_API_KEY"] == "token"
    assert settings["SUPPORT_PROVIDER"] == "desk365"
    assert settings["SUPPORT_VERBOSE"] == "false"


def test_get_settings_raises_when_env_missing():
    with pytest.raises(RuntimeError) as excinfo:
        server.get_settings()

    message = str(excinfo.value).lower()
    assert "missing required environment variables" in message
    for key in server.REQUIRED_ENV_VARS:
        assert key.lower() in message


def test_get_support_client_builds_configured_provider(monkeypatch):
    _set_required_env(monkeypatch)
    monkeypatch.setenv("SUPPORT_VERBOSE", "yes")

    client = server.get_support_client()

    assert isinstance(client, Desk365Client)
    assert client.verbose is True
    assert server.get_support_client() is client


def test_get_support_client_rejects_unknown_provider(monkeypatch):
    _set_required_env(monkeypatch)
    monkeypatch.setenv("SUPPORT_PROVIDER", "freshdesk")

    with pytest.raises(SupportConfigurationError):
        server.get_support_client()


def test_connection_status_is_cached(monkeypatch):
    _set_required_env(monkeypatch)
    calls = {"n": 0}

    class FakeClient:
        async def validate_config(self):
            calls["n"] += 1
            return ValidationResult(success=True, message="ok")

    monkeypatch.setattr(server, "get_support_client", lambda: FakeClient())

    first = asyncio.run(server.get_connection_status())
    second = asyncio.run(server.get_connection_status())

    assert first == {"success": True, "message": "ok"}
    assert second == first
    assert calls["n"] == 1

    payload = json.loads(asyncio.run(server.handle_read_resource(AnyUrl("helpdesk://connection"))))
    assert payload["connection"] == first
    assert payload["metadata"]["base_url"] == "https://acme.desk365.io/apis"
    assert calls["n"] == 1


def test_configure_logging_idempotent():
    # Remove any pre-existing handlers for a clean slate.
    original_handlers = list(server.logger.handlers)
    original_level = server.logger.level
    original_propagate = server.logger.propagate
    for handler in original_handlers:
        server.logger.removeHandler(handler)

    try:
        server.configure_logging()
        first_count = len(server.logger.handlers)
        # Calling configure_logging again should not add extra handlers.
        server.configure_logging()
        second_count = len(server.logger.handlers)

        assert first_count == 1
        assert second_count == first_count
        assert isinstance(server.logger.handlers[0], logging.Handler)
    finally:
        # Restore original logger state so other modules aren't affected.
        for handler in list(server.logger.handlers):
            server.logger.removeHandler(handler)
        for handler in original_handlers:
            server.logger.addHandler(handler)
        server.logger.setLevel(original_level)
        server.logger.propagate = original_propagate
