"""Tests for application settings."""

from __future__ import annotations

from pathlib import Path  # noqa: TC003 - used at runtime

import pytest
from pydantic import ValidationError

from sheetwatch.config import Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in [
        "SPREADSHEET_ID",
        "GOOGLE_SERVICE_ACCOUNT_KEY",
        "WEBHOOK_PORT",
        "WEBHOOK_URL",
        "CHANNEL_ID",
        "CHANNEL_TOKEN",
        "ENVIRONMENT",
        "LOG_LEVEL",
        "LOCAL_SNAPSHOT_DIR",
    ]:
        monkeypatch.delenv(name, raising=False)


def test_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SPREADSHEET_ID", "sheet-id")
    monkeypatch.setenv("GOOGLE_SERVICE_ACCOUNT_KEY", "/keys/sa.json")
    monkeypatch.setenv("WEBHOOK_PORT", "8080")
    monkeypatch.setenv("CHANNEL_ID", "chan-1")

    settings = Settings(_env_file=None)

    assert settings.spreadsheet_id == "sheet-id"
    assert settings.google_service_account_key == "/keys/sa.json"
    assert settings.webhook_port == 8080
    assert settings.channel_id == "chan-1"
    assert settings.channel_token is None


def test_webhook_url_defaults_to_localhost() -> None:
    settings = Settings(
        _env_file=None, spreadsheet_id="s", google_service_account_key="k", webhook_port=4000
    )

    assert settings.webhook_url == "http://localhost:4000"


def test_explicit_webhook_url() -> None:
    settings = Settings(
        _env_file=None,
        spreadsheet_id="s",
        google_service_account_key="k",
        webhook_url="https://hook.example.com/",
    )

    assert settings.webhook_url == "https://hook.example.com/"


def test_spreadsheet_id_required() -> None:
    with pytest.raises(ValidationError, match="SPREADSHEET_ID must be set"):
        Settings(_env_file=None, google_service_account_key="k")


def test_key_required_without_local_dir() -> None:
    with pytest.raises(ValidationError, match="GOOGLE_SERVICE_ACCOUNT_KEY must be set"):
        Settings(_env_file=None, spreadsheet_id="s")


def test_key_optional_with_local_dir(tmp_path: Path) -> None:
    settings = Settings(_env_file=None, spreadsheet_id="s", local_snapshot_dir=tmp_path)

    assert settings.local_snapshot_dir == tmp_path


def test_invalid_port() -> None:
    with pytest.raises(ValidationError, match="port must be between"):
        Settings(
            _env_file=None, spreadsheet_id="s", google_service_account_key="k", webhook_port=0
        )


def test_log_level_is_uppercased() -> None:
    settings = Settings(
        _env_file=None, spreadsheet_id="s", google_service_account_key="k", log_level="debug"
    )

    assert settings.log_level == "DEBUG"


def test_unknown_environment() -> None:
    with pytest.raises(ValidationError, match="environment must be one of"):
        Settings(
            _env_file=None,
            spreadsheet_id="s",
            google_service_account_key="k",
            environment="qa",
        )


def test_is_production() -> None:
    settings = Settings(
        _env_file=None,
        spreadsheet_id="s",
        google_service_account_key="k",
        environment="production",
    )

    assert settings.is_production
