"""Unit tests for configuration."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from visual_trigger_engine.config import EngineSettings
from visual_trigger_engine.server.config import ServerSettings

_ENV_NAMES = (
    "LOG_LEVEL",
    "OPENAI_API_KEY",
    "GEMINI_API_KEY",
    "ANTHROPIC_API_KEY",
    "VISUAL_TRIGGER_FRAME_INTERVAL",
    "VISUAL_TRIGGER_TIMEOUT",
    "VISUAL_TRIGGER_FRAME_QUALITY",
    "VISUAL_TRIGGER_CORS_ORIGINS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_engine_settings_defaults() -> None:
    settings = EngineSettings(_env_file=None)

    assert settings.log_level == "INFO"
    assert settings.openai_api_key == ""
    assert settings.openai_model == "gpt-4o"
    assert settings.frame_check_interval_ms == 2000
    assert settings.frame_check_interval_seconds == 2.0
    assert settings.detection_timeout_seconds == 10.0
    assert settings.frame_quality == 85
    assert settings.trigger_config_path == Path("agent_state/trigger_configs.json")


def test_engine_settings_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.setenv("VISUAL_TRIGGER_FRAME_INTERVAL", "500")
    monkeypatch.setenv("VISUAL_TRIGGER_TIMEOUT", "2500")

    settings = EngineSettings(_env_file=None)

    assert settings.openai_api_key == "sk-env"
    assert settings.frame_check_interval_seconds == 0.5
    assert settings.detection_timeout_seconds == 2.5


def test_engine_settings_from_env_file(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("GEMINI_API_KEY=g-key\nLOG_LEVEL=DEBUG\n", encoding="utf-8")

    settings = EngineSettings(_env_file=env_file)

    assert settings.gemini_api_key == "g-key"
    assert settings.log_level == "DEBUG"


def test_invalid_frame_quality_rejected(monkeypatch) -> None:
    monkeypatch.setenv("VISUAL_TRIGGER_FRAME_QUALITY", "0")
    with pytest.raises(ValidationError):
        EngineSettings(_env_file=None)


def test_server_settings_cors_origins(monkeypatch) -> None:
    monkeypatch.setenv("VISUAL_TRIGGER_CORS_ORIGINS", " http://a.test , ,http://b.test")
    settings = ServerSettings(_env_file=None)
    assert settings.parsed_cors_origins() == ["http://a.test", "http://b.test"]
