"""Configuration for the visual trigger engine.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Vendor credentials use the names the rest of the stack already exports
(`OPENAI_API_KEY`, `GEMINI_API_KEY`, `ANTHROPIC_API_KEY`), so a provider is
available exactly when its key is set.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Settings for the visual trigger engine.

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `EngineSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    # Cloud vision credentials. Empty means the provider is unavailable.
    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o", validation_alias="OPENAI_VISION_MODEL")

    gemini_api_key: str = Field(default="", validation_alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.0-flash", validation_alias="GEMINI_VISION_MODEL")

    anthropic_api_key: str = Field(default="", validation_alias="ANTHROPIC_API_KEY")
    claude_model: str = Field(
        default="claude-sonnet-4-20250514", validation_alias="CLAUDE_VISION_MODEL"
    )
    anthropic_base_url: str = Field(
        default="https://api.anthropic.com",
        validation_alias="ANTHROPIC_BASE_URL",
        description="Anthropic API base URL (useful for proxies)",
    )

    frame_check_interval_ms: int = Field(
        default=2000,
        ge=0,
        validation_alias="VISUAL_TRIGGER_FRAME_INTERVAL",
        description="Minimum spacing (ms) between two frame-extraction attempts of a session",
    )
    detection_timeout_ms: int = Field(
        default=10000,
        gt=0,
        validation_alias="VISUAL_TRIGGER_TIMEOUT",
        description="Upper bound (ms) for a single provider detect call",
    )
    frame_extraction_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        validation_alias="VISUAL_TRIGGER_FRAME_TIMEOUT",
        description="Upper bound (seconds) for pulling one frame from the stream",
    )

    rtsp_url: str = Field(
        default="rtsp://localhost:8554/live/stream",
        validation_alias="VISUAL_TRIGGER_RTSP_URL",
    )
    frame_max_width: int = Field(default=1024, gt=0, validation_alias="VISUAL_TRIGGER_FRAME_MAX_WIDTH")
    frame_quality: int = Field(default=85, ge=1, le=100, validation_alias="VISUAL_TRIGGER_FRAME_QUALITY")

    trigger_config_path: Path = Field(
        default=Path("agent_state/trigger_configs.json"),
        validation_alias="TRIGGER_CONFIG_PATH",
        description="JSON file backing the trigger configuration store",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def frame_check_interval_seconds(self) -> float:
        return self.frame_check_interval_ms / 1000.0

    @property
    def detection_timeout_seconds(self) -> float:
        return self.detection_timeout_ms / 1000.0
