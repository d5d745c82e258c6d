"""Configuration for the transport adapter."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from visual_trigger_engine.config import EngineSettings


class ServerSettings(EngineSettings):
    """Engine settings plus the HTTP/WebSocket surface."""

    # Dev-friendly CORS for the dashboard dev server.
    cors_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        validation_alias="VISUAL_TRIGGER_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins.",
    )

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
