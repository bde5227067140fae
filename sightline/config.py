"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables (or a local .env file).
A missing Gemini API key is not a startup error: the bridge reports it to the
client when a session is requested.
"""

from functools import lru_cache
from typing import Any, Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PORT = 8080

DEFAULT_SYSTEM_INSTRUCTION = (
    "You are a realtime assistant. Keep responses concise, ask clarifying questions, "
    "and adapt to visual context from incoming camera frames."
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ==========================================================================
    # Live API
    # ==========================================================================
    gemini_api_key: SecretStr | None = Field(
        default=None, description="Gemini API key for Live sessions"
    )
    gemini_live_model: str = Field(
        default="gemini-2.5-flash-native-audio-preview-12-2025",
        description="Gemini Live model identifier",
    )

    # ==========================================================================
    # Server
    # ==========================================================================
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=DEFAULT_PORT, description="HTTP/WebSocket port")
    cors_origin: str = Field(
        default="http://localhost:5173",
        description="Allowed CORS origin for the browser client",
    )
    static_dir: str = Field(
        default="dist/client",
        description="Directory of prebuilt client assets (served at / when present)",
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )

    # ==========================================================================
    # Client Tuning
    # ==========================================================================
    live_ws_url: str = Field(
        default="ws://localhost:8080/ws/live",
        description="Channel URL used by the Python client",
    )
    system_instruction: str = Field(
        default=DEFAULT_SYSTEM_INSTRUCTION,
        description="System instruction sent with session.connect",
    )
    frame_interval_seconds: float = Field(
        default=2.4, gt=0, description="Camera sampling interval"
    )
    scene_change_threshold: float = Field(
        default=12.0,
        ge=0,
        description="Mean absolute luma delta required to emit a new frame",
    )
    jpeg_quality: int = Field(default=72, ge=1, le=100, description="JPEG quality for frames")
    playback_lookahead_seconds: float = Field(
        default=0.01, ge=0, description="Minimum scheduling lead for agent audio"
    )
    default_pcm_sample_rate: int = Field(
        default=24000, gt=0, description="Sample rate assumed for PCM without rate="
    )
    auto_observe_enabled: bool = Field(
        default=True, description="Proactively ask for visual feedback during silence"
    )
    auto_observe_interval_seconds: float = Field(
        default=7.0, gt=0, description="Auto-observe tick interval"
    )
    auto_observe_silence_seconds: float = Field(
        default=6.0, ge=0, description="Silence required before an auto-observe prompt"
    )
    auto_observe_cooldown_seconds: float = Field(
        default=6.5, ge=0, description="Minimum gap between two auto-observe prompts"
    )
    frame_freshness_seconds: float = Field(
        default=4.5, gt=0, description="Max age of the last camera frame for feedback"
    )
    interrupt_release_seconds: float = Field(
        default=0.12, ge=0, description="Delay between activity.start and activity.end"
    )

    @field_validator("port", mode="before")
    @classmethod
    def _fallback_port(cls, value: Any) -> int:
        """Fall back to the default port for anything that is not a valid port."""
        try:
            port = int(value)
        except (TypeError, ValueError):
            return DEFAULT_PORT
        if isinstance(value, float) and not value.is_integer():
            return DEFAULT_PORT
        if port < 1 or port > 65535:
            return DEFAULT_PORT
        return port

    # ==========================================================================
    # Derived Properties
    # ==========================================================================
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def has_api_key(self) -> bool:
        """Check if a non-empty Gemini API key is configured."""
        return bool(self.gemini_api_key and self.gemini_api_key.get_secret_value())

    @property
    def api_key(self) -> str:
        """Plain API key value ("" when not configured)."""
        if self.gemini_api_key is None:
            return ""
        return self.gemini_api_key.get_secret_value()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Use dependency injection in FastAPI:
        settings: Settings = Depends(get_settings)
    """
    return Settings()
