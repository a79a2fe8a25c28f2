"""Runtime configuration for the speech gateway."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven runtime settings."""

    model_config = SettingsConfigDict(env_prefix="SPEECH_GATEWAY_", env_file=".env", extra="ignore")

    app_name: str = "speech-gateway"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = Field(default=9099, description="Port the WebSocket server listens on.")
    provider: str = Field(default="google", description="Speech provider name, e.g. google or mock.")
    codecs: list[str] | None = Field(
        default=None,
        description="Codec names offered to clients; all supported codecs when unset.",
    )
    languages: list[str] | None = Field(
        default=None,
        description="Language tags offered to clients; all supported languages when unset.",
    )
    restart_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Re-open the upstream recognition stream after this many seconds; 0 disables.",
    )
    max_results: int = Field(default=100, ge=1, description="Results buffered per session before the oldest drop.")


settings = Settings()
