from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


_DEFAULT_FALLBACK_REPLY = "I am here. Can you rephrase that?"
_DEFAULT_APOLOGY_TEXT = "Sorry, I hit an issue processing that. Please try again in a moment."


class Settings(BaseSettings):
    """Runtime configuration loaded from env vars and local env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = Field(default="local", alias="APP_ENV")
    log_level: str | None = Field(default=None, alias="LOG_LEVEL")

    elevenlabs_api_key: str = Field(alias="ELEVENLABS_API_KEY", min_length=1)
    elevenlabs_agent_id: str = Field(alias="ELEVENLABS_AGENT_ID", min_length=1)
    elevenlabs_originator: str = Field(default="telegram-assistant", alias="ELEVENLABS_ORIGINATOR")
    elevenlabs_ws_url: str = Field(
        default="wss://api.elevenlabs.io/v1/convai/conversation",
        alias="ELEVENLABS_WS_URL",
    )
    elevenlabs_connect_timeout_seconds: float = Field(default=10.0, alias="ELEVENLABS_CONNECT_TIMEOUT_SECONDS", gt=0)

    telegram_bot_token: str = Field(alias="TELEGRAM_BOT_TOKEN", min_length=1)
    telegram_api_base_url: str = Field(default="https://api.telegram.org", alias="TELEGRAM_API_BASE_URL")
    telegram_poll_timeout_seconds: int = Field(default=30, alias="TELEGRAM_POLL_TIMEOUT_SECONDS", ge=0)
    telegram_poll_backoff_seconds: float = Field(default=2.0, alias="TELEGRAM_POLL_BACKOFF_SECONDS", ge=0)

    request_timeout_ms: int = Field(default=20000, alias="REQUEST_TIMEOUT_MS", gt=0)
    agent_ready_grace_ms: int = Field(default=500, alias="AGENT_READY_GRACE_MS", ge=0)
    agent_quiet_period_ms: int = Field(default=600, alias="AGENT_QUIET_PERIOD_MS", gt=0)
    agent_channel: str = Field(default="telegram", alias="AGENT_CHANNEL")
    fallback_reply: str = Field(default=_DEFAULT_FALLBACK_REPLY, alias="FALLBACK_REPLY", min_length=1)
    apology_text: str = Field(default=_DEFAULT_APOLOGY_TEXT, alias="APOLOGY_TEXT", min_length=1)

    worker_concurrency: int = Field(default=4, alias="WORKER_CONCURRENCY", ge=1)
    worker_max_pending: int = Field(default=100, alias="WORKER_MAX_PENDING", ge=1)

    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT", ge=1, le=65535)

    @property
    def effective_log_level(self) -> str:
        if self.log_level:
            return self.log_level.upper()
        return "DEBUG" if self.app_env.lower() == "local" else "INFO"

    @property
    def request_timeout_seconds(self) -> float:
        return self.request_timeout_ms / 1000

    @property
    def agent_ready_grace_seconds(self) -> float:
        return self.agent_ready_grace_ms / 1000

    @property
    def agent_quiet_period_seconds(self) -> float:
        return self.agent_quiet_period_ms / 1000


@lru_cache
def get_settings() -> Settings:
    return Settings()
