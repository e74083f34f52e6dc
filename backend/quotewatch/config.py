import os
from functools import lru_cache

from pydantic import BaseModel, Field


class Settings(BaseModel):
    API_BASE_URL: str = "https://api.cert.tastyworks.com"
    STREAMER_URL: str = "wss://streamer.cert.tastyworks.com"
    ENABLE_STREAMING: bool = True
    POLL_INTERVAL_SEC: float = Field(default=5.0, gt=0)
    REQUEST_TIMEOUT_SEC: float = Field(default=5.0, gt=0)
    CONNECT_TIMEOUT_SEC: float = Field(default=10.0, gt=0)
    HEARTBEAT_INTERVAL_SEC: float = Field(default=30.0, gt=0)
    MAX_RECONNECT_ATTEMPTS: int = Field(default=5, ge=0)
    RECONNECT_BASE_DELAY_SEC: float = Field(default=1.0, gt=0)
    RECONNECT_MAX_DELAY_SEC: float = Field(default=30.0, gt=0)

    @classmethod
    def from_env(cls) -> "Settings":
        env_map = {
            "API_BASE_URL": "QUOTEWATCH_API_URL",
            "STREAMER_URL": "QUOTEWATCH_STREAMER_URL",
            "POLL_INTERVAL_SEC": "QUOTEWATCH_POLL_INTERVAL",
            "REQUEST_TIMEOUT_SEC": "QUOTEWATCH_REQUEST_TIMEOUT",
            "CONNECT_TIMEOUT_SEC": "QUOTEWATCH_CONNECT_TIMEOUT",
            "HEARTBEAT_INTERVAL_SEC": "QUOTEWATCH_HEARTBEAT_INTERVAL",
            "MAX_RECONNECT_ATTEMPTS": "QUOTEWATCH_MAX_RECONNECT_ATTEMPTS",
            "RECONNECT_BASE_DELAY_SEC": "QUOTEWATCH_RECONNECT_BASE_DELAY",
            "RECONNECT_MAX_DELAY_SEC": "QUOTEWATCH_RECONNECT_MAX_DELAY",
        }
        values = {}
        for field_name, env_name in env_map.items():
            raw = os.getenv(env_name, "").strip()
            if raw:
                values[field_name] = raw

        # streaming stays on unless explicitly disabled
        values["ENABLE_STREAMING"] = (
            os.getenv("QUOTEWATCH_ENABLE_STREAMING", "").strip().lower() != "false"
        )
        return cls.model_validate(values)


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
