from __future__ import annotations

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    GAME_ID: str = "1-of-15"
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:8080"
    CORS_ORIGIN_REGEX: Optional[str] = None

    QUESTION_SOURCE: Literal["bank", "llama"] = "bank"
    LLAMA_API_URL: str = "http://localhost:8099/v1/chat/completions"
    LLAMA_TIMEOUT_SECONDS: float = 30.0
    JUDGE_TIMEOUT_SECONDS: float = 15.0

    # Answer countdown shown to clients; the watchdog fires after limit + grace.
    ANSWER_TIME_LIMIT_SECONDS: int = 60
    ANSWER_GRACE_SECONDS: int = 2

    WINNING_SCORE: int = 30
    DOUBLE_DOWN_BONUS: int = 10
    REQUIRE_READY: bool = False

    # WebSocket keepalive, enforced by uvicorn
    WS_PING_INTERVAL_SECONDS: float = 5.0
    WS_PING_TIMEOUT_SECONDS: float = 10.0

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
