from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    db_url: str = Field("sqlite:///./cavision.db", alias="DB_URL")
    api_key: str = Field("ai", alias="API_KEY")

    gemini_api_key: str = Field(..., alias="GEMINI_API_KEY")
    gemini_model: str = Field("models/gemini-2.5-flash", alias="GEMINI_MODEL")
    # Comma-separated in the environment.
    gemini_model_preferences: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: [
            "models/gemini-2.5-flash",
            "models/gemini-2.0-flash",
        ],
        alias="GEMINI_MODEL_PREFERRED",
    )
    gemini_log_models_on_start: bool = Field(True, alias="GEMINI_LOG_MODELS_ON_START")
    gemini_timeout_seconds: int = Field(60, alias="GEMINI_TIMEOUT_SECONDS")
    gemini_max_output_tokens: int = Field(32768, alias="GEMINI_MAX_OUTPUT_TOKENS")
    gemini_temperature: float = Field(0.9, alias="GEMINI_TEMPERATURE")

    # Quiz generation bounds and upload limits.
    quiz_min_count: int = Field(5, alias="QUIZ_MIN_COUNT")
    quiz_max_count: int = Field(50, alias="QUIZ_MAX_COUNT")
    upload_max_bytes: int = Field(5 * 1024 * 1024, alias="UPLOAD_MAX_BYTES")
    # Attachments above this size go through the Gemini Files API instead of inline bytes.
    upload_inline_max_bytes: int = Field(4 * 1024 * 1024, alias="UPLOAD_INLINE_MAX_BYTES")
    file_poll_interval_seconds: float = Field(2.0, alias="FILE_POLL_INTERVAL_SECONDS")
    file_poll_max_attempts: int = Field(15, alias="FILE_POLL_MAX_ATTEMPTS")

    # Chat assistant
    transcript_max_chars: int = Field(20000, alias="TRANSCRIPT_MAX_CHARS")
    chat_max_tool_rounds: int = Field(3, alias="CHAT_MAX_TOOL_ROUNDS")

    # Stale quiz cleanup scheduler
    enable_quiz_cleanup: bool = Field(False, alias="ENABLE_QUIZ_CLEANUP")
    quiz_cleanup_cron: str = Field("0 4 * * *", alias="QUIZ_CLEANUP_CRON")
    quiz_cleanup_timezone: str = Field("Asia/Kolkata", alias="QUIZ_CLEANUP_TZ")
    quiz_retention_hours: int = Field(72, alias="QUIZ_RETENTION_HOURS")

    @field_validator("gemini_model_preferences", mode="before")
    @classmethod
    def _split_preferences(cls, value):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
