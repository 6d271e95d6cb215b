"""
Configuration management for the daily vocabulary core
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # OpenAI Configuration (lesson generation)
    openai_api_key: str = Field(default="", env="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", env="OPENAI_MODEL")
    openai_max_tokens: int = Field(default=1500, env="OPENAI_MAX_TOKENS")
    openai_temperature: float = Field(default=1.0, env="OPENAI_TEMPERATURE")
    api_timeout: int = Field(default=30, env="API_TIMEOUT")

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///data/dailyword.db", env="DATABASE_URL"
    )

    # Application Configuration
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    debug: bool = Field(default=False, env="DEBUG")

    # Learning rules
    daily_word_limit: int = Field(default=1, env="DAILY_WORD_LIMIT")
    previous_words_limit: int = Field(default=10, env="PREVIOUS_WORDS_LIMIT")
    lesson_timeout: float = Field(default=30.0, env="LESSON_TIMEOUT")
    lock_timeout_minutes: int = Field(default=5, env="LOCK_TIMEOUT_MINUTES")

    # Accounts
    min_password_length: int = Field(default=6, env="MIN_PASSWORD_LENGTH")
    reset_token_ttl_minutes: int = Field(default=60, env="RESET_TOKEN_TTL_MINUTES")
    deletion_step_retries: int = Field(default=2, env="DELETION_STEP_RETRIES")
    deletion_retry_delay: float = Field(default=0.5, env="DELETION_RETRY_DELAY")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


def get_database_path() -> str:
    """Get the database file path from URL"""
    settings = get_settings()
    if settings.database_url.startswith("sqlite:///"):
        return settings.database_url.replace("sqlite:///", "")
    return "data/dailyword.db"
