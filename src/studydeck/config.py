"""Settings loaded from the environment (prefix ``STUDYDECK_``) and ``.env``."""
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from studydeck.db import DEFAULT_DB_PATH


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STUDYDECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # No default key: generation is refused until one is supplied.
    openai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("STUDYDECK_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_model: str = "gpt-4o-mini"
    openai_base_url: Optional[str] = None

    db_path: str = DEFAULT_DB_PATH
    user_id: str = "local"

    quiz_count: int = Field(default=5, ge=1, le=50)
    flashcard_count: int = Field(default=10, ge=1, le=100)

    log_level: str = "WARNING"

    def has_ai_configured(self) -> bool:
        return bool(self.openai_api_key.strip())


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
