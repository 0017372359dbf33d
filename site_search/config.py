from typing import Literal, Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./site_search.db"
    ENVIRONMENT: Literal["development", "production"] = "development"
    LOG_LEVEL: str = "INFO"

    # Corpus and persistence
    CORPUS_PATH: Optional[str] = None
    PERSISTENCE_BACKEND: Literal["memory", "database"] = "memory"

    # Search configuration
    SEARCH_DEBOUNCE_MS: int = 300
    SEARCH_HISTORY_CAPACITY: int = 100
    SEARCH_RESULTS_PER_PAGE: int = 20
    SEARCH_SUGGESTIONS_LIMIT: int = 8
    SEARCH_DISCOVERY_LIMIT: int = 5
    SEARCH_SNIPPET_LENGTH: int = 150

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+asyncpg://", 1)
            elif v.startswith("postgres://"):
                return v.replace("postgres://", "postgresql+asyncpg://", 1)
            elif v.startswith("sqlite:///"):
                return v.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        return v

    @field_validator("SEARCH_DEBOUNCE_MS", "SEARCH_RESULTS_PER_PAGE")
    @classmethod
    def non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be zero or greater")
        return v

    @field_validator("SEARCH_HISTORY_CAPACITY")
    @classmethod
    def positive_capacity(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)

settings = Settings()
