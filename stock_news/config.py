from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# .env is read from the project root (one level above this package)
ENV_FILE = Path(__file__).resolve().parents[1] / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Storage ---
    DATABASE_URL: str = "sqlite:///./stock_news.db"

    # --- Language model ---
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    WEIGHTS_MODEL: str = "gpt-4.1-2025-04-14"
    SENTIMENT_BACKEND: str = "openai"          # "openai" or "finbert"
    FINBERT_MODEL: str = "ProsusAI/finbert"

    # --- News provider ---
    MARKETAUX_API_KEY: Optional[str] = None
    MARKETAUX_BASE_URL: str = "https://api.marketaux.com/v1"

    # --- Business defaults ---
    FALLBACK_CONFIDENCE: int = 50              # classifier confidence when the model can't answer
    DEFAULT_ARTICLE_WEIGHT: int = 3            # weight for articles the model skipped

    # --- Throttling ---
    WEIGHT_CALL_DELAY_SECONDS: float = Field(1.5, gt=0)      # one weight allocation call per interval
    NEWS_REQUEST_INTERVAL_SECONDS: float = Field(1.0, gt=0)  # one MarketAux request per interval
    NEWS_PAGES_PER_GROUP: int = 2

    # --- Background ingestion ---
    FETCH_INTERVAL_SECONDS: int = 900
    FETCH_ON_STARTUP: bool = False
    HEADLINE_RETENTION_DAYS: int = 7

    # --- HTTP / logging ---
    CORS_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Settings are read once per process."""
    return Settings()
