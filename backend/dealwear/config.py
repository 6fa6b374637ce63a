from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {
        "env_file": "../.env",
        "extra": "ignore",
        "env_prefix": "",
        "case_sensitive": False,
    }

    # AI APIs
    google_ai_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"

    # Alternate product source (Google Custom Search JSON API)
    google_search_api_key: str = ""
    google_search_engine_id: str = ""

    # Result cache
    search_cache_dir: str = ""  # empty = in-memory cache
    search_cache_max_entries: int = 500
    search_cache_ttl_seconds: int = 6 * 60 * 60

    # Search pipeline
    fetch_timeout_seconds: float = 2.0
    fetch_retries: int = 1
    fetch_backoff_seconds: float = 0.5
    store_timeout_seconds: float = 2.0
    search_deadline_seconds: float = 8.0
    max_stores_per_search: int = 2
    max_products_per_store: int = 5
    default_max_results: int = 15
    max_results_limit: int = 15

    # Preferences
    preferences_path: str = ""  # empty = in-memory preferences

    # App
    environment: str = "development"
    log_level: str = "INFO"
    log_file: str = ""


settings = Settings()


class SearchConfig(BaseModel):
    """Immutable tunables for one search pipeline.

    Built once from Settings and injected; differences between deployments
    are expressed here, not in forked code.
    """

    model_config = ConfigDict(frozen=True)

    fetch_timeout: float = Field(gt=0, default=2.0)
    fetch_retries: int = Field(ge=0, le=2, default=1)
    fetch_backoff: float = Field(ge=0, default=0.5)
    store_timeout: float = Field(gt=0, default=2.0)
    search_deadline: float = Field(gt=0, default=8.0)
    max_stores_per_search: int = Field(ge=0, default=2)
    max_products_per_store: int = Field(ge=1, default=5)
    default_max_results: int = Field(ge=1, default=15)
    max_results_limit: int = Field(ge=1, default=15)
    cache_ttl: float = Field(gt=0, default=6 * 60 * 60)

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> SearchConfig:
        s = source or settings
        return cls(
            fetch_timeout=s.fetch_timeout_seconds,
            fetch_retries=s.fetch_retries,
            fetch_backoff=s.fetch_backoff_seconds,
            store_timeout=s.store_timeout_seconds,
            search_deadline=s.search_deadline_seconds,
            max_stores_per_search=s.max_stores_per_search,
            max_products_per_store=s.max_products_per_store,
            default_max_results=s.default_max_results,
            max_results_limit=s.max_results_limit,
            cache_ttl=s.search_cache_ttl_seconds,
        )
