"""Application configuration and settings."""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from backend.tripgen.errors import MissingCredentialsError

_BASE_DIR = Path(__file__).resolve().parents[2]
_ENV_FILE = _BASE_DIR / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE, env_file_encoding="utf-8", extra="ignore"
    )

    # Catalog database
    catalog_db_url: str = Field(
        default="sqlite:///tripgen_catalog.db",
        description="SQLAlchemy URL of the place catalog database",
    )

    # Generative service
    openai_api_key: str = Field(
        default="dummy-openai-api-key-for-tests",
        description="OpenAI API key for the recommendation stage",
    )
    openai_model: str = Field(
        default="gpt-4o-mini", description="Model used for plain recommendations"
    )
    openai_search_model: str = Field(
        default="gpt-4o-mini-search-preview",
        description="Search-augmented model used while the daily quota allows",
    )
    recommend_timeout_s: float = Field(
        default=6.0, description="Hard timeout for the single recommendation call"
    )

    # External APIs
    google_maps_api_key: str = Field(
        default="", description="Google Maps Platform key (places + routes)"
    )
    places_search_url: str = Field(
        default="https://places.googleapis.com/v1/places:searchText",
        description="Place text-search endpoint",
    )
    routes_url: str = Field(
        default="https://routes.googleapis.com/directions/v2:computeRoutes",
        description="Route computation endpoint",
    )
    fx_api_url: str = Field(
        default="https://api.frankfurter.app/latest",
        description="Exchange rate endpoint",
    )
    weather_api_key: str = Field(
        default="dummy-weather-api-key-for-tests", description="OpenWeatherMap API key"
    )
    weather_api_url: str = Field(
        default="https://api.openweathermap.org/data/2.5/forecast",
        description="OpenWeatherMap 5-day forecast endpoint",
    )
    sentiment_api_url: str = Field(
        default="",
        description="Optional sentiment service; empty disables the bonus",
    )

    # Cache TTLs (hours)
    fx_ttl_hours: int = Field(default=24, description="FX rate cache TTL in hours")
    weather_ttl_hours: int = Field(
        default=3, description="Weather data cache TTL in hours"
    )
    places_ttl_hours: int = Field(
        default=24, description="Place search cache TTL in hours"
    )

    # Timeouts (seconds)
    soft_timeout_s: float = Field(
        default=2.0, description="Soft timeout for tool calls"
    )
    hard_timeout_s: float = Field(
        default=4.0, description="Hard timeout for tool calls"
    )

    # Retry Configuration
    retry_jitter_min_ms: int = Field(
        default=200, description="Minimum retry jitter in milliseconds"
    )
    retry_jitter_max_ms: int = Field(
        default=500, description="Maximum retry jitter in milliseconds"
    )

    # Circuit Breaker
    breaker_failure_threshold: int = Field(
        default=5, description="Failures before circuit breaker opens"
    )
    breaker_timeout_s: int = Field(
        default=60, description="Circuit breaker timeout in seconds"
    )

    # Search quota
    search_daily_limit: int = Field(
        default=160, description="Search-augmented generation calls allowed per day"
    )
    search_warn_ratio: float = Field(
        default=0.8, description="Usage ratio at which the quota gate warns"
    )

    # Planning
    candidate_buffer: int = Field(
        default=4, description="Extra candidates requested beyond total slots"
    )
    default_day_start: str = Field(
        default="09:00", description="Day start used for non-first days"
    )
    default_day_end: str = Field(
        default="21:00", description="Day end used for non-last days"
    )
    city_match_max_distance: float = Field(
        default=0.5,
        description="Max centroid distance (degrees) for coordinate city fallback",
    )
    fallback_search_concurrency: int = Field(
        default=3, description="Concurrent external place searches in matching"
    )
    transit_concurrency: int = Field(
        default=3, description="Concurrent route calls in finalization"
    )

    # Static transit fallback
    fallback_leg_minutes: int = Field(
        default=15, description="Duration of a leg when routing fails"
    )
    fallback_leg_meters: int = Field(
        default=1000, description="Distance of a leg when routing fails"
    )

    # Currencies
    default_destination_currency: str = Field(
        default="EUR", description="Currency used when the city has none"
    )
    default_home_currency: str = Field(
        default="KRW", description="Home currency when the request omits it"
    )

    # Performance Budgets
    e2e_target_s: float = Field(
        default=9.0, description="End-to-end target latency in seconds"
    )
    e2e_hard_timeout_s: float = Field(
        default=20.0, description="End-to-end hard ceiling in seconds"
    )

    @field_validator("catalog_db_url", mode="after")
    @classmethod
    def _normalize_sqlite_url(cls, value: str) -> str:
        """Ensure sqlite URLs always point to the repo root."""
        sqlite_prefixes = ("sqlite:///", "sqlite+pysqlite:///")
        for prefix in sqlite_prefixes:
            if value.startswith(prefix):
                path = value[len(prefix) :]
                if path and path != ":memory:" and not path.startswith("/"):
                    abs_path = (_BASE_DIR / path).resolve()
                    return f"{prefix}{abs_path.as_posix()}"
        return value


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get application settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def get_openai_api_key(settings: Settings | None = None) -> str:
    """Return a validated OpenAI API key or raise MissingCredentialsError."""
    settings = settings or get_settings()
    api_key = (settings.openai_api_key or "").strip()
    if not api_key or api_key.startswith("dummy-"):
        raise MissingCredentialsError(
            "OpenAI API key is not configured. "
            "Set OPENAI_API_KEY in your environment (.env) before planning trips."
        )
    return api_key
