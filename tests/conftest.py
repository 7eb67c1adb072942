"""Pytest configuration and fixtures for testing."""

from datetime import date

import pytest
import pytest_asyncio
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.tripgen.catalog.background import BackgroundWriter
from backend.tripgen.catalog.fixtures import paris_city, paris_places
from backend.tripgen.catalog.resolver import CatalogIndex
from backend.tripgen.catalog.store import InMemoryCatalogStore
from backend.tripgen.config import Settings
from backend.tripgen.db.base import Base
from backend.tripgen.db.models import CityRow, PlaceRow  # noqa: F401  registers tables
from backend.tripgen.metrics.registry import MetricsClient
from backend.tripgen.models.request import TripRequest


@pytest.fixture
def settings() -> Settings:
    """Create test settings with every external service disabled."""
    return Settings(
        _env_file=None,
        catalog_db_url="sqlite:///:memory:",
        openai_api_key="sk-test-key",
        google_maps_api_key="",
        weather_api_key="",
        sentiment_api_url="",
        soft_timeout_s=0.5,
        hard_timeout_s=1.0,
        retry_jitter_min_ms=1,
        retry_jitter_max_ms=2,
        recommend_timeout_s=1.0,
    )


@pytest.fixture
def metrics() -> MetricsClient:
    """Create a fresh metrics client."""
    return MetricsClient()


@pytest.fixture
def paris_store() -> InMemoryCatalogStore:
    """In-memory catalog holding the Paris fixtures."""
    return InMemoryCatalogStore([paris_city()], paris_places())


@pytest.fixture
def paris_index() -> CatalogIndex:
    """Run-scoped index over the Paris fixtures."""
    return CatalogIndex(paris_city(), paris_places())


@pytest_asyncio.fixture
async def writer():
    """Background writer stopped after the test."""
    writer = BackgroundWriter()
    yield writer
    await writer.aclose()


@pytest.fixture
def paris_request() -> TripRequest:
    """Three-day Paris trip for a couple at normal pace."""
    return TripRequest(
        destination="Paris",
        start_date=date(2026, 5, 1),
        end_date=date(2026, 5, 3),
        start_time="10:00",
        end_time="18:00",
        party_type="couple",
        preference_tags=["Foodie", "Culture"],
        pace="normal",
        home_currency="KRW",
    )


@pytest.fixture(scope="function")
def test_db_engine():
    """Create a test database engine with in-memory SQLite."""
    # StaticPool keeps one connection so worker threads see the same database
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    Base.metadata.create_all(engine)

    yield engine

    # Cleanup
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_db_engine):
    """Create a session factory bound to the test engine."""
    return sessionmaker(bind=test_db_engine, expire_on_commit=False)
