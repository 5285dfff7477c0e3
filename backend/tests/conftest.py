"""
Pytest configuration and shared fixtures for backend tests.

WHAT: Centralized test configuration with markers and store fixtures
WHY: Enable test organization, filtering, and shared test utilities
HOW: Define pytest markers, an in-memory database, a controllable clock,
     and a wired negotiation engine
"""

import pytest
from datetime import datetime, timedelta
from fastapi.testclient import TestClient

from gearmarket.core.config import Settings
from gearmarket.core.database import build_engine, build_session_factory, init_db, close_db
from gearmarket.main import create_app
from gearmarket.services.listing_service import ListingService
from gearmarket.services.notifications import ConversationNotifier
from gearmarket.services.offer_engine import OfferNegotiationEngine


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (isolated component tests)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (multiple components)"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take significant time to run"
    )


class FakeClock:
    """Controllable naive-UTC clock."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 5, 1, 12, 0, 0))


@pytest.fixture
def test_settings():
    """Settings isolated from environment: in-memory DB, no sweeper, console logging."""
    return Settings(
        DATABASE_URL="sqlite://",
        OFFER_SWEEP_ENABLED=False,
        LOG_FILE="",
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def db_engine():
    """
    Fresh in-memory database for each test.

    WHAT: Setup and teardown test database
    WHY: Ensure test isolation
    HOW: StaticPool sqlite:// engine, tables created up front
    """
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    close_db(engine)


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def notifier(session_factory, clock):
    return ConversationNotifier(session_factory, clock=clock)


@pytest.fixture
def engine(session_factory, notifier, clock):
    return OfferNegotiationEngine(session_factory, notifier=notifier, clock=clock)


@pytest.fixture
def listing_service(session_factory):
    return ListingService(session_factory)


@pytest.fixture
def make_listing(listing_service):
    """Create a listing that accepts offers; override any field by keyword."""
    def _make(seller_id="seller_1", **overrides):
        fields = {
            "title": "La Sportiva Solution",
            "brand": "La Sportiva",
            "size": "9.5",
            "condition": "good",
            "price": 100.0,
            "accepts_offers": True,
        }
        fields.update(overrides)
        return listing_service.create_listing(seller_id, **fields)
    return _make


@pytest.fixture
def app(test_settings, clock):
    return create_app(test_settings, clock=clock)


@pytest.fixture
def client(app):
    """FastAPI test client with lifespan (tables created on startup)."""
    with TestClient(app) as test_client:
        yield test_client
