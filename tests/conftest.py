"""
Pytest configuration and shared fixtures.

Test settings are applied through environment variables before any
confessions module is imported, then the settings cache is cleared so the
app picks them up.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_confessions.db")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("CONFESSION_BACKEND", "database")
os.environ.setdefault("SENTIMENT_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

# Clear settings cache before any app imports to ensure test env vars are used
from confessions.config import get_settings  # noqa: E402
get_settings.cache_clear()

from confessions.main import app, get_rate_limiter  # noqa: E402
from confessions.rate_limit import InMemoryRateLimitStore, RateLimiter  # noqa: E402
from confessions.sentiment import SentimentAssessment, get_sentiment_analyzer  # noqa: E402
from confessions.storage import Base, engine  # noqa: E402


class FakeSentimentAnalyzer:
    """Stand-in for Comprehend returning a fixed assessment or raising."""

    def __init__(self, label="NEUTRAL", negative=0.0, error=None):
        self.assessment = SentimentAssessment(label=label, scores={"Negative": negative})
        self.error = error
        self.calls = []

    def analyze(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.assessment


@pytest.fixture
def rate_limiter():
    """Fresh in-memory limiter with the production limits."""
    return RateLimiter(InMemoryRateLimitStore(), limit=10, window_seconds=60)


@pytest.fixture
def sentiment_analyzer():
    return FakeSentimentAnalyzer()


@pytest.fixture(scope="function")
def client(rate_limiter, sentiment_analyzer):
    """Create test client with fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_sentiment_analyzer] = lambda: sentiment_analyzer

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    # Cleanup - drop all tables after test
    Base.metadata.drop_all(bind=engine)
