"""
Common test fixtures for the Collab Marketplace test suite.

Provides:
- In-memory SQLite database session
- FastAPI TestClient with DB override
- Helper fixtures for profiles, influencer cards, campaigns and services
"""
import os

# Must be set before importing anything that builds the engine at module level
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from database.models import Base, UserProfile, UserType
from database import marketplace_models  # noqa: F401
from database.marketplace_models import Campaign, CampaignPlatform, InfluencerCard, InfluencerCardCountry
from services.chat_service import ChatService
from services.rate_limit import SlidingWindowRateLimiter
from services.realtime import RealtimeHub


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def engine():
    """Create an in-memory SQLite engine with all tables."""
    _engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(_engine)
    return _engine


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def session(session_factory):
    """Provide a database session for tests."""
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def hub():
    return RealtimeHub()


@pytest.fixture
def rate_limiter(clock):
    return SlidingWindowRateLimiter(10, 60, clock=clock)


@pytest.fixture
def chat(session, hub, rate_limiter):
    return ChatService(session, hub=hub, rate_limiter=rate_limiter)


@pytest.fixture
def client(session, session_factory):
    """
    FastAPI TestClient with the DB session dependency overridden
    to use the in-memory test database.
    """
    from server import app, configure_state
    from database.config import get_db

    def _override_get_db():
        yield session

    configure_state(app, session_factory=session_factory)
    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_profile(session, user_id, user_type=UserType.INFLUENCER, complete=True, full_name=None):
    profile = UserProfile(
        user_id=user_id,
        user_type=user_type.value,
        full_name=full_name or user_id.title(),
        basic_info_complete=complete,
    )
    session.add(profile)
    session.commit()
    session.refresh(profile)
    return profile


@pytest.fixture
def advertiser(session):
    return make_profile(session, "advertiser-1", UserType.ADVERTISER, full_name="Acme Ads")


@pytest.fixture
def influencer(session):
    return make_profile(session, "influencer-1", UserType.INFLUENCER, full_name="Ivy Creator")


@pytest.fixture
def incomplete_user(session):
    return make_profile(session, "newbie-1", UserType.INFLUENCER, complete=False)


@pytest.fixture
def auth_headers():
    """Build a bearer header for a profile."""
    from auth.dependencies import create_access_token

    def _headers(profile):
        return {"Authorization": f"Bearer {create_access_token(profile.user_id)}"}

    return _headers


@pytest.fixture
def make_card(session):
    """Create an influencer card with its country rows."""

    def _make(user_id, platform="instagram", followers=10_000, countries=("US",), is_active=True,
              engagement_rate=3.0, rating=4.0):
        card = InfluencerCard(
            user_id=user_id,
            platform=platform,
            followers=followers,
            engagement_rate=engagement_rate,
            rating=rating,
            is_active=is_active,
            audience_demographics={"top_countries": list(countries)},
        )
        card.countries = [InfluencerCardCountry(country=c) for c in countries]
        session.add(card)
        session.commit()
        session.refresh(card)
        return card

    return _make


@pytest.fixture
def make_campaign(session):
    """Insert a campaign row directly, bypassing validation and moderation."""

    def _make(advertiser_id, title="Summer Launch", preferences=None, status="active",
              budget_min=100, budget_max=1000, moderation_status="approved", description=None):
        preferences = preferences if preferences is not None else {"platforms": ["instagram"], "content_types": ["post"]}
        campaign = Campaign(
            advertiser_id=advertiser_id,
            title=title,
            brand="Acme",
            description=description or f"{title} campaign for our new product line",
            budget_min=budget_min,
            budget_max=budget_max,
            preferences=preferences,
            status=status,
            moderation_status=moderation_status,
        )
        campaign.platforms = [CampaignPlatform(platform=p) for p in preferences.get("platforms", [])]
        session.add(campaign)
        session.commit()
        session.refresh(campaign)
        return campaign

    return _make
