# tests/conftest.py
import os
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

# Configure before the app modules read settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SEED_DEFAULT_PLANS"] = "false"
os.environ["DISCORD_WEBHOOK_URL"] = ""
os.environ["QUOTA_POLICY"] = "daily"

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from streamboost.db import Base, get_db, serialize_sqlite_writes
from streamboost.models import (
    PlannedStream,
    StreamStatus,
    Streamer,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
    User,
)
from streamboost.services.plans import seed_default_plans


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    serialize_sqlite_writes(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def now():
    """Fixed clock: a Monday morning, naive UTC."""
    return datetime(2025, 11, 10, 9, 0, 0)


@pytest.fixture
def plans(db):
    """The stock Basic/Pro/Premium plans, keyed by name."""
    seed_default_plans(db)
    return {p.name: p for p in db.query(SubscriptionPlan).all()}


@pytest.fixture
def make_streamer(db):
    counter = {"n": 0}

    def _make(username=None):
        counter["n"] += 1
        username = username or f"streamer{counter['n']}"
        user = User(email=f"{username}@example.com", role="streamer")
        db.add(user)
        db.flush()
        streamer = Streamer(user_id=user.id, username=username, full_name=username.title())
        db.add(streamer)
        db.commit()
        return streamer

    return _make


@pytest.fixture
def make_subscription(db, now):
    def _make(streamer, plan, status=SubscriptionStatus.ACTIVE, start=None, end=None):
        start = start or now - timedelta(days=1)
        end = end or start + timedelta(days=plan.duration_days)
        sub = Subscription(
            streamer_id=streamer.id,
            plan_id=plan.id,
            amount=plan.price,
            start_date=start,
            end_date=end,
            status=status,
        )
        db.add(sub)
        db.commit()
        return sub

    return _make


@pytest.fixture
def make_stream(db):
    def _make(streamer, start, minutes=60, status=StreamStatus.SCHEDULED, title="Stream"):
        stream = PlannedStream(
            streamer_id=streamer.id,
            title=title,
            scheduled_start=start,
            estimated_duration=minutes,
            status=status,
        )
        db.add(stream)
        db.commit()
        return stream

    return _make


@pytest.fixture
def pro_streamer(make_streamer, make_subscription, plans):
    streamer = make_streamer("pro_streamer")
    make_subscription(streamer, plans["Pro"])
    return streamer


@pytest.fixture
def basic_streamer(make_streamer, make_subscription, plans):
    streamer = make_streamer("basic_streamer")
    make_subscription(streamer, plans["Basic"])
    return streamer


@pytest.fixture
def tomorrow(now):
    """Start of the next day, for scheduling in the future."""
    return (now + timedelta(days=1)).replace(hour=0, minute=0)


@pytest.fixture
def client(db):
    """TestClient bound to the test session. Startup hooks are not run."""
    from streamboost.main import app

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def custom_plan_terms():
    return {
        "views_delivered": 300,
        "chat_messages_delivered": 100,
        "duration_hours": 3,
        "duration_days": 10,
        "price": Decimal("15.00"),
    }
