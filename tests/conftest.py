"""Pytest configuration and fixtures for the quote lifecycle test suite."""

import itertools
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# Config is read at import time; set the environment BEFORE importing vision_pos
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DB_TYPE", "sqlite")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_ACCESS_SECRET_KEY", "test-secret")
os.environ.setdefault("BUSINESS_TIMEZONE", "UTC")
os.environ.setdefault("HIGH_VALUE_QUOTE_THRESHOLD", "10000")
os.environ.setdefault("ENABLE_SCHEDULER", "false")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.pool import StaticPool

from vision_pos.core.db import build_engine, build_session_factory, get_db, init_models
from vision_pos.models.users.user_models import User
from vision_pos.models.quotes.quote_models import Quote
from vision_pos.models.enums.quote_status import QuoteStatus
from vision_pos.models.enums.user_role import UserRole
from vision_pos.schemas.quotes.quote_schemas import QuoteSnapshot
from vision_pos.utils.get_user import get_current_user

# Monday, inside business hours
NOW = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)


# =============================================================================
# SNAPSHOTS (pure rule tests)
# =============================================================================

def ready_quote_content() -> dict:
    """Content that satisfies every requirement through completion."""
    return {
        "exam_services": [{"code": "EXAM-COMP", "price": "120.00"}],
        "eyeglasses": {"items": [{"sku": "FRAME-01"}, {"sku": "LENS-SV"}]},
        "patient_info": {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@visionpos.com"},
        "total": Decimal("250.00"),
        "exam_signature_completed": True,
        "materials_signature_completed": True,
        "fulfillment_completed": True,
    }


@pytest.fixture
def make_snapshot():
    """Build a QuoteSnapshot; ready=True starts from fully satisfied content."""

    def _make(ready: bool = True, **overrides) -> QuoteSnapshot:
        data = {"id": 1, "quote_number": "QT-000001", "location_id": "store-1"}
        if ready:
            data.update(ready_quote_content())
        data.update(overrides)
        return QuoteSnapshot(**data)

    return _make


# =============================================================================
# DATABASE
# =============================================================================

@pytest_asyncio.fixture
async def db_engine():
    engine = build_engine("sqlite+aiosqlite://", "sqlite", poolclass=StaticPool)
    await init_models(engine)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    async with build_session_factory(db_engine)() as session:
        yield session


@pytest_asyncio.fixture
async def users(db_session):
    """One user per role, keyed by role value."""
    created = {}
    for role in UserRole:
        user = User(
            username=f"{role.value.lower()}@visionpos.com",
            # not a real hash; login is not exercised through these users
            password_hash="x",
            role=role.value,
            location_id="store-1",
            is_active=True,
        )
        db_session.add(user)
        created[role.value] = user

    await db_session.commit()
    for user in created.values():
        await db_session.refresh(user)
    return created


_numbers = itertools.count(1)


@pytest.fixture
def quote_factory(db_session):
    """Insert a quote row directly, bypassing the workflow."""

    async def _make(
        status: QuoteStatus = QuoteStatus.DRAFT,
        days_inactive: float = 0,
        now: datetime = NOW,
        ready: bool = True,
        **overrides,
    ) -> Quote:
        data = {
            "quote_number": f"QT-T{next(_numbers):05d}",
            "location_id": "store-1",
            "status": status,
            "last_activity_at": now - timedelta(days=days_inactive),
        }
        if ready:
            data.update(ready_quote_content())
        data.update(overrides)

        quote = Quote(**data)
        db_session.add(quote)
        await db_session.commit()
        await db_session.refresh(quote)
        return quote

    return _make


# =============================================================================
# API CLIENT
# =============================================================================

class ApiClient:
    """httpx client bound to the app, acting as a chosen user."""

    def __init__(self, client: AsyncClient, users: dict):
        self.client = client
        self.users = users
        self.user_id = None

    def act_as(self, role: UserRole | str) -> "ApiClient":
        self.user_id = self.users[getattr(role, "value", role)].id
        return self

    def __getattr__(self, name):
        return getattr(self.client, name)


@pytest_asyncio.fixture
async def api(db_session, users):
    from main import app

    state = ApiClient(client=None, users=users)

    async def _get_db():
        yield db_session

    async def _current_user():
        return await db_session.get(User, state.user_id)

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_user] = _current_user

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        state.client = client
        state.act_as(UserRole.SALES_ASSOCIATE)
        yield state

    app.dependency_overrides.clear()
