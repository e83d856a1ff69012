"""Test configuration and fixtures."""
from datetime import datetime, timedelta
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from covercredit.core.config import Settings
from covercredit.core.security import create_access_token
from covercredit.infrastructure.storage.database import create_db_engine, create_session_factory, init_db
from covercredit.infrastructure.storage.lead_store import LeadStore
from covercredit.services.notification_service import DeliveryReport, NotificationService


START = datetime(2026, 10, 19, 9, 0, 0)


class FakeClock:
    """Deterministic naive-UTC clock that only moves when told to."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine, clock) -> LeadStore:
    return LeadStore(create_session_factory(engine), clock=clock)


@pytest.fixture
def notifications() -> MagicMock:
    """Notification gateway stub whose sends always succeed."""
    service = MagicMock(spec=NotificationService)
    service.notify_submission = AsyncMock(return_value=[])
    service.send_reminder = AsyncMock(
        side_effect=lambda lead, kind=None: DeliveryReport(template="reminder_due", lead_id=lead.id)
    )
    return service


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="test",
        jwt_secret="test-jwt-secret",
        database_url="sqlite://",
        reminder_worker_enabled=False,
    )


@pytest.fixture
def test_app(settings, engine, notifications, clock):
    """Create test FastAPI application."""
    from covercredit.main import create_app

    return create_app(settings=settings, engine=engine, notifications=notifications, clock=clock)


@pytest_asyncio.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def admin_headers(settings) -> dict:
    token = create_access_token(
        {"sub": "1", "email": "admin@covercredit.in", "role": "admin"},
        settings=settings,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def contact_payload() -> dict:
    return {
        "firstName": "Asha",
        "lastName": "Reddy",
        "phone": "+91 98765 43210",
        "email": "Asha@Example.com",
        "interest": "Health Insurance",
        "message": "Family floater for 4",
    }


@pytest.fixture
def booking_payload() -> dict:
    return {
        "name": "Ravi Kumar",
        "phone": "9876543210",
        "department": "bike",
        "city": "Hyderabad",
        "details": {"regNumber": "TS09AB1234", "addOns": ["Zero Dep", "RSA"]},
        "contactMethod": "whatsapp",
        "preferredLanguage": "English",
    }
