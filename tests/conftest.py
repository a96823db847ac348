import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from typing import Any

# Settings require DATABASE_URL at import time; the app engine is never used by tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./labvisit_unused.db")

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from labvisit.config import Settings
from labvisit.database import get_async_database_url, get_db
from labvisit.dependencies import get_admin_auth_service, get_notification_service
from labvisit.main import app
from labvisit.models.appointments import appointments, metadata
from labvisit.schemas.appointments import AppointmentResponse
from labvisit.services.appointment_service import AppointmentService
from labvisit.services.auth_service import AdminAuthService
from labvisit.services.notification_service import NotificationService

# Load environment variables from .env file
load_dotenv()

ADMIN_PASSWORD = "test-admin-password"

# Optional PostgreSQL database; defaults to a fresh SQLite file per test
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")


class FakeEmailSender:
    """Records emails instead of talking to SMTP."""

    def __init__(self, fail_for: set[str] | None = None):
        self.sent: list[dict[str, str]] = []
        self.fail_for = fail_for or set()

    async def send(self, to_email: str, subject: str, body: str) -> bool:
        if to_email in self.fail_for:
            raise ConnectionError(f"SMTP refused {to_email}")
        self.sent.append({"to": to_email, "subject": subject, "body": body})
        return True


class FakeWhatsAppSender:
    """Records WhatsApp messages instead of calling the API."""

    def __init__(self, fail_for: set[str] | None = None):
        self.sent: list[dict[str, str]] = []
        self.fail_for = fail_for or set()

    async def send(self, to_phone: str, body: str) -> bool:
        if to_phone in self.fail_for:
            raise ConnectionError(f"WhatsApp API rejected {to_phone}")
        self.sent.append({"to": to_phone, "body": body})
        return True


@pytest.fixture
def app_settings() -> Settings:
    """Settings with admin recipients configured and the default time zone."""
    return Settings(
        DATABASE_URL="sqlite+aiosqlite:///./labvisit_unused.db",
        ADMIN_PASSWORD=ADMIN_PASSWORD,
        ADMIN_EMAIL="admin@example.com",
        ADMIN_WHATSAPP_NUMBER="+919000000000",
        APP_TIMEZONE="Asia/Kolkata",
    )


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def whatsapp_sender() -> FakeWhatsAppSender:
    return FakeWhatsAppSender()


@pytest.fixture
def notifier(
    email_sender: FakeEmailSender,
    whatsapp_sender: FakeWhatsAppSender,
    app_settings: Settings,
) -> NotificationService:
    return NotificationService(
        email_sender=email_sender,
        whatsapp_sender=whatsapp_sender,
        config=app_settings,
    )


@pytest_asyncio.fixture
async def db_session(tmp_path) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on a freshly created schema."""
    url = get_async_database_url(TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    engine = create_async_engine(url, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def service(
    db_session: AsyncSession,
    notifier: NotificationService,
    app_settings: Settings,
) -> AppointmentService:
    return AppointmentService(db_session, notifier=notifier, config=app_settings)


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    notifier: NotificationService,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_service] = lambda: notifier
    app.dependency_overrides[get_admin_auth_service] = lambda: AdminAuthService(ADMIN_PASSWORD)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict:
    """Headers accepted by admin-only endpoints."""
    return {"X-Admin-Password": ADMIN_PASSWORD}


@pytest.fixture
def tomorrow_at(app_settings: Settings):
    """Build datetimes for tomorrow at a given hour in the service time zone."""

    def _at(hour: int) -> datetime:
        tomorrow = datetime.now(app_settings.timezone) + timedelta(days=1)
        return tomorrow.replace(hour=hour, minute=0, second=0, microsecond=0)

    return _at


@pytest.fixture
def sample_appointment_data(tomorrow_at) -> dict:
    """Sample booking form payload."""
    return {
        "name": "John Doe",
        "phone": "+919876543210",
        "email": "john@example.com",
        "tests": ["Blood Sugar", "Thyroid Profile"],
        "preferred_date": tomorrow_at(10).isoformat(),
        "notes": "Ring the bell twice",
        "address_house_no": "123",
        "address_house_name": "Sunrise Apartments",
        "address_street": "MG Road",
        "address_locality": "Bandra West",
        "address_city": "Mumbai",
        "address_state": "Maharashtra",
        "address_pincode": "400050",
        "lat": None,
        "lng": None,
        "slot_hint": "Morning",
    }


@pytest.fixture
def make_appointment(db_session: AsyncSession):
    """Insert an appointment row directly, bypassing intake validation."""

    async def _make(**overrides: Any) -> AppointmentResponse:
        now = datetime.now(UTC)
        values: dict[str, Any] = {
            "name": "Jane Smith",
            "phone": "+919812345678",
            "email": "jane@example.com",
            "tests": ["Blood Sugar"],
            "preferred_date": now + timedelta(days=3),
            "notes": None,
            "slot_hint": None,
            "address_house_no": None,
            "address_house_name": None,
            "address_street": "Main Street",
            "address_locality": "Central Area",
            "address_city": "Mumbai",
            "address_state": None,
            "address_pincode": None,
            "lat": None,
            "lng": None,
            "status": "Received",
            "fasting_required": False,
            "created_at": now,
            "updated_at": now,
            "last_reminder_sent_at": None,
        }
        values.update(overrides)

        result = await db_session.execute(insert(appointments).values(**values).returning(appointments))
        await db_session.commit()
        return AppointmentResponse.model_validate(dict(result.fetchone()._mapping))

    return _make


@pytest.fixture
def make_appointment_response():
    """Build an in-memory appointment without touching the database."""

    def _make(**overrides: Any) -> AppointmentResponse:
        now = datetime.now(UTC)
        values: dict[str, Any] = {
            "id": 1,
            "name": "Jane Smith",
            "phone": "+919812345678",
            "email": "jane@example.com",
            "tests": ["Blood Sugar"],
            "preferred_date": now + timedelta(days=1),
            "notes": None,
            "slot_hint": None,
            "address_street": "Main Street",
            "address_locality": "Central Area",
            "address_city": "Mumbai",
            "status": "Received",
            "fasting_required": False,
            "created_at": now,
            "updated_at": now,
            "last_reminder_sent_at": None,
        }
        values.update(overrides)
        return AppointmentResponse.model_validate(values)

    return _make
