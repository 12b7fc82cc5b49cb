"""
Shared test fixtures for the adjustment engine test suite.

Every test gets its own in-memory aiosqlite database, so ledger rows and
balances never leak between tests.
"""

import os
import sys
from datetime import datetime
from typing import AsyncGenerator
from zoneinfo import ZoneInfo

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["SECRET_KEY"] = "test-secret-key-for-the-suite"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shiftpay.api.v1.deps import get_db
from shiftpay.api.v1.endpoints.attendance import limiter
from shiftpay.core.security import create_access_token
from shiftpay.db.base import Base
from shiftpay.main import app
from shiftpay.models.company import Company
from shiftpay.models.employee import Employee
from shiftpay.services.notifier import Notification, get_notifier

RIYADH = ZoneInfo("Asia/Riyadh")


def riyadh(year: int, month: int, day: int, hour: int, minute: int = 0) -> datetime:
    """A company-local wall-clock time."""
    return datetime(year, month, day, hour, minute, tzinfo=RIYADH)


class RecordingNotifier:
    """Stands in for the Telegram notifier and remembers what it was asked to send."""

    def __init__(self, deliver: bool = True) -> None:
        self.deliver = deliver
        self.sent: list[Notification] = []

    async def send(self, notification: Notification | None) -> bool:
        if notification is None:
            return False
        self.sent.append(notification)
        return self.deliver


# ── Database ────────────────────────────────────────────────────────
@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct service calls and queries."""
    async with session_factory() as session:
        yield session


# ── Seed data ───────────────────────────────────────────────────────
@pytest.fixture
async def company(db_session: AsyncSession) -> Company:
    company = Company(
        id=1,
        name="Acme Trading",
        timezone="Asia/Riyadh",
        work_start_time="09:00",
        work_end_time="17:00",
        weekend_days="friday,saturday",
        break_duration_minutes=60,
        late_under_15_deduction_days=0.5,
        late_15_to_30_deduction_days=1.0,
        late_over_30_deduction_days=1.0,
        monthly_late_allowance_minutes=60,
        overtime_multiplier=1.5,
        absence_deduction_days=1.0,
        telegram_bot_token="TEST-BOT-TOKEN",
    )
    db_session.add(company)
    await db_session.commit()
    return company


@pytest.fixture
async def employee(db_session: AsyncSession, company: Company) -> Employee:
    employee = Employee(
        company_id=company.id,
        full_name="Sara Ali",
        telegram_chat_id="1001",
        base_salary=3000.0,
        salary_type="monthly",
        is_freelancer=False,
        currency="SAR",
        is_active=True,
    )
    db_session.add(employee)
    await db_session.commit()
    await db_session.refresh(employee)
    return employee


# ── HTTP client ─────────────────────────────────────────────────────
@pytest.fixture
def recording_notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    limiter.reset()
    yield


@pytest.fixture
async def async_client(
    session_factory, recording_notifier: RecordingNotifier
) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app and the per-test database."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_notifier] = lambda: recording_notifier
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def auth_headers(role: str = "admin", company_id: int = 1, name: str = "Manager Omar") -> dict:
    token = create_access_token("42", name=name, role=role, company_id=company_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers() -> dict:
    return auth_headers("admin")


@pytest.fixture
def bot_headers() -> dict:
    return auth_headers("bot", name="Attendance Bot")
