import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SMS_PROVIDER", "stub")

from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator, List, Optional, Set, Tuple
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.auth.security import hash_password
from app.auth.services import create_admin
from app.core.enums import FeeStatus
from app.core.models import AcademicYear, BillingPeriod, FeeRecord, Student
from app.core.models.base import school_today
from app.db.session import Base, get_db
from app.main import app
from app.notifications.sms import SmsResult, get_sms_sender

ADMIN_EMAIL = "office@school.mv"
ADMIN_PASSWORD = "AdminPass123"
PARENT_PASSWORD = "parent123"


class FakeSmsSender:
    """Records sent messages. Numbers in fail_numbers are rejected, numbers in raise_numbers raise."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, str]] = []
        self.fail_numbers: Set[str] = set()
        self.raise_numbers: Set[str] = set()

    async def send(self, phone_number: str, message: str, notification_id: Optional[UUID] = None) -> SmsResult:
        if phone_number in self.raise_numbers:
            raise RuntimeError("gateway connection reset")
        if phone_number in self.fail_numbers:
            return SmsResult(success=False, error="Gateway returned 500")
        self.sent.append((phone_number, message))
        return SmsResult(success=True)

    def messages_to(self, phone_number: str) -> List[str]:
        return [m for p, m in self.sent if p == phone_number]


@pytest.fixture()
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh SQLite database per test. Each request and the test itself get separate sessions."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def sms() -> FakeSmsSender:
    return FakeSmsSender()


@pytest.fixture()
async def client(session_factory, sms: FakeSmsSender) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sms_sender] = lambda: sms
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture()
async def admin_headers(client: AsyncClient, db_session: AsyncSession) -> dict:
    await create_admin(db_session, ADMIN_EMAIL, ADMIN_PASSWORD)
    response = await client.post("/api/v1/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture()
def make_year(db_session: AsyncSession):
    async def _make(year: int = 2025, is_active: bool = True) -> AcademicYear:
        existing = await db_session.execute(select(AcademicYear).where(AcademicYear.year == year))
        ay = existing.scalar_one_or_none()
        if ay:
            return ay
        ay = AcademicYear(year=year, is_active=is_active)
        db_session.add(ay)
        await db_session.commit()
        await db_session.refresh(ay)
        return ay

    return _make


@pytest.fixture()
def make_period(db_session: AsyncSession, make_year):
    async def _make(
        due_date: date,
        month_number: Optional[int] = None,
        month_name: Optional[str] = None,
        academic_year: Optional[AcademicYear] = None,
        is_active: bool = True,
    ) -> BillingPeriod:
        ay = academic_year or await make_year()
        month_number = month_number or due_date.month
        period = BillingPeriod(
            academic_year_id=ay.id,
            month_number=month_number,
            month_name=month_name or due_date.strftime("%B %Y"),
            due_date=due_date,
            is_active=is_active,
        )
        db_session.add(period)
        await db_session.commit()
        await db_session.refresh(period)
        return period

    return _make


@pytest.fixture()
def make_student(db_session: AsyncSession):
    counter = {"n": 0}

    async def _make(
        full_name: str = "Aisha Ahmed",
        parent_phone: str = "7771001",
        class_name: str = "KG1",
        year_joined: int = 2025,
        login_id: Optional[str] = None,
        password: str = PARENT_PASSWORD,
    ) -> Student:
        counter["n"] += 1
        student = Student(
            login_id=login_id or f"STU{counter['n']:06d}",
            full_name=full_name,
            class_name=class_name,
            year_joined=year_joined,
            parent_phone=parent_phone,
            password_hash=hash_password(password),
        )
        db_session.add(student)
        await db_session.commit()
        await db_session.refresh(student)
        return student

    return _make


@pytest.fixture()
def make_fee(db_session: AsyncSession):
    async def _make(
        student: Student,
        period: BillingPeriod,
        amount: str = "3500",
        status: FeeStatus = FeeStatus.pending,
    ) -> FeeRecord:
        fee = FeeRecord(
            student_id=student.id,
            billing_period_id=period.id,
            amount=Decimal(amount),
            status=status.value,
            reminder_sent=False,
            notification_sent=True,
        )
        db_session.add(fee)
        await db_session.commit()
        await db_session.refresh(fee)
        return fee

    return _make


@pytest.fixture()
def yesterday() -> date:
    return school_today() - timedelta(days=1)


@pytest.fixture()
def next_week() -> date:
    return school_today() + timedelta(days=7)


@pytest.fixture()
def reload(db_session: AsyncSession):
    """Read a row as currently stored, replacing the session's cached copy."""

    async def _reload(model, pk):
        return await db_session.get(model, pk, populate_existing=True)

    return _reload
