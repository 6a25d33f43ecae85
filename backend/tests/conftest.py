"""Shared test fixtures for backend tests."""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from dispo.auth.tokens import encode_dev_token
from dispo.config import Settings
from dispo.main import create_app
from dispo.schemas.notifications import AssignmentEvent, NotificationType, ShiftSnapshot
from dispo.services.email_provider import MockEmailProvider
from dispo.services.notification_service import NotificationService
from dispo.services.notification_store import MemoryStorage


DISP1 = "disp1@stadtwerke-augsburg.de"
DISP2 = "disp2@stadtwerke-augsburg.de"


def _make_auth_header(role: str, **claims) -> dict:
    """Authorization header carrying an unsigned development token."""
    token = encode_dev_token({"role": role, **claims})
    return {"Authorization": f"Bearer {token}"}


def make_event(
    recipient: str = DISP1,
    *,
    shift_id: str = "shift-1",
    date: str = "2025-01-15",
    start: str = "08:00",
    end: str = "16:00",
    shift_type: str = "Frühdienst",
    work_location: str | None = "Büro",
    type: NotificationType = NotificationType.ASSIGNED,
) -> AssignmentEvent:
    return AssignmentEvent(
        shift_id=shift_id,
        assigned_to=recipient,
        shift=ShiftSnapshot(date=date, start=start, end=end, type=shift_type, work_location=work_location),
        type=type,
    )


@pytest.fixture
def email_provider() -> MockEmailProvider:
    return MockEmailProvider()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def service(email_provider: MockEmailProvider, storage: MemoryStorage) -> NotificationService:
    return NotificationService(email_provider, storage, digest_schedule="18:30")


@pytest.fixture
def app(email_provider: MockEmailProvider, storage: MemoryStorage):
    settings = Settings(_env_file=None, environment="test")
    return create_app(settings, email_provider=email_provider, storage=storage)


async def _client(app, headers: dict | None = None) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers=headers or {}) as client:
        yield client


@pytest_asyncio.fixture
async def admin_client(app) -> AsyncGenerator[AsyncClient, None]:
    async for client in _client(app, _make_auth_header("admin", email="admin@stadtwerke-augsburg.de")):
        yield client


@pytest_asyncio.fixture
async def chief_client(app) -> AsyncGenerator[AsyncClient, None]:
    async for client in _client(app, _make_auth_header("chief")):
        yield client


@pytest_asyncio.fixture
async def disponent_client(app) -> AsyncGenerator[AsyncClient, None]:
    async for client in _client(app, _make_auth_header("disponent")):
        yield client


@pytest_asyncio.fixture
async def analyst_client(app) -> AsyncGenerator[AsyncClient, None]:
    async for client in _client(app, _make_auth_header("analyst")):
        yield client


@pytest_asyncio.fixture
async def anon_client(app) -> AsyncGenerator[AsyncClient, None]:
    async for client in _client(app):
        yield client
