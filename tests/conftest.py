"""Shared fixtures: in-memory database, API client and an admin token."""
import os

# Settings are read once at import time, so configure before importing the app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "admin123"
os.environ["SYNC_ENABLED"] = "false"
os.environ.pop("SYNC_ENDPOINT_URL", None)

from datetime import date
from decimal import Decimal

import pytest
from httpx import AsyncClient, ASGITransport

from hr_portal.database import init_db, drop_db, engine
from hr_portal.main import app
from hr_portal.schemas.hr import EmployeeDetail
from hr_portal.services.storage_service import InMemoryRepository
from hr_portal.services.sync_service import sync_status, SyncState, SyncAction


@pytest.fixture(autouse=True)
async def setup_database():
    await init_db()
    yield
    await drop_db()
    # Each test runs on its own event loop; drop the pooled connection with it
    await engine.dispose()


@pytest.fixture(autouse=True)
def reset_sync_status():
    sync_status.state = SyncState.IDLE
    sync_status.last_action = SyncAction.NONE
    sync_status.last_error = None
    sync_status.remote_version = 0
    sync_status.history.clear()
    yield


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def auth_headers(client):
    response = await client.post(
        "/api/v1/auth/login",
        json={"username": "admin", "password": "admin123"},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def repo():
    return InMemoryRepository()


def make_employee(code: str = "E001", **overrides) -> EmployeeDetail:
    data = {
        "code": code,
        "name": f"Employee {code}",
        "designation": "Sales Executive",
        "doj": date(2024, 1, 1),
        "status": "Active",
        "division": "North",
        "hq": "Delhi",
        "gross_monthly_salary": Decimal("30000"),
    }
    data.update(overrides)
    return EmployeeDetail(**data)


EMPLOYEE_PAYLOAD = {
    "code": "E001",
    "name": "Asha Verma",
    "designation": "Sales Executive",
    "doj": "2024-01-01",
    "status": "Active",
    "division": "North",
    "hq": "Delhi",
    "gross_monthly_salary": "30000",
}
