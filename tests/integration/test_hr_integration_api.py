"""
Integration Tests for HR Integration API Endpoints

Runs the FastAPI app in-process with the sync services wired to in-memory
collaborators. The request-scoped DB session is replaced by a stub that
returns one integration row.
"""

import json
from types import SimpleNamespace
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from backend.db.session import get_db
from backend.dependencies import (
    get_adapter_cache,
    get_config_store,
    get_sync_service,
    get_webhook_processor,
)
from backend.main import app
from backend.middleware.rbac import Role
from backend.routers.v1.webhooks import compute_signature
from backend.services import cache
from backend.services.auth import create_access_token
from tests.fakes import make_config, make_employee

CONFIG_ID = str(uuid4())
WEBHOOK_SECRET = "whsec-test"


class _StubResult:
    def __init__(self, row):
        self._row = row

    def scalar_one_or_none(self):
        return self._row


class _StubSession:
    """Answers every query with the same integration row."""

    def __init__(self, row):
        self.row = row

    async def execute(self, statement):
        return _StubResult(self.row)

    async def flush(self):
        return None


def _auth_headers(role: Role = Role.COMPANY_ADMIN, company_id: str = "company-1") -> dict[str, str]:
    token = create_access_token(
        sub="user-1",
        email="admin@example.com",
        company_id=company_id,
        role=role.value,
    )
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def config():
    return make_config(id=CONFIG_ID, webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
def row():
    return SimpleNamespace(id=CONFIG_ID, company_id="company-1", is_active=True)


@pytest.fixture
def dedupe(monkeypatch):
    claimed: set[str] = set()

    async def claim_once(key: str, ttl: int) -> bool:
        if key in claimed:
            return False
        claimed.add(key)
        return True

    async def release(key: str) -> bool:
        claimed.discard(key)
        return True

    monkeypatch.setattr(cache, "claim_once", claim_once)
    monkeypatch.setattr(cache, "release", release)
    return claimed


@pytest_asyncio.fixture
async def client(row, config_store, adapters, sync_service, webhook_processor, dedupe):
    async def stub_db():
        yield _StubSession(row)

    app.dependency_overrides[get_db] = stub_db
    app.dependency_overrides[get_config_store] = lambda: config_store
    app.dependency_overrides[get_adapter_cache] = lambda: adapters
    app.dependency_overrides[get_sync_service] = lambda: sync_service
    app.dependency_overrides[get_webhook_processor] = lambda: webhook_processor

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_providers(client: AsyncClient) -> None:
    """GET /api/v1/hr-integrations/providers returns registry metadata."""
    response = await client.get(
        "/api/v1/hr-integrations/providers",
        headers=_auth_headers(Role.VIEWER),
    )

    assert response.status_code == 200
    names = {p["systemType"] for p in response.json()}
    assert names == {"bamboohr", "servicenow_hr", "sage_hr", "zoho_people"}


@pytest.mark.asyncio
async def test_list_providers_no_auth(client: AsyncClient) -> None:
    response = await client.get("/api/v1/hr-integrations/providers")

    assert response.status_code == 401


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_sync_success_returns_200(client: AsyncClient, adapter, directory) -> None:
    """A clean run returns the SyncResult with 200."""
    adapter.employees = [make_employee(1), make_employee(2)]

    response = await client.post(
        f"/api/v1/companies/company-1/hr-integrations/{CONFIG_ID}/sync",
        headers=_auth_headers(Role.RECRUITER),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["stats"]["successful"] == 2
    assert directory.user_by_email("person2@example.com") is not None


@pytest.mark.asyncio
async def test_sync_partial_failure_returns_207(client: AsyncClient, adapter, directory) -> None:
    adapter.employees = [make_employee(1), make_employee(2)]
    directory.reject_emails = {"person2@example.com"}

    response = await client.post(
        f"/api/v1/companies/company-1/hr-integrations/{CONFIG_ID}/sync",
        headers=_auth_headers(),
    )

    assert response.status_code == 207
    data = response.json()
    assert data["success"] is False
    assert data["stats"]["successful"] == 1
    assert data["stats"]["failed"] == 1
    assert data["errors"][0]["recordId"] == "emp-2"


@pytest.mark.asyncio
async def test_sync_other_company_is_403(client: AsyncClient) -> None:
    response = await client.post(
        f"/api/v1/companies/company-1/hr-integrations/{CONFIG_ID}/sync",
        headers=_auth_headers(company_id="company-2"),
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_sync_viewer_is_403(client: AsyncClient) -> None:
    response = await client.post(
        f"/api/v1/companies/company-1/hr-integrations/{CONFIG_ID}/sync",
        headers=_auth_headers(Role.VIEWER),
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_sync_inactive_integration_is_409(client: AsyncClient, row) -> None:
    row.is_active = False

    response = await client.post(
        f"/api/v1/companies/company-1/hr-integrations/{CONFIG_ID}/sync",
        headers=_auth_headers(),
    )

    assert response.status_code == 409


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------


def _signed(payload: dict) -> tuple[bytes, dict[str, str]]:
    body = json.dumps(payload).encode()
    signature = compute_signature(WEBHOOK_SECRET, body)
    return body, {"X-Webhook-Signature": f"sha256={signature}", "Content-Type": "application/json"}


@pytest.mark.asyncio
async def test_webhook_processed(client: AsyncClient, directory) -> None:
    """A signed employee.created webhook creates the local user."""
    body, headers = _signed({
        "event": "employee.created",
        "data": {
            "id": "emp-7",
            "firstName": "Grace",
            "lastName": "Hopper",
            "email": "grace@example.com",
            "department": "Engineering",
            "jobTitle": "Engineer",
        },
    })

    response = await client.post(
        f"/api/v1/hr-integrations/webhooks/{CONFIG_ID}",
        content=body,
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json() == {"status": "processed", "eventType": "employee.created"}
    assert directory.user_by_email("grace@example.com") is not None


@pytest.mark.asyncio
async def test_webhook_redelivery_is_duplicate(client: AsyncClient) -> None:
    body, headers = _signed({"event": "department.created", "data": {"id": "d1", "name": "Ops"}})
    url = f"/api/v1/hr-integrations/webhooks/{CONFIG_ID}"

    first = await client.post(url, content=body, headers=headers)
    second = await client.post(url, content=body, headers=headers)

    assert first.json()["status"] == "processed"
    assert second.json() == {"status": "duplicate"}


@pytest.mark.asyncio
async def test_webhook_bad_signature_is_401(client: AsyncClient) -> None:
    body, _ = _signed({"event": "employee.created", "data": {}})

    response = await client.post(
        f"/api/v1/hr-integrations/webhooks/{CONFIG_ID}",
        content=body,
        headers={"X-Webhook-Signature": "sha256=deadbeef"},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_webhook_unknown_event_is_400_and_released(client: AsyncClient, dedupe) -> None:
    body, headers = _signed({"event": "payroll.ran", "data": {}})

    response = await client.post(
        f"/api/v1/hr-integrations/webhooks/{CONFIG_ID}",
        content=body,
        headers=headers,
    )

    assert response.status_code == 400
    assert dedupe == set()


@pytest.mark.asyncio
async def test_webhook_department_without_id_is_400(client: AsyncClient, directory, dedupe) -> None:
    body, headers = _signed({"event": "department.created", "data": {"id": "", "name": "Ops"}})

    response = await client.post(
        f"/api/v1/hr-integrations/webhooks/{CONFIG_ID}",
        content=body,
        headers=headers,
    )

    assert response.status_code == 400
    assert directory.departments == {}
    assert dedupe == set()


@pytest.mark.asyncio
async def test_webhook_unknown_integration_is_404(client: AsyncClient) -> None:
    body, headers = _signed({"event": "employee.created", "data": {}})

    response = await client.post(
        f"/api/v1/hr-integrations/webhooks/{uuid4()}",
        content=body,
        headers=headers,
    )

    assert response.status_code == 404
