"""
Sage HR Adapter Unit Tests

Covers bearer auth, token refresh on 401 and record normalization.
"""

import asyncio
import json

import httpx
import pytest

from integrations.base import (
    EmployeeStatus,
    HRCredentials,
    HRSystemType,
    PositionStatus,
    WebhookEventType,
)
from integrations.exceptions import ConfigurationError, UnsupportedWebhookEventError
from integrations.hris.sage_hr import SageHRAdapter, map_employee_status
from tests.fakes import make_config

EMPLOYEE = {
    "id": 42,
    "first_name": "Margaret",
    "last_name": "Hamilton",
    "email": "mh@example.com",
    "department": {"id": 3, "name": "Software"},
    "position": {"id": 7, "title": "Director"},
    "manager": {"id": 1},
    "start_date": "1961-05-01",
    "status": "active",
    "employment_type": "Full-time",
}


def _config(**creds):
    defaults = dict(client_id="cid", client_secret="csecret", access_token="old", refresh_token="r1")
    defaults.update(creds)
    return make_config(
        system_type=HRSystemType.SAGE_HR,
        credentials=HRCredentials(type="oauth2", **defaults),
    )


def _adapter(handler, on_refresh=None, **creds) -> SageHRAdapter:
    return SageHRAdapter(
        _config(**creds),
        on_credentials_refreshed=on_refresh,
        transport=httpx.MockTransport(handler),
    )


class TestConfiguration:

    def test_requires_client_credentials(self):
        with pytest.raises(ConfigurationError):
            SageHRAdapter(_config(client_secret=None))

    def test_default_base_url(self):
        assert _adapter(lambda r: httpx.Response(200)).base_url == "https://api.sage.hr"


class TestReads:

    @pytest.mark.asyncio
    async def test_get_employees_sends_bearer_and_includes(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["authorization"]
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"data": [EMPLOYEE]})

        [employee] = await _adapter(handler).get_employees("2025-03-01T00:00:00+00:00")

        assert seen["auth"] == "Bearer old"
        assert seen["params"] == {
            "include": "department,position,manager",
            "modified_since": "2025-03-01T00:00:00+00:00",
        }
        assert employee.id == "42"
        assert employee.department == "Software"
        assert employee.job_title == "Director"
        assert employee.manager == "1"
        assert employee.hire_date.year == 1961

    @pytest.mark.asyncio
    async def test_get_job_positions(self):
        def handler(request):
            return httpx.Response(
                200,
                json={"data": [{"id": 9, "title": "Flight Software Lead", "status": "on hold", "salary_min": "100"}]},
            )

        [position] = await _adapter(handler).get_job_positions()

        assert position.id == "9"
        assert position.status == PositionStatus.ON_HOLD
        assert position.currency == "USD"


class TestTokenRefresh:

    @pytest.mark.asyncio
    async def test_401_refreshes_once_and_persists_credentials(self):
        refreshed = []
        calls = {"employees": 0}

        def handler(request):
            if request.url.path == "/oauth/token":
                body = json.loads(request.content)
                assert body["grant_type"] == "refresh_token"
                assert body["refresh_token"] == "r1"
                return httpx.Response(200, json={"access_token": "new", "refresh_token": "r2", "expires_in": 3600})
            calls["employees"] += 1
            if request.headers["authorization"] != "Bearer new":
                return httpx.Response(401)
            return httpx.Response(200, json={"data": [EMPLOYEE]})

        async def on_refresh(config_id, credentials):
            refreshed.append((config_id, credentials))

        adapter = _adapter(handler, on_refresh=on_refresh)
        employees = await adapter.get_employees()

        assert len(employees) == 1
        assert calls["employees"] == 2
        [(config_id, credentials)] = refreshed
        assert config_id == "cfg-1"
        assert credentials.access_token == "new"
        assert credentials.refresh_token == "r2"

    @pytest.mark.asyncio
    async def test_concurrent_401s_share_one_refresh(self):
        refresh_tokens_seen = []

        async def handler(request):
            if request.url.path == "/oauth/token":
                token = json.loads(request.content)["refresh_token"]
                refresh_tokens_seen.append(token)
                if token != "r1":
                    return httpx.Response(400, json={"error": "invalid_grant"})
                await asyncio.sleep(0.01)
                return httpx.Response(200, json={"access_token": "new", "refresh_token": "r2"})
            if request.headers["authorization"] != "Bearer new":
                await asyncio.sleep(0.01)
                return httpx.Response(401)
            return httpx.Response(200, json={"data": []})

        adapter = _adapter(handler)
        employees, departments = await asyncio.gather(
            adapter.get_employees(),
            adapter.get_departments(),
        )

        assert refresh_tokens_seen == ["r1"]
        assert employees == [] and departments == []
        assert adapter.credentials.refresh_token == "r2"

    @pytest.mark.asyncio
    async def test_no_refresh_token_surfaces_401(self):
        adapter = _adapter(lambda request: httpx.Response(401), refresh_token=None)

        with pytest.raises(httpx.HTTPStatusError):
            await adapter.get_departments()

    @pytest.mark.asyncio
    async def test_validate_connection_false_when_still_unauthorized(self):
        def handler(request):
            if request.url.path == "/oauth/token":
                return httpx.Response(200, json={"access_token": "still-bad"})
            return httpx.Response(401)

        assert await _adapter(handler).validate_connection() is False


class TestWebhooks:

    def test_employee_terminated(self):
        event = _adapter(lambda r: httpx.Response(200)).handle_webhook(
            {"event": "employee.terminated", "data": {**EMPLOYEE, "status": "terminated"}}
        )
        assert event.event_type == WebhookEventType.EMPLOYEE_TERMINATED
        assert event.data.status == EmployeeStatus.TERMINATED

    def test_position_events_unsupported(self):
        with pytest.raises(UnsupportedWebhookEventError):
            _adapter(lambda r: httpx.Response(200)).handle_webhook({"event": "position.created", "data": {}})


class TestMappers:

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("active", EmployeeStatus.ACTIVE),
            ("Inactive", EmployeeStatus.INACTIVE),
            ("leaver", EmployeeStatus.TERMINATED),
            ("", EmployeeStatus.INACTIVE),
        ],
    )
    def test_map_employee_status(self, value, expected):
        assert map_employee_status(value) == expected
