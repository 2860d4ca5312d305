"""
Sage HR Integration

OAuth2 bearer-token adapter for the Sage HR REST API.
"""

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from integrations.base import (
    BaseHRAdapter,
    EmployeeStatus,
    EmploymentType,
    HRDepartment,
    HREmployee,
    HRJobPosition,
    HRSystemType,
    PositionStatus,
    WebhookEventType,
    WebhookPayload,
    as_str,
    first_present,
    format_vendor_date,
    parse_vendor_datetime,
    provided_fields,
    split_lines,
    to_float,
    to_int,
)
from integrations.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.sage.hr"


class SageHRAdapter(BaseHRAdapter):
    """Sage HR adapter."""

    system_type = HRSystemType.SAGE_HR
    display_name = "Sage HR"

    webhook_events = {
        ("employee.created", ""): WebhookEventType.EMPLOYEE_CREATED,
        ("employee.updated", ""): WebhookEventType.EMPLOYEE_UPDATED,
        ("employee.terminated", ""): WebhookEventType.EMPLOYEE_TERMINATED,
        ("department.created", ""): WebhookEventType.DEPARTMENT_CREATED,
        ("department.updated", ""): WebhookEventType.DEPARTMENT_UPDATED,
    }

    def __init__(self, config, **kwargs):
        super().__init__(config, **kwargs)
        creds = self.credentials
        if not creds.client_id or not creds.client_secret:
            raise ConfigurationError("Sage HR requires clientId and clientSecret credentials")
        self.base_url = (creds.base_url or DEFAULT_BASE_URL).rstrip("/")

    def _default_headers(self) -> dict[str, str]:
        headers = super()._default_headers()
        headers["Authorization"] = f"Bearer {self.credentials.access_token or ''}"
        return headers

    @property
    def supports_token_refresh(self) -> bool:
        return bool(self.credentials.refresh_token)

    async def refresh_access_token(self) -> tuple[str, str | None, int | None]:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(
                f"{self.base_url}/oauth/token",
                json={
                    "grant_type": "refresh_token",
                    "refresh_token": self.credentials.refresh_token,
                    "client_id": self.credentials.client_id,
                    "client_secret": self.credentials.client_secret,
                },
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            data = response.json()

        logger.info("Sage HR access token refreshed", extra={"config_id": self.config.id})
        return (
            data["access_token"],
            data.get("refresh_token"),
            data.get("expires_in"),
        )

    async def validate_connection(self) -> bool:
        try:
            response = await self._request("GET", "/api/v1/me")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(f"Sage HR connection validation failed: {e}")
            return False

    async def get_employees(self, last_sync: str | None = None) -> list[HREmployee]:
        params = {"include": "department,position,manager"}
        if last_sync:
            params["modified_since"] = last_sync
        data = await self._get_json("/api/v1/employees", params=params)
        return [self.parse_employee(emp) for emp in data.get("data") or []]

    async def get_departments(self) -> list[HRDepartment]:
        data = await self._get_json("/api/v1/departments")
        return [self.parse_department(dept) for dept in data.get("data") or []]

    async def get_job_positions(self) -> list[HRJobPosition]:
        data = await self._get_json("/api/v1/positions")
        return [self.parse_job_position(pos) for pos in data.get("data") or []]

    async def create_employee(self, employee: Mapping[str, Any]) -> str:
        response = await self._request("POST", "/api/v1/employees", json=to_sage_employee(employee))
        response.raise_for_status()
        return str(response.json()["data"]["id"])

    async def update_employee(self, employee_id: str, employee: Mapping[str, Any]) -> bool:
        response = await self._request(
            "PUT",
            f"/api/v1/employees/{employee_id}",
            json=to_sage_employee(employee),
        )
        return response.is_success

    async def create_job_position(self, job: Mapping[str, Any]) -> str:
        response = await self._request("POST", "/api/v1/positions", json=to_sage_position(job))
        response.raise_for_status()
        return str(response.json()["data"]["id"])

    async def update_job_position(self, job_id: str, job: Mapping[str, Any]) -> bool:
        response = await self._request(
            "PUT",
            f"/api/v1/positions/{job_id}",
            json=to_sage_position(job),
        )
        return response.is_success

    def handle_webhook(self, payload: Mapping[str, Any]) -> WebhookPayload:
        event_type = self._classify_webhook(payload.get("event"), None)
        return self._build_webhook_payload(event_type, payload.get("data"))

    def parse_employee(self, record: Mapping[str, Any]) -> HREmployee:
        department = record.get("department") or {}
        position = record.get("position") or {}
        manager = record.get("manager") or {}
        return HREmployee(
            id=as_str(record.get("id")) or as_str(record.get("employee_number")) or "",
            employee_number=as_str(record.get("employee_number")),
            first_name=record.get("first_name") or "",
            last_name=record.get("last_name") or "",
            email=first_present(record, "email", "work_email", default=""),
            phone=first_present(record, "phone", "mobile_phone"),
            department=_name(department) or "Unknown",
            job_title=(position.get("title") if isinstance(position, Mapping) else None)
            or record.get("job_title")
            or "Unknown",
            manager=as_str(manager.get("id")) if isinstance(manager, Mapping) else as_str(manager),
            hire_date=parse_vendor_datetime(first_present(record, "hire_date", "start_date")),
            status=map_employee_status(record.get("status")),
            location=first_present(record, "location", "office_location"),
            employment_type=map_employment_type(record.get("employment_type")),
            custom_fields={"sageId": record.get("id"), "originalData": dict(record)},
        )

    def parse_department(self, record: Mapping[str, Any]) -> HRDepartment:
        return HRDepartment(
            id=as_str(record.get("id")) or "",
            name=record.get("name") or "",
            description=record.get("description"),
            parent_department=as_str(record.get("parent_id")),
            manager=as_str(record.get("manager_id")),
            location=record.get("location"),
            headcount=to_int(record.get("employee_count")),
        )

    def parse_job_position(self, record: Mapping[str, Any]) -> HRJobPosition:
        return HRJobPosition(
            id=as_str(record.get("id")) or "",
            title=record.get("title") or "Unknown Position",
            department=_name(record.get("department")) or "Unknown",
            description=record.get("description") or "",
            requirements=split_lines(record.get("requirements")),
            location=record.get("location") or "",
            employment_type=map_employment_type(record.get("employment_type")),
            salary_min=to_float(record.get("salary_min")),
            salary_max=to_float(record.get("salary_max")),
            currency=record.get("currency") or "USD",
            status=map_position_status(record.get("status")),
            hiring_manager=as_str(record.get("hiring_manager_id")) or "",
            requisition_number=as_str(record.get("requisition_number")),
            created_date=parse_vendor_datetime(record.get("created_at")),
            target_start_date=as_str(record.get("target_start_date")),
        )


def _name(value: Any) -> str | None:
    if isinstance(value, Mapping):
        return as_str(value.get("name"))
    return as_str(value)


def to_sage_employee(employee: Mapping[str, Any]) -> dict[str, Any]:
    fields = provided_fields(employee)
    payload: dict[str, Any] = {}
    for key, vendor_key in (
        ("first_name", "first_name"),
        ("last_name", "last_name"),
        ("email", "email"),
        ("phone", "phone"),
        ("department", "department_name"),
        ("job_title", "job_title"),
        ("location", "location"),
        ("employee_number", "employee_number"),
    ):
        if fields.get(key):
            payload[vendor_key] = fields[key]
    if fields.get("hire_date"):
        payload["hire_date"] = format_vendor_date(fields["hire_date"])
    return payload


def to_sage_position(job: Mapping[str, Any]) -> dict[str, Any]:
    fields = provided_fields(job)
    payload: dict[str, Any] = {}
    for key in (
        "title",
        "description",
        "location",
        "salary_min",
        "salary_max",
        "currency",
        "requisition_number",
        "target_start_date",
    ):
        if fields.get(key):
            payload[key] = fields[key]
    if fields.get("requirements"):
        payload["requirements"] = "\n".join(fields["requirements"])
    if fields.get("employment_type"):
        payload["employment_type"] = EmploymentType(fields["employment_type"]).value
    return payload


def map_employee_status(value: str | None) -> EmployeeStatus:
    status = (value or "").lower()
    if "terminated" in status or "left" in status or status == "leaver":
        return EmployeeStatus.TERMINATED
    if "inactive" in status:
        return EmployeeStatus.INACTIVE
    if "active" in status or "employed" in status or status == "current":
        return EmployeeStatus.ACTIVE
    return EmployeeStatus.INACTIVE


def map_employment_type(value: str | None) -> EmploymentType:
    kind = (value or "").lower()
    if "part" in kind or kind == "pt":
        return EmploymentType.PART_TIME
    if "contract" in kind or "temp" in kind or "freelance" in kind:
        return EmploymentType.CONTRACTOR
    if "intern" in kind or "apprentice" in kind:
        return EmploymentType.INTERN
    return EmploymentType.FULL_TIME


def map_position_status(value: str | None) -> PositionStatus:
    status = (value or "").lower()
    if "open" in status or "active" in status or status == "published":
        return PositionStatus.OPEN
    if "hold" in status or "paused" in status:
        return PositionStatus.ON_HOLD
    return PositionStatus.CLOSED
