"""
BambooHR Integration

Connects to the BambooHR API for employee directory and department data.
BambooHR has no job-position API; positions are derived from the distinct
job titles in the employee directory.
"""

import logging
import re
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
    format_vendor_date,
    parse_vendor_datetime,
    provided_fields,
)
from integrations.exceptions import ConfigurationError, UnsupportedOperationError

logger = logging.getLogger(__name__)

DIRECTORY_FIELDS = [
    "id", "employeeNumber", "firstName", "lastName", "workEmail",
    "mobilePhone", "department", "jobTitle", "supervisor", "hireDate",
    "status", "location", "employmentHistoryStatus",
]

# Internal field -> BambooHR field
OUTBOUND_FIELDS = {
    "first_name": "firstName",
    "last_name": "lastName",
    "email": "workEmail",
    "phone": "mobilePhone",
    "department": "department",
    "job_title": "jobTitle",
    "location": "location",
}


class BambooHRAdapter(BaseHRAdapter):
    """BambooHR HRIS adapter (API key over basic auth)."""

    system_type = HRSystemType.BAMBOOHR
    display_name = "BambooHR"

    webhook_events = {
        ("employee-new", ""): WebhookEventType.EMPLOYEE_CREATED,
        ("employee-update", ""): WebhookEventType.EMPLOYEE_UPDATED,
        ("employee-terminated", ""): WebhookEventType.EMPLOYEE_TERMINATED,
    }

    def __init__(self, config, **kwargs):
        super().__init__(config, **kwargs)
        self.api_key = self.credentials.api_key
        self.subdomain = self.credentials.subdomain
        if not self.api_key or not self.subdomain:
            raise ConfigurationError("BambooHR requires apiKey and subdomain credentials")
        self.base_url = f"https://api.bamboohr.com/api/gateway.php/{self.subdomain}/v1"

    def _auth(self):
        # API key as username, any password
        return (self.api_key, "x")

    async def validate_connection(self) -> bool:
        try:
            response = await self._request("GET", "/meta/users")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(
                f"BambooHR connection validation failed: {e}",
                extra={"subdomain": self.subdomain},
            )
            return False

    async def get_employees(self, last_sync: str | None = None) -> list[HREmployee]:
        data = await self._get_json(
            "/employees/directory",
            params={"fields": ",".join(DIRECTORY_FIELDS)},
        )
        employees = data.get("employees") or []

        if last_sync:
            changed = await self._changed_employee_ids(last_sync)
            employees = [emp for emp in employees if str(emp.get("id")) in changed]

        return [self.parse_employee(emp) for emp in employees]

    async def _changed_employee_ids(self, since: str) -> set[str]:
        data = await self._get_json("/employees/changed", params={"since": since})
        return {str(emp_id) for emp_id in (data.get("employees") or {})}

    async def get_departments(self) -> list[HRDepartment]:
        data = await self._get_json("/meta/lists/department")
        return [self.parse_department(dept) for dept in data.get("options") or []]

    async def get_job_positions(self) -> list[HRJobPosition]:
        employees = await self.get_employees()
        titles: list[str] = []
        for emp in employees:
            if emp.job_title not in titles:
                titles.append(emp.job_title)
        return [
            self.parse_job_position({"title": title})
            for title in titles
        ]

    async def create_employee(self, employee: Mapping[str, Any]) -> str:
        response = await self._request("POST", "/employees", json=to_bamboo_employee(employee))
        response.raise_for_status()

        # New id comes back in the body or in the Location header
        if response.content:
            try:
                body = response.json()
            except ValueError:
                body = {}
            new_id = body.get("id") or body.get("employeeId")
            if new_id:
                return str(new_id)
        location = response.headers.get("Location", "")
        return location.rstrip("/").rsplit("/", 1)[-1]

    async def update_employee(self, employee_id: str, employee: Mapping[str, Any]) -> bool:
        response = await self._request(
            "POST",
            f"/employees/{employee_id}",
            json=to_bamboo_employee(employee),
        )
        if not response.is_success:
            logger.warning(
                f"BambooHR employee update rejected: {response.status_code}",
                extra={"employee_id": employee_id},
            )
        return response.is_success

    async def create_job_position(self, job: Mapping[str, Any]) -> str:
        raise UnsupportedOperationError(
            "Creating job positions is not supported in BambooHR API"
        )

    async def update_job_position(self, job_id: str, job: Mapping[str, Any]) -> bool:
        raise UnsupportedOperationError(
            "Updating job positions is not supported in BambooHR API"
        )

    def handle_webhook(self, payload: Mapping[str, Any]) -> WebhookPayload:
        event_type = self._classify_webhook(payload.get("event"), None)
        return self._build_webhook_payload(event_type, payload.get("employee"))

    def parse_employee(self, record: Mapping[str, Any]) -> HREmployee:
        status = record.get("status") or record.get("employmentHistoryStatus")
        return HREmployee(
            id=as_str(record.get("id")) or as_str(record.get("employeeNumber")) or "",
            employee_number=as_str(record.get("employeeNumber")),
            first_name=record.get("firstName") or "",
            last_name=record.get("lastName") or "",
            email=record.get("workEmail") or record.get("email") or "",
            phone=record.get("mobilePhone") or record.get("homePhone"),
            department=record.get("department") or "Unknown",
            job_title=record.get("jobTitle") or "Unknown",
            manager=record.get("supervisor"),
            hire_date=parse_vendor_datetime(record.get("hireDate")),
            status=map_employee_status(status),
            location=record.get("location"),
            employment_type=map_employment_type(record.get("employmentHistoryStatus")),
            custom_fields={"bambooId": record.get("id"), "originalData": dict(record)},
        )

    def parse_department(self, record: Mapping[str, Any]) -> HRDepartment:
        return HRDepartment(
            id=str(record.get("id", "")),
            name=record.get("name") or "",
            description=record.get("name"),
        )

    def parse_job_position(self, record: Mapping[str, Any]) -> HRJobPosition:
        title = record.get("title") or "Unknown"
        return HRJobPosition(
            id=as_str(record.get("id")) or job_id_for_title(title),
            title=title,
            department=record.get("department") or "Various",
            description=f"{title} position",
            location="Multiple locations",
            employment_type=EmploymentType.FULL_TIME,
            status=PositionStatus.OPEN,
        )


def to_bamboo_employee(employee: Mapping[str, Any]) -> dict[str, Any]:
    fields = provided_fields(employee)
    payload = {
        vendor_key: fields[key]
        for key, vendor_key in OUTBOUND_FIELDS.items()
        if fields.get(key)
    }
    if fields.get("hire_date"):
        payload["hireDate"] = format_vendor_date(fields["hire_date"])
    return payload


def job_id_for_title(title: str) -> str:
    """Stable synthetic id for a title-derived position."""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return f"title-{slug or 'unknown'}"


def map_employee_status(value: str | None) -> EmployeeStatus:
    status = (value or "").lower()
    if "terminated" in status or "separated" in status:
        return EmployeeStatus.TERMINATED
    if "inactive" in status:
        return EmployeeStatus.INACTIVE
    if "active" in status or "employed" in status:
        return EmployeeStatus.ACTIVE
    return EmployeeStatus.INACTIVE


def map_employment_type(value: str | None) -> EmploymentType:
    kind = (value or "").lower()
    if "part" in kind or kind == "pt":
        return EmploymentType.PART_TIME
    if "contract" in kind or "temp" in kind:
        return EmploymentType.CONTRACTOR
    if "intern" in kind:
        return EmploymentType.INTERN
    return EmploymentType.FULL_TIME
