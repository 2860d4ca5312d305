"""
ServiceNow HR Service Delivery Integration

Reads users, departments and job postings through the ServiceNow Table API.
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
    format_vendor_date,
    parse_vendor_datetime,
    provided_fields,
    split_lines,
    to_float,
    to_int,
)
from integrations.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

USER_TABLE = "/api/now/table/sys_user"
DEPARTMENT_TABLE = "/api/now/table/cmn_department"
JOB_POSTING_TABLE = "/api/now/table/hr_job_posting"

USER_FIELDS = (
    "sys_id,employee_number,first_name,last_name,email,phone,department,title,"
    "manager,u_hire_date,active,location,u_employment_type"
)
DEPARTMENT_FIELDS = "sys_id,name,description,parent,head_count,dept_head"
JOB_POSTING_FIELDS = (
    "sys_id,title,description,department,location,employment_type,salary_min,"
    "salary_max,state,requisition_number,opened_at,hiring_manager"
)

POSITION_STATE_CODES = {
    PositionStatus.OPEN: "1",
    PositionStatus.ON_HOLD: "2",
    PositionStatus.CLOSED: "3",
}


class ServiceNowHRAdapter(BaseHRAdapter):
    """ServiceNow HR adapter (basic auth against an instance URL)."""

    system_type = HRSystemType.SERVICENOW_HR
    display_name = "ServiceNow HR"

    webhook_events = {
        ("inserted", "sys_user"): WebhookEventType.EMPLOYEE_CREATED,
        ("inserted", "cmn_department"): WebhookEventType.DEPARTMENT_CREATED,
        ("inserted", "hr_job_posting"): WebhookEventType.JOB_CREATED,
        ("updated", "sys_user"): WebhookEventType.EMPLOYEE_UPDATED,
        ("updated", "cmn_department"): WebhookEventType.DEPARTMENT_UPDATED,
        ("updated", "hr_job_posting"): WebhookEventType.JOB_UPDATED,
        ("deleted", "sys_user"): WebhookEventType.EMPLOYEE_TERMINATED,
        ("deleted", "hr_job_posting"): WebhookEventType.JOB_CLOSED,
    }

    def __init__(self, config, **kwargs):
        super().__init__(config, **kwargs)
        creds = self.credentials
        if not creds.base_url or not creds.username or not creds.password:
            raise ConfigurationError(
                "ServiceNow HR requires baseUrl, username and password credentials"
            )
        self.base_url = creds.base_url.rstrip("/")

    def _auth(self):
        return (self.credentials.username, self.credentials.password)

    async def validate_connection(self) -> bool:
        try:
            response = await self._request("GET", USER_TABLE, params={"sysparm_limit": 1})
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(
                f"ServiceNow HR connection validation failed: {e}",
                extra={"base_url": self.base_url},
            )
            return False

    async def get_employees(self, last_sync: str | None = None) -> list[HREmployee]:
        params = {"sysparm_fields": USER_FIELDS}
        if last_sync:
            params["sysparm_query"] = f"sys_updated_on>{last_sync}"
        data = await self._get_json(USER_TABLE, params=params)
        return [self.parse_employee(emp) for emp in data.get("result") or []]

    async def get_departments(self) -> list[HRDepartment]:
        data = await self._get_json(DEPARTMENT_TABLE, params={"sysparm_fields": DEPARTMENT_FIELDS})
        return [self.parse_department(dept) for dept in data.get("result") or []]

    async def get_job_positions(self) -> list[HRJobPosition]:
        data = await self._get_json(JOB_POSTING_TABLE, params={"sysparm_fields": JOB_POSTING_FIELDS})
        return [self.parse_job_position(pos) for pos in data.get("result") or []]

    async def create_employee(self, employee: Mapping[str, Any]) -> str:
        response = await self._request("POST", USER_TABLE, json=to_servicenow_employee(employee))
        response.raise_for_status()
        return response.json()["result"]["sys_id"]

    async def update_employee(self, employee_id: str, employee: Mapping[str, Any]) -> bool:
        response = await self._request(
            "PUT",
            f"{USER_TABLE}/{employee_id}",
            json=to_servicenow_employee(employee),
        )
        return response.is_success

    async def create_job_position(self, job: Mapping[str, Any]) -> str:
        response = await self._request("POST", JOB_POSTING_TABLE, json=to_servicenow_position(job))
        response.raise_for_status()
        return response.json()["result"]["sys_id"]

    async def update_job_position(self, job_id: str, job: Mapping[str, Any]) -> bool:
        response = await self._request(
            "PUT",
            f"{JOB_POSTING_TABLE}/{job_id}",
            json=to_servicenow_position(job),
        )
        return response.is_success

    def handle_webhook(self, payload: Mapping[str, Any]) -> WebhookPayload:
        record = payload.get("record") or {}
        event_type = self._classify_webhook(payload.get("event"), record.get("table"))
        return self._build_webhook_payload(event_type, record)

    def parse_employee(self, record: Mapping[str, Any]) -> HREmployee:
        return HREmployee(
            id=as_str(record.get("sys_id")) or "",
            employee_number=as_str(record.get("employee_number")),
            first_name=record.get("first_name") or "",
            last_name=record.get("last_name") or "",
            email=record.get("email") or "",
            phone=record.get("phone") or record.get("mobile_phone"),
            department=_display(record.get("department")) or "Unknown",
            job_title=record.get("title") or "Unknown",
            manager=_reference(record.get("manager")),
            hire_date=parse_vendor_datetime(
                record.get("u_hire_date") or record.get("sys_created_on")
            ),
            status=map_employee_status(record.get("active")),
            location=_display(record.get("location")),
            employment_type=map_employment_type(record.get("u_employment_type")),
            custom_fields={"serviceNowId": record.get("sys_id"), "originalData": dict(record)},
        )

    def parse_department(self, record: Mapping[str, Any]) -> HRDepartment:
        return HRDepartment(
            id=as_str(record.get("sys_id")) or "",
            name=record.get("name") or "",
            description=record.get("description"),
            parent_department=_reference(record.get("parent")),
            manager=_reference(record.get("dept_head")),
            headcount=to_int(record.get("head_count")),
        )

    def parse_job_position(self, record: Mapping[str, Any]) -> HRJobPosition:
        return HRJobPosition(
            id=as_str(record.get("sys_id")) or "",
            title=record.get("title") or "Unknown Position",
            department=_display(record.get("department")) or "Unknown",
            description=record.get("description") or "",
            requirements=split_lines(record.get("requirements")),
            location=_display(record.get("location")) or "",
            employment_type=map_employment_type(record.get("employment_type")),
            salary_min=to_float(record.get("salary_min")),
            salary_max=to_float(record.get("salary_max")),
            currency="USD",
            status=map_position_status(record.get("state")),
            hiring_manager=_reference(record.get("hiring_manager")) or "",
            requisition_number=as_str(record.get("requisition_number")),
            created_date=parse_vendor_datetime(
                record.get("opened_at") or record.get("sys_created_on")
            ),
            target_start_date=as_str(record.get("target_start_date")),
        )


def _display(value: Any) -> str | None:
    """Reference fields arrive either as {display_value, value} or as a plain string."""
    if isinstance(value, Mapping):
        return as_str(value.get("display_value")) or as_str(value.get("value"))
    return as_str(value)


def _reference(value: Any) -> str | None:
    if isinstance(value, Mapping):
        return as_str(value.get("value"))
    return as_str(value)


def to_servicenow_employee(employee: Mapping[str, Any]) -> dict[str, Any]:
    fields = provided_fields(employee)
    payload: dict[str, Any] = {}
    for key, vendor_key in (
        ("first_name", "first_name"),
        ("last_name", "last_name"),
        ("email", "email"),
        ("phone", "phone"),
        ("department", "department"),
        ("job_title", "title"),
        ("location", "location"),
        ("employee_number", "employee_number"),
    ):
        if fields.get(key):
            payload[vendor_key] = fields[key]
    if fields.get("hire_date"):
        payload["u_hire_date"] = format_vendor_date(fields["hire_date"])
    if "status" in fields:
        payload["active"] = EmployeeStatus(fields["status"]) == EmployeeStatus.ACTIVE
    return payload


def to_servicenow_position(job: Mapping[str, Any]) -> dict[str, Any]:
    fields = provided_fields(job)
    payload: dict[str, Any] = {}
    for key, vendor_key in (
        ("title", "title"),
        ("description", "description"),
        ("location", "location"),
        ("requisition_number", "requisition_number"),
        ("department", "department"),
    ):
        if fields.get(key):
            payload[vendor_key] = fields[key]
    if fields.get("requirements"):
        payload["requirements"] = "\n".join(fields["requirements"])
    if fields.get("salary_min"):
        payload["salary_min"] = str(fields["salary_min"])
    if fields.get("salary_max"):
        payload["salary_max"] = str(fields["salary_max"])
    if fields.get("employment_type"):
        payload["employment_type"] = EmploymentType(fields["employment_type"]).value
    if fields.get("status"):
        payload["state"] = POSITION_STATE_CODES[PositionStatus(fields["status"])]
    return payload


def map_employee_status(active: Any) -> EmployeeStatus:
    if isinstance(active, bool):
        return EmployeeStatus.ACTIVE if active else EmployeeStatus.INACTIVE
    return EmployeeStatus.ACTIVE if str(active).lower() == "true" else EmployeeStatus.INACTIVE


def map_employment_type(value: str | None) -> EmploymentType:
    kind = (value or "").lower()
    if "part" in kind or kind == "pt":
        return EmploymentType.PART_TIME
    if "contract" in kind or "temp" in kind or "consultant" in kind:
        return EmploymentType.CONTRACTOR
    if "intern" in kind or "trainee" in kind:
        return EmploymentType.INTERN
    return EmploymentType.FULL_TIME


def map_position_status(value: Any) -> PositionStatus:
    state = str(value or "").lower()
    if "open" in state or "active" in state or state == "1":
        return PositionStatus.OPEN
    if "hold" in state or "paused" in state or state == "2":
        return PositionStatus.ON_HOLD
    return PositionStatus.CLOSED
