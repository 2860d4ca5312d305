"""
Zoho People Integration

OAuth2 adapter for Zoho People. Departments and job openings are read
through the generic forms API; all responses wrap records in
``response.result``.
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

DEFAULT_BASE_URL = "https://people.zoho.com"
TOKEN_URL = "https://accounts.zoho.com/oauth/v2/token"

EMPLOYEES_PATH = "/people/api/employees"
DEPARTMENT_FORM = "/people/api/forms/department"
JOB_OPENING_FORM = "/people/api/forms/jobopening"

_CREATE_VERBS = ("employee_created", "form_data_added")
_UPDATE_VERBS = ("employee_updated", "form_data_updated")


def _build_event_table() -> dict[tuple[str, str], WebhookEventType]:
    table = {}
    for verb in _CREATE_VERBS:
        table[(verb, "employee")] = WebhookEventType.EMPLOYEE_CREATED
        table[(verb, "department")] = WebhookEventType.DEPARTMENT_CREATED
        table[(verb, "jobopening")] = WebhookEventType.JOB_CREATED
    for verb in _UPDATE_VERBS:
        table[(verb, "employee")] = WebhookEventType.EMPLOYEE_UPDATED
        table[(verb, "department")] = WebhookEventType.DEPARTMENT_UPDATED
        table[(verb, "jobopening")] = WebhookEventType.JOB_UPDATED
    table[("employee_terminated", "employee")] = WebhookEventType.EMPLOYEE_TERMINATED
    return table


class ZohoPeopleAdapter(BaseHRAdapter):
    """Zoho People adapter."""

    system_type = HRSystemType.ZOHO_PEOPLE
    display_name = "Zoho People"

    webhook_events = _build_event_table()

    def __init__(self, config, **kwargs):
        super().__init__(config, **kwargs)
        creds = self.credentials
        if not creds.client_id or not creds.client_secret:
            raise ConfigurationError("Zoho People requires clientId and clientSecret credentials")
        self.base_url = (creds.base_url or DEFAULT_BASE_URL).rstrip("/")
        self.org_id = creds.org_id or "default"

    def _default_headers(self) -> dict[str, str]:
        headers = super()._default_headers()
        headers["Authorization"] = f"Zoho-oauthtoken {self.credentials.access_token or ''}"
        return headers

    @property
    def supports_token_refresh(self) -> bool:
        return bool(self.credentials.refresh_token)

    async def refresh_access_token(self) -> tuple[str, str | None, int | None]:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(
                TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": self.credentials.refresh_token,
                    "client_id": self.credentials.client_id,
                    "client_secret": self.credentials.client_secret,
                },
            )
            response.raise_for_status()
            data = response.json()

        logger.info("Zoho People access token refreshed", extra={"config_id": self.config.id})
        # Zoho does not always rotate the refresh token
        return data["access_token"], data.get("refresh_token"), data.get("expires_in")

    async def validate_connection(self) -> bool:
        try:
            response = await self._request("GET", EMPLOYEES_PATH, params={"limit": 1})
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(f"Zoho People connection validation failed: {e}")
            return False

    async def _get_records(self, path: str, params: dict | None = None) -> list[dict]:
        data = await self._get_json(path, params=params)
        return (data.get("response") or {}).get("result") or []

    async def get_employees(self, last_sync: str | None = None) -> list[HREmployee]:
        params = {"modifiedAfter": last_sync} if last_sync else None
        records = await self._get_records(EMPLOYEES_PATH, params=params)
        return [self.parse_employee(emp) for emp in records]

    async def get_departments(self) -> list[HRDepartment]:
        records = await self._get_records(f"{DEPARTMENT_FORM}/getRecords")
        return [self.parse_department(dept) for dept in records]

    async def get_job_positions(self) -> list[HRJobPosition]:
        records = await self._get_records(f"{JOB_OPENING_FORM}/getRecords")
        return [self.parse_job_position(pos) for pos in records]

    async def create_employee(self, employee: Mapping[str, Any]) -> str:
        response = await self._request("POST", EMPLOYEES_PATH, json=to_zoho_employee(employee))
        response.raise_for_status()
        result = (response.json().get("response") or {}).get("result") or {}
        return str(first_present(result, "ID", "Employee_ID", default=""))

    async def update_employee(self, employee_id: str, employee: Mapping[str, Any]) -> bool:
        response = await self._request(
            "PUT",
            f"{EMPLOYEES_PATH}/{employee_id}",
            json=to_zoho_employee(employee),
        )
        return response.is_success

    async def create_job_position(self, job: Mapping[str, Any]) -> str:
        response = await self._request(
            "POST",
            f"{JOB_OPENING_FORM}/insertRecord",
            json=to_zoho_position(job),
        )
        response.raise_for_status()
        result = (response.json().get("response") or {}).get("result") or {}
        return str(first_present(result, "ID", "Job_Opening_ID", default=""))

    async def update_job_position(self, job_id: str, job: Mapping[str, Any]) -> bool:
        payload = to_zoho_position(job)
        payload["ID"] = job_id
        response = await self._request("PUT", f"{JOB_OPENING_FORM}/updateRecord", json=payload)
        return response.is_success

    def handle_webhook(self, payload: Mapping[str, Any]) -> WebhookPayload:
        verb = payload.get("eventType") or ""
        module = payload.get("module")
        if module is None and verb.startswith("employee_"):
            module = "employee"
        event_type = self._classify_webhook(verb, module)
        return self._build_webhook_payload(event_type, payload.get("data"))

    def parse_employee(self, record: Mapping[str, Any]) -> HREmployee:
        return HREmployee(
            id=as_str(first_present(record, "EmployeeID", "Employee_ID", "ID")) or "",
            employee_number=as_str(first_present(record, "Employee_Number", "EmployeeNumber")),
            first_name=first_present(record, "First_Name", "FirstName", default=""),
            last_name=first_present(record, "Last_Name", "LastName", default=""),
            email=first_present(record, "EmailId", "Email", "Work_Email", default=""),
            phone=first_present(record, "Mobile", "Phone", "Mobile_Number"),
            department=record.get("Department") or "Unknown",
            job_title=first_present(record, "Designation", "Job_Title", "Position", default="Unknown"),
            manager=first_present(record, "Reporting_To", "Manager"),
            hire_date=parse_vendor_datetime(first_present(record, "Date_of_Joining", "Hire_Date")),
            status=map_employee_status(first_present(record, "Employee_Status", "Status")),
            location=first_present(record, "Work_Location", "Location", "Office_Location"),
            employment_type=map_employment_type(
                first_present(record, "Employment_Type", "Employee_Type")
            ),
            custom_fields={
                "zohoId": first_present(record, "EmployeeID", "ID"),
                "originalData": dict(record),
            },
        )

    def parse_department(self, record: Mapping[str, Any]) -> HRDepartment:
        return HRDepartment(
            id=as_str(first_present(record, "ID", "Department_ID")) or "",
            name=first_present(record, "Department_Name", "Name", default=""),
            description=record.get("Description"),
            parent_department=as_str(record.get("Parent_Department")),
            manager=as_str(record.get("Department_Head")),
            location=record.get("Location"),
            headcount=to_int(record.get("Employee_Count")),
        )

    def parse_job_position(self, record: Mapping[str, Any]) -> HRJobPosition:
        return HRJobPosition(
            id=as_str(first_present(record, "ID", "Job_Opening_ID")) or "",
            title=first_present(record, "Job_Title", "Position_Name", default="Unknown Position"),
            department=record.get("Department") or "Unknown",
            description=first_present(record, "Job_Description", "Description", default=""),
            requirements=split_lines(record.get("Requirements")),
            location=first_present(record, "Location", "Work_Location", default=""),
            employment_type=map_employment_type(first_present(record, "Employment_Type", "Job_Type")),
            salary_min=to_float(first_present(record, "Salary_Min", "Minimum_Salary")),
            salary_max=to_float(first_present(record, "Salary_Max", "Maximum_Salary")),
            currency=record.get("Currency") or "USD",
            status=map_position_status(first_present(record, "Status", "Job_Status")),
            hiring_manager=first_present(record, "Hiring_Manager", "Recruiter", default=""),
            requisition_number=as_str(first_present(record, "Requisition_Number", "Job_Code")),
            created_date=parse_vendor_datetime(first_present(record, "Created_Date", "Date_Created")),
            target_start_date=as_str(
                first_present(record, "Target_Start_Date", "Expected_Start_Date")
            ),
        )


def to_zoho_employee(employee: Mapping[str, Any]) -> dict[str, Any]:
    fields = provided_fields(employee)
    payload: dict[str, Any] = {}
    for key, vendor_key in (
        ("first_name", "First_Name"),
        ("last_name", "Last_Name"),
        ("email", "EmailId"),
        ("phone", "Mobile"),
        ("department", "Department"),
        ("job_title", "Designation"),
        ("location", "Work_Location"),
        ("employee_number", "Employee_Number"),
    ):
        if fields.get(key):
            payload[vendor_key] = fields[key]
    if fields.get("hire_date"):
        payload["Date_of_Joining"] = format_vendor_date(fields["hire_date"])
    return payload


def to_zoho_position(job: Mapping[str, Any]) -> dict[str, Any]:
    fields = provided_fields(job)
    payload: dict[str, Any] = {}
    for key, vendor_key in (
        ("title", "Job_Title"),
        ("description", "Job_Description"),
        ("location", "Work_Location"),
        ("salary_min", "Salary_Min"),
        ("salary_max", "Salary_Max"),
        ("currency", "Currency"),
        ("requisition_number", "Job_Code"),
        ("target_start_date", "Expected_Start_Date"),
        ("department", "Department"),
    ):
        if fields.get(key):
            payload[vendor_key] = fields[key]
    if fields.get("requirements"):
        payload["Requirements"] = "\n".join(fields["requirements"])
    if fields.get("employment_type"):
        payload["Employment_Type"] = EmploymentType(fields["employment_type"]).value
    return payload


def map_employee_status(value: str | None) -> EmployeeStatus:
    status = (value or "").lower()
    if "terminated" in status or "left" in status or "resigned" in status:
        return EmployeeStatus.TERMINATED
    if "inactive" in status:
        return EmployeeStatus.INACTIVE
    if "active" in status or "current" in status or status == "employed":
        return EmployeeStatus.ACTIVE
    return EmployeeStatus.INACTIVE


def map_employment_type(value: str | None) -> EmploymentType:
    kind = (value or "").lower()
    if "part" in kind or kind == "pt":
        return EmploymentType.PART_TIME
    if "contract" in kind or "temp" in kind or "freelance" in kind:
        return EmploymentType.CONTRACTOR
    if "intern" in kind or "trainee" in kind:
        return EmploymentType.INTERN
    return EmploymentType.FULL_TIME


def map_position_status(value: str | None) -> PositionStatus:
    status = (value or "").lower()
    if "open" in status or "active" in status or status == "published":
        return PositionStatus.OPEN
    if "hold" in status or "paused" in status:
        return PositionStatus.ON_HOLD
    return PositionStatus.CLOSED
