"""
Base HR Integration Classes

Vendor-neutral data models and the abstract adapter contract shared by
every HR system integration.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from integrations.exceptions import UnsupportedWebhookEventError

logger = logging.getLogger(__name__)


class HRSystemType(str, Enum):
    """Supported HR-of-record systems."""

    BAMBOOHR = "bamboohr"
    SERVICENOW_HR = "servicenow_hr"
    SAGE_HR = "sage_hr"
    ZOHO_PEOPLE = "zoho_people"


class SyncDirection(str, Enum):
    IMPORT_ONLY = "import_only"
    EXPORT_ONLY = "export_only"
    BIDIRECTIONAL = "bidirectional"


class SyncInterval(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MANUAL = "manual"


class EntityType(str, Enum):
    """Entity types a sync run can cover."""

    EMPLOYEES = "employees"
    DEPARTMENTS = "departments"
    JOB_POSITIONS = "jobPositions"


class EmploymentType(str, Enum):
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    CONTRACTOR = "contractor"
    INTERN = "intern"


class EmployeeStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    TERMINATED = "terminated"


class PositionStatus(str, Enum):
    OPEN = "open"
    ON_HOLD = "on_hold"
    CLOSED = "closed"


class WebhookEventType(str, Enum):
    """Internal webhook event taxonomy. Closed set."""

    EMPLOYEE_CREATED = "employee.created"
    EMPLOYEE_UPDATED = "employee.updated"
    EMPLOYEE_TERMINATED = "employee.terminated"
    DEPARTMENT_CREATED = "department.created"
    DEPARTMENT_UPDATED = "department.updated"
    JOB_CREATED = "job.created"
    JOB_UPDATED = "job.updated"
    JOB_CLOSED = "job.closed"

    @property
    def is_employee_event(self) -> bool:
        return self.value.startswith("employee.")


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )


# ── Tenant configuration ─────────────────────────────


class HRCredentials(CamelModel):
    """Vendor credentials. Opaque to the orchestrator."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    type: str = "api_key"
    api_key: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    username: str | None = None
    password: str | None = None
    base_url: str | None = None
    subdomain: str | None = None
    org_id: str | None = None
    custom_fields: dict[str, str] = Field(default_factory=dict)


class SyncEntities(CamelModel):
    employees: bool = True
    departments: bool = True
    job_positions: bool = True

    def enabled(self) -> list[EntityType]:
        flags = {
            EntityType.EMPLOYEES: self.employees,
            EntityType.DEPARTMENTS: self.departments,
            EntityType.JOB_POSITIONS: self.job_positions,
        }
        return [entity for entity, on in flags.items() if on]


class SyncSettings(CamelModel):
    sync_direction: SyncDirection = SyncDirection.IMPORT_ONLY
    sync_entities: SyncEntities = Field(default_factory=SyncEntities)
    auto_sync: bool = False
    sync_interval: SyncInterval = SyncInterval.DAILY


class FieldTransformation(CamelModel):
    """How a mapped value is converted: direct, format, lookup or custom."""

    type: str = "direct"
    format: str | None = None
    lookup_table: dict[str, Any] = Field(default_factory=dict)
    custom_function: str | None = None


class FieldMapping(CamelModel):
    """One source-field -> target-field rule. Source may be a dotted path."""

    source_field: str
    target_field: str
    entity: EntityType = EntityType.EMPLOYEES
    is_required: bool = False
    transformation: FieldTransformation | None = None


class HRSystemConfig(CamelModel):
    """One tenant <-> HR system pairing."""

    id: str
    company_id: str
    system_type: HRSystemType
    name: str = ""
    credentials: HRCredentials = Field(default_factory=HRCredentials)
    sync_settings: SyncSettings = Field(default_factory=SyncSettings)
    field_mappings: list[FieldMapping] = Field(default_factory=list)
    last_sync: str | None = None
    is_active: bool = True
    webhook_secret: str | None = None


# ── Normalized records ───────────────────────────────


class HREmployee(CamelModel):
    """Normalized employee record from any HR system."""

    id: str = Field(..., description="Vendor-native identifier")
    employee_number: str | None = None
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str | None = None
    department: str = "Unknown"
    job_title: str = "Unknown"
    manager: str | None = None
    hire_date: datetime
    status: EmployeeStatus = EmployeeStatus.ACTIVE
    location: str | None = None
    employment_type: EmploymentType = EmploymentType.FULL_TIME
    custom_fields: dict[str, Any] = Field(default_factory=dict)


class HRDepartment(CamelModel):
    """Normalized department record."""

    id: str
    name: str = ""
    description: str | None = None
    parent_department: str | None = None
    manager: str | None = None
    location: str | None = None
    budget: float | None = None
    headcount: int | None = None


class HRJobPosition(CamelModel):
    """Normalized job position / requisition."""

    id: str
    title: str = ""
    department: str = "Unknown"
    description: str = ""
    requirements: list[str] = Field(default_factory=list)
    location: str = ""
    employment_type: EmploymentType = EmploymentType.FULL_TIME
    salary_min: float | None = None
    salary_max: float | None = None
    currency: str | None = None
    status: PositionStatus = PositionStatus.OPEN
    hiring_manager: str = ""
    requisition_number: str | None = None
    created_date: datetime | None = None
    target_start_date: str | None = None


class WebhookPayload(CamelModel):
    """Vendor webhook normalized into the internal event taxonomy."""

    system_type: HRSystemType
    event_type: WebhookEventType
    data: HREmployee | dict[str, Any]
    timestamp: datetime
    company_id: str


# ── Sync accounting ──────────────────────────────────


class SyncError(CamelModel):
    record_id: str
    error: str
    severity: str = "error"
    field: str | None = None


class SyncStats(CamelModel):
    total_records: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0

    def __add__(self, other: "SyncStats") -> "SyncStats":
        return SyncStats(
            total_records=self.total_records + other.total_records,
            successful=self.successful + other.successful,
            failed=self.failed + other.failed,
            skipped=self.skipped + other.skipped,
        )


class SyncResult(CamelModel):
    """Outcome of one sync run. Always returned, never mutated after return."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    success: bool
    sync_id: str
    timestamp: datetime
    stats: SyncStats = Field(default_factory=SyncStats)
    errors: list[SyncError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    entity_stats: dict[str, SyncStats] = Field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        """JSON-ready dict; errors/warnings omitted when empty."""
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        if not self.errors:
            data.pop("errors", None)
        if not self.warnings:
            data.pop("warnings", None)
        return data


# ── Normalization helpers ────────────────────────────


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_vendor_datetime(value: Any) -> datetime:
    """Parse a vendor date/datetime; missing or unparseable values default to now."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not value or not isinstance(value, str):
        return utcnow()
    text = value.strip().replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = datetime.fromisoformat(text[:10])
        except ValueError:
            return utcnow()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_vendor_date(value: Any) -> str:
    """Render a date for vendor payloads as YYYY-MM-DD."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()[:10]
    return str(value).split("T")[0]


def to_float(value: Any) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_int(value: Any) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def split_lines(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, list):
        return [str(v) for v in value]
    return [line for line in str(value).split("\n") if line.strip()]


def first_present(record: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first non-empty value among keys."""
    for key in keys:
        value = record.get(key)
        if value not in (None, ""):
            return value
    return default


def as_str(value: Any) -> str | None:
    if value in (None, ""):
        return None
    return str(value)


def provided_fields(partial: Mapping[str, Any]) -> dict[str, Any]:
    """Drop unset fields so outbound payloads carry partial-update semantics."""
    return {k: v for k, v in partial.items() if v is not None}


CredentialsCallback = Callable[[str, HRCredentials], Awaitable[None]]


class BaseHRAdapter(ABC):
    """
    Abstract base class for all HR system adapters.

    Each adapter translates one vendor's REST API and webhook payloads into
    the normalized HREmployee / HRDepartment / HRJobPosition shapes and owns
    its vendor's authentication. All enum and field-default handling stays
    inside the adapter.
    """

    system_type: HRSystemType
    display_name: str
    base_url: str = ""

    # (verb, object) -> internal event type
    webhook_events: dict[tuple[str, str], WebhookEventType] = {}

    def __init__(
        self,
        config: HRSystemConfig,
        on_credentials_refreshed: CredentialsCallback | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ):
        self.config = config
        self.credentials = config.credentials
        self._on_credentials_refreshed = on_credentials_refreshed
        self._transport = transport
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None
        self._refresh_lock = asyncio.Lock()

    # ── HTTP plumbing ────────────────────────────────

    def _default_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _auth(self) -> httpx.Auth | tuple[str, str] | None:
        return None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                auth=self._auth(),
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, max=4),
        reraise=True,
    )
    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        return await self.client.request(method, path, **kwargs)

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        logger.debug(
            f"{self.display_name} API request: {method} {path}",
            extra={"config_id": self.config.id, "has_body": "json" in kwargs},
        )
        token = self.credentials.access_token
        response = await self._send(method, path, **kwargs)
        if response.status_code == 401 and self.supports_token_refresh:
            logger.info(f"{self.display_name} returned 401, refreshing access token")
            await self._refresh_credentials(stale_token=token)
            response = await self._send(method, path, **kwargs)
        return response

    async def _get_json(self, path: str, params: dict | None = None) -> Any:
        response = await self._request("GET", path, params=params)
        response.raise_for_status()
        return response.json()

    # ── Auth ─────────────────────────────────────────

    @property
    def supports_token_refresh(self) -> bool:
        return False

    async def refresh_access_token(self) -> tuple[str, str | None, int | None]:
        """
        Refresh OAuth tokens.

        Returns:
            Tuple of (new_access_token, new_refresh_token, expires_in_seconds)
        """
        # API-key and basic-auth vendors have nothing to refresh
        return self.credentials.access_token or "", self.credentials.refresh_token, None

    async def _refresh_credentials(self, stale_token: str | None):
        """
        Refresh tokens once per expiry.

        Concurrent requests that saw a 401 for the same token share a single
        refresh; vendors that rotate refresh tokens reject a second use.
        """
        async with self._refresh_lock:
            if self.credentials.access_token != stale_token:
                return

            access_token, refresh_token, _ = await self.refresh_access_token()
            self.credentials = self.credentials.model_copy(
                update={
                    "access_token": access_token,
                    "refresh_token": refresh_token or self.credentials.refresh_token,
                }
            )
            # Swap the header in place; other requests may be using the client
            if self._client is not None:
                self._client.headers.update(self._default_headers())
            if self._on_credentials_refreshed is not None:
                await self._on_credentials_refreshed(self.config.id, self.credentials)

    # ── Webhooks ─────────────────────────────────────

    def _classify_webhook(self, verb: str | None, obj: str | None) -> WebhookEventType:
        """Map (verb, object) to an event type; unknown pairs fail closed."""
        event_type = self.webhook_events.get((verb or "", obj or ""))
        if event_type is None:
            raise UnsupportedWebhookEventError(self.system_type.value, verb, obj)
        return event_type

    def _build_webhook_payload(
        self,
        event_type: WebhookEventType,
        record: Mapping[str, Any] | None,
    ) -> WebhookPayload:
        raw = dict(record or {})
        data: HREmployee | dict[str, Any] = (
            self.parse_employee(raw) if event_type.is_employee_event else raw
        )
        return WebhookPayload(
            system_type=self.system_type,
            event_type=event_type,
            data=data,
            timestamp=utcnow(),
            company_id=self.config.company_id,
        )

    # ── Contract ─────────────────────────────────────

    @abstractmethod
    async def validate_connection(self) -> bool:
        """Issue one cheap authenticated read. False on any failure."""

    @abstractmethod
    async def get_employees(self, last_sync: str | None = None) -> list[HREmployee]:
        """
        Fetch employee records.

        Args:
            last_sync: Watermark; when set only records changed since it are fetched
        """

    @abstractmethod
    async def get_departments(self) -> list[HRDepartment]:
        """Fetch department records."""

    @abstractmethod
    async def get_job_positions(self) -> list[HRJobPosition]:
        """Fetch job positions."""

    @abstractmethod
    async def create_employee(self, employee: Mapping[str, Any]) -> str:
        """Create an employee in the vendor system. Returns the vendor id."""

    @abstractmethod
    async def update_employee(self, employee_id: str, employee: Mapping[str, Any]) -> bool:
        """Partially update an employee in the vendor system."""

    @abstractmethod
    async def create_job_position(self, job: Mapping[str, Any]) -> str:
        """Create a job position. Returns the vendor id."""

    @abstractmethod
    async def update_job_position(self, job_id: str, job: Mapping[str, Any]) -> bool:
        """Partially update a job position."""

    @abstractmethod
    def handle_webhook(self, payload: Mapping[str, Any]) -> WebhookPayload:
        """Normalize a raw vendor webhook. Pure; no I/O."""

    @abstractmethod
    def parse_employee(self, record: Mapping[str, Any]) -> HREmployee:
        """Normalize one raw vendor employee record."""

    @abstractmethod
    def parse_department(self, record: Mapping[str, Any]) -> HRDepartment:
        """Normalize one raw vendor department record."""

    @abstractmethod
    def parse_job_position(self, record: Mapping[str, Any]) -> HRJobPosition:
        """Normalize one raw vendor job position record."""
