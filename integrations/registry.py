"""
HR System Registry

Maps each supported HR system to its adapter class and the setup metadata
shown to tenants when they connect a system.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import Field

from integrations.base import BaseHRAdapter, CamelModel, HRSystemConfig, HRSystemType
from integrations.exceptions import ConfigurationError, UnsupportedSystemError
from integrations.hris.bamboohr import BambooHRAdapter
from integrations.hris.sage_hr import SageHRAdapter
from integrations.hris.servicenow_hr import ServiceNowHRAdapter
from integrations.hris.zoho_people import ZohoPeopleAdapter


class SupportedFeatures(CamelModel):
    employee_sync: bool = True
    department_sync: bool = True
    job_sync: bool = True
    real_time_webhooks: bool = False
    bidirectional_sync: bool = False


class HRSystemInfo(CamelModel):
    system_type: HRSystemType
    name: str
    description: str
    auth_type: str
    required_fields: list[str]
    optional_fields: list[str] = Field(default_factory=list)
    supported_features: SupportedFeatures = Field(default_factory=SupportedFeatures)
    documentation_url: str
    setup_instructions: list[str] = Field(default_factory=list)


ADAPTERS: dict[HRSystemType, type[BaseHRAdapter]] = {
    HRSystemType.BAMBOOHR: BambooHRAdapter,
    HRSystemType.SERVICENOW_HR: ServiceNowHRAdapter,
    HRSystemType.SAGE_HR: SageHRAdapter,
    HRSystemType.ZOHO_PEOPLE: ZohoPeopleAdapter,
}

HR_SYSTEMS: dict[HRSystemType, HRSystemInfo] = {
    HRSystemType.BAMBOOHR: HRSystemInfo(
        system_type=HRSystemType.BAMBOOHR,
        name="BambooHR",
        description="HR platform with employee records, performance tracking and recruiting tools.",
        auth_type="api_key",
        required_fields=["apiKey", "subdomain"],
        optional_fields=["customFields"],
        supported_features=SupportedFeatures(
            job_sync=False,
            real_time_webhooks=True,
            bidirectional_sync=True,
        ),
        documentation_url="https://documentation.bamboohr.com/docs",
        setup_instructions=[
            "Log in to BambooHR as an administrator",
            "Navigate to Settings > API Keys and generate a key",
            "Copy your company subdomain from the BambooHR URL",
            "Enter the API key and subdomain in the integration settings",
        ],
    ),
    HRSystemType.SAGE_HR: HRSystemInfo(
        system_type=HRSystemType.SAGE_HR,
        name="Sage HR",
        description="Cloud HR and people management with employee self-service.",
        auth_type="oauth2",
        required_fields=["clientId", "clientSecret"],
        optional_fields=["baseUrl", "accessToken", "refreshToken"],
        supported_features=SupportedFeatures(bidirectional_sync=True),
        documentation_url="https://developer.sage.com/hr/",
        setup_instructions=[
            "Ask Sage HR support to enable API access",
            "Register an application in the Sage Developer Portal",
            "Copy the Client ID and Client Secret",
            "Complete the OAuth authorization flow",
        ],
    ),
    HRSystemType.ZOHO_PEOPLE: HRSystemInfo(
        system_type=HRSystemType.ZOHO_PEOPLE,
        name="Zoho People",
        description="HR suite with attendance, performance and engagement tools.",
        auth_type="oauth2",
        required_fields=["clientId", "clientSecret"],
        optional_fields=["baseUrl", "orgId", "accessToken", "refreshToken"],
        supported_features=SupportedFeatures(real_time_webhooks=True, bidirectional_sync=True),
        documentation_url="https://www.zoho.com/people/api/",
        setup_instructions=[
            "Create a Server-based Application in the Zoho API Console",
            "Add the ZohoPeople.employee.ALL and ZohoPeople.forms.ALL scopes",
            "Copy the Client ID and Client Secret",
            "Complete the OAuth authorization flow",
        ],
    ),
    HRSystemType.SERVICENOW_HR: HRSystemInfo(
        system_type=HRSystemType.SERVICENOW_HR,
        name="ServiceNow HR Service Delivery",
        description="Enterprise HR service management with employee lifecycle automation.",
        auth_type="basic_auth",
        required_fields=["baseUrl", "username", "password"],
        optional_fields=["customFields"],
        supported_features=SupportedFeatures(real_time_webhooks=True, bidirectional_sync=True),
        documentation_url="https://docs.servicenow.com/",
        setup_instructions=[
            "Create a dedicated integration user with HR read/write roles",
            "Enable the REST API plugin if it is not active",
            "Enter the instance URL and the integration user's credentials",
        ],
    ),
}


def list_hr_systems() -> list[HRSystemInfo]:
    return list(HR_SYSTEMS.values())


def get_hr_system_info(system_type: HRSystemType | str) -> HRSystemInfo:
    try:
        return HR_SYSTEMS[HRSystemType(system_type)]
    except (KeyError, ValueError):
        raise UnsupportedSystemError(f"Unsupported HR system: {system_type}") from None


def missing_credential_fields(
    system_type: HRSystemType | str,
    credentials: Mapping[str, Any],
) -> list[str]:
    """Required credential fields (camelCase) that are absent or blank."""
    info = get_hr_system_info(system_type)
    return [name for name in info.required_fields if not credentials.get(name)]


def create_adapter(config: HRSystemConfig, **kwargs) -> BaseHRAdapter:
    """
    Build the adapter for a config.

    Raises:
        UnsupportedSystemError: No adapter registered for the system type
        ConfigurationError: Required credentials are missing
    """
    adapter_cls = ADAPTERS.get(config.system_type)
    if adapter_cls is None:
        raise UnsupportedSystemError(f"Unsupported HR system: {config.system_type}")

    missing = missing_credential_fields(
        config.system_type,
        config.credentials.model_dump(by_alias=True),
    )
    if missing:
        raise ConfigurationError(
            f"Missing required credentials for {config.system_type.value}: {', '.join(missing)}"
        )
    return adapter_cls(config, **kwargs)
