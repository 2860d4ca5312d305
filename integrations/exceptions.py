"""
HR Integration Exceptions

Errors raised by adapters, the adapter registry, and the sync services.
Record-scoped failures never use these; they are captured into SyncResult.
"""


class HRIntegrationError(Exception):
    """Base class for all HR integration errors."""


class ConfigurationError(HRIntegrationError):
    """Integration config is malformed or missing required credentials."""


class IntegrationNotFoundError(ConfigurationError):
    """No integration config exists for the given id."""

    def __init__(self, config_id: str):
        super().__init__(f"HR integration configuration not found: {config_id}")
        self.config_id = config_id


class IntegrationInactiveError(ConfigurationError):
    """Integration config exists but has been deactivated."""

    def __init__(self, config_id: str):
        super().__init__(f"HR integration is not active: {config_id}")
        self.config_id = config_id


class ConnectionValidationError(HRIntegrationError):
    """Vendor rejected the connection check when building an adapter."""


class UnsupportedSystemError(HRIntegrationError):
    """No adapter is registered for the configured system type."""


class UnsupportedOperationError(HRIntegrationError):
    """The vendor API does not support the requested operation."""


class FieldMappingError(HRIntegrationError):
    """A required mapped field is absent from a record."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class UnsupportedWebhookEventError(HRIntegrationError):
    """Webhook verb/object combination is not part of the event taxonomy."""

    def __init__(self, system_type: str, event: str | None, obj: str | None = None):
        detail = f"{event}" if obj is None else f"{event} on {obj}"
        super().__init__(f"Unsupported webhook event for {system_type}: {detail}")
        self.system_type = system_type
        self.event = event
        self.obj = obj
