"""API v1 Route modules."""

from backend.routers.v1 import hr_integrations, webhooks

__all__ = ["hr_integrations", "webhooks"]
