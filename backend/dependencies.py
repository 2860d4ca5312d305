"""
Service Dependencies

FastAPI providers for the HR sync services. The adapter cache is shared
process-wide so scheduled syncs, manual syncs and webhooks reuse one live
adapter per integration.
"""

from functools import lru_cache

from fastapi import Depends

from backend.config import Settings, get_settings
from backend.db.session import async_session_factory
from backend.services.collaborators import IntegrationConfigStore, LocalDirectory
from backend.services.directory import SQLIntegrationConfigStore, SQLLocalDirectory
from backend.services.hr_sync import HRSyncService, build_adapter_cache
from backend.services.notifications import EmailNotifier
from backend.services.webhook_processor import WebhookEventProcessor
from integrations.adapter_cache import AdapterCache
from integrations.credentials import CredentialCipher
from integrations.exceptions import ConfigurationError


@lru_cache
def get_cipher() -> CredentialCipher:
    key = get_settings().encryption_key
    if not key:
        raise ConfigurationError("ENCRYPTION_KEY is not configured")
    return CredentialCipher(key)


def get_config_store(cipher: CredentialCipher = Depends(get_cipher)) -> IntegrationConfigStore:
    return SQLIntegrationConfigStore(async_session_factory, cipher)


def get_directory() -> LocalDirectory:
    return SQLLocalDirectory(async_session_factory)


_adapter_cache: AdapterCache | None = None


def get_adapter_cache(
    config_store: IntegrationConfigStore = Depends(get_config_store),
) -> AdapterCache:
    global _adapter_cache
    if _adapter_cache is None:
        _adapter_cache = build_adapter_cache(config_store)
    return _adapter_cache


async def close_adapter_cache():
    global _adapter_cache
    if _adapter_cache is not None:
        await _adapter_cache.close()
        _adapter_cache = None


def get_sync_service(
    config_store: IntegrationConfigStore = Depends(get_config_store),
    directory: LocalDirectory = Depends(get_directory),
    adapters: AdapterCache = Depends(get_adapter_cache),
    settings: Settings = Depends(get_settings),
) -> HRSyncService:
    return HRSyncService(
        config_store,
        directory,
        EmailNotifier(),
        adapters=adapters,
        settings=settings,
    )


def get_webhook_processor(
    config_store: IntegrationConfigStore = Depends(get_config_store),
    directory: LocalDirectory = Depends(get_directory),
    adapters: AdapterCache = Depends(get_adapter_cache),
) -> WebhookEventProcessor:
    return WebhookEventProcessor(config_store, directory, adapters)
