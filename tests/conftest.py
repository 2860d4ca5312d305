"""
Test Configuration and Fixtures

Provides in-memory collaborators, a scriptable adapter and a sync service
wired to them.
"""

import pytest

from backend.config import Settings
from backend.services.hr_sync import HRSyncService
from backend.services.webhook_processor import WebhookEventProcessor
from integrations.adapter_cache import AdapterCache
from tests.fakes import (
    FakeAdapter,
    InMemoryConfigStore,
    InMemoryDirectory,
    RecordingNotifier,
    make_config,
)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        sync_call_timeout_seconds=5,
        sync_record_timeout_seconds=1,
        sync_deadline_seconds=0,
        sync_max_concurrency=3,
    )


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def adapter(config) -> FakeAdapter:
    return FakeAdapter(config)


@pytest.fixture
def config_store(config) -> InMemoryConfigStore:
    return InMemoryConfigStore(config)


@pytest.fixture
def directory(config) -> InMemoryDirectory:
    directory = InMemoryDirectory()
    directory.add_admin(config.company_id, "admin@example.com")
    return directory


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def adapters(adapter) -> AdapterCache:
    return AdapterCache(factory=lambda config: adapter)


@pytest.fixture
def sync_service(config_store, directory, notifier, adapters, settings) -> HRSyncService:
    return HRSyncService(
        config_store,
        directory,
        notifier,
        adapters=adapters,
        settings=settings,
    )


@pytest.fixture
def webhook_processor(config_store, directory, adapters) -> WebhookEventProcessor:
    return WebhookEventProcessor(config_store, directory, adapters)
