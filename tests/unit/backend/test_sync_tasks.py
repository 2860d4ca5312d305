"""
Scheduled Sync Tests
"""

from datetime import datetime, timedelta, timezone

from integrations.base import SyncInterval, SyncSettings
from workers.tasks.sync_tasks import is_sync_due

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _settings(interval: SyncInterval, auto_sync: bool = True) -> SyncSettings:
    return SyncSettings(auto_sync=auto_sync, sync_interval=interval)


class TestIsSyncDue:

    def test_never_synced_is_due(self):
        assert is_sync_due(_settings(SyncInterval.DAILY), None, NOW)

    def test_interval_elapsed(self):
        assert is_sync_due(_settings(SyncInterval.HOURLY), NOW - timedelta(hours=1), NOW)
        assert not is_sync_due(_settings(SyncInterval.HOURLY), NOW - timedelta(minutes=59), NOW)

    def test_weekly(self):
        assert not is_sync_due(_settings(SyncInterval.WEEKLY), NOW - timedelta(days=6), NOW)
        assert is_sync_due(_settings(SyncInterval.WEEKLY), NOW - timedelta(days=7), NOW)

    def test_auto_sync_off_never_due(self):
        assert not is_sync_due(_settings(SyncInterval.HOURLY, auto_sync=False), None, NOW)

    def test_manual_interval_never_due(self):
        assert not is_sync_due(_settings(SyncInterval.MANUAL), None, NOW)
