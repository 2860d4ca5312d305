"""
Adapter Cache

Keeps one live adapter per integration config. Construction (including the
first connection check) is serialized per config id so concurrent callers
never build the same adapter twice.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

from integrations.base import BaseHRAdapter, HRSystemConfig
from integrations.exceptions import ConnectionValidationError
from integrations.registry import create_adapter

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[HRSystemConfig], BaseHRAdapter]


@dataclass
class _Entry:
    adapter: BaseHRAdapter
    fingerprint: str
    created_at: float


def _fingerprint(config: HRSystemConfig) -> str:
    # Watermark changes every run and must not force a rebuild
    return config.model_dump_json(exclude={"last_sync"})


class AdapterCache:
    """Per-config adapter cache with optional TTL."""

    def __init__(
        self,
        factory: AdapterFactory = create_adapter,
        ttl_seconds: float = 0,
        validate_on_build: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._factory = factory
        self._ttl = ttl_seconds
        self._validate = validate_on_build
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def _locked(self, key: str) -> AsyncIterator[None]:
        # A key's lock lives only while some caller holds or awaits it
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    def _is_fresh(self, entry: _Entry, config: HRSystemConfig) -> bool:
        if entry.fingerprint != _fingerprint(config):
            return False
        if self._ttl and self._clock() - entry.created_at > self._ttl:
            return False
        return True

    async def get(self, config: HRSystemConfig) -> BaseHRAdapter:
        """
        Return the cached adapter for a config, building it if needed.

        Raises:
            ConnectionValidationError: The vendor rejected the first connection check
        """
        entry = self._entries.get(config.id)
        if entry and self._is_fresh(entry, config):
            return entry.adapter

        async with self._locked(config.id):
            entry = self._entries.get(config.id)
            if entry and self._is_fresh(entry, config):
                return entry.adapter
            if entry:
                await self._discard(config.id)

            adapter = self._factory(config)
            if self._validate and not await adapter.validate_connection():
                await adapter.close()
                raise ConnectionValidationError(
                    f"Failed to validate HR system connection for {config.system_type.value}"
                )

            self._entries[config.id] = _Entry(
                adapter=adapter,
                fingerprint=_fingerprint(config),
                created_at=self._clock(),
            )
            logger.info(
                f"Built {config.system_type.value} adapter",
                extra={"config_id": config.id},
            )
            return adapter

    async def _discard(self, key: str):
        entry = self._entries.pop(key, None)
        if entry:
            await entry.adapter.close()

    async def invalidate(self, config_id: str):
        async with self._locked(config_id):
            await self._discard(config_id)

    async def close(self):
        for key in list(self._entries):
            await self._discard(key)

    def __contains__(self, config_id: str) -> bool:
        return config_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
