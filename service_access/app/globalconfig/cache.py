"""
Global config cache.

Display-only configuration (support contacts, bank details, promo
pricing) lives in the super admin's settings blob. Fetching it is best
effort: a failure keeps the previous value, then the Redis mirror, then
the built-in defaults. Nothing here raises into, or waits on, the
entitlement decision.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Mapping, Optional, Set

from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..profiles.models import DEFAULT_GLOBAL_CONFIG, GlobalConfig, TenantProfile, parse_global_config
from ..profiles.store import ProfileStore
from .redis_mirror import RedisConfigMirror


PrivilegedProfileLookup = Callable[[], Awaitable[TenantProfile]]


class GlobalConfigCache:
    """Injected, TTL-bounded cache of the deployment's ``GlobalConfig``."""

    def __init__(self,
                 store: ProfileStore,
                 privileged_email: str,
                 ttl_seconds: float = 300,
                 fetch_timeout_seconds: float = 3.0,
                 mirror: Optional[RedisConfigMirror] = None,
                 metrics: Optional[MetricsCollector] = None,
                 clock: Callable[[], float] = time.monotonic,
                 wall_clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.store = store
        self.privileged_email = privileged_email
        self.ttl_seconds = ttl_seconds
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self.mirror = mirror
        self.metrics = metrics
        self.logger = get_logger("access.globalconfig.cache")
        self._clock = clock
        self._wall_clock = wall_clock

        self._value: Optional[GlobalConfig] = None
        self._fetched_at: Optional[float] = None
        self._loaded_at: Optional[datetime] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def value(self) -> GlobalConfig:
        """Current value without fetching; defaults until a fetch succeeds."""
        return self._value or DEFAULT_GLOBAL_CONFIG

    @property
    def loaded_at(self) -> Optional[datetime]:
        """Wall-clock time the current value was fetched; promo countdown fallback."""
        return self._loaded_at

    def is_fresh(self) -> bool:
        if self._value is None or self._fetched_at is None:
            return False
        return (self._clock() - self._fetched_at) < self.ttl_seconds

    def invalidate(self) -> None:
        """Force the next ``fetch`` to go to the store; the value stays readable."""
        self._fetched_at = None
        self.logger.info("Global config cache invalidated")

    async def fetch(self, lookup: Optional[PrivilegedProfileLookup] = None, force: bool = False) -> GlobalConfig:
        """Return the global config, refreshing it when stale or forced. Never raises."""
        if not force and self.is_fresh():
            self._record("cache")
            return self._value

        lookup = lookup or self._default_lookup
        try:
            profile = await asyncio.wait_for(lookup(), timeout=self.fetch_timeout_seconds)
            if not isinstance(profile.settings.get("globalConfig"), Mapping):
                raise ValueError("super admin settings carry no globalConfig")
            config = parse_global_config(profile.settings)
        except Exception as e:
            self.logger.warning("Global config fetch failed", error=str(e) or type(e).__name__)
            return await self._fallback()

        self._value = config
        self._fetched_at = self._clock()
        self._loaded_at = self._wall_clock()
        if self.mirror is not None:
            await self.mirror.save(profile.settings)
        self._record("store")
        return config

    def refresh_in_background(self, lookup: Optional[PrivilegedProfileLookup] = None) -> asyncio.Task:
        """Start a forced refresh without waiting for it."""
        task = asyncio.get_running_loop().create_task(self.fetch(lookup, force=True))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    async def _default_lookup(self) -> TenantProfile:
        return await self.store.get_profile_by_email(self.privileged_email)

    async def _fallback(self) -> GlobalConfig:
        if self._value is not None:
            self._record("previous")
            return self._value

        if self.mirror is not None:
            settings = await self.mirror.load()
            if settings and isinstance(settings.get("globalConfig"), Mapping):
                # Usable, but left stale so the next fetch retries the store.
                self._value = parse_global_config(settings)
                self._loaded_at = self._wall_clock()
                self._record("mirror")
                return self._value

        self._record("default")
        return DEFAULT_GLOBAL_CONFIG

    def _record(self, result: str) -> None:
        if self.metrics is not None:
            self.metrics.record_global_config_fetch(result)
