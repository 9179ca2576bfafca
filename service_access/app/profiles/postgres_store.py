"""
PostgreSQL profile store for the access service.
"""

import asyncio
import json
from typing import Any, Dict, List, Mapping, Optional

import asyncpg

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.errors import AccessLayerException, ProfileNotFoundError, ProfileStoreError
from shared.logging import get_logger
from shared.retry import RetryConfig, RetryError, retry_on_exception

from .models import RESTRICTED_DEPARTMENTS, Department, TenantProfile, parse_profile
from .store import ProfileListener, ProfileStore, ProfileSubscription, deep_merge, notify_listener


PROFILE_COLUMNS = "id, email, restaurant_name, subscription_status, settings"

TRANSIENT_ERRORS = (
    OSError,
    asyncio.TimeoutError,
    asyncpg.exceptions.ConnectionDoesNotExistError,
    asyncpg.exceptions.InterfaceError,
    asyncpg.exceptions.TooManyConnectionsError,
)

# Anything other than a restricted department reads as unset, as in parse_department.
LOCKED_DEPARTMENT_VALUES = ", ".join(sorted(f"'{d.value}'" for d in RESTRICTED_DEPARTMENTS))

CLAIM_DEPARTMENT_SQL = f"""
    UPDATE profiles
    SET settings = jsonb_set(
        COALESCE(settings, '{{}}'::jsonb),
        '{{restaurantProfile}}',
        CASE
            WHEN jsonb_typeof(settings->'restaurantProfile') = 'object'
            THEN settings->'restaurantProfile'
            ELSE '{{}}'::jsonb
        END || jsonb_build_object('allowedDepartment', $2::text),
        true
    )
    WHERE id = $1
      AND COALESCE(settings #>> '{{restaurantProfile,allowedDepartment}}', '')
          NOT IN ({LOCKED_DEPARTMENT_VALUES})
    RETURNING {PROFILE_COLUMNS}
"""


async def _init_connection(conn: asyncpg.Connection) -> None:
    await conn.set_type_codec(
        "jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog"
    )


class PostgresProfileStore(ProfileStore):
    """Profiles table access plus LISTEN/NOTIFY based change push."""

    def __init__(self, dsn: str, channel: str = "profile_changes",
                 circuit_breaker: Optional[CircuitBreaker] = None):
        self.dsn = dsn
        self.channel = channel
        self.logger = get_logger("access.profiles.postgres")
        self.pool: Optional[asyncpg.Pool] = None
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            name="profile_store",
            failure_threshold=5,
            recovery_timeout=30.0
        )
        self._listen_conn: Optional[asyncpg.Connection] = None
        self._listeners: Dict[str, List[ProfileListener]] = {}
        self._dispatch_tasks: set = set()

    async def start(self):
        """Start the connection pool."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10,
                command_timeout=30,
                init=_init_connection
            )
            self.logger.info("PostgreSQL profile store started")
        except Exception as e:
            self.logger.error("Failed to start PostgreSQL profile store", error=str(e))
            raise AccessLayerException("POSTGRES_START_FAILED", str(e))

    async def stop(self):
        """Stop the connection pool and the listener connection."""
        if self._listen_conn is not None:
            await self._listen_conn.close()
            self._listen_conn = None
        for task in list(self._dispatch_tasks):
            task.cancel()
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL profile store stopped")

    async def health_check(self) -> bool:
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception:
            return False

    async def get_profile(self, profile_id: str) -> TenantProfile:
        row = await self._fetch_row(f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE id = $1", profile_id)
        if row is None:
            raise ProfileNotFoundError(details={"profile_id": profile_id})
        return parse_profile(dict(row))

    async def get_profile_by_email(self, email: str) -> TenantProfile:
        row = await self._fetch_row(
            f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE email = $1 LIMIT 1", email
        )
        if row is None:
            raise ProfileNotFoundError(details={"email": email})
        return parse_profile(dict(row))

    async def update_profile(self, profile_id: str, settings_patch: Mapping[str, Any]) -> TenantProfile:
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    row = await conn.fetchrow(
                        f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE id = $1 FOR UPDATE",
                        profile_id
                    )
                    if row is None:
                        raise ProfileNotFoundError(details={"profile_id": profile_id})
                    current = row["settings"] if isinstance(row["settings"], dict) else {}
                    row = await conn.fetchrow(
                        f"UPDATE profiles SET settings = $2 WHERE id = $1 RETURNING {PROFILE_COLUMNS}",
                        profile_id, deep_merge(current, settings_patch)
                    )
                    await conn.execute("SELECT pg_notify($1, $2)", self.channel, str(profile_id))
        except ProfileNotFoundError:
            raise
        except Exception as e:
            self.logger.error("Error updating profile", profile_id=profile_id, error=str(e))
            raise ProfileStoreError("Profile update failed", details={"profile_id": profile_id, "error": str(e)})

        self.logger.info("Profile settings updated", profile_id=profile_id, keys=sorted(settings_patch))
        return parse_profile(dict(row))

    async def claim_department(self, profile_id: str, department: Department) -> TenantProfile:
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    row = await conn.fetchrow(CLAIM_DEPARTMENT_SQL, profile_id, Department(department).value)
                    if row is not None:
                        await conn.execute("SELECT pg_notify($1, $2)", self.channel, str(profile_id))
                    else:
                        row = await conn.fetchrow(
                            f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE id = $1", profile_id
                        )
        except Exception as e:
            self.logger.error("Error claiming department", profile_id=profile_id, error=str(e))
            raise ProfileStoreError("Department claim failed", details={"profile_id": profile_id, "error": str(e)})

        if row is None:
            raise ProfileNotFoundError(details={"profile_id": profile_id})
        return parse_profile(dict(row))

    async def subscribe(self, profile_id: str, on_change: ProfileListener) -> ProfileSubscription:
        profile_id = str(profile_id)
        await self._ensure_listening()
        self._listeners.setdefault(profile_id, []).append(on_change)

        async def _close() -> None:
            listeners = self._listeners.get(profile_id, [])
            if on_change in listeners:
                listeners.remove(on_change)
            if not listeners:
                self._listeners.pop(profile_id, None)

        return ProfileSubscription(profile_id, _close)

    async def _ensure_listening(self) -> None:
        if self._listen_conn is not None and not self._listen_conn.is_closed():
            return
        try:
            self._listen_conn = await asyncpg.connect(self.dsn)
            await self._listen_conn.add_listener(self.channel, self._on_notification)
        except Exception as e:
            self.logger.error("Failed to start profile change listener", channel=self.channel, error=str(e))
            raise ProfileStoreError("Realtime subscription failed", details={"error": str(e)})
        self.logger.info("Listening for profile changes", channel=self.channel)

    def _on_notification(self, connection, pid, channel, payload) -> None:
        profile_id = (payload or "").strip()
        if profile_id not in self._listeners:
            return
        task = asyncio.get_running_loop().create_task(self._dispatch(profile_id))
        self._dispatch_tasks.add(task)
        task.add_done_callback(self._dispatch_tasks.discard)

    async def _dispatch(self, profile_id: str) -> None:
        try:
            profile = await self.get_profile(profile_id)
        except AccessLayerException as e:
            self.logger.warning("Could not load changed profile", profile_id=profile_id, error=e.message)
            return
        for listener in list(self._listeners.get(profile_id, [])):
            try:
                await notify_listener(listener, profile)
            except Exception as e:
                self.logger.error("Profile listener failed", profile_id=profile_id, error=str(e))

    async def _fetch_row(self, query: str, *args) -> Optional[asyncpg.Record]:
        try:
            return await self.circuit_breaker.call(self._fetch_row_with_retry, query, *args)
        except CircuitBreakerOpenException as e:
            self.logger.warning("Profile store circuit open", error=str(e))
            raise ProfileStoreError("Profile store unavailable", details={"error": str(e)})
        except RetryError as e:
            raise ProfileStoreError("Profile read failed", details={"error": str(e.last_exception)})
        except Exception as e:
            self.logger.error("Profile read failed", error=str(e))
            raise ProfileStoreError("Profile read failed", details={"error": str(e)})

    @retry_on_exception(TRANSIENT_ERRORS, config=RetryConfig(max_attempts=3, base_delay=0.2))
    async def _fetch_row_with_retry(self, query: str, *args) -> Optional[asyncpg.Record]:
        async with self.pool.acquire() as conn:
            return await conn.fetchrow(query, *args)
