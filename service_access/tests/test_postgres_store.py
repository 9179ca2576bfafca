"""
Unit tests for the PostgreSQL profile store.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from shared.circuit_breaker import CircuitBreaker
from shared.errors import ProfileNotFoundError, ProfileStoreError
from service_access.app.profiles.models import Department
from service_access.app.departments.lock_manager import DepartmentLockManager, LockOutcome
from service_access.app.profiles.models import parse_profile
from service_access.app.profiles.postgres_store import CLAIM_DEPARTMENT_SQL, PostgresProfileStore


def async_context(value):
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=value)
    context.__aexit__ = AsyncMock(return_value=False)
    return context


class TestPostgresProfileStore:
    """Test cases for PostgresProfileStore."""

    @pytest.fixture
    def conn(self):
        conn = MagicMock()
        conn.fetchrow = AsyncMock()
        conn.fetchval = AsyncMock(return_value=1)
        conn.execute = AsyncMock()
        conn.transaction.return_value = async_context(None)
        return conn

    @pytest.fixture
    def store(self, conn):
        store = PostgresProfileStore("postgres://localhost/test", channel="profile_changes")
        store.pool = MagicMock()
        store.pool.acquire.return_value = async_context(conn)
        return store

    @pytest.fixture
    def row(self, factory):
        return factory.create_basic_profile_row(profile_id="tenant-1")

    async def test_get_profile(self, store, conn, row):
        """Test reading and parsing a profile row."""
        conn.fetchrow.return_value = row

        profile = await store.get_profile("tenant-1")

        assert profile.id == "tenant-1"
        assert profile.restaurant_profile.plan_type == "Basic"
        assert conn.fetchrow.call_args[0][1] == "tenant-1"

    async def test_get_profile_not_found(self, store, conn):
        """Test that a missing row raises ProfileNotFoundError."""
        conn.fetchrow.return_value = None

        with pytest.raises(ProfileNotFoundError):
            await store.get_profile("missing")

    @patch("shared.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_transient_error_is_retried(self, mock_sleep, store, conn, row):
        """Test retry on a dropped connection."""
        conn.fetchrow.side_effect = [OSError("connection reset"), row]

        profile = await store.get_profile("tenant-1")

        assert profile.id == "tenant-1"
        assert conn.fetchrow.await_count == 2
        mock_sleep.assert_awaited_once()

    @patch("shared.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_exhausted_retries_raise_store_error(self, mock_sleep, store, conn):
        """Test that persistent transient errors surface as ProfileStoreError."""
        conn.fetchrow.side_effect = OSError("connection refused")

        with pytest.raises(ProfileStoreError):
            await store.get_profile("tenant-1")

        assert conn.fetchrow.await_count == 3

    async def test_open_circuit_blocks_reads(self, store, conn):
        """Test that an open circuit fails fast."""
        store.circuit_breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60, name="test")
        conn.fetchrow.side_effect = RuntimeError("syntax error")

        with pytest.raises(ProfileStoreError):
            await store.get_profile("tenant-1")
        with pytest.raises(ProfileStoreError) as exc_info:
            await store.get_profile("tenant-1")

        assert exc_info.value.message == "Profile store unavailable"
        assert conn.fetchrow.await_count == 1

    async def test_update_profile_merges_and_notifies(self, store, conn, row):
        """Test the read-merge-write update."""
        updated = dict(row)
        updated["settings"] = {
            "restaurantProfile": dict(row["settings"]["restaurantProfile"], userPreferences={"termsAccepted": True})
        }
        conn.fetchrow.side_effect = [row, updated]

        profile = await store.update_profile(
            "tenant-1",
            {"restaurantProfile": {"userPreferences": {"termsAccepted": True}}}
        )

        assert profile.restaurant_profile.user_preferences.terms_accepted is True
        merged = conn.fetchrow.call_args_list[1][0][2]
        assert merged["restaurantProfile"]["planType"] == "Basic"
        assert merged["restaurantProfile"]["userPreferences"] == {"termsAccepted": True}
        conn.execute.assert_awaited_once_with("SELECT pg_notify($1, $2)", "profile_changes", "tenant-1")

    async def test_update_missing_profile(self, store, conn):
        """Test update of an unknown profile."""
        conn.fetchrow.return_value = None

        with pytest.raises(ProfileNotFoundError):
            await store.update_profile("missing", {"a": 1})

    async def test_update_failure_raises_store_error(self, store, conn):
        """Test that write errors surface as ProfileStoreError."""
        conn.fetchrow.side_effect = RuntimeError("deadlock detected")

        with pytest.raises(ProfileStoreError):
            await store.update_profile("tenant-1", {"a": 1})

    async def test_claim_department_won(self, store, conn, factory):
        """Test a successful conditional claim."""
        conn.fetchrow.return_value = factory.create_basic_profile_row(
            profile_id="tenant-1", allowed_department="kitchen"
        )

        profile = await store.claim_department("tenant-1", Department.KITCHEN)

        assert profile.restaurant_profile.allowed_department == Department.KITCHEN
        conn.fetchrow.assert_any_await(CLAIM_DEPARTMENT_SQL, "tenant-1", "kitchen")
        conn.execute.assert_awaited_once()

    async def test_claim_department_lost(self, store, conn, factory):
        """Test a claim that finds the department already set."""
        conn.fetchrow.side_effect = [
            None,
            factory.create_basic_profile_row(profile_id="tenant-1", allowed_department="pub"),
        ]

        profile = await store.claim_department("tenant-1", Department.KITCHEN)

        assert profile.restaurant_profile.allowed_department == Department.PUB
        conn.execute.assert_not_awaited()

    async def test_claim_department_overwrites_unrecognised_value(self, store, conn, factory):
        """Test that a stored value the parser reads as unset can be claimed."""
        stale = parse_profile(factory.create_basic_profile_row(profile_id="tenant-1", allowed_department="Kitchen"))
        conn.fetchrow.return_value = factory.create_basic_profile_row(
            profile_id="tenant-1", allowed_department="kitchen"
        )
        manager = DepartmentLockManager(store)

        assert manager.request_department(stale, Department.KITCHEN).outcome == LockOutcome.NEEDS_CONFIRMATION
        confirmation = await manager.confirm(stale, Department.KITCHEN)

        assert confirmation.access.outcome == LockOutcome.ALLOW
        assert confirmation.access.locked_department == Department.KITCHEN
        conn.fetchrow.assert_awaited_once_with(CLAIM_DEPARTMENT_SQL, "tenant-1", "kitchen")

    def test_claim_guard_only_treats_restricted_departments_as_locked(self):
        """Test that the SQL guard agrees with the department parser."""
        guard = CLAIM_DEPARTMENT_SQL.split("WHERE", 1)[1]

        assert "NOT IN ('delivery', 'kitchen', 'pizzeria', 'pub')" in guard
        assert "waiter" not in guard

    async def test_notification_dispatches_to_subscribers(self, store, conn, row):
        """Test LISTEN/NOTIFY push to subscribers."""
        listen_conn = MagicMock()
        listen_conn.add_listener = AsyncMock()
        listen_conn.is_closed.return_value = False
        conn.fetchrow.return_value = row
        listener = MagicMock()

        with patch("service_access.app.profiles.postgres_store.asyncpg.connect",
                   new=AsyncMock(return_value=listen_conn)):
            subscription = await store.subscribe("tenant-1", listener)

        listen_conn.add_listener.assert_awaited_once_with("profile_changes", store._on_notification)

        store._on_notification(listen_conn, 1, "profile_changes", "tenant-1")
        store._on_notification(listen_conn, 1, "profile_changes", "someone-else")
        await asyncio.gather(*store._dispatch_tasks)

        listener.assert_called_once()
        assert listener.call_args[0][0].id == "tenant-1"

        await subscription.unsubscribe()
        assert "tenant-1" not in store._listeners

    async def test_listener_failure_raises_store_error(self, store):
        """Test that a failed LISTEN setup is reported."""
        with patch("service_access.app.profiles.postgres_store.asyncpg.connect",
                   new=AsyncMock(side_effect=OSError("refused"))):
            with pytest.raises(ProfileStoreError):
                await store.subscribe("tenant-1", MagicMock())

    async def test_health_check(self, store, conn):
        """Test health check against the pool."""
        assert await store.health_check() is True

        conn.fetchval.side_effect = OSError("down")
        assert await store.health_check() is False
