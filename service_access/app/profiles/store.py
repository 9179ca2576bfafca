"""
Profile store contract and in-memory implementation.
"""

import asyncio
import copy
import inspect
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from shared.errors import ProfileNotFoundError, ProfileStoreError
from shared.logging import get_logger

from .models import Department, TenantProfile, parse_profile


ProfileListener = Callable[[TenantProfile], Union[None, Awaitable[None]]]


def deep_merge(base: Mapping[str, Any], patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Return ``base`` with ``patch`` merged in; nested mappings merge key by key."""
    merged = dict(base)
    for key, value in patch.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


async def notify_listener(listener: ProfileListener, profile: TenantProfile) -> None:
    result = listener(profile)
    if inspect.isawaitable(result):
        await result


class ProfileSubscription:
    """Handle for a realtime profile subscription."""

    def __init__(self, profile_id: str, on_close: Callable[[], Awaitable[None]]):
        self.profile_id = profile_id
        self._on_close = on_close
        self.closed = False

    async def unsubscribe(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self._on_close()


class ProfileStore(ABC):
    """Persistence and realtime push for tenant profiles.

    Read errors raise ``ProfileStoreError``; missing rows raise
    ``ProfileNotFoundError``.
    """

    async def start(self) -> None:
        """Open connections."""

    async def stop(self) -> None:
        """Close connections."""

    async def health_check(self) -> bool:
        return True

    @abstractmethod
    async def get_profile(self, profile_id: str) -> TenantProfile:
        ...

    @abstractmethod
    async def get_profile_by_email(self, email: str) -> TenantProfile:
        ...

    @abstractmethod
    async def update_profile(self, profile_id: str, settings_patch: Mapping[str, Any]) -> TenantProfile:
        """Deep-merge ``settings_patch`` into the stored settings blob."""

    @abstractmethod
    async def claim_department(self, profile_id: str, department: Department) -> TenantProfile:
        """Set ``allowedDepartment`` only if it is currently unset.

        Returns the profile as stored after the attempt; callers compare
        its ``allowed_department`` with what they asked for.
        """

    @abstractmethod
    async def subscribe(self, profile_id: str, on_change: ProfileListener) -> ProfileSubscription:
        ...


class InMemoryProfileStore(ProfileStore):
    """Process-local store, used for local runs and tests."""

    def __init__(self, rows: Optional[List[Mapping[str, Any]]] = None):
        self.logger = get_logger("access.profiles.memory")
        self._rows: Dict[str, Dict[str, Any]] = {}
        self._listeners: Dict[str, List[ProfileListener]] = {}
        self._lock = asyncio.Lock()
        for row in rows or []:
            self.put_row(row)

    def put_row(self, row: Mapping[str, Any]) -> TenantProfile:
        """Insert or replace a raw ``profiles`` row."""
        stored = copy.deepcopy(dict(row))
        stored["id"] = str(stored["id"])
        stored.setdefault("settings", {})
        self._rows[stored["id"]] = stored
        return parse_profile(stored)

    def get_row(self, profile_id: str) -> Optional[Dict[str, Any]]:
        row = self._rows.get(profile_id)
        return copy.deepcopy(row) if row is not None else None

    async def get_profile(self, profile_id: str) -> TenantProfile:
        row = self._rows.get(str(profile_id))
        if row is None:
            raise ProfileNotFoundError(details={"profile_id": profile_id})
        return parse_profile(copy.deepcopy(row))

    async def get_profile_by_email(self, email: str) -> TenantProfile:
        for row in self._rows.values():
            if row.get("email") == email:
                return parse_profile(copy.deepcopy(row))
        raise ProfileNotFoundError(details={"email": email})

    async def update_profile(self, profile_id: str, settings_patch: Mapping[str, Any]) -> TenantProfile:
        async with self._lock:
            row = self._rows.get(str(profile_id))
            if row is None:
                raise ProfileNotFoundError(details={"profile_id": profile_id})
            row["settings"] = deep_merge(row.get("settings") or {}, settings_patch)
            profile = parse_profile(copy.deepcopy(row))
        await self._publish(profile)
        return profile

    async def claim_department(self, profile_id: str, department: Department) -> TenantProfile:
        async with self._lock:
            row = self._rows.get(str(profile_id))
            if row is None:
                raise ProfileNotFoundError(details={"profile_id": profile_id})
            current = parse_profile(row).restaurant_profile.allowed_department
            changed = current is None
            if changed:
                row["settings"] = deep_merge(
                    row.get("settings") or {},
                    {"restaurantProfile": {"allowedDepartment": Department(department).value}},
                )
            profile = parse_profile(copy.deepcopy(row))
        if changed:
            await self._publish(profile)
        return profile

    async def subscribe(self, profile_id: str, on_change: ProfileListener) -> ProfileSubscription:
        profile_id = str(profile_id)
        self._listeners.setdefault(profile_id, []).append(on_change)

        async def _close() -> None:
            listeners = self._listeners.get(profile_id, [])
            if on_change in listeners:
                listeners.remove(on_change)

        return ProfileSubscription(profile_id, _close)

    async def publish_row(self, row: Mapping[str, Any]) -> TenantProfile:
        """Replace a row as an external writer would and push the change."""
        profile = self.put_row(row)
        await self._publish(profile)
        return profile

    async def _publish(self, profile: TenantProfile) -> None:
        for listener in list(self._listeners.get(profile.id, [])):
            try:
                await notify_listener(listener, profile)
            except Exception as e:
                self.logger.error("Profile listener failed", profile_id=profile.id, error=str(e))
