"""
Department lock for Basic-tier plans.

A Basic plan may use a single operational department. The first entry
into a restricted department asks the operator to confirm; confirming
writes ``allowedDepartment`` once and for all. Later entries into the
same department are allowed, any other restricted department is denied.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from shared.errors import AccessLayerException, DepartmentLockError, ValidationError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..entitlements.plans import is_basic_plan
from ..profiles.models import Department, TenantProfile, is_restricted_department
from ..profiles.store import ProfileStore


class LockOutcome(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    NEEDS_CONFIRMATION = "needs_confirmation"


@dataclass(frozen=True)
class DepartmentAccess:
    outcome: LockOutcome
    department: Department
    locked_department: Optional[Department] = None


@dataclass(frozen=True)
class Confirmation:
    access: DepartmentAccess
    profile: TenantProfile


def coerce_department(value: Union[str, Department]) -> Department:
    try:
        return Department(value)
    except ValueError:
        raise ValidationError(
            f"Unknown department: {value}",
            details={"department": str(value)}
        ) from None


class DepartmentLockManager:
    """Write-once department restriction, persisted through the profile store."""

    def __init__(self, store: ProfileStore, metrics: Optional[MetricsCollector] = None):
        self.store = store
        self.metrics = metrics
        self.logger = get_logger("access.department_lock")

    @staticmethod
    def lock_applies(profile: TenantProfile, department: Department) -> bool:
        return (
            is_basic_plan(profile.restaurant_profile.plan_type)
            and is_restricted_department(department)
        )

    def request_department(self, profile: TenantProfile,
                           department: Union[str, Department]) -> DepartmentAccess:
        """Decide whether ``department`` can be entered right now."""
        department = coerce_department(department)
        access = self._decide(profile, department)
        self._record("request", access)
        return access

    async def confirm(self, profile: TenantProfile,
                      department: Union[str, Department]) -> Confirmation:
        """Persist the lock after the operator confirmed it.

        The write is conditional on ``allowedDepartment`` being unset, so
        concurrent confirmations for different departments cannot both win.
        ``profile`` is never modified; the returned profile is the stored
        one. Raises ``DepartmentLockError`` when the store does not confirm.
        """
        department = coerce_department(department)
        access = self._decide(profile, department)
        if access.outcome != LockOutcome.NEEDS_CONFIRMATION:
            self._record("confirm", access)
            return Confirmation(access=access, profile=profile)

        try:
            stored = await self.store.claim_department(profile.id, department)
        except AccessLayerException as e:
            self.logger.error(
                "Department lock write failed",
                profile_id=profile.id,
                department=department.value,
                error=e.message
            )
            self._record_failure()
            raise DepartmentLockError(details={"profile_id": profile.id, "cause": e.code}) from e
        except Exception as e:
            self.logger.error(
                "Department lock write failed",
                profile_id=profile.id,
                department=department.value,
                error=str(e)
            )
            self._record_failure()
            raise DepartmentLockError(details={"profile_id": profile.id, "cause": str(e)}) from e

        locked = stored.restaurant_profile.allowed_department
        if locked is None:
            self._record_failure()
            raise DepartmentLockError(
                "Store did not record the department lock",
                details={"profile_id": profile.id}
            )

        if locked == department:
            access = DepartmentAccess(LockOutcome.ALLOW, department, locked)
            self.logger.info("Department locked", profile_id=profile.id, department=department.value)
        else:
            access = DepartmentAccess(LockOutcome.DENY, department, locked)
            self.logger.warning(
                "Department already locked by another writer",
                profile_id=profile.id,
                requested=department.value,
                locked=locked.value
            )

        self._record("confirm", access)
        return Confirmation(access=access, profile=stored)

    def _decide(self, profile: TenantProfile, department: Department) -> DepartmentAccess:
        if not self.lock_applies(profile, department):
            return DepartmentAccess(LockOutcome.ALLOW, department)

        locked = profile.restaurant_profile.allowed_department
        if locked is None:
            return DepartmentAccess(LockOutcome.NEEDS_CONFIRMATION, department)
        if locked == department:
            return DepartmentAccess(LockOutcome.ALLOW, department, locked)
        return DepartmentAccess(LockOutcome.DENY, department, locked)

    def _record(self, operation: str, access: DepartmentAccess) -> None:
        if self.metrics is not None:
            self.metrics.record_department_lock(operation, access.outcome.value)

    def _record_failure(self) -> None:
        if self.metrics is not None:
            self.metrics.record_department_lock("confirm", "error")
