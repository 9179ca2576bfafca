"""
Department lock package for Basic-tier plans.
"""

from .lock_manager import Confirmation, DepartmentAccess, DepartmentLockManager, LockOutcome

__all__ = ["Confirmation", "DepartmentAccess", "DepartmentLockManager", "LockOutcome"]
