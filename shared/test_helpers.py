"""
Test helper functions and factory methods for the tenant access service.
"""

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Optional


PRIVILEGED_EMAIL = "castro.massimo@yahoo.com"


class TestDataFactory:
    """Factory for raw ``profiles`` rows and settings blobs."""

    __test__ = False

    @staticmethod
    def create_profile_row(profile_id: Optional[str] = None,
                           email: str = "owner@trattoria.it",
                           plan_type: str = "Standard",
                           end_date: Any = None,
                           status: Optional[str] = "active",
                           allowed_department: Optional[str] = None,
                           preferences: Optional[Dict[str, Any]] = None,
                           extra_settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Create a profile row as stored, with camelCase settings keys."""
        restaurant_profile: Dict[str, Any] = {"planType": plan_type}
        if end_date is not None:
            restaurant_profile["subscriptionEndDate"] = (
                end_date.isoformat() if isinstance(end_date, (date, datetime)) else end_date
            )
        if allowed_department is not None:
            restaurant_profile["allowedDepartment"] = allowed_department
        if preferences is not None:
            restaurant_profile["userPreferences"] = preferences

        settings: Dict[str, Any] = {"restaurantProfile": restaurant_profile}
        settings.update(extra_settings or {})

        return {
            "id": profile_id or str(uuid.uuid4()),
            "email": email,
            "restaurant_name": "Trattoria Da Test",
            "subscription_status": status,
            "settings": settings,
        }

    @staticmethod
    def create_basic_profile_row(profile_id: str = "tenant-basic", **kwargs) -> Dict[str, Any]:
        kwargs.setdefault("plan_type", "Basic")
        kwargs.setdefault("end_date", date.today() + timedelta(days=30))
        return TestDataFactory.create_profile_row(profile_id=profile_id, **kwargs)

    @staticmethod
    def create_global_config(promo_active: bool = False,
                             promo_last_updated: Optional[datetime] = None,
                             deadline_hours: int = 72) -> Dict[str, Any]:
        """Create a ``globalConfig`` settings blob as the admin dashboard saves it."""
        last_updated = promo_last_updated or datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)
        return {
            "contactEmail": "support@ristosync.example",
            "defaultCost": "59.90",
            "bankDetails": {
                "iban": "IT60X0542811101000000123456",
                "holder": "RistoSync SRL",
            },
            "supportContact": {"phone": "+39 06 1234567"},
            "promo": {
                "name": "Estate",
                "cost": "19,90",
                "duration": "2 Mesi",
                "deadlineHours": deadline_hours,
                "active": promo_active,
                "lastUpdated": last_updated.isoformat(),
            },
            "lastUpdated": last_updated.isoformat(),
        }

    @staticmethod
    def create_admin_row(global_config: Optional[Dict[str, Any]] = None,
                         email: str = PRIVILEGED_EMAIL) -> Dict[str, Any]:
        """Create the super admin's row, which carries the global config."""
        return TestDataFactory.create_profile_row(
            profile_id="super-admin",
            email=email,
            plan_type="Free",
            extra_settings={"globalConfig": global_config or TestDataFactory.create_global_config()},
        )


class TestEnvironment:
    """Test environment configuration."""

    __test__ = False

    @staticmethod
    def get_mock_config() -> Dict[str, Any]:
        """Config overrides for running the service against in-process fakes."""
        return {
            "env": "test",
            "log_level": "debug",
            "profile_store": "memory",
            "enable_redis_mirror": False,
            "privileged_email": PRIVILEGED_EMAIL,
            "timezone": "Europe/Rome",
            "profile_fetch_timeout_seconds": 0.5,
            "global_config_fetch_timeout_seconds": 0.5,
        }
