"""
Tenant profile package.

Defines the typed profile and global config records, the single
deserialization step from stored rows, and the profile store contract
with its in-memory and PostgreSQL implementations.
"""

from .models import (
    BankDetails,
    Department,
    GlobalConfig,
    Promo,
    RESTRICTED_DEPARTMENTS,
    RestaurantProfile,
    SubscriptionStatus,
    SupportContact,
    TenantProfile,
    UserPreferences,
    parse_global_config,
    parse_profile,
)
from .store import InMemoryProfileStore, ProfileStore, ProfileSubscription

__all__ = [
    "BankDetails",
    "Department",
    "GlobalConfig",
    "InMemoryProfileStore",
    "ProfileStore",
    "ProfileSubscription",
    "Promo",
    "RESTRICTED_DEPARTMENTS",
    "RestaurantProfile",
    "SubscriptionStatus",
    "SupportContact",
    "TenantProfile",
    "UserPreferences",
    "parse_global_config",
    "parse_profile",
]
